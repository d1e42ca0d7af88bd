import os
import sys


os.environ.setdefault("ENVIRONMENT", "test")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from sheetmerge import app, config  # noqa: E402
from sheetmerge.libs.log import get_logger  # noqa: E402
from sheetmerge.schemas.table_schemas import Table  # noqa: E402


logger = get_logger(__name__)

if config.ENVIRONMENT != "test":
    logger.error('Tests must be run with "ENVIRONMENT=test"')
    sys.exit(1)


@pytest.fixture
async def client():
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client


@pytest.fixture
def make_table():
    def _make_table(
        table_id: str,
        rows: list[dict],
        columns: list[str] | None = None,
        file_name: str | None = None,
    ) -> Table:
        if columns is None:
            columns = list(rows[0]) if rows else []
        return Table(
            id=table_id,
            file_name=file_name or f"{table_id}.xlsx",
            name="Sheet1",
            columns=columns,
            rows=rows,
        )

    return _make_table
