from collections.abc import Iterable, Iterator

from sheetmerge.commons.exceptions import TableNotFound
from sheetmerge.libs.log import get_logger
from sheetmerge.schemas.table_schemas import Table


logger = get_logger(__name__)


class TableRegistry:
    """In-memory, insertion-ordered collection of loaded tables"""

    def __init__(self, tables: Iterable[Table] = ()):
        self._tables: dict[str, Table] = {}
        self.add_many(tables)

    def __len__(self) -> int:
        return len(self._tables)

    def __contains__(self, table_id: object) -> bool:
        return table_id in self._tables

    def __iter__(self) -> Iterator[Table]:
        return iter(list(self._tables.values()))

    @property
    def tables(self) -> list[Table]:
        return list(self._tables.values())

    def add(self, table: Table) -> None:
        if table.id in self._tables:
            logger.warning(f"Replacing already registered table {table.id}")
        self._tables[table.id] = table
        logger.info(
            f"Registered table {table.file_name} - {table.name} "
            f"({len(table.rows)} rows, {len(table.columns)} columns)",
        )

    def add_many(self, tables: Iterable[Table]) -> None:
        for table in tables:
            self.add(table)

    def find(self, table_id: str) -> Table | None:
        return self._tables.get(table_id)

    def get(self, table_id: str) -> Table:
        if (table := self._tables.get(table_id)) is None:
            raise TableNotFound(table_id)
        return table

    def remove(self, table_id: str) -> Table:
        if table_id not in self._tables:
            raise TableNotFound(table_id)
        table = self._tables.pop(table_id)
        logger.info(f"Removed table {table.file_name} - {table.name}")
        return table
