from fastapi import APIRouter, Depends, File, UploadFile
from starlette.concurrency import run_in_threadpool

from sheetmerge._config import config
from sheetmerge.commons.exceptions import DecodeError
from sheetmerge.controllers.dependencies import get_api_key, get_merge_session
from sheetmerge.libs.log import get_logger
from sheetmerge.schemas.merge_schemas import SessionInfo
from sheetmerge.schemas.table_schemas import (
    TablePreview,
    TableSummary,
    UploadError,
    UploadResult,
)
from sheetmerge.services.merge_session import MergeSession, session_store
from sheetmerge.services.table_codec import decode_file


logger = get_logger(__name__)

router = APIRouter(
    prefix="/sessions",
    tags=["sessions"],
    dependencies=[Depends(get_api_key)],
)


def build_session_info(session: MergeSession) -> SessionInfo:
    return SessionInfo(
        id=session.id,
        state=session.state,
        target_table_id=session.config_manager.target_id,
        tables=[TableSummary.from_table(table) for table in session.registry.tables],
        sources=session.config_manager.views(),
    )


@router.post("", response_model=SessionInfo, status_code=201)
async def create_session() -> SessionInfo:
    return build_session_info(session_store.create())


@router.get("/{session_id}", response_model=SessionInfo)
async def get_session(
    session: MergeSession = Depends(get_merge_session),
) -> SessionInfo:
    return build_session_info(session)


@router.delete("/{session_id}", status_code=204)
async def delete_session(session_id: str) -> None:
    session_store.delete(session_id)


@router.post("/{session_id}/tables", response_model=UploadResult)
async def upload_tables(
    files: list[UploadFile] = File(...),
    session: MergeSession = Depends(get_merge_session),
) -> UploadResult:
    result = UploadResult()

    for file in files:
        file_name = file.filename or "upload"
        too_large = file.size is not None and file.size > config.MAX_UPLOAD_BYTES
        if not too_large:
            # Read at most one byte past the limit
            content = await file.read(config.MAX_UPLOAD_BYTES + 1)
            too_large = len(content) > config.MAX_UPLOAD_BYTES

        if too_large:
            logger.warning(f"Rejected {file_name}: larger than {config.MAX_UPLOAD_BYTES} bytes")
            result.errors.append(
                UploadError(
                    file_name=file_name,
                    error_message=f"File exceeds {config.MAX_UPLOAD_BYTES} bytes",
                ),
            )
            continue

        # A bad file is reported on its own and never blocks the others
        try:
            tables = await run_in_threadpool(decode_file, file_name, content)
        except DecodeError as e:
            result.errors.append(UploadError(file_name=file_name, error_message=e.message))
            continue

        session.add_tables(tables)
        result.tables.extend(TableSummary.from_table(table) for table in tables)

    logger.info(
        f"Session {session.id}: uploaded {len(files)} file(s), "
        f"{len(result.tables)} table(s), {len(result.errors)} error(s)",
    )
    return result


@router.get("/{session_id}/tables", response_model=list[TableSummary])
async def list_tables(
    session: MergeSession = Depends(get_merge_session),
) -> list[TableSummary]:
    return [TableSummary.from_table(table) for table in session.registry.tables]


@router.get("/{session_id}/tables/{table_id}", response_model=TablePreview)
async def preview_table(
    table_id: str,
    session: MergeSession = Depends(get_merge_session),
) -> TablePreview:
    table = session.registry.get(table_id)
    rows = table.rows[: config.MAX_PREVIEW_ROWS]
    return TablePreview(
        table=TableSummary.from_table(table),
        rows=rows,
        shown_rows=len(rows),
    )


@router.delete("/{session_id}/tables/{table_id}", response_model=SessionInfo)
async def remove_table(
    table_id: str,
    session: MergeSession = Depends(get_merge_session),
) -> SessionInfo:
    session.remove_table(table_id)
    return build_session_info(session)
