from datetime import datetime

from fastapi import APIRouter, Depends, Response

from sheetmerge._config import config
from sheetmerge.controllers.dependencies import get_api_key, get_merge_session
from sheetmerge.controllers.session_controller import build_session_info
from sheetmerge.schemas.merge_schemas import (
    ColumnSelection,
    MergeSummary,
    ResultPreview,
    SessionInfo,
    SourceConfig,
    SourceConfigView,
    TargetSelection,
)
from sheetmerge.services.merge_session import MergeSession
from sheetmerge.services.table_codec import encode_workbook


XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

router = APIRouter(
    prefix="/sessions/{session_id}",
    tags=["merge"],
    dependencies=[Depends(get_api_key)],
)


@router.put("/target", response_model=SessionInfo)
async def select_target(
    selection: TargetSelection,
    session: MergeSession = Depends(get_merge_session),
) -> SessionInfo:
    session.select_target(selection.table_id)
    return build_session_info(session)


@router.get("/sources", response_model=list[SourceConfigView])
async def list_sources(
    session: MergeSession = Depends(get_merge_session),
) -> list[SourceConfigView]:
    return session.config_manager.views()


@router.post("/sources/{source_id}/toggle", response_model=SourceConfig)
async def toggle_source(
    source_id: str,
    session: MergeSession = Depends(get_merge_session),
) -> SourceConfig:
    return session.toggle_source(source_id)


@router.put("/sources/{source_id}/join-key", response_model=SourceConfig)
async def set_join_key(
    source_id: str,
    selection: ColumnSelection,
    session: MergeSession = Depends(get_merge_session),
) -> SourceConfig:
    return session.set_join_key(source_id, selection.column)


@router.post("/sources/{source_id}/copy-columns/toggle", response_model=SourceConfig)
async def toggle_copy_column(
    source_id: str,
    selection: ColumnSelection,
    session: MergeSession = Depends(get_merge_session),
) -> SourceConfig:
    return session.toggle_copy_column(source_id, selection.column)


@router.post("/merge", response_model=MergeSummary)
async def merge_tables(
    session: MergeSession = Depends(get_merge_session),
) -> MergeSummary:
    result = session.merge()
    return MergeSummary(
        success=True,
        targetTableId=result.target_table_id,
        sourcesMerged=result.sources_merged,
        totalRows=len(result.rows),
        totalColumns=len(result.columns),
        matchedRows=result.matched_rows,
    )


@router.get("/result", response_model=ResultPreview)
async def get_result(
    session: MergeSession = Depends(get_merge_session),
) -> ResultPreview:
    result = session.result
    rows = result.rows[: config.MAX_PREVIEW_ROWS]
    return ResultPreview(
        columns=result.columns,
        rows=rows,
        total_rows=len(result.rows),
        shown_rows=len(rows),
    )


@router.get("/result/export")
async def export_result(
    session: MergeSession = Depends(get_merge_session),
) -> Response:
    content = encode_workbook(session.result, config.EXPORT_SHEET_NAME)
    file_name = f"Merged_Master_{datetime.now().strftime('%Y%m%d%H%M%S')}.xlsx"
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'},
    )
