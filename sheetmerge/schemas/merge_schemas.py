from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from sheetmerge.schemas.table_schemas import Record, TableSummary


class SourceConfig(BaseModel):
    source_table_id: str
    join_key: str = ""
    copy_columns: list[str] = Field(default_factory=list)
    enabled: bool = False


class SourceConfigView(BaseModel):
    config: SourceConfig
    file_name: str
    name: str
    common_columns: list[str]
    # Columns offered for copying: every source column except the join key
    copyable_columns: list[str]
    joinable: bool


class MergeResult(BaseModel):
    """Rows produced by one merge, never written back to the registry"""

    model_config = ConfigDict(frozen=True)

    target_table_id: str
    columns: list[str]
    rows: list[Record]
    matched_rows: dict[str, int] = Field(default_factory=dict)
    sources_merged: int = 0


class MergeState(str, Enum):
    UNCONFIGURED = "unconfigured"
    CONFIGURED = "configured"
    MERGED = "merged"


class MergeSummary(BaseModel):
    success: bool
    targetTableId: str
    sourcesMerged: int
    totalRows: int
    totalColumns: int
    matchedRows: dict[str, int]


class SessionInfo(BaseModel):
    id: str
    state: MergeState
    target_table_id: str | None
    tables: list[TableSummary]
    sources: list[SourceConfigView]


class ResultPreview(BaseModel):
    columns: list[str]
    rows: list[Record]
    total_rows: int
    shown_rows: int


class TargetSelection(BaseModel):
    table_id: str | None = None


class ColumnSelection(BaseModel):
    column: str
