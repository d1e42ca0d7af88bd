from datetime import date, datetime, time, timedelta

from pydantic import BaseModel, Field


# A cell holds one of these; None stands for an empty cell
CellValue = str | bool | int | float | datetime | date | time | timedelta | None
Record = dict[str, CellValue]


class Table(BaseModel):
    id: str
    file_name: str
    name: str
    columns: list[str]
    rows: list[Record] = []


class TableSummary(BaseModel):
    id: str
    file_name: str
    name: str
    columns: list[str]
    row_count: int

    @classmethod
    def from_table(cls, table: Table) -> "TableSummary":
        return cls(
            id=table.id,
            file_name=table.file_name,
            name=table.name,
            columns=table.columns,
            row_count=len(table.rows),
        )


class TablePreview(BaseModel):
    table: TableSummary
    rows: list[Record]
    shown_rows: int


class UploadError(BaseModel):
    file_name: str
    error_message: str


class UploadResult(BaseModel):
    tables: list[TableSummary] = Field(default_factory=list)
    errors: list[UploadError] = Field(default_factory=list)
