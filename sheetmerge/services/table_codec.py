import csv
import io
import uuid
import zipfile
from collections.abc import Iterable, Sequence
from pathlib import PurePath
from typing import Any

import xlrd
from openpyxl import Workbook, load_workbook
from openpyxl.cell import WriteOnlyCell
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.utils.exceptions import InvalidFileException

from sheetmerge.commons.exceptions import DecodeError
from sheetmerge.libs.log import get_logger
from sheetmerge.schemas.merge_schemas import MergeResult
from sheetmerge.schemas.table_schemas import Record, Table


logger = get_logger(__name__)

WORKBOOK_EXTENSIONS = {".xlsx", ".xlsm"}
LEGACY_WORKBOOK_EXTENSIONS = {".xls"}
CSV_EXTENSIONS = {".csv"}
SUPPORTED_EXTENSIONS = WORKBOOK_EXTENSIONS | LEGACY_WORKBOOK_EXTENSIONS | CSV_EXTENSIONS

CSV_SHEET_NAME = "Sheet1"
EMPTY_HEADER = "__EMPTY"


def make_table_id(file_name: str, sheet_name: str) -> str:
    return f"{file_name}-{sheet_name}-{uuid.uuid4().hex[:12]}"


def build_header(values: Sequence[Any]) -> list[str]:
    """
    Turn a header row into unique column names.

    Blank cells become "__EMPTY", "__EMPTY_1", ... and repeated names get
    a "_1", "_2", ... suffix.
    """
    header: list[str] = []
    seen: set[str] = set()
    for value in values:
        base = EMPTY_HEADER if value is None or str(value).strip() == "" else str(value)
        name = base
        suffix = 0
        while name in seen:
            suffix += 1
            name = f"{base}_{suffix}"
        seen.add(name)
        header.append(name)
    return header


def build_records(header: list[str], data_rows: Iterable[Sequence[Any]]) -> list[Record]:
    """Map data rows onto the header, skipping blank rows and filling gaps with ''"""
    records: list[Record] = []
    for values in data_rows:
        if all(value is None or value == "" for value in values):
            continue
        record: Record = {}
        for index, column in enumerate(header):
            value = values[index] if index < len(values) else None
            record[column] = "" if value is None else value
        records.append(record)
    return records


def _trim_trailing_blanks(values: Sequence[Any]) -> list[Any]:
    values = list(values)
    while values and (values[-1] is None or values[-1] == ""):
        values.pop()
    return values


def build_table(
    file_name: str,
    sheet_name: str,
    rows: Iterable[Sequence[Any]],
) -> Table | None:
    """Build a table from raw sheet rows, None when the sheet holds no data"""
    iterator = iter(rows)
    try:
        header_row = next(iterator)
    except StopIteration:
        logger.info(f"Skipping empty sheet {file_name} - {sheet_name}")
        return None

    header = build_header(_trim_trailing_blanks(header_row))
    records = build_records(header, iterator)
    if not header or not records:
        logger.info(f"Skipping sheet without data {file_name} - {sheet_name}")
        return None

    return Table(
        id=make_table_id(file_name, sheet_name),
        file_name=file_name,
        name=sheet_name,
        columns=header,
        rows=records,
    )


def decode_workbook(file_name: str, content: bytes) -> list[Table]:
    tables: list[Table] = []
    workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    try:
        for sheet_name in workbook.sheetnames:
            rows = workbook[sheet_name].iter_rows(values_only=True)
            if (table := build_table(file_name, sheet_name, rows)) is not None:
                tables.append(table)
    finally:
        workbook.close()

    return tables


def _legacy_cell_value(cell: xlrd.sheet.Cell, datemode: int) -> Any:
    if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK, xlrd.XL_CELL_ERROR):
        return None
    if cell.ctype == xlrd.XL_CELL_DATE:
        return xlrd.xldate.xldate_as_datetime(cell.value, datemode)
    if cell.ctype == xlrd.XL_CELL_BOOLEAN:
        return bool(cell.value)
    return cell.value


def decode_legacy_workbook(file_name: str, content: bytes) -> list[Table]:
    """Decode a BIFF (.xls) workbook"""
    tables: list[Table] = []
    book = xlrd.open_workbook(file_contents=content)
    try:
        for sheet in book.sheets():
            rows = (
                [_legacy_cell_value(cell, book.datemode) for cell in sheet.row(index)]
                for index in range(sheet.nrows)
            )
            if (table := build_table(file_name, sheet.name, rows)) is not None:
                tables.append(table)
    finally:
        book.release_resources()

    return tables


def decode_csv(file_name: str, content: bytes) -> list[Table]:
    # utf-8-sig drops the BOM spreadsheet programs like to write
    text = content.decode("utf-8-sig")
    reader = csv.reader(io.StringIO(text, newline=""))
    table = build_table(file_name, CSV_SHEET_NAME, reader)
    return [table] if table is not None else []


def decode_file(file_name: str, content: bytes) -> list[Table]:
    """
    Decode a spreadsheet file into one table per sheet with data.

    Raises DecodeError for unsupported or malformed files, in which case
    no table of that file is returned.
    """
    extension = PurePath(file_name).suffix.lower()
    if extension not in SUPPORTED_EXTENSIONS:
        raise DecodeError(file_name, f"unsupported file type '{extension or file_name}'")

    try:
        if extension in CSV_EXTENSIONS:
            tables = decode_csv(file_name, content)
        elif extension in LEGACY_WORKBOOK_EXTENSIONS:
            tables = decode_legacy_workbook(file_name, content)
        else:
            tables = decode_workbook(file_name, content)
    except (
        InvalidFileException,
        zipfile.BadZipFile,
        xlrd.XLRDError,
        csv.Error,
        KeyError,
        ValueError,
        OSError,
    ) as e:
        logger.warning(f"Failed to decode {file_name}: {e}")
        raise DecodeError(file_name) from e

    logger.info(f"Decoded {len(tables)} table(s) from {file_name}")
    return tables


def _export_cell(sheet, value: Any) -> Any:
    """Strings are written as literal text, never as formulas"""
    if not isinstance(value, str):
        return value
    cell = WriteOnlyCell(sheet, value=ILLEGAL_CHARACTERS_RE.sub("", value))
    cell.data_type = "s"
    return cell


def encode_workbook(result: MergeResult, sheet_name: str) -> bytes:
    """Write a merge result as a single-sheet xlsx workbook"""
    workbook = Workbook(write_only=True)
    sheet = workbook.create_sheet(title=sheet_name)

    sheet.append([_export_cell(sheet, column) for column in result.columns])
    for row in result.rows:
        sheet.append([_export_cell(sheet, row.get(column)) for column in result.columns])

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()
