"""
Appending normalized invoice records to a worksheet.

Each mapped field becomes one cell write at an explicit (row, column)
coordinate. Writes are computed up front and sent as a single batch; the
target row is one past the last row holding any value in the mapped columns.

The row lookup and the batch write are separate requests, so two processes
appending to the same sheet at once may pick the same row.
"""

from typing import Any, List, Optional, Sequence, Tuple

from pdf2xls.models import CellWrite, ColumnMapping, NormalizedInvoiceRecord, WriteResult
from pdf2xls.normalization.dates import parse_iso_date, to_serial
from pdf2xls.normalization.numbers import round_money, try_parse_flexible_decimal
from pdf2xls.sheets.client import GoogleSheetsClient
from pdf2xls.utils.logging import LogContext, get_logger, log_performance

logger = get_logger(__name__)

NUMBER_FORMAT = {"type": "NUMBER", "pattern": "#,##0.00"}
DATE_FORMAT = {"type": "DATE", "pattern": "yyyy-mm-dd"}


def column_letter_to_index(letter: Optional[str]) -> Optional[int]:
    """
    Convert a column letter to a zero-based index (``A`` is 0, ``AA`` is 26).

    Blank or non-alphabetic input means the field is unmapped and gives None.
    """
    letter = (letter or "").strip().upper()
    if not letter or not all("A" <= ch <= "Z" for ch in letter):
        return None

    index = 0
    for ch in letter:
        index = index * 26 + (ord(ch) - ord("A") + 1)
    return index - 1


def column_index_to_letter(index: int) -> str:
    letters = ""
    index += 1
    while index > 0:
        index, remainder = divmod(index - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return letters


def next_row(values: Sequence[Sequence[Any]]) -> int:
    """Zero-based index of the row after the last row with a non-blank cell."""
    last = -1
    for i, row in enumerate(values):
        if any(str(cell).strip() for cell in row if cell is not None):
            last = i
    return last + 1


def classify_value(value: str) -> Tuple[Any, Optional[dict]]:
    """
    Choose the typed cell value and number format for ``value``.

    Flexible decimals become numbers rounded to two places, ISO dates become
    serial day counts, everything else stays text.
    """
    ok, number = try_parse_flexible_decimal(value)
    if ok:
        return float(round_money(number)), NUMBER_FORMAT

    parsed = parse_iso_date(value)
    if parsed is not None:
        return to_serial(parsed), DATE_FORMAT

    return value, None


def resolved_columns(mapping: ColumnMapping) -> List[Tuple[str, int]]:
    """Mapped (field, column index) pairs, skipping blank or invalid letters."""
    columns = []
    for field, letter in mapping.items():
        index = column_letter_to_index(letter)
        if index is not None:
            columns.append((field, index))
    return columns


def build_cell_writes(
    record: NormalizedInvoiceRecord,
    mapping: ColumnMapping,
    row: int,
) -> List[CellWrite]:
    """
    Build the cell writes for one record on ``row`` (zero-based).

    Fields without a value in the record are skipped. When two fields share a
    column, both writes are kept and the later one wins on the sheet.
    """
    writes = []
    for field, column in resolved_columns(mapping):
        value = record.get(field)
        if value is None or not str(value).strip():
            continue
        typed, number_format = classify_value(str(value).strip())
        writes.append(CellWrite(row=row, column=column, value=typed, number_format=number_format))
    return writes


class SheetWriter:
    """Append normalized records to one worksheet."""

    def __init__(self, client: GoogleSheetsClient, sheet_name: str) -> None:
        self.client = client
        self.sheet_name = sheet_name

    def _span(self, columns: List[Tuple[str, int]]) -> str:
        first = column_index_to_letter(min(index for _, index in columns))
        last = column_index_to_letter(max(index for _, index in columns))
        return f"'{self.sheet_name}'!{first}:{last}"

    @log_performance
    async def append(self, record: NormalizedInvoiceRecord, mapping: ColumnMapping) -> WriteResult:
        """
        Write ``record`` to the next free row.

        Returns:
            Result with the 1-based row written, or ``skipped=True`` when the
            mapping resolves to no cells (no request is sent then)

        Raises:
            SinkLocateFailure: If the worksheet does not exist
            SinkWriteFailure: If reading or writing fails
        """
        columns = resolved_columns(mapping)
        if not any(str(record.get(field) or "").strip() for field, _ in columns):
            logger.warning("Column mapping resolves to no cells, nothing written")
            return WriteResult(row=None, cells_written=0, skipped=True)

        with LogContext(sheet=self.sheet_name):
            await self.client.connect()
            sheet_id = await self.client.locate_sheet(self.sheet_name)

            values = await self.client.read_values(self._span(columns))
            row = next_row(values)

            writes = build_cell_writes(record, mapping, row)
            await self.client.batch_update([write.to_request(sheet_id) for write in writes])

            logger.info(f"Wrote {len(writes)} cells to row {row + 1} of '{self.sheet_name}'")
            return WriteResult(row=row + 1, cells_written=len(writes))
