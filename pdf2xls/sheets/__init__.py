"""Google Sheets sink."""

from pdf2xls.sheets.auth import ServiceAccountAuth
from pdf2xls.sheets.client import GoogleSheetsClient
from pdf2xls.sheets.writer import SheetWriter, build_cell_writes, column_letter_to_index, next_row

__all__ = [
    "GoogleSheetsClient",
    "ServiceAccountAuth",
    "SheetWriter",
    "build_cell_writes",
    "column_letter_to_index",
    "next_row",
]
