"""
Tests for the Google Sheets client and sheet writer.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from googleapiclient.errors import HttpError
from tenacity import wait_none

from pdf2xls.models import ColumnMapping, NormalizedInvoiceRecord
from pdf2xls.sheets.client import GoogleSheetsClient
from pdf2xls.sheets.writer import (
    DATE_FORMAT,
    NUMBER_FORMAT,
    SheetWriter,
    build_cell_writes,
    classify_value,
    column_index_to_letter,
    column_letter_to_index,
    next_row,
)
from pdf2xls.utils.errors import SinkLocateFailure, SinkWriteFailure


def http_error(status=500):
    return HttpError(MagicMock(status=status, reason="Server Error"), b"")


class TestColumnLetters:
    """Test column letter arithmetic."""

    @pytest.mark.parametrize(
        "letter,index",
        [("A", 0), ("z", 25), ("AA", 26), ("AZ", 51), ("BA", 52), (" b ", 1)],
    )
    def test_letter_to_index(self, letter, index):
        """Test base-26 conversion."""
        assert column_letter_to_index(letter) == index

    @pytest.mark.parametrize("letter", ["", "   ", None, "A1", "Ą", "-"])
    def test_unmapped(self, letter):
        """Test blank or invalid letters mean unmapped."""
        assert column_letter_to_index(letter) is None

    def test_index_to_letter(self):
        """Test the inverse conversion."""
        assert column_index_to_letter(0) == "A"
        assert column_index_to_letter(26) == "AA"
        assert column_index_to_letter(51) == "AZ"


class TestRowAndCells:
    """Test row selection and cell building."""

    def test_next_row_ignores_trailing_blanks(self):
        """Test rows 1-5 filled and blank rows after them."""
        values = [["a"], ["b", "x"], ["c"], ["", "d"], ["e"], [], ["", " "], []]
        assert next_row(values) == 5

    def test_next_row_empty_sheet(self):
        """Test an empty sheet starts at the first row."""
        assert next_row([]) == 0
        assert next_row([[], [""]]) == 0

    def test_classify_value(self):
        """Test number, date and text typing."""
        assert classify_value("1234.56") == (1234.56, NUMBER_FORMAT)
        assert classify_value("1.234,56") == (1234.56, NUMBER_FORMAT)
        assert classify_value("2.345") == (2.35, NUMBER_FORMAT)
        assert classify_value("2024-01-15") == (45306, DATE_FORMAT)
        assert classify_value("FV/1/2024") == ("FV/1/2024", None)

    def test_build_cell_writes(self):
        """Test typed writes for mapped, non-empty fields."""
        record = NormalizedInvoiceRecord(
            InvoiceNumber="FV/1/2024",
            IssueDate="2024-01-15",
            TotalAmount="1230.00",
            BuyerName="",
            SellerName="ACME S.A.",
        )
        mapping = ColumnMapping.from_dict(
            {
                "InvoiceNumber": "A",
                "IssueDate": "B",
                "TotalAmount": "C",
                "BuyerName": "D",
                "SellerName": "",
                "Currency": "E",
            }
        )

        writes = build_cell_writes(record, mapping, row=5)

        assert [(w.row, w.column, w.value) for w in writes] == [
            (5, 0, "FV/1/2024"),
            (5, 1, 45306),
            (5, 2, 1230.0),
        ]
        assert writes[1].number_format == DATE_FORMAT
        assert writes[0].number_format is None

    def test_duplicate_columns_keep_both_writes(self):
        """Test the later write to a shared column comes last."""
        record = NormalizedInvoiceRecord(InvoiceNumber="FV/1", ReferenceNumber="ZAM-1")
        mapping = ColumnMapping.from_dict({"InvoiceNumber": "A", "ReferenceNumber": "A"})

        writes = build_cell_writes(record, mapping, row=0)

        assert [w.value for w in writes] == ["FV/1", "ZAM-1"]
        assert {w.column for w in writes} == {0}


class TestSheetWriter:
    """Test appending records."""

    @pytest.fixture
    def sheets_client(self):
        client = MagicMock(spec=GoogleSheetsClient)
        client.connect = AsyncMock()
        client.locate_sheet = AsyncMock(return_value=7)
        client.read_values = AsyncMock(return_value=[["Nr"], ["FV/1"], ["FV/2"], ["FV/3"], ["FV/4"], []])
        client.batch_update = AsyncMock(return_value={})
        return client

    @pytest.fixture
    def record(self):
        return NormalizedInvoiceRecord(InvoiceNumber="FV/5", TotalAmount="99.90", IssueDate="2024-03-01")

    @pytest.mark.asyncio
    async def test_append(self, sheets_client, record):
        """Test one batch write on the row after the last filled one."""
        mapping = ColumnMapping.from_dict({"InvoiceNumber": "A", "IssueDate": "B", "TotalAmount": "D"})
        writer = SheetWriter(sheets_client, "Faktury")

        result = await writer.append(record, mapping)

        assert result.row == 6
        assert result.cells_written == 3
        assert not result.skipped
        sheets_client.locate_sheet.assert_awaited_once_with("Faktury")
        sheets_client.read_values.assert_awaited_once_with("'Faktury'!A:D")

        requests = sheets_client.batch_update.await_args.args[0]
        assert len(requests) == 3
        starts = [r["updateCells"]["start"] for r in requests]
        assert all(s["sheetId"] == 7 and s["rowIndex"] == 5 for s in starts)
        assert [s["columnIndex"] for s in starts] == [0, 1, 3]

    @pytest.mark.asyncio
    async def test_nothing_mapped(self, sheets_client, record):
        """Test a mapping without resolvable cells makes no calls."""
        mapping = ColumnMapping.from_dict({"InvoiceNumber": "", "SellerName": "C"})

        result = await SheetWriter(sheets_client, "Faktury").append(record, mapping)

        assert result.skipped
        assert result.cells_written == 0
        sheets_client.connect.assert_not_awaited()
        sheets_client.batch_update.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_sheet(self, sheets_client, record):
        """Test a missing worksheet writes nothing."""
        sheets_client.locate_sheet.side_effect = SinkLocateFailure("sheet-id", "Faktury")
        mapping = ColumnMapping.from_dict({"InvoiceNumber": "A"})

        with pytest.raises(SinkLocateFailure):
            await SheetWriter(sheets_client, "Faktury").append(record, mapping)

        sheets_client.batch_update.assert_not_awaited()


class TestGoogleSheetsClient:
    """Test the Sheets API wrapper."""

    @pytest.fixture
    def service(self):
        service = MagicMock()
        spreadsheets = service.spreadsheets.return_value
        spreadsheets.get.return_value.execute.return_value = {
            "sheets": [
                {"properties": {"title": "Arkusz1", "sheetId": 0}},
                {"properties": {"title": "Faktury", "sheetId": 7}},
            ]
        }
        spreadsheets.values.return_value.get.return_value.execute.return_value = {
            "range": "Faktury!A1:B2",
            "values": [["a", "b"], ["c"]],
        }
        spreadsheets.batchUpdate.return_value.execute.return_value = {"replies": [{}]}
        return service

    @pytest.fixture
    def client(self, service):
        return GoogleSheetsClient("sheet-id", service=service, retry_attempts=3, retry_wait=wait_none())

    @pytest.mark.asyncio
    async def test_locate_sheet(self, client):
        """Test finding a worksheet by title."""
        assert await client.locate_sheet("Faktury") == 7

    @pytest.mark.asyncio
    async def test_locate_missing_sheet(self, client):
        """Test a missing worksheet."""
        with pytest.raises(SinkLocateFailure):
            await client.locate_sheet("Other")

    @pytest.mark.asyncio
    async def test_read_values(self, client, service):
        """Test reading a range."""
        assert await client.read_values("'Faktury'!A:B") == [["a", "b"], ["c"]]
        service.spreadsheets.return_value.values.return_value.get.assert_called_with(
            spreadsheetId="sheet-id",
            range="'Faktury'!A:B",
        )

    @pytest.mark.asyncio
    async def test_batch_update(self, client, service):
        """Test the requests are sent in one call."""
        requests = [{"updateCells": {}}]

        await client.batch_update(requests)

        service.spreadsheets.return_value.batchUpdate.assert_called_with(
            spreadsheetId="sheet-id",
            body={"requests": requests},
        )

    @pytest.mark.asyncio
    async def test_batch_update_retries_then_fails(self, client, service):
        """Test HTTP errors are retried and then reported."""
        execute = service.spreadsheets.return_value.batchUpdate.return_value.execute
        execute.side_effect = http_error()

        with pytest.raises(SinkWriteFailure):
            await client.batch_update([{"updateCells": {}}])

        assert execute.call_count == 3

    @pytest.mark.asyncio
    async def test_transient_error_recovers(self, client, service):
        """Test a single HTTP error is retried."""
        execute = service.spreadsheets.return_value.values.return_value.get.return_value.execute
        execute.side_effect = [http_error(503), {"values": [["x"]]}]

        assert await client.read_values("A:A") == [["x"]]
        assert execute.call_count == 2
