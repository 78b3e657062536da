"""
Google Sheets API client.

The discovery-based client is synchronous, so every request runs in the
default executor to keep the event loop free.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional

from googleapiclient.discovery import Resource, build
from googleapiclient.errors import HttpError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from pdf2xls.sheets.auth import ServiceAccountAuth
from pdf2xls.utils.errors import SinkFailure, SinkLocateFailure, SinkWriteFailure
from pdf2xls.utils.logging import get_logger, log_performance

logger = get_logger(__name__)


class GoogleSheetsClient:
    """Client for one Google Sheets spreadsheet."""

    def __init__(
        self,
        spreadsheet_id: str,
        auth_manager: Optional[ServiceAccountAuth] = None,
        service: Optional[Resource] = None,
        retry_attempts: int = 3,
        retry_wait: Optional[wait_base] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            spreadsheet_id: Target spreadsheet
            auth_manager: Service account authentication
            service: Prebuilt Sheets service, skips ``connect``
            retry_attempts: Attempts per API request
            retry_wait: Wait strategy between attempts
        """
        self.spreadsheet_id = spreadsheet_id
        self.auth_manager = auth_manager
        self.retry_attempts = retry_attempts
        self.retry_wait = retry_wait or wait_exponential(multiplier=1, min=4, max=10)

        self._service: Optional[Resource] = service

    async def connect(self) -> None:
        """
        Connect to the Sheets API.

        Raises:
            SinkAuthenticationError: If authentication fails
            SinkFailure: If the service cannot be built
        """
        if self._service is not None:
            return
        if self.auth_manager is None:
            raise SinkFailure("No authentication configured for Google Sheets")

        if not self.auth_manager.is_authenticated:
            await self.auth_manager.authenticate()

        try:
            self._service = build(
                "sheets",
                "v4",
                credentials=self.auth_manager.credentials,
                cache_discovery=False,
            )
            logger.info("Connected to Google Sheets API")
        except (HttpError, ValueError) as e:
            logger.error(f"Failed to build Sheets service: {e}")
            raise SinkFailure(f"Failed to connect to Sheets API: {e}") from e

    def ensure_connected(self) -> Resource:
        if self._service is None:
            raise SinkFailure("Not connected to Sheets API. Call connect() first.")
        return self._service

    async def _execute(self, build_request: Callable[[Resource], Any]) -> Dict[str, Any]:
        """Execute a request in the executor, retrying HTTP errors."""
        service = self.ensure_connected()
        loop = asyncio.get_running_loop()

        retrying = AsyncRetrying(
            retry=retry_if_exception_type(HttpError),
            stop=stop_after_attempt(self.retry_attempts),
            wait=self.retry_wait,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await loop.run_in_executor(None, lambda: build_request(service).execute())

    async def locate_sheet(self, sheet_name: str) -> int:
        """
        Return the ``sheetId`` of the worksheet titled ``sheet_name``.

        Raises:
            SinkLocateFailure: If no such worksheet exists or it cannot be read
        """
        try:
            response = await self._execute(
                lambda service: service.spreadsheets().get(
                    spreadsheetId=self.spreadsheet_id,
                    fields="sheets.properties",
                )
            )
        except HttpError as e:
            logger.error(f"Failed to read spreadsheet {self.spreadsheet_id}: {e}")
            raise SinkLocateFailure(self.spreadsheet_id, sheet_name) from e

        for sheet in response.get("sheets", []):
            properties = sheet.get("properties", {})
            if properties.get("title") == sheet_name:
                return int(properties.get("sheetId", 0))

        raise SinkLocateFailure(self.spreadsheet_id, sheet_name)

    async def read_values(self, cell_range: str) -> List[List[Any]]:
        """
        Read a range as rows of cell values.

        Raises:
            SinkWriteFailure: If the read fails
        """
        try:
            response = await self._execute(
                lambda service: service.spreadsheets().values().get(
                    spreadsheetId=self.spreadsheet_id,
                    range=cell_range,
                )
            )
        except HttpError as e:
            logger.error(f"Failed to read range {cell_range}: {e}")
            raise SinkWriteFailure(f"Failed to read range {cell_range}: {e}", {"range": cell_range}) from e

        return response.get("values", [])

    @log_performance
    async def batch_update(self, requests: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Send ``requests`` in one ``spreadsheets.batchUpdate`` call.

        Raises:
            SinkWriteFailure: If the update fails
        """
        try:
            return await self._execute(
                lambda service: service.spreadsheets().batchUpdate(
                    spreadsheetId=self.spreadsheet_id,
                    body={"requests": requests},
                )
            )
        except HttpError as e:
            logger.error(f"Batch update of {len(requests)} cells failed: {e}")
            raise SinkWriteFailure(
                f"Batch update failed: {e}",
                {"spreadsheet_id": self.spreadsheet_id, "requests": len(requests)},
            ) from e
