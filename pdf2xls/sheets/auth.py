"""
Google service account authentication for the Sheets sink.
"""

from pathlib import Path
from typing import List, Optional

from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account

from pdf2xls.utils.errors import SinkAuthenticationError
from pdf2xls.utils.logging import get_logger

logger = get_logger(__name__)

# Google Sheets API scopes
SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
]


class ServiceAccountAuth:
    """
    Handle Google service account authentication.

    Use this for server-to-server authentication without user interaction.
    """

    def __init__(
        self,
        service_account_path: Path,
        scopes: Optional[List[str]] = None,
    ) -> None:
        """
        Initialize service account authentication.

        Args:
            service_account_path: Path to service account JSON key file
            scopes: OAuth2 scopes
        """
        self.service_account_path = Path(service_account_path)
        self.scopes = scopes or SCOPES
        self._credentials: Optional[service_account.Credentials] = None

    @property
    def credentials(self) -> Optional[service_account.Credentials]:
        return self._credentials

    @property
    def is_authenticated(self) -> bool:
        return self._credentials is not None

    async def authenticate(self) -> service_account.Credentials:
        """
        Load the service account credentials.

        Returns:
            Credentials scoped for Sheets access

        Raises:
            SinkAuthenticationError: If the key file is missing or invalid
        """
        if not self.service_account_path.exists():
            raise SinkAuthenticationError(
                f"Service account file not found: {self.service_account_path}",
                {"path": str(self.service_account_path)},
            )

        try:
            self._credentials = service_account.Credentials.from_service_account_file(
                str(self.service_account_path),
                scopes=self.scopes,
            )
        except (GoogleAuthError, ValueError, OSError) as e:
            logger.error(f"Service account authentication failed: {e}")
            raise SinkAuthenticationError(f"Service account authentication failed: {e}") from e

        logger.info("Successfully authenticated with service account")
        return self._credentials
