# Config
"""
Configuration for the pdf2xls invoice pipeline.

Values come from an optional JSON settings file (``appsettings.json``) and are
overridden by environment variables, which may themselves be loaded from a
``.env`` file.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from pdf2xls.utils.errors import ConfigurationError, MissingConfigurationError

DEFAULT_CONFIG_FILE = Path("appsettings.json")

# (attribute, JSON path, environment variable)
_SOURCES = [
    ("preferred_api", ("PreferredAPI",), "PDF2XLS_PREFERRED_API"),
    ("openai_api_key", ("OpenAI_APIKey",), "OPENAI_API_KEY"),
    ("openai_model", ("OpenAIModel",), "PDF2XLS_OPENAI_MODEL"),
    ("nudelta_base_url", ("NuDeltaCredentials", "BaseUrl"), "NUDELTA_BASE_URL"),
    ("nudelta_username", ("NuDeltaCredentials", "Username"), "NUDELTA_USERNAME"),
    ("nudelta_password", ("NuDeltaCredentials", "Password"), "NUDELTA_PASSWORD"),
    ("whisperer_base_url", ("Whisperer", "BaseUrl"), "WHISPERER_BASE_URL"),
    ("whisperer_api_key", ("Whisperer", "ApiKey"), "WHISPERER_API_KEY"),
    ("service_account_file", ("GoogleSheets", "ServiceAccountFile"), "GOOGLE_SERVICE_ACCOUNT_FILE"),
    ("spreadsheet_id", ("GoogleSheets", "SpreadsheetId"), "GOOGLE_SPREADSHEET_ID"),
    ("sheet_name", ("GoogleSheets", "SheetName"), "GOOGLE_SHEET_NAME"),
    ("column_mappings", ("ColumnMappings",), None),
    ("delete_after_processing", ("DeleteFileAfterProcessing",), "PDF2XLS_DELETE_AFTER"),
    ("document_link_enabled", ("DocumentLink", "Enabled"), "PDF2XLS_DOCUMENT_LINK_ENABLED"),
    ("document_link_command", ("DocumentLink", "Command"), "PDF2XLS_DOCUMENT_LINK_COMMAND"),
    ("log_level", ("Logging", "Level"), "LOG_LEVEL"),
    ("log_dir", ("Logging", "Directory"), "PDF2XLS_LOG_DIR"),
    ("log_structured", ("Logging", "Structured"), "PDF2XLS_LOG_STRUCTURED"),
    ("dev_mode", ("Logging", "DevMode"), "PDF2XLS_DEV_MODE"),
]

_BOOL_FIELDS = {"delete_after_processing", "document_link_enabled", "log_structured", "dev_mode"}
_PATH_FIELDS = {"service_account_file", "log_dir"}


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


class Settings:
    # Logging
    log_level = "INFO"
    log_dir: Optional[Path] = None
    log_structured = False
    dev_mode = False

    # Extraction provider
    preferred_api = "OpenAI"
    openai_api_key: Optional[str] = None
    openai_model = "gpt-4o-mini"
    nudelta_base_url = "https://www.nudelta.pl/api/v1"
    nudelta_username: Optional[str] = None
    nudelta_password: Optional[str] = None

    # Text rendering used as fallback input
    whisperer_base_url = "https://llmwhisperer-api.us-central.unstract.com/"
    whisperer_api_key: Optional[str] = None

    # Retry budgets (attempt counts include the first try)
    extraction_attempts = 6
    extraction_retry_delay = 1.0
    nudelta_poll_attempts = 6
    whisperer_poll_attempts = 11
    whisperer_poll_interval = 5.0
    assistant_poll_attempts = 11
    http_timeout = 60.0

    # Google Sheets sink
    service_account_file: Optional[Path] = None
    spreadsheet_id: Optional[str] = None
    sheet_name: Optional[str] = None
    column_mappings: Dict[str, str] = {}

    # Source document handling
    delete_after_processing = False
    document_link_enabled = False
    document_link_command: Optional[str] = None
    document_link_timeout = 120.0

    def __init__(self, **overrides: Any) -> None:
        self.column_mappings = dict(self.column_mappings)
        for key, value in overrides.items():
            if not hasattr(Settings, key):
                raise ConfigurationError(f"Unknown setting '{key}'")
            setattr(self, key, self._coerce(key, value))

    @staticmethod
    def _coerce(key: str, value: Any) -> Any:
        if value is None:
            return None
        if key in _BOOL_FIELDS:
            return _parse_bool(value)
        if key in _PATH_FIELDS:
            return Path(value)
        if key == "column_mappings":
            return {str(k): str(v or "") for k, v in dict(value).items()}
        return value

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Settings":
        """
        Build settings from the JSON settings file and the environment.

        Args:
            config_path: Settings file; ``appsettings.json`` in the working
                directory is used when present and no path is given

        Raises:
            ConfigurationError: If the settings file cannot be read
        """
        load_dotenv()

        data: Dict[str, Any] = {}
        path = config_path or DEFAULT_CONFIG_FILE
        if config_path is not None and not path.exists():
            raise ConfigurationError(f"Settings file not found: {path}", {"path": str(path)})
        if path.exists():
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as e:
                raise ConfigurationError(f"Failed to read settings file {path}: {e}", {"path": str(path)})

        overrides: Dict[str, Any] = {}
        for attribute, json_path, env_name in _SOURCES:
            node: Any = data
            for part in json_path:
                node = node.get(part) if isinstance(node, dict) else None
            if node not in (None, ""):
                overrides[attribute] = node
            if env_name and os.getenv(env_name):
                overrides[attribute] = os.getenv(env_name)

        return cls(**overrides)

    def validate(self) -> None:
        """
        Check that the settings required for a processing run are present.

        Raises:
            MissingConfigurationError: For the first missing value
        """
        if self.preferred_api.lower() == "nudelta":
            required = ["nudelta_username", "nudelta_password"]
        else:
            required = ["openai_api_key"]
        required += ["service_account_file", "spreadsheet_id", "sheet_name"]
        if self.document_link_enabled:
            required.append("document_link_command")

        for name in required:
            if not getattr(self, name):
                raise MissingConfigurationError(name)

        if not any(letter.strip() for letter in self.column_mappings.values()):
            raise MissingConfigurationError("column_mappings")


# Singleton instance
_settings = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def configure(settings: Settings) -> Settings:
    """Replace the process-wide settings instance."""
    global _settings
    _settings = settings
    return _settings
