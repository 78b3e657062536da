"""
Tests for configuration module.
"""

import json
from pathlib import Path

import pytest

from pdf2xls import config
from pdf2xls.config import Settings, configure, get_settings
from pdf2xls.utils.errors import ConfigurationError, MissingConfigurationError


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    """Run without settings from the environment or the working directory."""
    for _, _, env_name in config._SOURCES:
        if env_name:
            monkeypatch.delenv(env_name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(config, "load_dotenv", lambda *args, **kwargs: False)


@pytest.fixture
def settings_file(tmp_path):
    path = tmp_path / "custom.json"
    path.write_text(
        json.dumps(
            {
                "PreferredAPI": "NuDelta",
                "OpenAI_APIKey": "sk-file",
                "NuDeltaCredentials": {"Username": "user", "Password": "secret"},
                "GoogleSheets": {
                    "ServiceAccountFile": "service_account.json",
                    "SpreadsheetId": "sheet-id",
                    "SheetName": "Faktury",
                },
                "ColumnMappings": {"InvoiceNumber": "A", "IssueDate": "B", "SellerName": ""},
                "DeleteFileAfterProcessing": "true",
                "DocumentLink": {"Enabled": False},
                "Logging": {"Level": "DEBUG", "Directory": "logs", "Structured": True, "DevMode": "yes"},
            }
        ),
        encoding="utf-8",
    )
    return path


class TestSettings:
    """Test the Settings configuration class."""

    def test_default_settings(self):
        """Test default settings initialization."""
        settings = Settings()

        assert settings.preferred_api == "OpenAI"
        assert settings.openai_model == "gpt-4o-mini"
        assert settings.extraction_attempts == 6
        assert settings.extraction_retry_delay == 1.0
        assert settings.log_level == "INFO"
        assert settings.log_structured is False
        assert settings.dev_mode is False
        assert settings.column_mappings == {}
        assert settings.delete_after_processing is False

    def test_column_mappings_not_shared(self):
        """Test instances do not share the mapping dict."""
        first = Settings()
        first.column_mappings["InvoiceNumber"] = "A"
        assert Settings().column_mappings == {}

    def test_unknown_setting(self):
        """Test unknown overrides are rejected."""
        with pytest.raises(ConfigurationError):
            Settings(chunk_size=1000)

    def test_coercion(self):
        """Test bool and path overrides."""
        settings = Settings(delete_after_processing="yes", service_account_file="key.json")

        assert settings.delete_after_processing is True
        assert settings.service_account_file == Path("key.json")

    def test_load_from_file(self, settings_file):
        """Test loading the JSON settings file."""
        settings = Settings.load(settings_file)

        assert settings.preferred_api == "NuDelta"
        assert settings.openai_api_key == "sk-file"
        assert settings.nudelta_username == "user"
        assert settings.spreadsheet_id == "sheet-id"
        assert settings.sheet_name == "Faktury"
        assert settings.service_account_file == Path("service_account.json")
        assert settings.column_mappings == {"InvoiceNumber": "A", "IssueDate": "B", "SellerName": ""}
        assert settings.delete_after_processing is True
        assert settings.document_link_enabled is False
        assert settings.log_level == "DEBUG"
        assert settings.log_dir == Path("logs")
        assert settings.log_structured is True
        assert settings.dev_mode is True

    def test_environment_overrides_file(self, settings_file, monkeypatch):
        """Test environment variables win over the file."""
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        monkeypatch.setenv("PDF2XLS_DELETE_AFTER", "0")

        settings = Settings.load(settings_file)

        assert settings.openai_api_key == "sk-env"
        assert settings.delete_after_processing is False

    def test_default_file_in_working_directory(self, tmp_path):
        """Test appsettings.json is picked up when present."""
        (tmp_path / "appsettings.json").write_text(json.dumps({"PreferredAPI": "NuDelta"}), encoding="utf-8")

        assert Settings.load().preferred_api == "NuDelta"

    def test_no_file(self):
        """Test defaults when no settings file exists."""
        assert Settings.load().preferred_api == "OpenAI"

    def test_missing_explicit_file(self, tmp_path):
        """Test an explicitly given file must exist."""
        with pytest.raises(ConfigurationError):
            Settings.load(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        """Test a broken settings file."""
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            Settings.load(path)


class TestValidation:
    """Test required settings checks."""

    @pytest.fixture
    def complete(self):
        return Settings(
            openai_api_key="sk-test",
            service_account_file="key.json",
            spreadsheet_id="sheet-id",
            sheet_name="Faktury",
            column_mappings={"InvoiceNumber": "A"},
        )

    def test_complete(self, complete):
        """Test a complete configuration passes."""
        complete.validate()

    def test_missing_openai_key(self, complete):
        """Test the OpenAI key is required for the OpenAI provider."""
        complete.openai_api_key = None

        with pytest.raises(MissingConfigurationError) as exc_info:
            complete.validate()

        assert exc_info.value.details["config_name"] == "openai_api_key"

    def test_nudelta_credentials(self, complete):
        """Test NuDelta credentials are required for NuDelta."""
        complete.preferred_api = "NuDelta"

        with pytest.raises(MissingConfigurationError) as exc_info:
            complete.validate()

        assert exc_info.value.details["config_name"] == "nudelta_username"

    def test_blank_mapping(self, complete):
        """Test at least one column must be mapped."""
        complete.column_mappings = {"InvoiceNumber": " "}

        with pytest.raises(MissingConfigurationError):
            complete.validate()

    def test_document_link_command(self, complete):
        """Test the link command is required when linking is enabled."""
        complete.document_link_enabled = True

        with pytest.raises(MissingConfigurationError):
            complete.validate()


class TestSettingsSingleton:
    """Test the process-wide settings."""

    def test_configure(self, monkeypatch):
        """Test replacing the global settings."""
        monkeypatch.setattr(config, "_settings", None)
        settings = Settings(openai_model="gpt-4o")

        configure(settings)

        assert get_settings() is settings
