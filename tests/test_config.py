# tests/test_config.py
from pathlib import Path

import pytest

from tradedata_export.config import ExportConfig, OutputConfig, load_config
from tradedata_export.errors import ConfigError


def test_defaults_without_file():
    config = load_config(environ={}, use_dotenv=False)

    assert config.source.type == "sqlserver"
    assert config.database.view_name == "EXPDATA"
    assert config.database.stored_procedure == "ExportData_New1"
    assert config.database.query_top_limit == 1000
    assert config.database.query_timeout == 300
    assert config.excel.worksheet_name == "Export Data"
    assert config.excel.number_format == "#,##0.00"
    assert config.execution.confirm_threshold == 50
    assert config.logging.filename_base == "TradeDataEXP_Log"


def test_yaml_file_is_loaded(tmp_path):
    cfg = tmp_path / "export.yml"
    cfg.write_text("""
database:
  server: db.local
  view_name: EXPDATA_2024
execution:
  max_workers: 3
  concurrency:
    large_batch_ceiling: 6
""")
    config = load_config(cfg, environ={}, use_dotenv=False)

    assert config.database.server == "db.local"
    assert config.database.view_name == "EXPDATA_2024"
    assert config.execution.max_workers == 3
    assert config.execution.concurrency.large_batch_ceiling == 6


def test_environment_fills_unset_fields(tmp_path):
    cfg = tmp_path / "export.yml"
    cfg.write_text("database:\n  server: from-yaml\n")
    environ = {
        "DB_SERVER": "from-env",
        "DB_NAME": "TradeData",
        "DB_USER": "reader",
        "DB_PASSWORD": "secret",
        "QUERY_TOP_LIMIT": "500",
        "DB_TRUST_SERVER_CERTIFICATE": "false",
        "LOG_DIRECTORY": "custom_logs",
    }
    config = load_config(cfg, environ=environ, use_dotenv=False)

    # YAML wins over the environment
    assert config.database.server == "from-yaml"
    assert config.database.database == "TradeData"
    assert config.database.password == "secret"
    assert config.database.query_top_limit == 500
    assert config.database.trust_server_certificate is False
    assert config.logging.directory == "custom_logs"


def test_missing_file_raises(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path / "nope.yml", environ={}, use_dotenv=False)


def test_invalid_yaml_raises(tmp_path):
    cfg = tmp_path / "export.yml"
    cfg.write_text("database: [unclosed\n")
    with pytest.raises(ConfigError, match="not valid YAML"):
        load_config(cfg, environ={}, use_dotenv=False)


def test_non_mapping_yaml_raises(tmp_path):
    cfg = tmp_path / "export.yml"
    cfg.write_text("- just\n- a list\n")
    with pytest.raises(ConfigError, match="mapping"):
        load_config(cfg, environ={}, use_dotenv=False)


def test_csv_source_requires_path(tmp_path):
    cfg = tmp_path / "export.yml"
    cfg.write_text("source:\n  type: csv\n")
    with pytest.raises(ConfigError, match="requires a path"):
        load_config(cfg, environ={}, use_dotenv=False)


def test_unknown_source_type_rejected(tmp_path):
    cfg = tmp_path / "export.yml"
    cfg.write_text("source:\n  type: oracle\n")
    with pytest.raises(ConfigError):
        load_config(cfg, environ={}, use_dotenv=False)


def test_connection_string_requires_credentials():
    with pytest.raises(ConfigError, match="DB_SERVER"):
        ExportConfig().database.connection_string()


def test_connection_string_and_masking():
    config = ExportConfig(database={
        "server": "db.local", "database": "TradeData", "user": "reader", "password": "s3cret"
    })
    conn = config.database.connection_string()

    assert "SERVER=db.local;" in conn
    assert "DRIVER={ODBC Driver 18 for SQL Server};" in conn
    assert "TrustServerCertificate=yes;" in conn
    assert "s3cret" not in config.database.masked_connection_string()
    assert config.database.qualified_view == "[dbo].[EXPDATA]"


def test_output_directory_resolves_to_desktop():
    output = OutputConfig(directory="Desktop\\TradeDataEXP_Exports", use_desktop=True)
    assert output.resolve_directory() == Path.home() / "Desktop" / "TradeDataEXP_Exports"


def test_output_directory_plain_path():
    output = OutputConfig(directory="exports/trade", use_desktop=False)
    assert output.resolve_directory() == Path("exports/trade")
