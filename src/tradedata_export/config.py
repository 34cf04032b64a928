# src/tradedata_export/config.py

import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .errors import ConfigError


class DatabaseConfig(BaseModel):
    server: Optional[str] = None
    database: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = None
    driver: str = "ODBC Driver 18 for SQL Server"
    trust_server_certificate: bool = True
    connection_timeout: int = 30
    db_schema: str = "dbo"
    view_name: str = "EXPDATA"
    stored_procedure: str = "ExportData_New1"
    query_top_limit: int = 1000
    query_timeout: int = 300
    # Filter the view by the combination's values; off means the stored
    # procedure alone shapes the view
    filter_view: bool = True

    @property
    def qualified_view(self) -> str:
        return f"[{self.db_schema}].[{self.view_name}]"

    def connection_string(self) -> str:
        if not all([self.server, self.database, self.user, self.password]):
            raise ConfigError(
                "Database settings incomplete: DB_SERVER, DB_NAME, DB_USER and DB_PASSWORD are required."
            )
        trust = "yes" if self.trust_server_certificate else "no"
        return (
            f"DRIVER={{{self.driver}}};"
            f"SERVER={self.server};"
            f"DATABASE={self.database};"
            f"UID={self.user};"
            f"PWD={self.password};"
            f"TrustServerCertificate={trust};"
            f"Connection Timeout={self.connection_timeout};"
        )

    def masked_connection_string(self) -> str:
        text = self.connection_string()
        return text.replace(f"PWD={self.password};", "PWD=***;") if self.password else text


class SourceConfig(BaseModel):
    type: str = "sqlserver"
    path: Optional[str] = None

    @field_validator('type')
    def validate_type(cls, v):
        allowed = ['sqlserver', 'mssql', 'csv']
        if v not in allowed:
            raise ValueError(f"source type must be one of {allowed}")
        return v

    @model_validator(mode='after')
    def validate_csv_path(self):
        if self.type == "csv" and not self.path:
            raise ValueError("source type 'csv' requires a path")
        return self


class ExcelConfig(BaseModel):
    worksheet_name: str = "Export Data"
    number_format: str = "#,##0.00"
    date_format: str = "dd-mmm-yy"
    font_name: str = "Times New Roman"
    font_size: int = 10
    header_fill: str = "9BC2E6"


class ConcurrencyPolicy(BaseModel):
    """Tier thresholds for sizing the worker pool."""
    small_batch_threshold: int = 10
    small_batch_workers: int = 2
    medium_batch_threshold: int = 100
    medium_batch_ceiling: int = 4
    large_batch_ceiling: int = 8

    @model_validator(mode='after')
    def validate_thresholds(self):
        if self.small_batch_threshold > self.medium_batch_threshold:
            raise ValueError("small_batch_threshold must not exceed medium_batch_threshold")
        return self


class ExecutionConfig(BaseModel):
    max_workers: Optional[int] = Field(default=None, ge=1)
    combination_timeout: Optional[float] = Field(default=None, gt=0)
    confirm_threshold: int = 50
    concurrency: ConcurrencyPolicy = Field(default_factory=ConcurrencyPolicy)


class OutputConfig(BaseModel):
    directory: str = "Desktop/TradeDataEXP_Exports"
    use_desktop: bool = True
    error_directory: str = "errors"
    manifest_path: str = "manifest.json"

    def resolve_directory(self) -> Path:
        """Resolves a 'Desktop/...' directory against the user's desktop."""
        directory = self.directory.replace("\\", "/")
        if self.use_desktop and directory.startswith("Desktop"):
            relative = directory[len("Desktop"):].lstrip("/")
            return Path.home() / "Desktop" / relative
        return Path(directory)


class LoggingConfig(BaseModel):
    directory: str = "logs"
    filename_base: str = "TradeDataEXP_Log"
    level: str = "INFO"


class ExportConfig(BaseModel):
    source: SourceConfig = Field(default_factory=SourceConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    excel: ExcelConfig = Field(default_factory=ExcelConfig)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# Environment keys (.env) -> (section, field)
ENV_OVERRIDES = {
    "DB_SERVER": ("database", "server"),
    "DB_NAME": ("database", "database"),
    "DB_USER": ("database", "user"),
    "DB_PASSWORD": ("database", "password"),
    "DB_DRIVER": ("database", "driver"),
    "DB_TRUST_SERVER_CERTIFICATE": ("database", "trust_server_certificate"),
    "DB_CONNECTION_TIMEOUT": ("database", "connection_timeout"),
    "DB_SCHEMA": ("database", "db_schema"),
    "DB_VIEW_NAME": ("database", "view_name"),
    "STORED_PROCEDURE_NAME": ("database", "stored_procedure"),
    "QUERY_TOP_LIMIT": ("database", "query_top_limit"),
    "QUERY_TIMEOUT": ("database", "query_timeout"),
    "OUTPUT_DIRECTORY": ("output", "directory"),
    "OUTPUT_USE_DESKTOP": ("output", "use_desktop"),
    "LOG_DIRECTORY": ("logging", "directory"),
    "LOG_FILENAME_BASE": ("logging", "filename_base"),
    "EXCEL_WORKSHEET_NAME": ("excel", "worksheet_name"),
    "EXCEL_NUMBER_FORMAT": ("excel", "number_format"),
    "MAX_WORKERS": ("execution", "max_workers"),
}


def _apply_env_overrides(config_dict: Dict[str, Any], environ) -> Dict[str, Any]:
    """Fills fields the YAML file left unset from environment variables."""
    for env_key, (section, field) in ENV_OVERRIDES.items():
        value = environ.get(env_key)
        if value is None or value == "":
            continue
        section_dict = config_dict.setdefault(section, {}) or {}
        config_dict[section] = section_dict
        if section_dict.get(field) is None:
            section_dict[field] = value
    return config_dict


def load_config(filepath: Optional[Union[str, Path]] = None, environ=None, use_dotenv: bool = True) -> ExportConfig:
    """
    Load and validate export config from a YAML file plus environment.

    Args:
        filepath: Optional path to export.yml; defaults apply when omitted
        environ: Mapping to read overrides from (defaults to os.environ)
        use_dotenv: Load a .env file into the environment first

    Raises:
        ConfigError: the file is missing, not valid YAML, or fails validation
    """
    import yaml
    from dotenv import load_dotenv

    if use_dotenv:
        load_dotenv()
    environ = os.environ if environ is None else environ

    config_dict: Dict[str, Any] = {}
    if filepath is not None:
        path = Path(filepath)
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        try:
            with open(path, 'r', encoding='utf-8') as f:
                config_dict = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Config file {path} is not valid YAML: {e}") from e
        if not isinstance(config_dict, dict):
            raise ConfigError(f"Config file {path} must contain a mapping at the top level")

    config_dict = _apply_env_overrides(config_dict, environ)

    try:
        return ExportConfig(**config_dict)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
