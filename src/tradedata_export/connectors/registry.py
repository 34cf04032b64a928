# src/tradedata_export/connectors/registry.py
import logging
from typing import Dict, Type

from .base import BaseTradeSource
from .csv import CsvExtractSource
from .sqlserver import SqlServerSource
from ..errors import ConfigError

logger = logging.getLogger(__name__)

# Cache the source map (only built once)
_SOURCE_CONNECTOR_MAP = None


def get_source_connector_map() -> Dict[str, Type[BaseTradeSource]]:
    """Returns {connector_type: SourceClass} for every trade source."""
    global _SOURCE_CONNECTOR_MAP
    if _SOURCE_CONNECTOR_MAP is None:
        _SOURCE_CONNECTOR_MAP = {
            cls.connector_type: cls for cls in (SqlServerSource, CsvExtractSource)
        }
        # Alias: allow both "sqlserver" and "mssql"
        _SOURCE_CONNECTOR_MAP["mssql"] = SqlServerSource
        logger.debug(f"Registered source connectors: {sorted(_SOURCE_CONNECTOR_MAP)}")
    return _SOURCE_CONNECTOR_MAP


def get_source(config) -> BaseTradeSource:
    """
    Builds the trade source selected by `source.type` in an ExportConfig.

    Raises:
        ConfigError: unknown source type, or incomplete database settings
    """
    source_class = get_source_connector_map().get(config.source.type)
    if source_class is None:
        raise ConfigError(
            f"Unknown source type '{config.source.type}'. "
            f"Available: {', '.join(sorted(get_source_connector_map()))}"
        )

    if source_class is CsvExtractSource:
        return CsvExtractSource(config.source.path, top_limit=config.database.query_top_limit)
    return source_class(config.database)
