# src/tradedata_export/connectors/__init__.py

from .base import BaseTradeSource, BaseSpreadsheetWriter
from .csv import CsvExtractSource
from .sqlserver import SqlServerSource

__all__ = [
    'BaseTradeSource',
    'BaseSpreadsheetWriter',
    'CsvExtractSource',
    'SqlServerSource',
]
