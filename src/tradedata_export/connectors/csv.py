# src/tradedata_export/connectors/csv.py

import csv
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import List

from .base import BaseTradeSource
from .filters import MONTH_COLUMN, ORDER_COLUMN, PREFIX, active_filters
from ..combination import TradeFilter
from ..errors import ConnectionError
from ..types import Row, TypeConverter

logger = logging.getLogger(__name__)

# Common string representations for NULL values
NA_VALUES = {'', '#N/A', 'N/A', 'NA', 'NULL', 'NaN', 'n/a', 'nan', 'null'}


class CsvExtractSource(BaseTradeSource):
    """
    Reads trade records from a CSV extract of the export view.

    Applies the same matching as the view query: prefix match for HS code and
    IEC, case-insensitive substring match for the text fields, inclusive month
    range, newest shipping bill first, capped at top_limit rows.
    """
    connector_type = "csv"

    def __init__(self, path, top_limit: int = 1000):
        self.filepath = Path(path)
        self.top_limit = top_limit
        self._rows: List[Row] = None
        self._lock = threading.Lock()

    def _load(self) -> List[Row]:
        with self._lock:
            if self._rows is None:
                self._rows = self._read_file()
            return self._rows

    def _read_file(self) -> List[Row]:
        if not self.filepath.exists():
            raise FileNotFoundError(f"CSV extract not found: {self.filepath}")

        rows: List[Row] = []
        for encoding in ('utf-8-sig', 'latin-1'):
            try:
                with self.filepath.open(mode='r', encoding=encoding, newline='') as infile:
                    reader = csv.DictReader(infile)
                    rows = [self._to_row(record) for record in reader]
                break
            except UnicodeDecodeError:
                continue

        logger.info(f"Loaded {len(rows)} rows from {self.filepath}")
        return rows

    @staticmethod
    def _to_row(record) -> Row:
        return Row(
            (key, None if value in NA_VALUES else TypeConverter.from_text(key, value))
            for key, value in record.items()
            if key is not None
        )

    def fetch_rows(self, trade_filter: TradeFilter) -> List[Row]:
        filters = active_filters(trade_filter)
        matches = [row for row in self._load() if self._matches(row, trade_filter, filters)]
        matches.sort(key=self._sort_key, reverse=True)
        return matches[: self.top_limit]

    @staticmethod
    def _matches(row: Row, trade_filter: TradeFilter, filters) -> bool:
        for column, value, mode in filters:
            cell = (row.get_str(column) or "").lower()
            needle = value.lower()
            if mode == PREFIX:
                if not cell.startswith(needle):
                    return False
            elif needle not in cell:
                return False

        month = row.get_int(MONTH_COLUMN)
        if trade_filter.from_month and (month is None or month < int(trade_filter.from_month)):
            return False
        if trade_filter.to_month and (month is None or month > int(trade_filter.to_month)):
            return False
        return True

    @staticmethod
    def _sort_key(row: Row):
        parsed = row.get_datetime(ORDER_COLUMN)
        return (parsed is not None, parsed or datetime.min)

    def test_connection(self) -> bool:
        if not self.filepath.exists():
            raise ConnectionError(f"CSV extract not found: {self.filepath}")
        try:
            with self.filepath.open('r', encoding='utf-8-sig') as f:
                f.readline()
        except PermissionError:
            raise ConnectionError(f"Cannot read CSV extract: {self.filepath}")
        return True
