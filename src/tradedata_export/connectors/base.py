# src/tradedata_export/connectors/base.py

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Sequence

from ..combination import TradeFilter
from ..types import Row


class BaseTradeSource(ABC):
    """Contract for trade-record data sources."""

    def trigger_refresh(self, trade_filter: TradeFilter) -> None:
        """
        Asks the source to prepare data for a filter (e.g. run the
        stored procedure that populates the export view).
        Default: nothing to refresh.
        """
        return None

    @abstractmethod
    def fetch_rows(self, trade_filter: TradeFilter) -> List[Row]:
        """
        Returns the rows matching a filter, in source order.
        An empty list means no matching records; that is not an error.
        """
        pass

    def test_connection(self) -> bool:
        """
        Test connection to the source.

        Returns:
            bool: True if connection successful

        Raises:
            ConnectionError: If connection fails, with helpful message
        """
        return True

    def close(self) -> None:
        """Optional cleanup once a batch has finished."""
        pass


class BaseSpreadsheetWriter(ABC):
    """Contract for spreadsheet writers."""

    extension = ".xlsx"

    @abstractmethod
    def write(self, rows: Sequence[Row], destination: Path) -> Path:
        """
        Writes rows to a spreadsheet at destination.

        Returns:
            The path actually written (the writer may add an extension)
        """
        pass
