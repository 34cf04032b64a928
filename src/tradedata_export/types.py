# src/tradedata_export/types.py

import logging
from collections import OrderedDict
from datetime import datetime, date
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional, Sequence, Union

logger = logging.getLogger(__name__)

CellValue = Union[str, int, float, Decimal, date, datetime, bool, None]

# Column-name markers, matched case-insensitively
AMOUNT_MARKERS = ("RATE", "VALUE", "FOB", "QTY")
SERIAL_MARKERS = ("SERIAL",)


class Row(OrderedDict):
    """
    One query result row: an ordered mapping of column name to typed value.

    Built once per row from the cursor description, so formatting code looks
    values up by column name instead of by attribute.
    """

    @classmethod
    def from_values(cls, columns: Sequence[str], values: Iterable[Any]) -> "Row":
        return cls((name, TypeConverter.to_cell_value(value)) for name, value in zip(columns, values))

    @property
    def columns(self) -> list:
        return list(self.keys())

    def get_str(self, column: str) -> Optional[str]:
        value = self.get(column)
        if value is None:
            return None
        if isinstance(value, datetime):
            return value.isoformat(sep=" ")
        if isinstance(value, date):
            return value.isoformat()
        return str(value)

    def get_decimal(self, column: str) -> Optional[Decimal]:
        value = self.get(column)
        if value is None or isinstance(value, bool):
            return None
        try:
            return Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return None

    def get_int(self, column: str) -> Optional[int]:
        number = self.get_decimal(column)
        if number is None:
            return None
        return int(number)

    def get_datetime(self, column: str) -> Optional[datetime]:
        value = self.get(column)
        if isinstance(value, datetime):
            return value
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day)
        if isinstance(value, str):
            return TypeConverter.parse_datetime(value)
        return None


class TypeConverter:
    """
    Normalizes driver values into the CellValue variant.
    Keeps the spreadsheet writer free of driver-specific types.
    """

    DATETIME_FORMATS = (
        "%Y-%m-%d %H:%M:%S",
        "%Y-%m-%dT%H:%M:%S",
        "%Y-%m-%d %H:%M:%S.%f",
        "%Y-%m-%d",
        "%d-%m-%Y",
        "%d/%m/%Y",
    )

    @staticmethod
    def to_cell_value(value: Any) -> CellValue:
        if value is None:
            return None

        if isinstance(value, (bool, int, Decimal, datetime, date, str)):
            return value

        if isinstance(value, float):
            # NaN and Infinity have no spreadsheet representation
            if value != value or value in (float("inf"), float("-inf")):
                return None
            return value

        if isinstance(value, (bytes, bytearray)):
            try:
                return bytes(value).decode("utf-8")
            except UnicodeDecodeError:
                return bytes(value).hex()

        logger.debug(f"Converting unsupported type {type(value).__name__} to string")
        return str(value)

    @classmethod
    def parse_datetime(cls, text: str) -> Optional[datetime]:
        text = text.strip()
        for fmt in cls.DATETIME_FORMATS:
            try:
                return datetime.strptime(text, fmt)
            except ValueError:
                continue
        return None

    @classmethod
    def from_text(cls, column: str, text: Optional[str]) -> CellValue:
        """
        Types a cell read from a text extract the way the view query would.

        Serial columns become int and amount columns Decimal; date-shaped
        text becomes datetime. Everything else stays text, so codes such as
        HS "01012100" or IEC "0501" keep their leading zeros.

        Example:
            from_text("FOB_INR", "1500.50")      -> Decimal("1500.50")
            from_text("MonthSerial", "202401")   -> 202401
            from_text("SB_Date", "2024-01-05")   -> datetime(2024, 1, 5)
        """
        if text is None:
            return None
        stripped = text.strip()
        upper = column.upper()

        if any(marker in upper for marker in SERIAL_MARKERS):
            try:
                return int(stripped)
            except ValueError:
                return text

        if any(marker in upper for marker in AMOUNT_MARKERS):
            try:
                number = Decimal(stripped.replace(",", ""))
            except InvalidOperation:
                return text
            return number if number.is_finite() else None

        parsed = cls.parse_datetime(stripped)
        return parsed if parsed is not None else text
