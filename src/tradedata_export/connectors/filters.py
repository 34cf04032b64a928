# src/tradedata_export/connectors/filters.py

from typing import List, Tuple

from ..combination import TradeFilter
from ..request import WILDCARD

PREFIX = "prefix"
CONTAINS = "contains"

# (filter attribute, view column, match mode)
COLUMN_FILTERS: Tuple[Tuple[str, str, str], ...] = (
    ("hs_code", "HS_Code", PREFIX),
    ("product", "Product", CONTAINS),
    ("exporter", "Indian Exporter Name", CONTAINS),
    ("iec_code", "iec", PREFIX),
    ("party", "Foreign Importer Name", CONTAINS),
    ("country", "Ctry of Destination", CONTAINS),
    ("port", "port of origin", CONTAINS),
)

MONTH_COLUMN = "MonthSerial"
ORDER_COLUMN = "SB_Date"


def like_pattern(value: str, mode: str) -> str:
    value = value.strip()
    return f"{value}%" if mode == PREFIX else f"%{value}%"


def active_filters(trade_filter: TradeFilter) -> List[Tuple[str, str, str]]:
    """(column, value, mode) for every field that is not the wildcard."""
    active = []
    for attribute, column, mode in COLUMN_FILTERS:
        value = getattr(trade_filter, attribute)
        if value and value.strip() and value != WILDCARD:
            active.append((column, value.strip(), mode))
    return active


def build_where_clause(trade_filter: TradeFilter) -> Tuple[str, list]:
    """
    Parameterised WHERE clause for the export view.

    Returns:
        (sql, params) where sql uses '?' placeholders

    Example:
        HS 01, rice, 202401-202403 ->
        ("WHERE [HS_Code] LIKE ? AND [Product] LIKE ? AND [MonthSerial] >= ? AND [MonthSerial] <= ?",
         ["01%", "%rice%", 202401, 202403])
    """
    conditions = []
    params: list = []

    for column, value, mode in active_filters(trade_filter):
        conditions.append(f"[{column}] LIKE ?")
        params.append(like_pattern(value, mode))

    if trade_filter.from_month:
        conditions.append(f"[{MONTH_COLUMN}] >= ?")
        params.append(int(trade_filter.from_month))
    if trade_filter.to_month:
        conditions.append(f"[{MONTH_COLUMN}] <= ?")
        params.append(int(trade_filter.to_month))

    if not conditions:
        return "", params
    return "WHERE " + " AND ".join(conditions), params
