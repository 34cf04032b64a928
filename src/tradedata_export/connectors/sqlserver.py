# src/tradedata_export/connectors/sqlserver.py

import logging
from contextlib import contextmanager
from typing import List

from .base import BaseTradeSource
from .filters import ORDER_COLUMN, build_where_clause
from ..combination import TradeFilter
from ..config import DatabaseConfig
from ..errors import ConnectionError
from ..types import Row

logger = logging.getLogger(__name__)

# Stored procedure parameter name -> TradeFilter attribute
PROCEDURE_PARAMETERS = (
    ("fromMonth", "from_month"),
    ("ToMonth", "to_month"),
    ("hs", "hs_code"),
    ("prod", "product"),
    ("Iec", "iec_code"),
    ("ExpCmp", "exporter"),
    ("forcount", "country"),
    ("forname", "party"),
    ("port", "port"),
)


def build_procedure_call(procedure_name: str, trade_filter: TradeFilter):
    """
    EXEC statement with named parameters. Blank values are sent as '%'.

    Returns:
        (sql, params)
    """
    assignments = []
    params = []
    for parameter, attribute in PROCEDURE_PARAMETERS:
        value = getattr(trade_filter, attribute)
        if attribute in ("from_month", "to_month"):
            value = str(value)
        elif value is None or not str(value).strip():
            value = "%"
        assignments.append(f"@{parameter} = ?")
        params.append(value)
    return f"EXEC {procedure_name} " + ", ".join(assignments), params


def build_select(config: DatabaseConfig, trade_filter: TradeFilter):
    """SELECT TOP n from the export view, newest shipping bills first."""
    where_sql, params = build_where_clause(trade_filter) if config.filter_view else ("", [])
    parts = [f"SELECT TOP {int(config.query_top_limit)} *", f"FROM {config.qualified_view}"]
    if where_sql:
        parts.append(where_sql)
    parts.append(f"ORDER BY [{ORDER_COLUMN}] DESC")
    return " ".join(parts), params


class SqlServerSource(BaseTradeSource):
    """Reads trade records from the SQL Server export view."""
    connector_type = "sqlserver"

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self.connection_string = config.connection_string()
        logger.info(f"Connection string configured: {config.masked_connection_string()}")

    @contextmanager
    def _connect(self):
        import pyodbc

        try:
            cnxn = pyodbc.connect(
                self.connection_string,
                timeout=self.config.connection_timeout,
                autocommit=True,
            )
        except pyodbc.Error as e:
            raise ConnectionError(
                f"Could not connect to SQL Server '{self.config.server}' database '{self.config.database}'. "
                f"Check DB_SERVER, credentials and network. Original error: {e}"
            ) from e

        # Command timeout for every statement on this connection
        cnxn.timeout = self.config.query_timeout
        try:
            yield cnxn
        finally:
            cnxn.close()

    def trigger_refresh(self, trade_filter: TradeFilter) -> None:
        sql, params = build_procedure_call(self.config.stored_procedure, trade_filter)
        logger.debug(f"Executing stored procedure {self.config.stored_procedure} with {params}")
        with self._connect() as cnxn:
            cursor = cnxn.cursor()
            try:
                cursor.execute(sql, params)
                # Drain result sets so the procedure runs to completion
                while cursor.nextset():
                    pass
            finally:
                cursor.close()

    def fetch_rows(self, trade_filter: TradeFilter) -> List[Row]:
        sql, params = build_select(self.config, trade_filter)
        logger.debug(f"Running query: {sql} with {params}")
        with self._connect() as cnxn:
            cursor = cnxn.cursor()
            try:
                cursor.execute(sql, params)
                if cursor.description is None:
                    return []
                columns = [column[0] for column in cursor.description]
                return [Row.from_values(columns, values) for values in cursor.fetchall()]
            finally:
                cursor.close()

    def test_connection(self) -> bool:
        with self._connect() as cnxn:
            cursor = cnxn.cursor()
            try:
                cursor.execute("SELECT 1")
                cursor.fetchone()
            finally:
                cursor.close()
        logger.info(f"Connection to {self.config.server}/{self.config.database} OK")
        return True
