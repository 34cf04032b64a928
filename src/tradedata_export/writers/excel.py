# src/tradedata_export/writers/excel.py

import logging
import os
import re
import tempfile
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import List, Optional, Sequence

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from ..config import ExcelConfig
from ..connectors.base import BaseSpreadsheetWriter
from ..errors import ExportWriteError
from ..types import AMOUNT_MARKERS, SERIAL_MARKERS, Row

logger = logging.getLogger(__name__)

# Whole-word abbreviations expanded in header text
HEADER_ABBREVIATIONS = {
    "ctry": "Country",
    "no": "Number",
    "qty": "Quantity",
    "ind": "Indian",
    "sb": "SB",
    "hs": "HS",
    "iec": "IEC",
    "fob": "FOB",
    "fc": "Foreign Currency",
    "inr": "INR",
    "usd": "USD",
}

MAX_COLUMN_WIDTH = 60
MIN_COLUMN_WIDTH = 8


def friendly_header(column_name: str) -> str:
    """
    Turns a view column name into header text.

    Example:
        friendly_header("SB_No")                -> "SB Number"
        friendly_header("Ctry of Destination")  -> "Country Of Destination"
        friendly_header("FOB_INR")              -> "FOB INR"
    """
    if not column_name or not column_name.strip():
        return column_name
    words = [w for w in re.split(r"[_\s]+", column_name) if w]
    return " ".join(HEADER_ABBREVIATIONS.get(w.lower(), _title_word(w)) for w in words)


def _title_word(word: str) -> str:
    # Mixed-case words such as MonthSerial keep their inner capitals
    if word.islower() or word.isupper():
        return word.capitalize()
    return word[:1].upper() + word[1:]


def _display_width(value) -> int:
    if value is None:
        return 0
    if isinstance(value, datetime):
        return 10
    if isinstance(value, date):
        return 9
    return len(str(value))


class ExcelWriter(BaseSpreadsheetWriter):
    """Writes rows to a styled .xlsx worksheet with atomic file replacement."""

    def __init__(self, config: Optional[ExcelConfig] = None):
        self.config = config or ExcelConfig()
        thin = Side(style="thin")
        self._border = Border(left=thin, right=thin, top=thin, bottom=thin)
        self._header_font = Font(name=self.config.font_name, size=self.config.font_size, bold=True)
        self._body_font = Font(name=self.config.font_name, size=self.config.font_size)
        self._header_fill = PatternFill(
            start_color=self.config.header_fill, end_color=self.config.header_fill, fill_type="solid"
        )
        self._header_alignment = Alignment(horizontal="center", vertical="center", wrap_text=False)

    def target_path(self, destination) -> Path:
        destination = Path(destination)
        if destination.name.lower().endswith(self.extension):
            return destination
        # Not with_suffix(): filter values may contain dots
        return destination.parent / f"{destination.name}{self.extension}"

    def write(self, rows: Sequence[Row], destination) -> Path:
        """
        Writes rows to <destination>.xlsx.

        Columns come from the first row, in order.

        Raises:
            ExportWriteError: nothing to write, or the file could not be saved
        """
        rows = list(rows)
        if not rows:
            raise ExportWriteError("No rows to write")

        filepath = self.target_path(destination)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        workbook = self._build_workbook(rows)
        # One temp file per write; concurrent writers may target the same name
        fd, temp_name = tempfile.mkstemp(dir=filepath.parent, prefix=f".{filepath.stem}.", suffix=".tmp")
        os.close(fd)
        temp_filepath = Path(temp_name)
        try:
            workbook.save(temp_filepath)
            os.replace(temp_filepath, filepath)
        except Exception as e:
            if temp_filepath.exists():
                temp_filepath.unlink()
            raise ExportWriteError(f"Failed to write Excel file {filepath}: {e}") from e
        finally:
            workbook.close()

        logger.debug(f"Wrote {len(rows)} rows to {filepath}")
        return filepath

    def _build_workbook(self, rows: List[Row]) -> Workbook:
        columns = rows[0].columns
        workbook = Workbook()
        sheet = workbook.active
        # Excel limits sheet titles to 31 characters
        sheet.title = self.config.worksheet_name[:31]

        widths = []
        for col_idx, column in enumerate(columns, start=1):
            header = friendly_header(column)
            cell = sheet.cell(row=1, column=col_idx, value=header)
            cell.font = self._header_font
            cell.border = self._border
            cell.fill = self._header_fill
            cell.alignment = self._header_alignment
            widths.append(len(header))

        for row_idx, row in enumerate(rows, start=2):
            for col_idx, column in enumerate(columns, start=1):
                value = row.get(column)
                cell = sheet.cell(row=row_idx, column=col_idx, value=value)
                cell.font = self._body_font
                cell.border = self._border
                number_format = self._number_format(column, value)
                if number_format:
                    cell.number_format = number_format
                widths[col_idx - 1] = max(widths[col_idx - 1], _display_width(value))

        for col_idx, width in enumerate(widths, start=1):
            sheet.column_dimensions[get_column_letter(col_idx)].width = min(
                max(width + 2, MIN_COLUMN_WIDTH), MAX_COLUMN_WIDTH
            )
        sheet.freeze_panes = "A2"
        return workbook

    def _number_format(self, column: str, value) -> Optional[str]:
        if isinstance(value, bool) or value is None:
            return None
        if isinstance(value, (datetime, date)):
            return self.config.date_format
        upper = column.upper()
        if isinstance(value, (Decimal, float)) and any(marker in upper for marker in AMOUNT_MARKERS):
            return self.config.number_format
        if isinstance(value, int) and any(marker in upper for marker in SERIAL_MARKERS):
            return "0"
        return None
