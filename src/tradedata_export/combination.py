# src/tradedata_export/combination.py

import re
from dataclasses import dataclass, asdict
from typing import Dict, List

from .request import WILDCARD, FILTER_FIELDS

MONTH_ABBREVIATIONS = {
    1: "JAN", 2: "FEB", 3: "MAR", 4: "APR",
    5: "MAY", 6: "JUN", 7: "JUL", 8: "AUG",
    9: "SEP", 10: "OCT", 11: "NOV", 12: "DEC",
}

FILE_SUFFIX = "EXP"

# Characters Windows refuses in file names
_ILLEGAL_FILENAME_CHARS = re.compile(r'[<>:"\\|?*\x00-\x1f]')


def clean_for_filename(text: str) -> str:
    """Makes a filter value safe to use as part of a file name."""
    cleaned = text.strip().replace(" ", "_").replace("&", "and").replace("/", "_")
    cleaned = cleaned.replace(WILDCARD, "")
    return _ILLEGAL_FILENAME_CHARS.sub("", cleaned)


def month_token(from_serial, to_serial) -> str:
    """
    Abbreviated month-range token.

    Example:
        month_token(202401, 202401) -> "JAN24"
        month_token(202401, 202403) -> "JAN24-MAR24"
    """
    try:
        from_serial = int(from_serial)
        to_serial = int(to_serial)
    except (TypeError, ValueError):
        return ""

    from_year, from_month = divmod(from_serial, 100)
    to_year, to_month = divmod(to_serial, 100)
    start = f"{MONTH_ABBREVIATIONS.get(from_month, 'UNK')}{from_year % 100:02d}"
    if from_serial == to_serial:
        return start
    return f"{start}-{MONTH_ABBREVIATIONS.get(to_month, 'UNK')}{to_year % 100:02d}"


@dataclass(frozen=True)
class TradeFilter:
    """Filter values handed to the query collaborator. Wildcards are kept as '%'."""
    hs_code: str
    product: str
    exporter: str
    port: str
    iec_code: str
    country: str
    party: str
    from_month: int
    to_month: int

    def as_params(self) -> Dict[str, object]:
        return asdict(self)

    def is_wildcard(self, field_name: str) -> bool:
        return getattr(self, field_name) == WILDCARD


@dataclass(frozen=True)
class CombinationKey:
    """One concrete value per filter field plus the shared month range."""
    index: int
    hs_code: str = WILDCARD
    product: str = WILDCARD
    exporter: str = WILDCARD
    port: str = WILDCARD
    iec_code: str = WILDCARD
    country: str = WILDCARD
    party: str = WILDCARD
    from_month: int = 0
    to_month: int = 0

    def __post_init__(self):
        for name, _ in FILTER_FIELDS:
            value = getattr(self, name)
            if value is None or not str(value).strip():
                object.__setattr__(self, name, WILDCARD)

    def _specified_fields(self) -> List[tuple]:
        return [
            (prefix, getattr(self, name))
            for name, prefix in FILTER_FIELDS
            if getattr(self, name) != WILDCARD
        ]

    def to_filter(self) -> TradeFilter:
        return TradeFilter(
            hs_code=self.hs_code,
            product=self.product,
            exporter=self.exporter,
            port=self.port,
            iec_code=self.iec_code,
            country=self.country,
            party=self.party,
            from_month=int(self.from_month),
            to_month=int(self.to_month),
        )

    def file_name(self) -> str:
        """
        Deterministic output file name, without extension.

        Non-wildcard fields in expansion order, then the month token with the
        EXP suffix, e.g. "01_rice_JAN24-MAR24EXP".
        """
        parts = [clean_for_filename(value) for _, value in self._specified_fields()]
        parts = [p for p in parts if p]
        parts.append(f"{month_token(self.from_month, self.to_month)}{FILE_SUFFIX}")
        return "_".join(parts)

    def display_label(self) -> str:
        parts = [f"{prefix}:{value}" for prefix, value in self._specified_fields()]
        return ", ".join(parts) if parts else "All parameters"

    def __str__(self) -> str:
        return f"#{self.index} {self.display_label()}"


def key_from_values(index: int, values, from_month: int, to_month: int) -> CombinationKey:
    """Builds a key from the seven values in expansion order."""
    fields = {name: value for (name, _), value in zip(FILTER_FIELDS, values)}
    return CombinationKey(index=index, from_month=from_month, to_month=to_month, **fields)



class FileNameAllocator:
    """
    Hands out one output file name per key within a run.

    Distinct values can clean to the same name ("a/b" and "a_b", "A&B" and
    "AandB"). The first key keeps the plain name; later ones get "_2", "_3"
    appended so no two jobs write the same file. Names compare
    case-insensitively, as they do on Windows file systems.
    """

    def __init__(self):
        self._taken = set()

    def claim(self, key: CombinationKey) -> str:
        base = key.file_name()
        name = base
        counter = 1
        while name.lower() in self._taken:
            counter += 1
            name = f"{base}_{counter}"
        self._taken.add(name.lower())
        return name
