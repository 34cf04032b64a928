# src/tradedata_export/request.py

from dataclasses import dataclass
from datetime import date
from typing import Optional, Tuple, Union

from .errors import RequestValidationError

WILDCARD = "%"

MIN_YEAR = 2000
MAX_YEAR = 2099

# (attribute, display prefix) in expansion order, outermost first
FILTER_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("hs_code", "HS"),
    ("product", "Product"),
    ("exporter", "Exporter"),
    ("port", "Port"),
    ("iec_code", "IEC"),
    ("country", "Country"),
    ("party", "Party"),
)


def unique_values(values) -> Tuple[str, ...]:
    """Drops repeated values, keeping first-seen order."""
    return tuple(dict.fromkeys(values))


def split_parameter(value: Optional[str]) -> Tuple[str, ...]:
    """
    Splits a comma-separated filter field into its values.

    A blank field means "match all" and becomes the single wildcard value.
    Repeated values are kept once, so every combination is distinct.

    Example:
        split_parameter("01, 02,,03")  -> ("01", "02", "03")
        split_parameter("01,02,01")    -> ("01", "02")
        split_parameter("")            -> ("%",)
    """
    if value is None or not value.strip():
        return (WILDCARD,)
    parts = unique_values(part.strip() for part in value.split(",") if part.strip())
    return parts or (WILDCARD,)


def normalize_values(values) -> Tuple[str, ...]:
    """Normalizes an already-split list; an empty list becomes the wildcard."""
    cleaned = unique_values(str(v).strip() for v in values if v is not None and str(v).strip())
    return cleaned or (WILDCARD,)


def parse_month_serial(value: Union[str, int, None], field_name: str = "month") -> int:
    """
    Parses and validates a YYYYMM month serial.

    Raises:
        RequestValidationError: when the value is missing, not numeric,
            or outside year 2000-2099 / month 1-12
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise RequestValidationError(
            f"{field_name} is required",
            suggestions=["Enter the month serial in YYYYMM format (e.g. 202401)"],
        )
    if isinstance(value, bool):
        raise RequestValidationError(f"{field_name} must be a YYYYMM number, got {value!r}")
    try:
        serial = int(str(value).strip())
    except ValueError:
        raise RequestValidationError(
            f"{field_name} must be a YYYYMM number, got {value!r}",
            suggestions=["Enter the month serial in YYYYMM format (e.g. 202401)"],
        ) from None

    year, month = divmod(serial, 100)
    if not (100000 <= serial <= 999999) or not (MIN_YEAR <= year <= MAX_YEAR) or not (1 <= month <= 12):
        raise RequestValidationError(
            f"{field_name} {serial} is not a valid month serial",
            suggestions=[f"Year must be {MIN_YEAR}-{MAX_YEAR} and month 01-12 (e.g. 202401)"],
        )
    return serial


def current_month_serial(today: Optional[date] = None) -> int:
    today = today or date.today()
    return today.year * 100 + today.month


@dataclass(frozen=True)
class FilterListRequest:
    """
    Per-field value lists for one export run plus the shared month range.

    Every list holds at least the wildcard when built via from_raw().
    A list that is empty yields zero combinations.
    """
    from_month: Union[int, str]
    to_month: Union[int, str]
    hs_codes: Tuple[str, ...] = (WILDCARD,)
    products: Tuple[str, ...] = (WILDCARD,)
    exporters: Tuple[str, ...] = (WILDCARD,)
    ports: Tuple[str, ...] = (WILDCARD,)
    iec_codes: Tuple[str, ...] = (WILDCARD,)
    countries: Tuple[str, ...] = (WILDCARD,)
    parties: Tuple[str, ...] = (WILDCARD,)

    def __post_init__(self):
        for name in ("hs_codes", "products", "exporters", "ports", "iec_codes", "countries", "parties"):
            value = getattr(self, name)
            if isinstance(value, str):
                raise TypeError(
                    f"{name} must be a list of values, not a string; "
                    "use FilterListRequest.from_raw() for comma-separated input"
                )
            object.__setattr__(self, name, unique_values(value))

    @classmethod
    def from_raw(
        cls,
        from_month: Union[int, str],
        to_month: Union[int, str],
        hs_code: Optional[str] = None,
        product: Optional[str] = None,
        exporter: Optional[str] = None,
        port: Optional[str] = None,
        iec: Optional[str] = None,
        country: Optional[str] = None,
        party: Optional[str] = None,
    ) -> "FilterListRequest":
        """Builds a request from the comma-separated strings a user typed."""
        return cls(
            from_month=from_month,
            to_month=to_month,
            hs_codes=split_parameter(hs_code),
            products=split_parameter(product),
            exporters=split_parameter(exporter),
            ports=split_parameter(port),
            iec_codes=split_parameter(iec),
            countries=split_parameter(country),
            parties=split_parameter(party),
        )

    @classmethod
    def from_lists(cls, from_month: Union[int, str], to_month: Union[int, str], **lists) -> "FilterListRequest":
        """
        Builds a request from already-split lists, keyed by field name
        (hs_codes, products, ...). Missing or empty lists become the wildcard.
        """
        names = ("hs_codes", "products", "exporters", "ports", "iec_codes", "countries", "parties")
        unknown = set(lists) - set(names)
        if unknown:
            raise TypeError(f"Unknown filter fields: {sorted(unknown)}")
        return cls(
            from_month=from_month,
            to_month=to_month,
            **{name: normalize_values(lists.get(name) or ()) for name in names},
        )

    @property
    def value_lists(self) -> Tuple[Tuple[str, ...], ...]:
        """The seven lists in expansion order (HS, Product, Exporter, Port, IEC, Country, Party)."""
        return (
            self.hs_codes,
            self.products,
            self.exporters,
            self.ports,
            self.iec_codes,
            self.countries,
            self.parties,
        )

    @property
    def total_combinations(self) -> int:
        total = 1
        for values in self.value_lists:
            total *= len(values)
        return total

    @property
    def from_serial(self) -> int:
        return parse_month_serial(self.from_month, "from_month")

    @property
    def to_serial(self) -> int:
        return parse_month_serial(self.to_month, "to_month")

    def validate(self) -> "FilterListRequest":
        """
        Checks the month range.

        Returns:
            self, so calls can be chained

        Raises:
            RequestValidationError: bad month serials or from > to
        """
        from_serial = self.from_serial
        to_serial = self.to_serial
        if from_serial > to_serial:
            raise RequestValidationError(
                f"from_month {from_serial} is after to_month {to_serial}",
                suggestions=["From month cannot be greater than To month"],
            )
        return self

    @property
    def is_valid(self) -> bool:
        try:
            self.validate()
        except RequestValidationError:
            return False
        return True
