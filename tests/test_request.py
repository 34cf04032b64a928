# tests/test_request.py
from datetime import date

import pytest

from tradedata_export.errors import RequestValidationError
from tradedata_export.request import (
    WILDCARD,
    FilterListRequest,
    current_month_serial,
    normalize_values,
    parse_month_serial,
    split_parameter,
)


def test_split_parameter_trims_and_drops_blanks():
    """Comma-separated values are trimmed and blanks dropped."""
    assert split_parameter("01, 02,,03 ") == ("01", "02", "03")


@pytest.mark.parametrize("raw", [None, "", "   ", ",,"])
def test_split_parameter_blank_becomes_wildcard(raw):
    assert split_parameter(raw) == (WILDCARD,)


def test_normalize_values_empty_list_becomes_wildcard():
    assert normalize_values([]) == (WILDCARD,)
    assert normalize_values([" a ", None, ""]) == ("a",)


def test_parse_month_serial_accepts_str_and_int():
    assert parse_month_serial("202401") == 202401
    assert parse_month_serial(202412) == 202412


@pytest.mark.parametrize("value", ["2024", "202413", "202400", "199912", "210001", "abc", "", None])
def test_parse_month_serial_rejects_invalid(value):
    with pytest.raises(RequestValidationError) as exc:
        parse_month_serial(value, "from_month")
    assert "from_month" in str(exc.value)


def test_validation_error_carries_suggestions():
    with pytest.raises(RequestValidationError) as exc:
        parse_month_serial("2024xx")
    assert exc.value.suggestions


def test_current_month_serial():
    assert current_month_serial(date(2024, 3, 15)) == 202403


def test_from_raw_splits_every_field():
    """Each raw field becomes its own value list; unset fields are the wildcard."""
    request = FilterListRequest.from_raw("202401", "202403", hs_code="01,02", product="rice")

    assert request.hs_codes == ("01", "02")
    assert request.products == ("rice",)
    assert request.exporters == (WILDCARD,)
    assert request.parties == (WILDCARD,)
    assert request.total_combinations == 2


def test_total_combinations_is_product_of_list_sizes():
    request = FilterListRequest.from_raw(
        202401, 202401, hs_code="01,02,03", product="a,b", country="UAE,USA"
    )
    assert request.total_combinations == 12


def test_empty_list_means_zero_combinations():
    request = FilterListRequest(from_month=202401, to_month=202401, hs_codes=())
    assert request.total_combinations == 0


def test_from_lists_rejects_unknown_fields():
    with pytest.raises(TypeError):
        FilterListRequest.from_lists(202401, 202401, colours=["red"])


def test_from_lists_normalizes_values():
    request = FilterListRequest.from_lists(202401, 202401, hs_codes=[" 01 ", ""], products=[])
    assert request.hs_codes == ("01",)
    assert request.products == (WILDCARD,)


def test_lists_are_frozen_as_tuples():
    request = FilterListRequest(from_month=202401, to_month=202401, hs_codes=["01", "02"])
    assert request.hs_codes == ("01", "02")
    with pytest.raises(AttributeError):
        request.hs_codes = ("03",)


def test_validate_rejects_from_after_to():
    request = FilterListRequest.from_raw("202403", "202401")
    with pytest.raises(RequestValidationError, match="after"):
        request.validate()
    assert not request.is_valid


def test_validate_returns_self():
    request = FilterListRequest.from_raw("202401", "202401")
    assert request.validate() is request
    assert request.is_valid


def test_split_parameter_drops_repeated_values():
    assert split_parameter("01,02,01, 02,03") == ("01", "02", "03")


def test_normalize_values_drops_repeated_values():
    assert normalize_values(["rice", " rice ", "wheat"]) == ("rice", "wheat")


def test_repeated_values_do_not_multiply_combinations():
    request = FilterListRequest.from_raw(202401, 202401, hs_code="01,01,01,01")
    assert request.hs_codes == ("01",)
    assert request.total_combinations == 1


def test_constructor_drops_repeated_values():
    request = FilterListRequest(from_month=202401, to_month=202401, hs_codes=["01", "02", "01"])
    assert request.hs_codes == ("01", "02")


def test_constructor_rejects_comma_separated_string():
    with pytest.raises(TypeError, match="hs_codes"):
        FilterListRequest(from_month=202401, to_month=202401, hs_codes="01,02")
