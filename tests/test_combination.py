# tests/test_combination.py
import pytest

from tradedata_export.combination import (
    CombinationKey,
    FileNameAllocator,
    clean_for_filename,
    key_from_values,
    month_token,
)
from tradedata_export.request import WILDCARD


def test_month_token_single_month():
    assert month_token(202401, 202401) == "JAN24"


def test_month_token_range():
    assert month_token(202401, 202403) == "JAN24-MAR24"
    assert month_token("202311", "202402") == "NOV23-FEB24"


@pytest.mark.parametrize("raw,expected", [
    ("basmati rice", "basmati_rice"),
    ("Gamma & Sons", "Gamma_and_Sons"),
    ("a/b", "a_b"),
    ('bad:<name>?*"|', "badname"),
])
def test_clean_for_filename(raw, expected):
    assert clean_for_filename(raw) == expected


def test_blank_fields_become_wildcard():
    key = CombinationKey(index=1, hs_code="", product="  ", from_month=202401, to_month=202401)
    assert key.hs_code == WILDCARD
    assert key.product == WILDCARD


def test_file_name_only_hs():
    key = CombinationKey(index=1, hs_code="01", from_month=202401, to_month=202401)
    assert key.file_name() == "01_JAN24EXP"


def test_file_name_multiple_fields_in_fixed_order():
    """Non-wildcard fields follow HS, Product, Exporter, Port, IEC, Country, Party order."""
    key = CombinationKey(
        index=3,
        hs_code="01",
        product="basmati rice",
        country="UAE",
        party="Gulf & Co",
        from_month=202401,
        to_month=202403,
    )
    assert key.file_name() == "01_basmati_rice_UAE_Gulf_and_Co_JAN24-MAR24EXP"


def test_file_name_all_wildcards():
    key = CombinationKey(index=1, from_month=202401, to_month=202401)
    assert key.file_name() == "JAN24EXP"


def test_display_label():
    key = CombinationKey(index=1, hs_code="01", product="rice", from_month=202401, to_month=202401)
    assert key.display_label() == "HS:01, Product:rice"
    assert str(key) == "#1 HS:01, Product:rice"


def test_display_label_all_parameters():
    assert CombinationKey(index=1).display_label() == "All parameters"


def test_to_filter_keeps_wildcards():
    key = CombinationKey(index=1, hs_code="01", from_month=202401, to_month=202402)
    trade_filter = key.to_filter()

    assert trade_filter.hs_code == "01"
    assert trade_filter.product == WILDCARD
    assert trade_filter.is_wildcard("product")
    assert not trade_filter.is_wildcard("hs_code")
    assert trade_filter.as_params()["to_month"] == 202402


def test_key_from_values_maps_in_expansion_order():
    key = key_from_values(5, ("01", "rice", "Alpha", "Mundra", "0501", "UAE", "Gulf"), 202401, 202401)

    assert key.index == 5
    assert (key.hs_code, key.product, key.exporter, key.port) == ("01", "rice", "Alpha", "Mundra")
    assert (key.iec_code, key.country, key.party) == ("0501", "UAE", "Gulf")


def test_keys_are_immutable():
    key = CombinationKey(index=1, hs_code="01")
    with pytest.raises(AttributeError):
        key.hs_code = "02"


def test_file_name_allocator_keeps_first_name_and_numbers_collisions():
    names = FileNameAllocator()
    keys = [
        CombinationKey(index=i, product=product, from_month=202401, to_month=202401)
        for i, product in enumerate(["a/b", "a_b", "rice", "A_B"], start=1)
    ]

    assert [names.claim(key) for key in keys] == [
        "a_b_JAN24EXP",
        "a_b_JAN24EXP_2",
        "rice_JAN24EXP",
        "A_B_JAN24EXP_3",
    ]


def test_file_name_allocator_skips_names_already_taken():
    names = FileNameAllocator()
    first = CombinationKey(index=1, hs_code="01", from_month=202401, to_month=202401)
    assert names.claim(first) == "01_JAN24EXP"
    assert names.claim(first) == "01_JAN24EXP_2"
    assert names.claim(first) == "01_JAN24EXP_3"
