# tests/conftest.py
import pytest
from typer.testing import CliRunner

from fakes import FakeSource, FakeWriter


@pytest.fixture
def fake_source():
    return FakeSource()


@pytest.fixture
def fake_writer():
    return FakeWriter()


@pytest.fixture
def output_dir(tmp_path):
    return tmp_path / "exports"


@pytest.fixture
def cli_runner():
    """Provide a reusable CLI test runner."""
    return CliRunner()


@pytest.fixture
def trade_csv(tmp_path):
    """CSV extract of the export view."""
    path = tmp_path / "expdata.csv"
    path.write_text(
        "SB_No,SB_Date,HS_Code,Product,Indian Exporter Name,iec,Foreign Importer Name,"
        "Ctry of Destination,port of origin,FOB_INR,MonthSerial\n"
        "SB0001,2024-01-05,01012100,Basmati Rice,Alpha Exports,0501,Gulf Foods,UAE,Mundra,1500.50,202401\n"
        "SB0002,2024-01-20,01019000,Rice Bran,Beta Traders,0502,Euro Imports,Germany,Nhava Sheva,800.00,202401\n"
        "SB0003,2024-02-11,02011000,Frozen Beef,Alpha Exports,0501,Gulf Foods,UAE,Mundra,2200.00,202402\n"
        "SB0004,2024-03-02,01012100,Basmati Rice,Gamma & Sons,0601,Asia Mart,Singapore,Chennai,990.00,202403\n"
        "SB0005,2023-12-30,01012100,Basmati Rice,Alpha Exports,0501,Gulf Foods,UAE,Mundra,400.00,202312\n",
        encoding="utf-8",
    )
    return path
