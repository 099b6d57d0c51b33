import io
from datetime import date

import pytest

from txn_core.data import load_transactions
from txn_core.filters import FilterSelection


HEADER = "transaction_time,amount,country,channel,merchant_category,total_transactions_user,account_age_days,is_fraud\n"

SCENARIO_CSV = HEADER + (
    "2024-01-01 10:00:00,100,US,web,grocery,5,100,0\n"
    "2024-01-01 23:59:59,50,US,app,electronics,2,10,1\n"
    "2024-01-02 00:00:00,200,FR,web,grocery,12,400,0\n"
)

WIDER_CSV = HEADER + (
    "2024-03-01 08:15:00,120.50,US,web,travel,3,30,0\n"
    "2024-03-01 09:00:00,,DE,app,grocery,7,365,1\n"
    "2024-03-02 12:30:00,80,DE,web,grocery,7,365,0\n"
    "2024-03-02 18:45:00,300,BR,pos,electronics,1,2,1\n"
    "2024-03-03 07:05:00,15.25,US,pos,grocery,20,1200,0\n"
    "2024-03-04 22:10:00,60,BR,app,travel,4,45,0\n"
    "2024-03-04 23:59:00,999.99,US,web,electronics,1,1,1\n"
    "2024-03-05 11:11:11,42,,web,grocery,9,700,0\n"
)


@pytest.fixture
def scenario_dataset():
    """Three rows over two days; one US fraud."""
    return load_transactions(io.StringIO(SCENARIO_CSV))


@pytest.fixture
def wider_dataset():
    return load_transactions(io.StringIO(WIDER_CSV))


@pytest.fixture
def make_csv():
    """Build an in-memory transactions file from data lines (header added)."""

    def _make(*lines):
        return io.StringIO(HEADER + "".join(f"{line}\n" for line in lines))

    return _make


@pytest.fixture
def full_range():
    return FilterSelection(date_start=date(2024, 1, 1), date_end=date(2024, 1, 2))


@pytest.fixture
def csv_path(tmp_path):
    path = tmp_path / "transactions.csv"
    path.write_text(SCENARIO_CSV)
    return path
