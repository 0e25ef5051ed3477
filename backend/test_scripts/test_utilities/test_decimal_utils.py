"""
Test decimal precision utilities.
All test is independent of the others, so help use pytest features.
"""
import sys
from decimal import Decimal
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent.parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

# Importing models pulls in the db package (engine): switch to the test database first
from backend.test_scripts.test_db_config import setup_test_database
setup_test_database()

from backend.app.db.models import Account, Transaction, User
from backend.app.utils.decimal_utils import get_model_column_precision, quantize_money, to_decimal


def test_get_model_column_precision_account():
    """Balance column is NUMERIC(12, 2)."""
    assert get_model_column_precision(Account, "balance") == (12, 2)


def test_get_model_column_precision_transaction():
    """All transaction money columns share the account precision."""
    for column in ["amount", "balance_before", "balance_after"]:
        precision, scale = get_model_column_precision(Transaction, column)
        assert (precision, scale) == (12, 2), f"{column}: got ({precision}, {scale})"


def test_get_model_column_precision_errors():
    with pytest.raises(ValueError, match="not found"):
        get_model_column_precision(Account, "no_such_column")
    with pytest.raises(ValueError, match="not Numeric"):
        get_model_column_precision(User, "email")


@pytest.mark.parametrize("raw,expected", [
    (Decimal("10"), Decimal("10.00")),
    ("10.005", Decimal("10.01")),  # ROUND_HALF_UP
    ("10.004", Decimal("10.00")),
    (0.1, Decimal("0.10")),  # through str(), no binary noise
    (7, Decimal("7.00")),
    ("-2.555", Decimal("-2.56")),
])
def test_quantize_money(raw, expected):
    result = quantize_money(raw)
    assert result == expected
    assert result.as_tuple().exponent == -2


@pytest.mark.parametrize("raw", ["abc", "", None, True, float("inf"), "NaN"])
def test_to_decimal_rejects_non_numbers(raw):
    with pytest.raises(ValueError):
        to_decimal(raw)


def test_quantize_out_of_range():
    with pytest.raises(ValueError):
        quantize_money("1e40")
