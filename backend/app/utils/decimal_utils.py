"""
Decimal precision utilities for SavingsVault.

Money columns are NUMERIC(precision, scale). Amounts entering the ledger are
quantized to the column scale before any arithmetic, so what is computed in
Python is exactly what the database stores.

Usage:
    from backend.app.utils.decimal_utils import get_model_column_precision, quantize_money

    precision, scale = get_model_column_precision(Account, "balance")
    # Returns: (12, 2)

    quantize_money(Decimal("10.005"))
    # Returns: Decimal("10.01")
"""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Type, Tuple, Union

from sqlalchemy import Numeric
from sqlmodel import SQLModel

from backend.app.db.models import Account


def get_model_column_precision(model: Type[SQLModel], column_name: str) -> Tuple[int, int]:
    """
    Get (precision, scale) for a numeric column from SQLModel.

    Reads the column type definition from the model to avoid hardcoded constants.

    Args:
        model: SQLModel table class (e.g., Account, Transaction)
        column_name: Column name (e.g., "balance", "amount")

    Returns:
        Tuple of (precision, scale)

    Raises:
        ValueError: If column not found or not a Numeric type

    Example:
        >>> get_model_column_precision(Account, "balance")
        (12, 2)
    """
    if not hasattr(model, '__table__'):
        raise ValueError(f"Model {model.__name__} has no __table__ attribute")

    table = model.__table__

    if column_name not in table.columns:
        raise ValueError(f"Column '{column_name}' not found in {model.__name__}")

    column_type = table.columns[column_name].type

    if not isinstance(column_type, Numeric):
        raise ValueError(
            f"Column '{column_name}' in {model.__name__} is not Numeric type "
            f"(found: {type(column_type).__name__})"
            )

    precision = column_type.precision
    scale = column_type.scale

    if precision is None or scale is None:
        raise ValueError(f"Column '{column_name}' in {model.__name__} has undefined precision/scale")

    return precision, scale


def to_decimal(value: Union[Decimal, int, float, str]) -> Decimal:
    """
    Convert an input amount to Decimal.

    Floats go through str() so 0.1 becomes Decimal("0.1"), not its binary expansion.

    Raises:
        ValueError: If the value is not a finite number
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a numeric amount: {value!r}")
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValueError(f"Not a numeric amount: {value!r}")
    if not result.is_finite():
        raise ValueError(f"Not a finite amount: {value!r}")
    return result


def quantize_money(value: Union[Decimal, int, float, str], model: Type[SQLModel] = Account,
                   column_name: str = "balance") -> Decimal:
    """
    Round an amount to the scale of a money column.

    Uses ROUND_HALF_UP (commercial rounding): 10.005 -> 10.01.

    Args:
        value: Amount to round
        model: SQLModel class owning the column (default Account)
        column_name: Column providing the scale (default "balance")

    Returns:
        Decimal with exactly `scale` fractional digits
    """
    _, scale = get_model_column_precision(model, column_name)
    quantizer = Decimal(10) ** -scale
    try:
        return to_decimal(value).quantize(quantizer, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # More digits than the decimal context can hold
        raise ValueError(f"Amount out of range: {value!r}")
