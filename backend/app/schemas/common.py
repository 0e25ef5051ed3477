"""
Common schemas shared across subsystems.

**Domain Coverage**:
- CamelModel: base class exposing camelCase keys on the wire
- Money: Decimal serialized as a JSON number
- validate_currency_code: ISO 4217 check (via pycountry)
- MessageResponse: generic acknowledgement body
"""
from decimal import Decimal
from typing import Annotated

import pycountry
from pydantic import BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel


def validate_currency_code(code: str) -> str:
    """
    Validate and normalize an ISO 4217 currency code.

    Args:
        code: Currency code, any case (e.g. "usd")

    Returns:
        Upper-cased code

    Raises:
        ValueError: If pycountry does not know the code
    """
    normalized = code.strip().upper()
    if pycountry.currencies.get(alpha_3=normalized) is None:
        raise ValueError(f"Unknown ISO 4217 currency code: {code}")
    return normalized


# Decimal on the way in, number on the way out (pydantic would emit a string)
Money = Annotated[Decimal, PlainSerializer(lambda v: float(v), return_type=float, when_used="json")]


class CamelModel(BaseModel):
    """
    Base schema for the public API.

    Fields are snake_case in Python and camelCase in JSON. Requests accept
    either spelling.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        )


class MessageResponse(CamelModel):
    """Plain acknowledgement."""
    message: str
