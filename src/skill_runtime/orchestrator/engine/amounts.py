"""Numeric shorthand grammar for amount-bearing tool arguments.

    amount  := number [suffix]
    number  := digits ["." digits] | "." digits
    suffix  := "k" | "m"            (case-insensitive)

`k` multiplies by 1,000 and `m` by 1,000,000. Anything else is rejected.
"""

from __future__ import annotations

import math
import re
from decimal import Decimal, InvalidOperation

from .errors import InvalidAmountFormat

_AMOUNT_RE = re.compile(
    r"^(?P<number>\d+(?:\.\d+)?|\.\d+)(?P<suffix>[km])?$", re.IGNORECASE | re.ASCII
)

MULTIPLIERS: dict[str, int] = {
    "k": 1_000,
    "m": 1_000_000,
}


def parse_amount(raw: object) -> int | Decimal:
    """Parse `raw` into an exact amount.

    Integral results come back as `int`; fractional results as `Decimal`.
    Numbers (not bools) pass through unchanged when finite and non-negative.
    """

    if isinstance(raw, bool):
        raise InvalidAmountFormat(raw)
    if isinstance(raw, int):
        if raw < 0:
            raise InvalidAmountFormat(raw)
        return raw
    if isinstance(raw, Decimal):
        if not raw.is_finite() or raw.is_signed():
            raise InvalidAmountFormat(raw)
        return raw
    if isinstance(raw, float):
        if not math.isfinite(raw) or raw < 0:
            raise InvalidAmountFormat(raw)
        return int(raw) if raw.is_integer() else Decimal(str(raw))
    if not isinstance(raw, str):
        raise InvalidAmountFormat(raw)

    match = _AMOUNT_RE.match(raw.strip())
    if match is None:
        raise InvalidAmountFormat(raw)

    try:
        value = Decimal(match.group("number"))
    except InvalidOperation as e:
        raise InvalidAmountFormat(raw) from e

    suffix = match.group("suffix")
    if suffix:
        value *= MULTIPLIERS[suffix.lower()]

    if value == value.to_integral_value():
        return int(value)
    return value.normalize()
