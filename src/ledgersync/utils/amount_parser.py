"""Amount parsing utilities."""

from decimal import Decimal, InvalidOperation
import re
from typing import Optional

_NON_FINITE = re.compile(r"[+-]?(s?nan|inf|infinity)", re.IGNORECASE)


def parse_amount(amount_str: str) -> Decimal:
    """Parse an amount string into a Decimal.

    Handles various formats:
    - "123.45"
    - "$123.45"
    - "-123.45"
    - "-$123.45"
    - "1,234.56"
    - "(123.45)" (negative in parentheses)

    Raises:
        ValueError: If amount string cannot be parsed
    """
    if not amount_str or not amount_str.strip():
        raise ValueError("Empty amount string")

    amount_str = amount_str.strip()

    # Parentheses mean negative
    is_negative = False
    if amount_str.startswith("(") and amount_str.endswith(")"):
        is_negative = True
        amount_str = amount_str[1:-1]

    amount_str = re.sub(r"[$€£¥]", "", amount_str)
    amount_str = amount_str.replace(",", "").strip()

    try:
        amount = Decimal(amount_str)
    except InvalidOperation as e:
        raise ValueError(f"Could not parse amount '{amount_str}'") from e
    if not amount.is_finite():
        raise ValueError(f"Amount must be a finite number, got '{amount_str}'")
    return -amount if is_negative else amount


def parse_optional_amount(value) -> Optional[Decimal]:
    """Parse an amount from a JSON field that may be absent.

    Numbers are converted through their string form so floats keep the
    digits they were written with. NaN and infinite values read as absent.

    Raises:
        ValueError: If a present value cannot be parsed
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError(f"Could not parse amount {value!r}")
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        amount = Decimal(str(value))
    elif _NON_FINITE.fullmatch(str(value).strip()):
        return None
    else:
        return parse_amount(str(value))
    return amount if amount.is_finite() else None
