"""
Locale-tolerant parsing of decimal amounts.

Invoices mix ``1.234,56`` and ``1,234.56`` conventions, so the decimal
separator is inferred from the string rather than taken from a locale.
"""

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Tuple

# Plain invariant number: optional leading sign, digits, optional fraction
_INVARIANT_NUMBER = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)$")

# Characters kept when cleaning an amount printed with currency text
_AMOUNT_CHARS = re.compile(r"[^0-9.,+-]")

# Separators not between two digits, e.g. the period of "zł." or "Rs."
_STRAY_SEPARATORS = re.compile(r"(?<!\d)[.,]|[.,](?!\d)")

TWO_PLACES = Decimal("0.01")


def try_parse_flexible_decimal(raw: str) -> Tuple[bool, Decimal]:
    """
    Parse a number whose thousands/decimal separators must be inferred.

    Rules:
        - both ``,`` and ``.`` present: the rightmost one is the decimal
          separator, the other is stripped as a thousands separator
        - only ``,``: a single comma is the decimal separator, several
          commas are thousands separators
        - otherwise the string is parsed as-is with ``.`` as decimal separator

    Returns:
        ``(True, value)`` on success, ``(False, Decimal(0))`` otherwise. Never raises.
    """
    if raw is None or not str(raw).strip():
        return False, Decimal(0)

    text = str(raw).strip()
    if "," in text and "." in text:
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif "," in text:
        if text.count(",") == 1:
            text = text.replace(",", ".")
        else:
            text = text.replace(",", "")

    if not _INVARIANT_NUMBER.match(text):
        return False, Decimal(0)

    try:
        return True, Decimal(text)
    except InvalidOperation:
        return False, Decimal(0)


def round_money(value: Decimal) -> Decimal:
    """Round to two fractional digits, halves away from zero."""
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def clean_amount(raw: str) -> str:
    """Drop currency names, symbols and spaces used as digit grouping."""
    if not raw:
        return ""
    return _STRAY_SEPARATORS.sub("", _AMOUNT_CHARS.sub("", str(raw)))


def normalize_amount(raw: str) -> str:
    """
    Normalize a printed amount to invariant text such as ``1234.56``.

    Returns an empty string when the amount cannot be parsed.
    """
    ok, value = try_parse_flexible_decimal(clean_amount(raw))
    if not ok:
        return ""
    return f"{round_money(value):f}"
