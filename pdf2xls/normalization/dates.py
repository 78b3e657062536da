"""
Date parsing for invoice fields.
"""

import re
from datetime import date, datetime
from typing import Optional

from dateutil import parser as date_parser

# Day zero of spreadsheet serial dates
SERIAL_EPOCH = date(1899, 12, 30)

_DEFAULT_A = datetime(1904, 1, 1)
_DEFAULT_B = datetime(1908, 2, 2)

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}($|[T ])")


def parse_iso_date(raw: str) -> Optional[date]:
    """Parse a strict ISO-8601 date (``yyyy-MM-dd``), or return None."""
    if not raw or not _ISO_DATE.match(str(raw).strip()):
        return None
    try:
        return date_parser.isoparse(str(raw).strip()).date()
    except (ValueError, OverflowError):
        return None


def parse_invoice_date(raw: str) -> Optional[date]:
    """
    Parse a date as printed on an invoice.

    ISO dates are tried first; anything else is read day-first
    (``15.01.2024``, ``15/01/2024``), as European invoices print them.
    """
    parsed = parse_iso_date(raw)
    if parsed is not None:
        return parsed
    if not raw or not str(raw).strip():
        return None

    # dateutil fills missing parts from `default`; a complete date parses
    # identically under two different defaults
    text = str(raw).strip()
    try:
        first = date_parser.parse(text, dayfirst=True, default=_DEFAULT_A)
        second = date_parser.parse(text, dayfirst=True, default=_DEFAULT_B)
    except (ValueError, OverflowError):
        return None
    if first.date() != second.date():
        return None
    return first.date()


def normalize_date(raw: str) -> str:
    """Return ``yyyy-MM-dd`` text, or an empty string when unparsable."""
    parsed = parse_invoice_date(raw)
    return parsed.isoformat() if parsed else ""


def to_serial(value: date) -> int:
    """Days since 1899-12-30, the spreadsheet serial date of ``value``."""
    return (value - SERIAL_EPOCH).days
