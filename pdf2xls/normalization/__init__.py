"""Field normalization for extracted invoice data."""

from pdf2xls.normalization.company import abbreviate, clean_company_name
from pdf2xls.normalization.currency import CurrencyResolver, get_currency_resolver, resolve
from pdf2xls.normalization.dates import normalize_date, parse_invoice_date, parse_iso_date
from pdf2xls.normalization.numbers import normalize_amount, round_money, try_parse_flexible_decimal
from pdf2xls.normalization.record import (
    REQUIRED_FIELDS,
    InvoiceNormalizer,
    is_complete,
    parse_field_tree,
    unwrap_node,
)

__all__ = [
    "abbreviate",
    "clean_company_name",
    "CurrencyResolver",
    "get_currency_resolver",
    "resolve",
    "normalize_date",
    "parse_invoice_date",
    "parse_iso_date",
    "normalize_amount",
    "round_money",
    "try_parse_flexible_decimal",
    "REQUIRED_FIELDS",
    "InvoiceNormalizer",
    "is_complete",
    "parse_field_tree",
    "unwrap_node",
]
