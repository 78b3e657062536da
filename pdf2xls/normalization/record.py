"""
Conversion of a provider field tree into a normalized invoice record.

Providers answer with a ``data`` object whose leaves are either plain
scalars or answer wrappers of the form ``{"ans": {"val": ..., "conf": ...}}``.
"""

import json
from typing import Any, Callable, Dict, Optional, Tuple

from pdf2xls.models import NormalizedInvoiceRecord, RawFieldTree
from pdf2xls.normalization.company import clean_company_name
from pdf2xls.normalization.currency import CurrencyResolver, get_currency_resolver
from pdf2xls.normalization.dates import normalize_date, parse_invoice_date
from pdf2xls.normalization.numbers import normalize_amount
from pdf2xls.utils.errors import ResultUnparsable
from pdf2xls.utils.logging import get_logger

logger = get_logger(__name__)

# Fields that must be non-empty for an extraction to count as successful
REQUIRED_FIELDS: Tuple[str, ...] = ("IssueDate",)


def unwrap_node(node: Any) -> str:
    """
    Return the scalar value of a field node as text.

    Missing nodes give ``""``; answer wrappers give their ``ans.val``, or
    ``""`` when the wrapper carries no value; other containers are returned
    as JSON text.
    """
    if node is None:
        return ""
    if isinstance(node, bool):
        return "true" if node else "false"
    if isinstance(node, (str, int, float)):
        return str(node)
    if isinstance(node, dict) and "ans" in node:
        answer = node["ans"]
        if not isinstance(answer, dict):
            return ""
        return unwrap_node(answer.get("val"))
    return json.dumps(node, ensure_ascii=False)


def _child(node: Any, key: str) -> Any:
    return node.get(key) if isinstance(node, dict) else None


def parse_field_tree(payload: str) -> RawFieldTree:
    """
    Parse a provider payload into a field tree.

    Markdown code fences around the JSON are tolerated.

    Raises:
        ResultUnparsable: If the payload is not a JSON object
    """
    text = (payload or "").strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        text = text.rsplit("```", 1)[0]

    try:
        tree = json.loads(text)
    except json.JSONDecodeError as e:
        raise ResultUnparsable(f"Payload is not valid JSON: {e}", {"payload": (payload or "")[:200]})

    if not isinstance(tree, dict):
        raise ResultUnparsable(
            "Payload is not a JSON object",
            {"type": type(tree).__name__},
        )
    return tree


def _text(raw: str) -> str:
    return " ".join(raw.split())


def _due_date(raw: str) -> str:
    # Payment terms are often "14 dni" rather than a date
    parsed = parse_invoice_date(raw)
    return parsed.isoformat() if parsed else _text(raw)


# Canonical field -> (path in the data node, normalizer)
FIELD_SPECS: Dict[str, Tuple[Tuple[str, ...], Callable[[str], str]]] = {
    "InvoiceNumber": (("invn",), _text),
    "ReferenceNumber": (("reference",), _text),
    "IssueDate": (("issue",), normalize_date),
    "SaleDate": (("sale",), normalize_date),
    "DueDate": (("maturity",), _due_date),
    "PaymentMethod": (("payment",), _text),
    "TotalAmount": (("total",), normalize_amount),
    "PaidAmount": (("paid",), normalize_amount),
    "AmountDue": (("left",), normalize_amount),
    "Iban": (("iban",), lambda raw: "".join(raw.split())),
    "SellerName": (("seller", "name"), clean_company_name),
    "SellerTaxId": (("seller", "nip"), _text),
    "SellerStreet": (("seller", "street"), _text),
    "SellerCity": (("seller", "city"), _text),
    "SellerZip": (("seller", "zipcode"), _text),
    "BuyerName": (("buyer", "name"), clean_company_name),
    "BuyerTaxId": (("buyer", "nip"), _text),
    "BuyerStreet": (("buyer", "street"), _text),
    "BuyerCity": (("buyer", "city"), _text),
    "BuyerZip": (("buyer", "zipcode"), _text),
}

TOTALS_SPECS: Dict[str, str] = {
    "NetTotal": "valNetto",
    "VatTotal": "valVat",
    "GrossTotal": "valBrutto",
}


class InvoiceNormalizer:
    """Turn provider field trees into normalized invoice records."""

    def __init__(self, currency_resolver: Optional[CurrencyResolver] = None) -> None:
        self._currency_resolver = currency_resolver

    @property
    def currency_resolver(self) -> CurrencyResolver:
        if self._currency_resolver is None:
            self._currency_resolver = get_currency_resolver()
        return self._currency_resolver

    def normalize(self, tree: RawFieldTree) -> NormalizedInvoiceRecord:
        """
        Build a record from a field tree.

        Malformed or missing fields become empty strings; only the absence
        of the ``data`` object itself is an error.

        Raises:
            ResultUnparsable: If the tree has no ``data`` object
        """
        data = tree.get("data") if isinstance(tree, dict) else None
        if not isinstance(data, dict):
            raise ResultUnparsable("Field tree has no 'data' object", {"keys": list(tree or {})[:10]})

        fields: Dict[str, Optional[str]] = {}
        for name, (path, normalizer) in FIELD_SPECS.items():
            node: Any = data
            for key in path:
                node = _child(node, key)
            fields[name] = normalizer(unwrap_node(node))

        fields["Currency"] = self.currency_resolver.resolve(unwrap_node(data.get("currency")).strip())

        totals = _child(_child(data, "tables"), "total")
        first_total = totals[0] if isinstance(totals, list) and totals else None
        for name, key in TOTALS_SPECS.items():
            fields[name] = normalize_amount(unwrap_node(_child(first_total, key)))

        record = NormalizedInvoiceRecord(fields)
        logger.debug(
            f"Normalized invoice {record['InvoiceNumber'] or '<no number>'}",
            extra={"filled_fields": sum(1 for v in fields.values() if v)},
        )
        return record


def is_complete(record: NormalizedInvoiceRecord) -> bool:
    """True when every required field is present and non-blank."""
    return not record.missing(REQUIRED_FIELDS)
