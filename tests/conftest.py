"""
Shared fixtures for pdf2xls tests.
"""

import json

import pytest

from pdf2xls.normalization.currency import CurrencyResolver


@pytest.fixture
def invoice_tree():
    """Field tree as returned by an extraction provider."""
    return {
        "data": {
            "invn": {"ans": {"val": "FV/1/2024", "conf": 0.98}},
            "reference": "ZAM-77",
            "issue": "15.01.2024",
            "sale": "2024-01-14",
            "maturity": "14 dni",
            "payment": "przelew",
            "currency": "zł",
            "total": "1 230,00 zł",
            "paid": "",
            "left": "1.230,00",
            "iban": "PL61 1090 1014 0000 0712 1981 2874",
            "seller": {
                "name": {"ans": {"val": '"ACME" Spółka Akcyjna'}},
                "nip": "123-456-78-90",
                "street": "ul. Prosta 1",
                "city": "Warszawa",
                "zipcode": "00-950",
            },
            "buyer": {
                "name": "Foo Trading Limited",
                "nip": "GB123456789",
            },
            "tables": {
                "total": [
                    {"valNetto": "1000,00", "valVat": "230,00", "valBrutto": "1230,00"},
                ],
            },
        }
    }


@pytest.fixture
def invoice_payload(invoice_tree):
    """The field tree serialized as a provider would send it."""
    return json.dumps(invoice_tree, ensure_ascii=False)


@pytest.fixture
def resolver():
    """Currency resolver over a small fixed region dataset."""
    return CurrencyResolver(
        [
            ("zł", "PLN"),
            ("€", "EUR"),
            ("€", "EUR"),
            ("$", "USD"),
            ("$", "CAD"),
            ("Fr.", "CHF"),
            ("Fr.", "XOF"),
        ]
    )


@pytest.fixture
def pdf_document(tmp_path):
    """A small PDF file on disk."""
    path = tmp_path / "invoice.pdf"
    path.write_bytes(b"%PDF-1.4\n% test invoice\n%%EOF\n")
    return path
