"""
Abbreviation of legal-form suffixes in company names.

Rules run in a fixed order. Polish legal forms are rewritten wherever they
occur; English and German forms only when they end the name.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Tuple


class RuleScope(str, Enum):
    ANYWHERE = "anywhere"
    END = "end"


@dataclass(frozen=True)
class SubstitutionRule:
    """One case-insensitive whole-word replacement."""

    pattern: str
    replacement: str
    scope: RuleScope = RuleScope.ANYWHERE

    def compile(self) -> "re.Pattern[str]":
        body = rf"(?<!\w){self.pattern}"
        if self.scope is RuleScope.END:
            body += r"\s*$"
        else:
            body += r"(?!\w)"
        return re.compile(body, re.IGNORECASE)


SP_Z_OO = "sp. z o.o."

# Spellings such as "Sp. z o. o.", "sp z oo", "spółka z o.o."
SP_Z_OO_RULE = SubstitutionRule(r"(?:sp\.?|spółka)\s*z\s*o\.?\s*o\.?", SP_Z_OO)

POLISH_LEGAL_FORMS: List[Tuple[str, str]] = [
    ("spółka z ograniczoną odpowiedzialnością", SP_Z_OO),
    ("spółka komandytowo-akcyjna", "S.K.A."),
    ("spółka akcyjna", "S.A."),
    ("spółka komandytowa", "sp.k."),
    ("spółka jawna", "sp.j."),
    ("spółka partnerska", "sp.p."),
    ("spółka cywilna", "s.c."),
]

# Longer phrases first so "Public Limited Company" wins over "Company"
ENGLISH_GERMAN_LEGAL_FORMS: List[Tuple[str, str]] = [
    ("Public Limited Company", "PLC"),
    ("Limited", "Ltd."),
    ("Incorporated", "Inc."),
    ("Corporation", "Corp."),
    ("Company", "Co."),
    ("Gesellschaft mit beschränkter Haftung", "GmbH"),
    ("Aktiengesellschaft", "AG"),
]


def _phrase(words: str) -> str:
    return r"\s+".join(re.escape(word) for word in words.split())


def default_rules() -> List[SubstitutionRule]:
    rules = [SP_Z_OO_RULE]
    rules += [
        SubstitutionRule(_phrase(phrase), abbreviation, RuleScope.ANYWHERE)
        for phrase, abbreviation in POLISH_LEGAL_FORMS
    ]
    rules += [
        SubstitutionRule(_phrase(phrase), abbreviation, RuleScope.END)
        for phrase, abbreviation in ENGLISH_GERMAN_LEGAL_FORMS
    ]
    return rules


class CompanyNameNormalizer:
    """Apply substitution rules to company names, in order."""

    def __init__(self, rules: List[SubstitutionRule] = None) -> None:
        self.rules = list(rules) if rules is not None else default_rules()
        self._compiled = [(rule.compile(), rule.replacement) for rule in self.rules]

    def abbreviate(self, name: str) -> str:
        if name is None or not name.strip():
            return name
        result = name
        for pattern, replacement in self._compiled:
            # Lambda keeps the replacement literal (no backslash expansion)
            result = pattern.sub(lambda _m, r=replacement: r, result)
        return result


_QUOTES = re.compile(r"[\"“”„«»]")

_default = CompanyNameNormalizer()


def abbreviate(name: str) -> str:
    """Abbreviate legal-form suffixes with the default rule set."""
    return _default.abbreviate(name)


def clean_company_name(name: str) -> str:
    """Strip quotation marks and surrounding whitespace, then abbreviate."""
    if not name:
        return ""
    return abbreviate(" ".join(_QUOTES.sub("", name).split()))
