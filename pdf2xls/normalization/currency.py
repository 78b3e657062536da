"""
Resolution of currency symbols to ISO-4217 codes.

The symbol table is built once per process from the CLDR region data shipped
with Babel: every locale tied to a territory contributes the symbol it prints
for that territory's currency. Symbols shared by several currencies are kept
only when the manual disambiguation table names a winner.
"""

import threading
import unicodedata
from typing import Dict, Iterable, Optional, Set, Tuple

from babel import Locale, UnknownLocaleError
from babel.localedata import locale_identifiers
from babel.numbers import get_currency_symbol, get_territory_currencies

from pdf2xls.utils.logging import get_logger

logger = get_logger(__name__)

# Symbols used by more than one currency, keyed case-insensitively
AMBIGUOUS_SYMBOL_FALLBACK: Dict[str, str] = {
    "$": "USD",
    "¥": "JPY",
    "kr": "SEK",
    "£": "GBP",
    "₨": "INR",
    "rs": "INR",
    "lei": "RON",
    "₩": "KRW",
    "r$": "BRL",
    "ksh": "KES",
    "sh": "SOS",
    "nt$": "TWD",
}


def _key(symbol: str) -> str:
    # Full-width and compatibility forms (e.g. "￥") fold onto their plain symbol
    return unicodedata.normalize("NFKC", symbol).strip().casefold()


def iter_region_currencies() -> Iterable[Tuple[str, str]]:
    """
    Yield ``(symbol, iso_code)`` for every CLDR locale bound to a territory.

    The symbol is the one the locale prints for the territory's current
    legal tender, e.g. ``("zł", "PLN")`` for ``pl_PL``.
    """
    seen: Set[Tuple[str, str]] = set()
    for identifier in locale_identifiers():
        try:
            locale = Locale.parse(identifier)
        except (UnknownLocaleError, ValueError):
            continue
        if not locale.territory:
            continue

        codes = get_territory_currencies(locale.territory, tender=True)
        if not codes:
            continue

        pair = (get_currency_symbol(codes[0], locale=locale), codes[0])
        if pair not in seen:
            seen.add(pair)
            yield pair


class CurrencyResolver:
    """Case-insensitive lookup from currency symbol to ISO code."""

    def __init__(
        self,
        regions: Iterable[Tuple[str, str]],
        fallback: Optional[Dict[str, str]] = None,
    ) -> None:
        """
        Build the lookup table.

        Args:
            regions: ``(symbol, iso_code)`` pairs, one per region
            fallback: Winners for ambiguous symbols (defaults to
                AMBIGUOUS_SYMBOL_FALLBACK)
        """
        fallback = {_key(k): v for k, v in (fallback or AMBIGUOUS_SYMBOL_FALLBACK).items()}

        candidates: Dict[str, Set[str]] = {}
        for symbol, iso_code in regions:
            if not symbol or not symbol.strip():
                continue
            candidates.setdefault(_key(symbol), set()).add(iso_code.upper())

        table: Dict[str, str] = {}
        dropped = 0
        for symbol, codes in candidates.items():
            if len(codes) == 1:
                table[symbol] = next(iter(codes))
            elif symbol in fallback:
                table[symbol] = fallback[symbol]
            else:
                dropped += 1

        self._table = table
        logger.debug(
            f"Currency table built with {len(table)} symbols ({dropped} ambiguous symbols dropped)"
        )

    def __len__(self) -> int:
        return len(self._table)

    def resolve(self, symbol_or_code: Optional[str]) -> str:
        """
        Resolve a symbol or code to its ISO-4217 code.

        Blank input gives an empty string; symbols without a mapping are
        returned unchanged.
        """
        if symbol_or_code is None or not symbol_or_code.strip():
            return ""
        return self._table.get(_key(symbol_or_code), symbol_or_code)


_default_resolver: Optional[CurrencyResolver] = None
_default_lock = threading.Lock()


def get_currency_resolver() -> CurrencyResolver:
    """Return the process-wide resolver, building it on first use."""
    global _default_resolver
    if _default_resolver is None:
        with _default_lock:
            if _default_resolver is None:
                _default_resolver = CurrencyResolver(iter_region_currencies())
    return _default_resolver


def resolve(symbol_or_code: Optional[str]) -> str:
    """Resolve with the process-wide resolver."""
    return get_currency_resolver().resolve(symbol_or_code)
