"""
Currency amount parser.

Handles symbol-prefixed amounts as they appear in financial documents:
$1,234.56 / £1,234.56 / €1234.56 / ¥1,000
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Optional

from pydantic import BaseModel


CURRENCY_SYMBOLS = {
    "$": "USD",
    "£": "GBP",
    "€": "EUR",
    "¥": "JPY",
}


class AmountParseResult(BaseModel):
    amount: Optional[Decimal] = None
    raw_text: str
    currency: Optional[str] = None
    confidence: float = 0.0


def parse_amount(raw: str) -> AmountParseResult:
    """
    Parse a monetary amount and detect its currency.
    Never raises; unparseable input yields amount=None, confidence 0.0.
    """
    s = (raw or "").strip()
    currency = None

    for symbol, code in CURRENCY_SYMBOLS.items():
        if symbol in s:
            currency = code
            s = s.replace(symbol, "")
            break

    # Remove thousand separators and spacing
    s = s.replace(",", "").replace(" ", "")

    if not re.fullmatch(r"\d+(?:\.\d+)?", s):
        return AmountParseResult(amount=None, raw_text=raw or "", currency=currency, confidence=0.0)

    try:
        amount = Decimal(s)
    except InvalidOperation:
        return AmountParseResult(amount=None, raw_text=raw, currency=currency, confidence=0.0)

    confidence = 0.95
    if amount > Decimal("1000000000"):
        confidence = 0.5  # Suspiciously large

    return AmountParseResult(amount=amount, raw_text=raw, currency=currency, confidence=confidence)


def is_round_amount(amount: Optional[Decimal], unit: int = 1000) -> bool:
    """True for non-zero whole multiples of `unit` (e.g. 5,000.00)."""
    if amount is None or amount == 0:
        return False
    value = abs(amount)
    return value >= unit and value % unit == 0
