"""Rule-based helpers: weight and price parsing, value banding, error signatures."""

import re
from decimal import Decimal, InvalidOperation
from typing import Optional

# --- Weight patterns (order matters: kg before g) ---
_WEIGHT_RE = re.compile(
    r"(\d+(?:[.,]\d+)?)\s*(kg|kilograms?|g|grams?|gr|oz|ounces?|lbs?|pounds?)\b",
    re.IGNORECASE,
)
_UNIT_GRAMS = {
    "kg": 1000.0,
    "kilogram": 1000.0,
    "kilograms": 1000.0,
    "g": 1.0,
    "gr": 1.0,
    "gram": 1.0,
    "grams": 1.0,
    "oz": 28.35,
    "ounce": 28.35,
    "ounces": 28.35,
    "lb": 453.592,
    "lbs": 453.592,
    "pound": 453.592,
    "pounds": 453.592,
}

_PRICE_RE = re.compile(r"\d+(?:[.,]\d{3})*(?:\.\d+)?")

# Price-per-gram ceilings (currency units) for the fallback value score
_VALUE_BANDS: list[tuple[float, float]] = [
    (0.06, 9.0),
    (0.08, 8.0),
    (0.10, 7.0),
    (0.13, 6.0),
    (0.17, 5.0),
    (0.22, 4.0),
    (0.30, 3.0),
]
_VALUE_FLOOR = 2.0
NEUTRAL_VALUE_SCORE = 5.0

# Messages that indicate a quota / throttling condition on the inference API
_RATE_LIMIT_RE = re.compile(
    r"\b429\b|\b529\b|quota|rate[\s_-]?limit|too many requests|overloaded|resource[\s_]exhausted",
    re.IGNORECASE,
)


def parse_weight_grams(text: Optional[str]) -> Optional[float]:
    """Parse a size label like '340g', '12 oz' or '1kg' → grams.

    Returns None when no recognizable weight is present.
    """
    if not text:
        return None
    match = _WEIGHT_RE.search(text)
    if not match:
        return None
    amount = float(match.group(1).replace(",", "."))
    grams = amount * _UNIT_GRAMS[match.group(2).lower()]
    return round(grams, 1) if grams > 0 else None


def parse_price(text) -> Optional[Decimal]:
    """Parse price text like '$24.50' or 'CA$1,200.00' → Decimal('24.50')."""
    if text is None or text == "":
        return None
    if isinstance(text, Decimal):
        return text
    if isinstance(text, (int, float)):
        return Decimal(str(text))
    match = _PRICE_RE.search(str(text))
    if not match:
        return None
    try:
        return Decimal(match.group().replace(",", ""))
    except InvalidOperation:
        return None


def price_per_gram(price: Optional[Decimal], weight_grams: Optional[float]) -> Optional[float]:
    if price is None or not weight_grams:
        return None
    return round(float(price) / weight_grams, 4)


def value_score_from_price_per_gram(ppg: Optional[float]) -> float:
    """Band price-per-gram into a 0-10 value score (cheaper is better)."""
    if ppg is None:
        return NEUTRAL_VALUE_SCORE
    for ceiling, score in _VALUE_BANDS:
        if ppg <= ceiling:
            return score
    return _VALUE_FLOOR


def is_rate_limited(exc: BaseException) -> bool:
    """True if an inference failure looks like throttling rather than a hard error."""
    status = getattr(exc, "status_code", None)
    if status in (429, 529):
        return True
    return bool(_RATE_LIMIT_RE.search(str(exc)))
