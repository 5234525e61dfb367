"""
Price Parser
Turns Brazilian Portuguese money phrases into integer centavos.

    "500 mil"     -> 50_000_000
    "1.2 milhão"  -> 120_000_000
    "R$ 350.000"  -> 35_000_000
    "abc"         -> None

Never raises on bad input; an unparseable phrase returns None and the caller
decides whether to re-prompt or skip the field.
"""

import logging
import re
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

logger = logging.getLogger(__name__)

# A bare number above the threshold is read as whole reais, at or below it as
# thousands of reais ("350" -> R$ 350.000). parse_price and the search-phrase
# extractor use different thresholds; both are kept until product decides.
STANDALONE_REAIS_THRESHOLD = 10_000
CRITERIA_REAIS_THRESHOLD = 1_000

CENTS = 100
THOUSAND = 1_000
MILLION = 1_000_000

# Unit suffixes: "mil"/"k" and "milhão"/"milhao"/"milhões"/"milhoes"/"mi"
UNIT_PATTERN = r'milh[aãoõ]+(?:es)?|mil|k|mi'

_CURRENCY_RE = re.compile(r'r\$\s*')
_THOUSAND_RE = re.compile(r'^([\d.,]+)\s*(mil|k)$')
_MILLION_RE = re.compile(r'^([\d.,]+)\s*(milh[aãoõ]+(?:es)?|mi)$')
_NUMBER_RE = re.compile(r'^[\d.,]+$')


def _to_decimal(number: str, keep_dots: bool = False) -> Optional[Decimal]:
    """Parse '1.234,5' style numbers. Dots are thousand separators unless keep_dots."""
    # Digits and separators only
    if not _NUMBER_RE.match(number):
        return None
    if not keep_dots:
        number = number.replace('.', '')
    number = number.replace(',', '.', 1)
    try:
        value = Decimal(number)
    except ArithmeticError:
        return None
    return value


def _is_thousand_unit(unit: str) -> bool:
    return unit in ('mil', 'k')


def _is_million_unit(unit: str) -> bool:
    return unit.startswith('milh') or unit == 'mi'


def amount_from_parts(number: str, unit: Optional[str] = None,
                      bare_threshold: int = STANDALONE_REAIS_THRESHOLD) -> Optional[int]:
    """
    Resolve a number and optional unit suffix to centavos.

    Args:
        number: digits with optional '.' and ',' separators
        unit: 'mil', 'k', 'milhão', 'mi', ... or None for a bare number
        bare_threshold: above it a bare number is whole reais, otherwise thousands
    Returns: centavos, or None when the number can't be read
    """
    unit = (unit or '').lower()

    if _is_thousand_unit(unit):
        value = _to_decimal(number)
        multiplier = THOUSAND * CENTS
    elif _is_million_unit(unit):
        # "1.2 milhão": the dot is a decimal point here
        value = _to_decimal(number, keep_dots=True)
        multiplier = MILLION * CENTS
    else:
        value = _to_decimal(number)
        if value is None:
            return None
        multiplier = CENTS if value > bare_threshold else THOUSAND * CENTS

    if value is None:
        return None
    try:
        return int((value * multiplier).to_integral_value(rounding=ROUND_HALF_UP))
    except ArithmeticError:
        logger.debug(f"amount_from_parts: {number!r} is out of range")
        return None


def parse_price(text: Optional[str]) -> Optional[int]:
    """
    Parse a standalone price answer ("até quanto você pode pagar?").
    Returns: centavos, or None when unparseable
    """
    if not text:
        return None

    raw = _CURRENCY_RE.sub('', text.lower()).strip()

    match = _THOUSAND_RE.match(raw) or _MILLION_RE.match(raw)
    if match:
        amount = amount_from_parts(match.group(1), match.group(2))
    else:
        amount = amount_from_parts(raw)

    if amount is None:
        logger.debug(f"parse_price: could not read {text!r}")
    return amount
