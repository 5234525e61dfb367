"""
Criteria Extractor
Turns a free-text pt-BR search phrase into SearchCriteria without an LLM.

    "apartamento 3 quartos no centro até 500 mil"
    "casa com 4 quartos em Copacabana para alugar"
    "terreno acima de 300m² em Campinas"

Each rule is a standalone function taking the lowercased phrase and returning
a dict of SearchCriteria fields (empty when it doesn't match). All rules run;
their fragments are merged in CRITERIA_RULES order.
"""

import logging
import re
from typing import Any, Callable, Dict, List, Optional, Tuple

from corretorcrm.engine.price import CRITERIA_REAIS_THRESHOLD, UNIT_PATTERN, amount_from_parts
from corretorcrm.models import SearchCriteria

logger = logging.getLogger(__name__)

Fragment = Dict[str, Any]

# Priority order matters: the first term found in the phrase wins.
PROPERTY_TYPE_TERMS: Tuple[Tuple[str, str], ...] = (
    ('apartamento', 'apartment'),
    ('apto', 'apartment'),
    ('ap', 'apartment'),
    ('casa', 'house'),
    ('terreno', 'land'),
    ('lote', 'land'),
    ('sala', 'commercial_room'),
    ('sala comercial', 'commercial_room'),
    ('loja', 'store'),
    ('ponto comercial', 'store'),
    ('galpão', 'warehouse'),
    ('galpao', 'warehouse'),
    ('cobertura', 'penthouse'),
    ('kitnet', 'studio'),
    ('kit', 'studio'),
    ('studio', 'studio'),
    ('chácara', 'ranch'),
    ('chacara', 'ranch'),
    ('sítio', 'ranch'),
    ('sitio', 'ranch'),
    ('fazenda', 'farm'),
)

DEAL_TYPE_TERMS: Tuple[Tuple[str, str], ...] = (
    ('venda', 'sale'),
    ('compra', 'sale'),
    ('comprar', 'sale'),
    ('vender', 'sale'),
    ('aluguel', 'rent'),
    ('alugar', 'rent'),
    ('locação', 'rent'),
    ('locacao', 'rent'),
)

# Words that follow "em/no/na" but are not places
LOCATION_STOPWORDS = frozenset({
    'venda', 'aluguel', 'compra', 'locação', 'locacao',
    # "no máximo" / "no mínimo" are price bounds
    'máximo', 'maximo', 'mínimo', 'minimo',
})
_PROPERTY_TYPE_WORDS = frozenset(term for term, _ in PROPERTY_TYPE_TERMS)
_DEAL_TYPE_WORDS = frozenset(term for term, _ in DEAL_TYPE_TERMS)

_ROOMS_RE = re.compile(r'(\d+)\s*quarto')
_SUITES_RE = re.compile(r'(\d+)\s*su[ií]te')
_GARAGE_RE = re.compile(r'(\d+)\s*vaga')
# A number followed by m², rooms or parking spots is not a price
_AMOUNT = (
    r'\s*([\d.,]+)(?![\d.,]|\s*(?:m[²2]|quarto|su[ií]te|vaga|banheiro|dorm))'
    r'\s*(' + UNIT_PATTERN + r')?'
)
_MAX_PRICE_RE = re.compile(r'(?:até|ate|no máximo|no maximo|max)' + _AMOUNT)
_MIN_PRICE_RE = re.compile(r'(?:acima de|a partir de|m[ií]n(?:imo)?)' + _AMOUNT)
_AREA_RE = re.compile(r'(\d+)\s*m[²2]')
_LOCATION_RE = re.compile(
    r'\b(?:em|no|na|nos|nas)\s+([a-záàâãéèêíïóôõúüçñ\s]+?)'
    r'(?:\s+(?:até|ate|para|com|acima|de|a partir|\d)|$)'
)


def _first_term(text: str, terms: Tuple[Tuple[str, str], ...]) -> Optional[str]:
    for term, value in terms:
        if term in text:
            return value
    return None


def match_property_type(text: str) -> Fragment:
    property_type = _first_term(text, PROPERTY_TYPE_TERMS)
    return {'property_types': [property_type]} if property_type else {}


def match_deal_type(text: str) -> Fragment:
    deal_type = _first_term(text, DEAL_TYPE_TERMS)
    return {'deal_type': deal_type} if deal_type else {}


def _count_rule(pattern: re.Pattern, field_name: str) -> Callable[[str], Fragment]:
    def rule(text: str) -> Fragment:
        match = pattern.search(text)
        return {field_name: int(match.group(1))} if match else {}
    rule.__name__ = f"match_{field_name}"
    return rule


match_rooms = _count_rule(_ROOMS_RE, 'min_rooms')
match_suites = _count_rule(_SUITES_RE, 'min_suites')
match_garage_spots = _count_rule(_GARAGE_RE, 'min_garage_spots')


def match_price_range(text: str) -> Fragment:
    fragment = {}
    for pattern, field_name in ((_MAX_PRICE_RE, 'max_price'), (_MIN_PRICE_RE, 'min_price')):
        match = pattern.search(text)
        if not match:
            continue
        amount = amount_from_parts(match.group(1), match.group(2), bare_threshold=CRITERIA_REAIS_THRESHOLD)
        if amount is not None:
            fragment[field_name] = amount
    return fragment


def match_area(text: str) -> Fragment:
    match = _AREA_RE.search(text)
    if not match:
        return {}
    area = int(match.group(1))
    if 'acima' in text or 'partir' in text:
        return {'min_area': area}
    if 'até' in text or 'ate' in text:
        return {'max_area': area}
    return {'min_area': area}


def _is_place(place: str) -> bool:
    if place == 'centro':
        return True
    return not (len(place) <= 2
                or place in _PROPERTY_TYPE_WORDS
                or place in _DEAL_TYPE_WORDS
                or place in LOCATION_STOPWORDS)


def match_location(text: str) -> Fragment:
    # "no máximo 500 mil no centro": skip non-places and keep looking
    for match in _LOCATION_RE.finditer(text):
        place = match.group(1).strip()
        if _is_place(place):
            return {'neighborhood': place}
    return {}


CRITERIA_RULES: List[Callable[[str], Fragment]] = [
    match_property_type,
    match_deal_type,
    match_rooms,
    match_suites,
    match_garage_spots,
    match_price_range,
    match_area,
    match_location,
]


def extract_criteria(text: str) -> SearchCriteria:
    """
    Parse a search phrase into SearchCriteria.

    When nothing useful is found (no type, deal, rooms, max price or
    neighborhood) the original phrase is kept in `text` for full-text search.
    """
    normalized = text.lower().strip()
    fields: Fragment = {}
    for rule in CRITERIA_RULES:
        fields.update(rule(normalized))

    criteria = SearchCriteria(**fields)
    if (not criteria.property_types
            and not criteria.deal_type
            and criteria.min_rooms is None
            and criteria.max_price is None
            and not criteria.neighborhood):
        criteria.text = text

    logger.debug(f"extract_criteria: {text!r} -> {criteria}")
    return criteria
