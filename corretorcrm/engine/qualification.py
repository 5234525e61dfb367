"""
Qualification Engine
Works out which of the five interest slots a lead still has to answer and
what the agent should ask next.
"""

import json
import logging
import re
from dataclasses import asdict, dataclass, field, replace
from typing import List, Optional, Tuple

from corretorcrm.engine.criteria import match_deal_type, match_property_type
from corretorcrm.engine.price import parse_price
from corretorcrm.models import Lead, LeadInterest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QualificationSlot:
    id: str
    question: str
    field: str
    choices: Optional[Tuple[str, ...]] = None
    value_type: Optional[str] = None


QUALIFICATION_SLOTS: Tuple[QualificationSlot, ...] = (
    QualificationSlot(
        id='negocio',
        question="Você está buscando imóvel para compra ou aluguel?",
        field='deal_type',
        choices=('venda', 'aluguel', 'ambos'),
    ),
    QualificationSlot(
        id='tipo',
        question="Que tipo de imóvel você procura?",
        field='property_types',
        choices=('apartamento', 'casa', 'terreno', 'sala comercial', 'outro'),
    ),
    QualificationSlot(
        id='quartos',
        question="Quantos quartos você precisa?",
        field='min_rooms',
        value_type='number',
    ),
    QualificationSlot(
        id='bairros',
        question="Tem preferência de bairro ou região?",
        field='neighborhoods',
        value_type='text_list',
    ),
    QualificationSlot(
        id='preco',
        question="Qual sua faixa de preço máxima?",
        field='max_price',
        value_type='price',
    ),
)
_SLOTS_BY_ID = {slot.id: slot for slot in QUALIFICATION_SLOTS}


@dataclass
class QualificationResult:
    interest: LeadInterest
    complete: bool
    pending_slot_ids: List[str] = field(default_factory=list)


def _is_answered(interest: LeadInterest, slot: QualificationSlot) -> bool:
    value = getattr(interest, slot.field)
    if isinstance(value, list):
        return len(value) > 0
    if slot.value_type in ('number', 'price'):
        return value is not None
    return bool(value)


def analyze(lead: Lead) -> QualificationResult:
    """Pending slots, always in QUALIFICATION_SLOTS order."""
    interest = lead.interest or LeadInterest()
    pending = [slot.id for slot in QUALIFICATION_SLOTS if not _is_answered(interest, slot)]
    return QualificationResult(interest=interest, complete=not pending, pending_slot_ids=pending)


def next_question(lead: Lead) -> Optional[QualificationSlot]:
    result = analyze(lead)
    if result.complete:
        return None
    return next(slot for slot in QUALIFICATION_SLOTS if slot.id in result.pending_slot_ids)


def build_qualification_prompt(lead: Lead) -> str:
    """Instruction block for the agent's system prompt."""
    result = analyze(lead)
    if result.complete:
        interest = json.dumps(asdict(result.interest), ensure_ascii=False)
        return f"Lead qualificado. Interesse: {interest}. Agora busque imóveis compatíveis."

    slot = next_question(lead)
    lines = [
        f'O lead "{lead.name}" ainda não está totalmente qualificado.',
        f"Perguntas pendentes: {', '.join(result.pending_slot_ids)}.",
        f'Próxima pergunta sugerida: "{slot.question}"',
    ]
    if slot.choices:
        lines.append(f"Opções: {', '.join(slot.choices)}")
    lines.append("Faça a pergunta de forma natural na conversa.")
    return '\n'.join(lines)


# =============================================================================
# ANSWERS
# =============================================================================

_ANSWER_DEAL_TYPES = {'venda': 'sale', 'aluguel': 'rent', 'ambos': 'both'}
_NUMBER_RE = re.compile(r'\d+')
# "até uns 800 mil reais" -> "800 mil"
_PRICE_PREFIX_RE = re.compile(r'^(?:(?:até|ate|no m[áa]ximo|uns|umas|cerca de)\s+)+')
_PRICE_SUFFIX_RE = re.compile(r'\s+reais$')


def _read_deal_type(text: str):
    for word, deal_type in _ANSWER_DEAL_TYPES.items():
        if word in text:
            return deal_type
    return match_deal_type(text).get('deal_type')


def _read_property_types(text: str):
    return match_property_type(text).get('property_types')


def _read_rooms(text: str):
    match = _NUMBER_RE.search(text)
    return int(match.group()) if match else None


def _read_price(text: str):
    return parse_price(_PRICE_SUFFIX_RE.sub('', _PRICE_PREFIX_RE.sub('', text)))


def _read_neighborhoods(text: str):
    names = [part.strip() for part in re.split(r',|\be\b', text)]
    return [name for name in names if name] or None


_READERS = {
    'negocio': _read_deal_type,
    'tipo': _read_property_types,
    'quartos': _read_rooms,
    'bairros': _read_neighborhoods,
    'preco': _read_price,
}


def answer_slot(interest: Optional[LeadInterest], slot_id: str, text: str) -> LeadInterest:
    """
    Record the lead's free-text answer to one slot.

    Returns an updated copy of the interest. An answer that can't be read
    leaves the slot untouched so the question is asked again.
    """
    if slot_id not in _SLOTS_BY_ID:
        raise ValueError(f"Unknown qualification slot: {slot_id}")

    interest = interest or LeadInterest()
    value = _READERS[slot_id](text.lower().strip())
    if value is None:
        logger.debug(f"answer_slot: no value for {slot_id} in {text!r}")
        return replace(interest)
    return replace(interest, **{_SLOTS_BY_ID[slot_id].field: value})
