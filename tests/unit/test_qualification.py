"""
Unit tests for the qualification engine (corretorcrm/engine/qualification.py).
"""

import json
import pytest

from corretorcrm.engine.qualification import (
    QUALIFICATION_SLOTS,
    analyze,
    answer_slot,
    build_qualification_prompt,
    next_question,
)
from corretorcrm.models import Lead, LeadInterest

ALL_SLOTS = ['negocio', 'tipo', 'quartos', 'bairros', 'preco']


def full_interest(**overrides):
    values = dict(
        deal_type='sale',
        property_types=['apartment'],
        min_rooms=2,
        neighborhoods=['centro'],
        max_price=50_000_000,
    )
    values.update(overrides)
    return LeadInterest(**values)


# ---------------------------------------------------------------------------
# analyze / next_question
# ---------------------------------------------------------------------------

def test_slot_order():
    assert [slot.id for slot in QUALIFICATION_SLOTS] == ALL_SLOTS


def test_lead_without_interest_has_everything_pending():
    result = analyze(Lead(name='Ana'))
    assert result.complete is False
    assert result.pending_slot_ids == ALL_SLOTS
    assert result.interest == LeadInterest()


def test_fully_answered_lead_is_complete():
    result = analyze(Lead(name='Ana', interest=full_interest()))
    assert result.complete is True
    assert result.pending_slot_ids == []


def test_zero_rooms_counts_as_answered():
    result = analyze(Lead(interest=full_interest(min_rooms=0)))
    assert 'quartos' not in result.pending_slot_ids


def test_empty_lists_are_pending():
    result = analyze(Lead(interest=full_interest(property_types=[], neighborhoods=[])))
    assert result.pending_slot_ids == ['tipo', 'bairros']


def test_next_question_is_first_pending():
    lead = Lead(interest=LeadInterest(deal_type='rent'))
    assert next_question(lead).id == 'tipo'


def test_next_question_none_when_complete():
    assert next_question(Lead(interest=full_interest())) is None


# ---------------------------------------------------------------------------
# build_qualification_prompt
# ---------------------------------------------------------------------------

def test_prompt_for_new_lead_asks_deal_type():
    prompt = build_qualification_prompt(Lead(name='Ana Souza'))
    lines = prompt.split('\n')
    assert 'Ana Souza' in lines[0]
    assert lines[1] == "Perguntas pendentes: negocio, tipo, quartos, bairros, preco."
    assert "compra ou aluguel" in lines[2]
    assert lines[3] == "Opções: venda, aluguel, ambos"
    assert lines[-1] == "Faça a pergunta de forma natural na conversa."


def test_prompt_without_choices_has_no_options_line():
    lead = Lead(name='Ana', interest=LeadInterest(deal_type='sale', property_types=['house']))
    prompt = build_qualification_prompt(lead)
    assert "Quantos quartos" in prompt
    assert "Opções" not in prompt


def test_prompt_for_complete_lead_contains_interest_json():
    interest = full_interest()
    prompt = build_qualification_prompt(Lead(name='Ana', interest=interest))
    assert prompt.startswith("Lead qualificado. Interesse: ")
    assert prompt.endswith("Agora busque imóveis compatíveis.")
    payload = prompt[len("Lead qualificado. Interesse: "):-len(". Agora busque imóveis compatíveis.")]
    assert json.loads(payload)['max_price'] == 50_000_000


# ---------------------------------------------------------------------------
# answer_slot
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("text, expected", [
    ("Venda", 'sale'),
    ("quero aluguel", 'rent'),
    ("ambos", 'both'),
    ("quero comprar", 'sale'),
])
def test_answer_deal_type(text, expected):
    assert answer_slot(None, 'negocio', text).deal_type == expected


def test_answer_property_type():
    assert answer_slot(None, 'tipo', "Uma casa").property_types == ['house']


def test_answer_rooms_reads_first_number():
    assert answer_slot(None, 'quartos', "uns 3 ou 4").min_rooms == 3


def test_answer_neighborhoods_splits_list():
    interest = answer_slot(None, 'bairros', "Centro, Batel e Água Verde")
    assert interest.neighborhoods == ['centro', 'batel', 'água verde']


def test_answer_price():
    assert answer_slot(None, 'preco', "500 mil").max_price == 50_000_000


@pytest.mark.parametrize("answer, expected", [
    ("até 800 mil", 80_000_000),
    ("800 mil reais", 80_000_000),
    ("Até uns 500 mil", 50_000_000),
    ("no máximo R$ 1,2 milhão", 120_000_000),
])
def test_answer_price_with_everyday_wording(answer, expected):
    assert answer_slot(None, 'preco', answer).max_price == expected


def test_answer_price_unreadable_stays_pending():
    assert answer_slot(None, 'preco', "depende").max_price is None


def test_unreadable_answer_leaves_slot_pending():
    interest = answer_slot(LeadInterest(deal_type='sale'), 'quartos', "não sei")
    assert interest.min_rooms is None
    assert interest.deal_type == 'sale'


def test_answer_returns_copy():
    original = LeadInterest()
    updated = answer_slot(original, 'negocio', "venda")
    assert original.deal_type is None
    assert updated.deal_type == 'sale'


def test_unknown_slot_raises():
    with pytest.raises(ValueError, match='garagem'):
        answer_slot(None, 'garagem', "2")
