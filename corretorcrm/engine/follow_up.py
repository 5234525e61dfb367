"""
Follow-up Scheduler
Decides when each lead should be contacted again and what to say.

next_follow_up_date and reminder_message are pure. due_follow_ups and
schedule_automatic_follow_ups work against a store passed in by the caller
(see engine.store.CrmStore); they never open a connection themselves.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from types import MappingProxyType
from typing import List, Optional

from corretorcrm.config import config
from corretorcrm.models import Lead, TERMINAL_STATUSES

logger = logging.getLogger(__name__)

# Days without a reply before a follow-up is due. 0 = no automatic follow-up.
FOLLOW_UP_RULES = MappingProxyType({
    'new': 1,
    'first_contact': 2,
    'qualified': 3,
    'visit_scheduled': 1,
    'proposal': 2,
    'negotiation': 3,
    'won': 0,
    'lost': 0,
})

_REMINDER_TEMPLATES = MappingProxyType({
    'new': (
        "Olá {name}! Sou o corretor responsável. Vi que você entrou em contato "
        "recentemente. Como posso ajudar na busca do imóvel ideal para você?"
    ),
    'first_contact': (
        "Olá {name}! Gostaria de saber se você ainda está buscando imóveis. "
        "Posso te ajudar a encontrar opções que combinem com seu perfil."
    ),
    'qualified': "Oi {name}! Tenho algumas opções de imóveis que podem te interessar. Posso te enviar os detalhes?",
    'visit_scheduled': "Oi {name}! Lembrete: temos uma visita agendada. Confirma sua presença?",
    'proposal': "{name}, alguma dúvida sobre a proposta que enviamos? Estou à disposição para esclarecer.",
    'negotiation': "{name}, como está a análise? Estou disponível para ajustar os termos se necessário.",
})
_GENERIC_REMINDER = "Olá {name}! Como posso ajudar?"


@dataclass
class ScheduledFollowUp:
    lead_id: str
    name: str
    next_follow_up_at: datetime


@dataclass
class FollowUpBatchResult:
    scheduled_count: int = 0
    details: List[ScheduledFollowUp] = field(default_factory=list)


def next_follow_up_date(lead: Lead) -> Optional[datetime]:
    """
    Next contact date: last contact (or creation) plus the status rule's days.
    Returns None for statuses without automatic follow-up.
    """
    days = FOLLOW_UP_RULES.get(lead.status, 0)
    if days == 0:
        return None

    base = lead.last_contact_at or lead.created_at
    if base is None:
        logger.debug(f"next_follow_up_date: lead {lead.id} has no contact or creation date")
        return None
    return base + timedelta(days=days)


def reminder_message(lead: Lead) -> str:
    """Canned follow-up message for the lead's current status."""
    template = _REMINDER_TEMPLATES.get(lead.status, _GENERIC_REMINDER)
    return template.format(name=lead.name)


def due_follow_ups(store, now: Optional[datetime] = None) -> List[Lead]:
    """
    Leads whose follow-up is due.

    Filter contract (implemented by the store): status not won/lost,
    next_follow_up_at set and <= now, oldest follow-up first.
    """
    leads = store.leads_due_for_follow_up(now)
    logger.debug(f"due_follow_ups: {len(leads)} leads due")
    return leads


def schedule_automatic_follow_ups(store, page_size: Optional[int] = None) -> FollowUpBatchResult:
    """
    Give every active lead without a schedule its next follow-up date.

    Never overwrites an existing schedule, so running it twice in a row
    schedules nothing the second time. Leads are processed one at a time in
    the order the store returns them; a failure to persist one lead is logged
    and the run moves on to the next.

    Args:
        store: storage collaborator providing list_leads and update_lead
        page_size: max leads inspected (default: config.FOLLOW_UP_BATCH_SIZE)
    Returns: FollowUpBatchResult with one detail per lead scheduled
    """
    if page_size is None:
        page_size = config.FOLLOW_UP_BATCH_SIZE

    result = FollowUpBatchResult()

    for lead in store.list_leads(limit=page_size):
        if lead.status in TERMINAL_STATUSES:
            continue
        if lead.next_follow_up_at:
            continue

        follow_up_at = next_follow_up_date(lead)
        if follow_up_at is None:
            continue

        try:
            updated = store.update_lead(lead.id, {'next_follow_up_at': follow_up_at})
        except Exception as e:
            logger.error(f"schedule_automatic_follow_ups: failed to schedule lead {lead.id}: {e}")
            continue
        if not updated:
            logger.warning(f"schedule_automatic_follow_ups: lead {lead.id} vanished before update")
            continue

        result.details.append(ScheduledFollowUp(lead.id, lead.name, follow_up_at))

    result.scheduled_count = len(result.details)
    logger.info(f"Scheduled {result.scheduled_count} automatic follow-ups (page_size={page_size})")
    return result
