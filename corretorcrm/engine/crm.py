"""
CRM Service
Glue between the rule engine and the store: load, decide, persist.

Every function takes an open CrmStore; the caller owns the connection.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from corretorcrm.engine.pipeline import TransitionResult, execute_transition
from corretorcrm.engine.qualification import QualificationResult, analyze, answer_slot
from corretorcrm.errors import LeadNotFound, VisitNotFound
from corretorcrm.models import Interaction, Lead, Visit, VisitFeedback

logger = logging.getLogger(__name__)


def change_status(store, lead_id: str, to_status: str, reason: Optional[str] = None) -> TransitionResult:
    """
    Run a pipeline transition and persist it.
    Returns the TransitionResult; nothing is written when ok is False.
    """
    result = execute_transition(store.get_lead(lead_id), to_status, reason)
    if not result.ok:
        if isinstance(result.error, LeadNotFound):
            result.error = LeadNotFound(lead_id)
        return result

    lead = result.lead
    store.update_lead(lead.id, {
        'status': lead.status,
        'loss_reason': lead.loss_reason,
        'next_follow_up_at': lead.next_follow_up_at,
    })
    store.log_interaction(result.interaction)
    return result


def record_answer(store, lead_id: str, slot_id: str, text: str) -> Optional[Tuple[Lead, QualificationResult]]:
    """
    Store the lead's answer to a qualification question.
    Returns (updated lead, qualification state), or None if the lead doesn't exist.
    """
    lead = store.get_lead(lead_id)
    if lead is None:
        return None

    lead.interest = answer_slot(lead.interest, slot_id, text)
    store.update_lead(lead_id, {'interest': lead.interest})
    return lead, analyze(lead)


def schedule_visit(
    store,
    lead_id: str,
    property_id: str,
    scheduled_at: datetime,
    agent_id: Optional[str] = None,
    duration_minutes: Optional[int] = None,
    notes: Optional[str] = None
) -> Tuple[Optional[Visit], Optional[LeadNotFound]]:
    """Book a visit and note it in the lead's history."""
    lead = store.get_lead(lead_id)
    if lead is None:
        return None, LeadNotFound(lead_id)

    visit = store.create_visit(Visit(
        lead_id=lead_id,
        property_id=property_id,
        agent_id=agent_id,
        scheduled_at=scheduled_at,
        duration_minutes=duration_minutes,
        status='scheduled',
        notes=notes,
    ))
    store.log_interaction(Interaction(
        lead_id=lead_id,
        kind='visit',
        description=f"Visita agendada ao imóvel {property_id} em {scheduled_at:%d/%m/%Y %H:%M}",
    ))
    if property_id not in lead.property_ids:
        store.update_lead(lead_id, {'property_ids': lead.property_ids + [property_id]})
    return visit, None


def update_visit_status(store, visit_id: str, status: str) -> Optional[VisitNotFound]:
    """Returns VisitNotFound when there is no such visit, else None."""
    if not store.update_visit(visit_id, {'status': status}):
        return VisitNotFound(visit_id)
    return None


def record_visit_feedback(store, visit_id: str, feedback: VisitFeedback) -> Optional[VisitNotFound]:
    """Attach post-visit feedback and mark the visit done."""
    if not store.update_visit(visit_id, {'feedback': feedback, 'status': 'done'}):
        return VisitNotFound(visit_id)
    return None


def visits_on(store, day: datetime) -> List[Visit]:
    """Visits scheduled on the calendar day of `day` (same timezone as `day`)."""
    start = day.replace(hour=0, minute=0, second=0, microsecond=0)
    end = start + timedelta(days=1) - timedelta(microseconds=1)
    return store.list_visits(date_from=start, date_to=end)
