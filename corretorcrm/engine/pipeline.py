"""
Pipeline State Machine
Validates lead status transitions and works out their side effects.

The transition table is a fixed lookup; nothing here touches storage. The
caller loads the lead, calls execute_transition, and persists result.lead and
result.interaction (see engine.crm.change_status).
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from types import MappingProxyType
from typing import List, Optional

from corretorcrm.engine.follow_up import next_follow_up_date
from corretorcrm.errors import CrmError, InvalidTransition, LeadNotFound
from corretorcrm.models import Interaction, Lead, LEAD_STATUSES

logger = logging.getLogger(__name__)

TRANSITIONS = MappingProxyType({
    'new': ('first_contact', 'lost'),
    'first_contact': ('qualified', 'lost'),
    'qualified': ('visit_scheduled', 'proposal', 'lost'),
    'visit_scheduled': ('proposal', 'qualified', 'lost'),
    'proposal': ('negotiation', 'qualified', 'lost'),
    'negotiation': ('won', 'lost', 'proposal'),
    'won': (),
    'lost': ('new',),
})


@dataclass
class TransitionEvent:
    lead_id: str
    from_status: str
    to_status: str
    timestamp: datetime
    reason: Optional[str] = None


@dataclass
class TransitionResult:
    """
    ok=True: event, the updated lead (not yet persisted) and the note to log.
    ok=False: error is LeadNotFound or InvalidTransition.
    """
    ok: bool
    event: Optional[TransitionEvent] = None
    lead: Optional[Lead] = None
    interaction: Optional[Interaction] = None
    error: Optional[CrmError] = None


def is_valid_transition(from_status: str, to_status: str) -> bool:
    return to_status in TRANSITIONS.get(from_status, ())


def available_transitions(status: str) -> List[str]:
    """Statuses reachable from status, in pipeline order."""
    return [s for s in LEAD_STATUSES if is_valid_transition(status, s)]


def execute_transition(lead: Optional[Lead], to_status: str, reason: Optional[str] = None,
                       now: Optional[datetime] = None) -> TransitionResult:
    """
    Move a lead to to_status.

    Side effects on the returned copy of the lead:
      - lost: the follow-up is cleared and the reason (if any) stored
      - won:  the follow-up is cleared
      - otherwise the follow-up is recomputed for the new status
    A 'note' interaction describing the change is always produced.

    Args:
        lead: lead as loaded by the caller, or None when the lookup failed
        to_status: target status
        reason: why (stored as loss reason when moving to lost)
        now: transition timestamp (default: current UTC time)
    Returns: TransitionResult; business errors are returned, not raised
    """
    if lead is None:
        return TransitionResult(ok=False, error=LeadNotFound())

    from_status = lead.status
    if not is_valid_transition(from_status, to_status):
        logger.info(f"Rejected transition for lead {lead.id}: {from_status} -> {to_status}")
        return TransitionResult(ok=False, error=InvalidTransition(from_status, to_status))

    timestamp = now or datetime.now(timezone.utc)
    event = TransitionEvent(lead.id, from_status, to_status, timestamp, reason)

    updated = replace(lead, status=to_status)
    if to_status == 'lost':
        if reason:
            updated.loss_reason = reason
        updated.next_follow_up_at = None
    elif to_status == 'won':
        updated.next_follow_up_at = None
    else:
        updated.next_follow_up_at = next_follow_up_date(updated)

    description = f"Status changed: {from_status} -> {to_status}"
    if reason:
        description += f" ({reason})"
    interaction = Interaction(lead_id=lead.id, kind='note', description=description, occurred_at=timestamp)

    logger.info(f"Lead {lead.id}: {from_status} -> {to_status}")
    return TransitionResult(ok=True, event=event, lead=updated, interaction=interaction)
