"""
Lead capture from inbound messages.
The first message from an unknown phone creates a lead; later messages are
appended to the existing lead's history.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from corretorcrm.models import Interaction, Lead, LEAD_ORIGINS

logger = logging.getLogger(__name__)

_CHANNEL_ALIASES = {
    'wa': 'whatsapp',
    'zap': 'whatsapp',
    'ig': 'instagram',
    'site': 'website',
    'indicacao': 'referral',
    'indicação': 'referral',
    'telefone': 'phone',
    'presencial': 'walk_in',
}


@dataclass
class InboundContact:
    phone: str
    channel: str
    name: Optional[str] = None
    message: Optional[str] = None


@dataclass
class CaptureResult:
    lead: Lead
    is_new: bool


def origin_for_channel(channel: str) -> str:
    """Map a messaging channel to a lead origin. Unknown channels count as whatsapp."""
    channel = (channel or '').strip().lower()
    channel = _CHANNEL_ALIASES.get(channel, channel)
    return channel if channel in LEAD_ORIGINS else 'whatsapp'


def capture_lead_from_contact(store, contact: InboundContact) -> CaptureResult:
    """
    Find the lead by phone or create it, then log the message.

    Args:
        store: storage collaborator (find_lead_by_phone, create_lead, log_interaction)
        contact: who wrote and through which channel
    Returns: CaptureResult(lead, is_new)
    """
    now = datetime.now(timezone.utc)
    lead = store.find_lead_by_phone(contact.phone)

    if lead:
        description = contact.message or "Mensagem recebida"
        is_new = False
    else:
        lead = store.create_lead(Lead(
            name=contact.name or f"Contato {contact.phone}",
            phone=contact.phone,
            origin=origin_for_channel(contact.channel),
            status='new',
        ))
        description = contact.message or "Primeiro contato"
        is_new = True
        logger.info(f"Captured new lead {lead.id} from {contact.channel}")

    store.log_interaction(Interaction(
        lead_id=lead.id,
        kind='message',
        description=description,
        occurred_at=now,
        channel=contact.channel,
    ))
    return CaptureResult(lead=lead, is_new=is_new)
