"""
Data Models
Dataclasses for all entities. These are pure Python objects, no database logic.

Enumerations are tuples of the lowercase tags stored in the database.
Money is always an int in centavos.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


LEAD_STATUSES = (
    'new',
    'first_contact',
    'qualified',
    'visit_scheduled',
    'proposal',
    'negotiation',
    'won',
    'lost',
)
TERMINAL_STATUSES = ('won', 'lost')

LEAD_ORIGINS = (
    'whatsapp',
    'instagram',
    'referral',
    'portal',
    'website',
    'phone',
    'walk_in',
)

DEAL_TYPES = ('sale', 'rent', 'both')

PROPERTY_TYPES = (
    'apartment',
    'house',
    'land',
    'commercial_room',
    'store',
    'warehouse',
    'penthouse',
    'studio',
    'ranch',
    'farm',
)

INTERACTION_KINDS = ('message', 'call', 'visit', 'proposal', 'email', 'note')

VISIT_STATUSES = ('scheduled', 'confirmed', 'done', 'cancelled', 'rescheduled', 'no_show')


def new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class LeadInterest:
    """What the lead is looking for. Filled in during qualification."""
    deal_type: Optional[str] = None
    property_types: List[str] = field(default_factory=list)
    min_rooms: Optional[int] = None
    neighborhoods: List[str] = field(default_factory=list)
    cities: List[str] = field(default_factory=list)
    min_price: Optional[int] = None
    max_price: Optional[int] = None
    notes: Optional[str] = None


@dataclass
class Lead:
    """Prospective buyer or renter tracked through the sales pipeline"""
    id: str = field(default_factory=new_id)
    name: str = ''
    phone: Optional[str] = None
    email: Optional[str] = None
    origin: str = 'whatsapp'
    status: str = 'new'
    interest: Optional[LeadInterest] = None
    last_contact_at: Optional[datetime] = None
    next_follow_up_at: Optional[datetime] = None
    loss_reason: Optional[str] = None
    agent_id: Optional[str] = None
    property_ids: List[str] = field(default_factory=list)
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class Interaction:
    """Append-only history record"""
    id: str = field(default_factory=new_id)
    lead_id: str = ''
    kind: str = 'message'
    description: str = ''
    occurred_at: Optional[datetime] = None
    channel: Optional[str] = None


@dataclass
class VisitFeedback:
    """Post-visit feedback"""
    interest_score: Optional[int] = None
    comment: Optional[str] = None
    objections: List[str] = field(default_factory=list)

    def __post_init__(self):
        if self.interest_score is not None and not 1 <= self.interest_score <= 5:
            raise ValueError(f"interest_score must be between 1 and 5, got {self.interest_score}")


@dataclass
class Visit:
    """Property visit scheduled for a lead"""
    id: str = field(default_factory=new_id)
    lead_id: str = ''
    property_id: str = ''
    agent_id: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    duration_minutes: Optional[int] = None
    status: str = 'scheduled'
    notes: Optional[str] = None
    feedback: Optional[VisitFeedback] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class SearchCriteria:
    """Structured catalogue filter. Transient, never persisted."""
    property_types: List[str] = field(default_factory=list)
    deal_type: Optional[str] = None
    statuses: List[str] = field(default_factory=list)
    city: Optional[str] = None
    state: Optional[str] = None
    neighborhood: Optional[str] = None
    min_price: Optional[int] = None
    max_price: Optional[int] = None
    min_rooms: Optional[int] = None
    max_rooms: Optional[int] = None
    min_suites: Optional[int] = None
    min_bathrooms: Optional[int] = None
    min_garage_spots: Optional[int] = None
    min_area: Optional[int] = None
    max_area: Optional[int] = None
    amenities: List[str] = field(default_factory=list)
    text: Optional[str] = None

    def is_empty(self) -> bool:
        return self == SearchCriteria()


# =============================================================================
# SUMMARIES
# =============================================================================

def format_price(centavos: int) -> str:
    """Render centavos as Brazilian currency, e.g. 123456789 -> 'R$ 1.234.567,89'."""
    reais, cents = divmod(abs(centavos), 100)
    sign = '-' if centavos < 0 else ''
    return f"{sign}R$ {reais:,}".replace(',', '.') + f",{cents:02d}"


def lead_summary(lead: Lead) -> str:
    """One-line listing: name | phone | [status] | deal | neighborhoods"""
    parts = [lead.name]
    if lead.phone:
        parts.append(lead.phone)
    parts.append(f"[{lead.status}]")
    if lead.interest and lead.interest.deal_type:
        parts.append(lead.interest.deal_type)
    if lead.interest and lead.interest.neighborhoods:
        parts.append(', '.join(lead.interest.neighborhoods))
    return ' | '.join(parts)


def visit_summary(visit: Visit) -> str:
    when = visit.scheduled_at.strftime('%d/%m/%Y às %H:%M') if visit.scheduled_at else '(sem data)'
    return f"Visita {visit.id} - {when} [{visit.status}]"
