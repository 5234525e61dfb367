"""
CRM Store - Database Operations
Storage collaborator for leads, interactions and visits.

The store wraps a cursor opened by the caller:

    with get_db_cursor() as cur:
        store = CrmStore(cur)
        lead = store.get_lead(lead_id)

It never opens or closes connections itself. Writes emit events on the bus.
"""

import logging
import re
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from psycopg2.extras import Json

from corretorcrm.bus.events import (
    bus, EVENT_LEAD_CREATED, EVENT_LEAD_UPDATED, EVENT_INTERACTION_LOGGED,
    EVENT_VISIT_CREATED, EVENT_VISIT_UPDATED,
)
from corretorcrm.config import config
from corretorcrm.models import Interaction, Lead, LeadInterest, Visit, VisitFeedback

logger = logging.getLogger(__name__)

SCHEMA = [
    """CREATE TABLE IF NOT EXISTS leads (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        phone TEXT,
        phone_digits TEXT,
        email TEXT,
        origin TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'new',
        interest JSONB,
        last_contact_at TIMESTAMPTZ,
        next_follow_up_at TIMESTAMPTZ,
        loss_reason TEXT,
        agent_id TEXT,
        property_ids JSONB NOT NULL DEFAULT '[]',
        notes TEXT,
        created_at TIMESTAMPTZ NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL
    )""",
    "CREATE INDEX IF NOT EXISTS idx_leads_status ON leads(status)",
    "CREATE INDEX IF NOT EXISTS idx_leads_phone_digits ON leads(phone_digits)",
    "CREATE INDEX IF NOT EXISTS idx_leads_follow_up ON leads(next_follow_up_at)",
    """CREATE TABLE IF NOT EXISTS interactions (
        id TEXT PRIMARY KEY,
        lead_id TEXT NOT NULL REFERENCES leads(id) ON DELETE CASCADE,
        kind TEXT NOT NULL,
        description TEXT NOT NULL,
        occurred_at TIMESTAMPTZ NOT NULL,
        channel TEXT
    )""",
    "CREATE INDEX IF NOT EXISTS idx_interactions_lead ON interactions(lead_id)",
    """CREATE TABLE IF NOT EXISTS visits (
        id TEXT PRIMARY KEY,
        lead_id TEXT NOT NULL REFERENCES leads(id) ON DELETE CASCADE,
        property_id TEXT NOT NULL,
        agent_id TEXT,
        scheduled_at TIMESTAMPTZ NOT NULL,
        duration_minutes INTEGER,
        status TEXT NOT NULL DEFAULT 'scheduled',
        notes TEXT,
        feedback JSONB,
        created_at TIMESTAMPTZ NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL
    )""",
    "CREATE INDEX IF NOT EXISTS idx_visits_lead ON visits(lead_id)",
    "CREATE INDEX IF NOT EXISTS idx_visits_property ON visits(property_id)",
    "CREATE INDEX IF NOT EXISTS idx_visits_scheduled ON visits(scheduled_at)",
]

# Allowlists for dynamic UPDATE queries; column names never come from user input directly
_LEAD_COLUMNS = {
    'name', 'phone', 'email', 'origin', 'status', 'interest', 'last_contact_at',
    'next_follow_up_at', 'loss_reason', 'agent_id', 'property_ids', 'notes',
}
_VISIT_COLUMNS = {
    'property_id', 'agent_id', 'scheduled_at', 'duration_minutes', 'status', 'notes', 'feedback',
}


def _validate_columns(updates: Dict[str, Any], allowed: set, entity: str) -> None:
    """Raise ValueError if any key in updates is not an allowed column name."""
    invalid = set(updates.keys()) - allowed
    if invalid:
        raise ValueError(f"Invalid {entity} fields: {invalid}")


def phone_digits(phone: Optional[str]) -> Optional[str]:
    if not phone:
        return None
    return re.sub(r'\D', '', phone) or None


def _set_clause(columns) -> str:
    return ', '.join(f"{key} = %({key})s" for key in columns)


# =============================================================================
# ROW MAPPING
# =============================================================================

def _lead_params(lead: Lead) -> Dict[str, Any]:
    params = asdict(lead)
    params['interest'] = Json(asdict(lead.interest)) if lead.interest else None
    params['property_ids'] = Json(list(lead.property_ids))
    params['phone_digits'] = phone_digits(lead.phone)
    return params


def _lead_from_row(row: Dict[str, Any]) -> Lead:
    data = {k: v for k, v in row.items() if k != 'phone_digits'}
    if data.get('interest'):
        data['interest'] = LeadInterest(**data['interest'])
    data['property_ids'] = data.get('property_ids') or []
    return Lead(**data)


def _visit_params(visit: Visit) -> Dict[str, Any]:
    params = asdict(visit)
    params['feedback'] = Json(asdict(visit.feedback)) if visit.feedback else None
    return params


def _visit_from_row(row: Dict[str, Any]) -> Visit:
    data = dict(row)
    if data.get('feedback'):
        data['feedback'] = VisitFeedback(**data['feedback'])
    return Visit(**data)


def _adapt_lead_updates(updates: Dict[str, Any]) -> Dict[str, Any]:
    params = dict(updates)
    if 'interest' in params:
        interest = params['interest']
        params['interest'] = Json(asdict(interest)) if interest else None
    if 'property_ids' in params:
        params['property_ids'] = Json(list(params['property_ids'] or []))
    if 'phone' in params:
        params['phone_digits'] = phone_digits(params['phone'])
    return params


class CrmStore:
    """Storage collaborator over an open psycopg2 RealDictCursor."""

    def __init__(self, cur):
        self.cur = cur

    def init_schema(self) -> None:
        for statement in SCHEMA:
            self.cur.execute(statement)
        logger.info("Database schema ready")

    # =========================================================================
    # LEADS
    # =========================================================================

    def create_lead(self, lead: Lead) -> Lead:
        """Insert a lead. Returns it with the database timestamps filled in."""
        self.cur.execute("""
            INSERT INTO leads (
                id, name, phone, phone_digits, email, origin, status, interest,
                last_contact_at, next_follow_up_at, loss_reason, agent_id,
                property_ids, notes, created_at, updated_at
            ) VALUES (
                %(id)s, %(name)s, %(phone)s, %(phone_digits)s, %(email)s, %(origin)s,
                %(status)s, %(interest)s, %(last_contact_at)s, %(next_follow_up_at)s,
                %(loss_reason)s, %(agent_id)s, %(property_ids)s, %(notes)s, NOW(), NOW()
            ) RETURNING *
        """, _lead_params(lead))

        created = _lead_from_row(self.cur.fetchone())
        logger.info(f"Created lead {created.id} ({created.origin})")
        bus.emit(EVENT_LEAD_CREATED, {'lead_id': created.id, 'lead': created})
        return created

    def get_lead(self, lead_id: str) -> Optional[Lead]:
        self.cur.execute("SELECT * FROM leads WHERE id = %s", (lead_id,))
        row = self.cur.fetchone()
        if row:
            return _lead_from_row(row)
        logger.debug(f"get_lead: lead_id={lead_id} not found")
        return None

    def find_lead_by_phone(self, phone: str) -> Optional[Lead]:
        """Match on digits only, so '11987654321' finds a lead stored as '+55 (11) 98765-4321'."""
        digits = phone_digits(phone)
        if not digits:
            return None
        self.cur.execute("""
            SELECT * FROM leads
            WHERE phone_digits LIKE %s
            ORDER BY created_at ASC
            LIMIT 1
        """, (f"%{digits}",))
        row = self.cur.fetchone()
        return _lead_from_row(row) if row else None

    def list_leads(
        self,
        status: Optional[str] = None,
        origin: Optional[str] = None,
        limit: Optional[int] = None
    ) -> List[Lead]:
        """Leads with optional filters, most recently updated first."""
        conditions = []
        params: Dict[str, Any] = {'limit': limit or config.DEFAULT_PAGE_SIZE}

        if status:
            conditions.append("status = %(status)s")
            params['status'] = status

        if origin:
            conditions.append("origin = %(origin)s")
            params['origin'] = origin

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        self.cur.execute(f"""
            SELECT * FROM leads
            {where_clause}
            ORDER BY updated_at DESC
            LIMIT %(limit)s
        """, params)

        rows = self.cur.fetchall()
        logger.debug(f"list_leads: {len(rows)} results (status={status}, origin={origin})")
        return [_lead_from_row(row) for row in rows]

    def update_lead(self, lead_id: str, updates: Dict[str, Any]) -> bool:
        """
        Update lead fields and bump updated_at.
        Returns: True if updated, False if not found or nothing to update
        """
        if not updates:
            return False

        # Guard: only known columns may appear in the SET clause
        _validate_columns(updates, _LEAD_COLUMNS, 'lead')

        params = _adapt_lead_updates(updates)
        set_clause = _set_clause(params.keys())
        params['lead_id'] = lead_id

        self.cur.execute(f"""
            UPDATE leads
            SET {set_clause}, updated_at = NOW()
            WHERE id = %(lead_id)s
        """, params)

        if self.cur.rowcount > 0:
            logger.info(f"Updated lead {lead_id}: {sorted(updates.keys())}")
            bus.emit(EVENT_LEAD_UPDATED, {'lead_id': lead_id, 'updates': updates})
            return True
        return False

    def leads_due_for_follow_up(self, now: Optional[datetime] = None) -> List[Lead]:
        """Active leads whose follow-up date has passed, oldest first."""
        self.cur.execute("""
            SELECT * FROM leads
            WHERE next_follow_up_at IS NOT NULL
              AND next_follow_up_at <= %(now)s
              AND status NOT IN ('won', 'lost')
            ORDER BY next_follow_up_at ASC
        """, {'now': now or datetime.now(timezone.utc)})

        rows = self.cur.fetchall()
        logger.debug(f"leads_due_for_follow_up: {len(rows)} leads")
        return [_lead_from_row(row) for row in rows]

    # =========================================================================
    # INTERACTIONS
    # =========================================================================

    def log_interaction(self, interaction: Interaction) -> Interaction:
        """
        Append an interaction and move the lead's last contact to its date.
        Returns the stored interaction.
        """
        self.cur.execute("""
            INSERT INTO interactions (id, lead_id, kind, description, occurred_at, channel)
            VALUES (
                %(id)s, %(lead_id)s, %(kind)s, %(description)s,
                COALESCE(%(occurred_at)s, NOW()), %(channel)s
            ) RETURNING *
        """, asdict(interaction))
        stored = Interaction(**self.cur.fetchone())

        self.cur.execute("""
            UPDATE leads
            SET last_contact_at = %s, updated_at = NOW()
            WHERE id = %s
        """, (stored.occurred_at, stored.lead_id))

        logger.info(f"Logged {stored.kind} interaction {stored.id} for lead {stored.lead_id}")
        bus.emit(EVENT_INTERACTION_LOGGED, {
            'interaction_id': stored.id,
            'lead_id': stored.lead_id,
            'interaction': stored,
        })
        return stored

    def get_interactions(self, lead_id: str, limit: Optional[int] = None) -> List[Interaction]:
        """Most recent interactions first."""
        self.cur.execute("""
            SELECT * FROM interactions
            WHERE lead_id = %s
            ORDER BY occurred_at DESC
            LIMIT %s
        """, (lead_id, limit or config.INTERACTION_HISTORY_LIMIT))

        rows = self.cur.fetchall()
        logger.debug(f"get_interactions: lead_id={lead_id} -> {len(rows)} interactions")
        return [Interaction(**row) for row in rows]

    # =========================================================================
    # VISITS
    # =========================================================================

    def create_visit(self, visit: Visit) -> Visit:
        self.cur.execute("""
            INSERT INTO visits (
                id, lead_id, property_id, agent_id, scheduled_at, duration_minutes,
                status, notes, feedback, created_at, updated_at
            ) VALUES (
                %(id)s, %(lead_id)s, %(property_id)s, %(agent_id)s, %(scheduled_at)s,
                %(duration_minutes)s, %(status)s, %(notes)s, %(feedback)s, NOW(), NOW()
            ) RETURNING *
        """, _visit_params(visit))

        created = _visit_from_row(self.cur.fetchone())
        logger.info(f"Created visit {created.id} for lead {created.lead_id} at {created.scheduled_at}")
        bus.emit(EVENT_VISIT_CREATED, {'visit_id': created.id, 'visit': created})
        return created

    def get_visit(self, visit_id: str) -> Optional[Visit]:
        self.cur.execute("SELECT * FROM visits WHERE id = %s", (visit_id,))
        row = self.cur.fetchone()
        return _visit_from_row(row) if row else None

    def update_visit(self, visit_id: str, updates: Dict[str, Any]) -> bool:
        """Update visit fields. Returns True if updated, False if not found."""
        if not updates:
            return False

        _validate_columns(updates, _VISIT_COLUMNS, 'visit')

        params = dict(updates)
        if 'feedback' in params:
            feedback = params['feedback']
            params['feedback'] = Json(asdict(feedback)) if feedback else None
        set_clause = _set_clause(params.keys())
        params['visit_id'] = visit_id

        self.cur.execute(f"""
            UPDATE visits
            SET {set_clause}, updated_at = NOW()
            WHERE id = %(visit_id)s
        """, params)

        if self.cur.rowcount > 0:
            logger.info(f"Updated visit {visit_id}: {sorted(updates.keys())}")
            bus.emit(EVENT_VISIT_UPDATED, {'visit_id': visit_id, 'updates': updates})
            return True
        return False

    def list_visits(
        self,
        lead_id: Optional[str] = None,
        property_id: Optional[str] = None,
        status: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: Optional[int] = None
    ) -> List[Visit]:
        """Visits with optional filters, earliest first."""
        conditions = []
        params: Dict[str, Any] = {'limit': limit or config.DEFAULT_PAGE_SIZE}

        if lead_id:
            conditions.append("lead_id = %(lead_id)s")
            params['lead_id'] = lead_id

        if property_id:
            conditions.append("property_id = %(property_id)s")
            params['property_id'] = property_id

        if status:
            conditions.append("status = %(status)s")
            params['status'] = status

        if date_from:
            conditions.append("scheduled_at >= %(date_from)s")
            params['date_from'] = date_from

        if date_to:
            conditions.append("scheduled_at <= %(date_to)s")
            params['date_to'] = date_to

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        self.cur.execute(f"""
            SELECT * FROM visits
            {where_clause}
            ORDER BY scheduled_at ASC
            LIMIT %(limit)s
        """, params)

        rows = self.cur.fetchall()
        logger.debug(f"list_visits: {len(rows)} visits (lead_id={lead_id}, status={status})")
        return [_visit_from_row(row) for row in rows]
