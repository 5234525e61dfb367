#!/usr/bin/env python3
"""
CorretorCRM Terminal CLI
Command-line interface for the lead pipeline, follow-ups, qualification,
search-phrase parsing and visits.
"""

import logging
import re
import click
from contextlib import contextmanager
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from corretorcrm.config import config
from corretorcrm.db.connection import get_db_cursor
from corretorcrm.engine import crm, criteria, follow_up, pipeline, price, qualification
from corretorcrm.engine.capture import InboundContact, capture_lead_from_contact
from corretorcrm.engine.store import CrmStore
from corretorcrm.errors import InvalidTransition
from corretorcrm.models import (
    Lead, VisitFeedback, LEAD_ORIGINS, LEAD_STATUSES, VISIT_STATUSES,
    format_price, lead_summary, visit_summary,
)
from corretorcrm.logging_config import configure_logging, log_call

_EMAIL_RE = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')

_SLOT_IDS = [slot.id for slot in qualification.QUALIFICATION_SLOTS]


@contextmanager
def open_store(autocommit=False):
    """Open a connection for one command and hand the engine a CrmStore."""
    with get_db_cursor(autocommit=autocommit) as cur:
        yield CrmStore(cur)


def _local_tz() -> ZoneInfo:
    return ZoneInfo(config.TIMEZONE)


def _fmt(dt: Optional[datetime]) -> str:
    if not dt:
        return '(not set)'
    if dt.tzinfo:
        dt = dt.astimezone(_local_tz())
    return dt.strftime('%d/%m/%Y %H:%M')


@log_call
def _prompt_email() -> Optional[str]:
    """Prompt for an email address, re-prompting on bad format. Returns None if left blank."""
    logger = logging.getLogger("corretorcrm")
    while True:
        raw = click.prompt("Email", default="", show_default=False) or None
        if raw is None:
            return None
        if _EMAIL_RE.match(raw):
            return raw
        logger.debug(f"_prompt_email | rejected input={raw!r}")
        click.echo("  Invalid email address, please try again or press Enter to skip.", err=True)


@click.group()
def cli():
    """CorretorCRM - Real-estate lead pipeline"""
    configure_logging()


@cli.command('init-db')
@log_call
def init_db():
    """Create tables and indexes (safe to re-run)"""
    try:
        with open_store() as store:
            store.init_schema()
    except Exception as e:
        logging.getLogger("corretorcrm").error(f"init-db failed: {e}", exc_info=True)
        click.echo(f"Error: {e}", err=True)
        return
    click.echo("✓ Database ready")


# =============================================================================
# LEADS COMMANDS
# =============================================================================

@cli.group()
def leads():
    """Manage leads and their pipeline status"""
    pass


@leads.command('list')
@click.option('--status', type=click.Choice(LEAD_STATUSES), help='Filter by pipeline status')
@click.option('--origin', type=click.Choice(LEAD_ORIGINS), help='Filter by origin channel')
@click.option('--limit', type=int, default=None, help='Max results (default: DEFAULT_PAGE_SIZE)')
@click.option('--phone', help='Find the lead with this phone number (digits are compared)')
@log_call
def leads_list(status, origin, limit, phone):
    """List leads, most recently updated first (--phone looks up a single lead)"""
    with open_store() as store:
        if phone:
            lead = store.find_lead_by_phone(phone)
            results = [lead] if lead else []
        else:
            results = store.list_leads(status=status, origin=origin, limit=limit)

    if not results:
        click.echo("No leads found.")
        return

    click.echo(f"\n{len(results)} lead(s):\n")
    for i, lead in enumerate(results, start=1):
        click.echo(f"{i:>3}. {lead_summary(lead)}  (ID: {lead.id})")


@leads.command('show')
@click.argument('lead_id')
@log_call
def leads_show(lead_id):
    """Show full lead details"""
    logger = logging.getLogger("corretorcrm")
    with open_store() as store:
        lead = store.get_lead(lead_id)
        interactions = store.get_interactions(lead_id) if lead else []

    if not lead:
        logger.warning(f"leads_show | lead_id={lead_id} not found")
        click.echo(f"Lead {lead_id} not found.", err=True)
        return

    click.echo(f"\n{'='*80}")
    click.echo(f"LEAD {lead.id}: {lead.name}")
    click.echo(f"{'='*80}")
    click.echo(f"Phone:        {lead.phone or '(not set)'}")
    click.echo(f"Email:        {lead.email or '(not set)'}")
    click.echo(f"Origin:       {lead.origin}")
    click.echo(f"Status:       {lead.status}")
    click.echo(f"Last contact: {_fmt(lead.last_contact_at)}")
    click.echo(f"Follow-up:    {_fmt(lead.next_follow_up_at)}")
    if lead.loss_reason:
        click.echo(f"Loss reason:  {lead.loss_reason}")
    click.echo(f"Agent:        {lead.agent_id or '(not set)'}")
    click.echo(f"Created:      {_fmt(lead.created_at)}")

    interest = lead.interest
    if interest:
        click.echo("\nInterest:")
        click.echo(f"  Deal:          {interest.deal_type or '-'}")
        click.echo(f"  Types:         {', '.join(interest.property_types) or '-'}")
        click.echo(f"  Min rooms:     {interest.min_rooms if interest.min_rooms is not None else '-'}")
        click.echo(f"  Neighborhoods: {', '.join(interest.neighborhoods) or '-'}")
        click.echo(f"  Max price:     {format_price(interest.max_price) if interest.max_price is not None else '-'}")

    state = qualification.analyze(lead)
    if not state.complete:
        click.echo(f"\nPending qualification: {', '.join(state.pending_slot_ids)}")

    if lead.notes:
        click.echo(f"\nNotes:\n{lead.notes}")

    click.echo(f"\n{'='*80}")
    click.echo("INTERACTION HISTORY")
    click.echo(f"{'='*80}")
    if interactions:
        for i in interactions:
            channel = f" via {i.channel}" if i.channel else ""
            click.echo(f"\n[{_fmt(i.occurred_at)}] {i.kind}{channel}")
            click.echo(f"  {i.description[:100]}")
    else:
        click.echo("No interactions yet.")

    click.echo()


@leads.command('add')
@log_call
def leads_add():
    """Add a new lead (interactive)"""
    click.echo("\n=== ADD NEW LEAD ===\n")

    name = click.prompt("Name", type=str)
    phone = click.prompt("Phone", default="", show_default=False) or None
    email = _prompt_email()
    origin = click.prompt("Origin", type=click.Choice(LEAD_ORIGINS), default="whatsapp")
    notes = click.prompt("Notes", default="", show_default=False) or None

    with open_store() as store:
        lead = store.create_lead(Lead(name=name, phone=phone, email=email, origin=origin, notes=notes))
    click.echo(f"\n✓ Created lead {lead.id}: {lead_summary(lead)}")


@leads.command('capture')
@click.argument('phone')
@click.option('--channel', default='whatsapp', show_default=True, help='Channel the message arrived on')
@click.option('--name', help='Contact name, if known')
@click.option('--message', help='Message text')
@log_call
def leads_capture(phone, channel, name, message):
    """Register an inbound message, creating the lead on first contact"""
    try:
        with open_store() as store:
            result = capture_lead_from_contact(
                store, InboundContact(phone=phone, channel=channel, name=name, message=message)
            )
    except Exception as e:
        logging.getLogger("corretorcrm").error(f"capture failed for channel {channel}: {e}", exc_info=True)
        click.echo(f"Error: {e}", err=True)
        return
    verb = "Created" if result.is_new else "Existing"
    click.echo(f"✓ {verb} lead {result.lead.id}: {lead_summary(result.lead)}")


@leads.command('status')
@click.argument('lead_id')
@click.argument('status', type=click.Choice(LEAD_STATUSES))
@click.option('--reason', help='Reason for the change (stored as loss reason when lost)')
@log_call
def leads_status(lead_id, status, reason):
    """Move a lead through the pipeline"""
    logger = logging.getLogger("corretorcrm")
    with open_store() as store:
        result = crm.change_status(store, lead_id, status, reason)

    if not result.ok:
        logger.warning(f"leads_status | lead_id={lead_id} rejected: {result.error}")
        click.echo(f"{result.error}", err=True)
        if isinstance(result.error, InvalidTransition):
            allowed = pipeline.available_transitions(result.error.from_status)
            click.echo(f"Allowed from {result.error.from_status}: {', '.join(allowed) or '(none)'}", err=True)
        return

    event = result.event
    click.echo(f"✓ {event.from_status} -> {event.to_status}")
    if result.lead.next_follow_up_at:
        click.echo(f"  Next follow-up: {_fmt(result.lead.next_follow_up_at)}")


@leads.command('transitions')
@click.argument('lead_id')
@log_call
def leads_transitions(lead_id):
    """Show which statuses a lead can move to"""
    with open_store() as store:
        lead = store.get_lead(lead_id)

    if not lead:
        click.echo(f"Lead {lead_id} not found.", err=True)
        return

    allowed = pipeline.available_transitions(lead.status)
    click.echo(f"{lead.name} [{lead.status}] -> {', '.join(allowed) or '(final status)'}")


# =============================================================================
# FOLLOW-UP COMMANDS
# =============================================================================

@cli.group()
def followups():
    """Follow-up reminders"""
    pass


@followups.command('due')
@log_call
def followups_due():
    """List leads whose follow-up is due now"""
    with open_store() as store:
        results = follow_up.due_follow_ups(store)

    if not results:
        click.echo("No follow-ups due. You're all caught up! ✓")
        return

    click.echo(f"\n⚠️  {len(results)} lead(s) need follow-up:\n")
    click.echo(f"{'Due':<17} {'Name':<30} {'Status':<16} ID")
    click.echo("-" * 80)
    for lead in results:
        click.echo(f"{_fmt(lead.next_follow_up_at):<17} {lead.name[:28]:<30} {lead.status:<16} {lead.id}")


@followups.command('schedule')
@click.option('--batch-size', type=int, default=None, help='Max leads inspected (default: FOLLOW_UP_BATCH_SIZE)')
@log_call
def followups_schedule(batch_size):
    """Schedule follow-ups for active leads that have none"""
    # autocommit: each lead's update stands on its own
    try:
        with open_store(autocommit=True) as store:
            result = follow_up.schedule_automatic_follow_ups(store, page_size=batch_size)
    except Exception as e:
        logging.getLogger("corretorcrm").error(f"followups schedule failed: {e}", exc_info=True)
        click.echo(f"Error: {e}", err=True)
        return

    click.echo(f"✓ Scheduled {result.scheduled_count} follow-up(s)")
    for item in result.details:
        click.echo(f"  {item.name[:30]:<32} {_fmt(item.next_follow_up_at)}")


@followups.command('message')
@click.argument('lead_id')
@log_call
def followups_message(lead_id):
    """Print the reminder message for a lead"""
    with open_store() as store:
        lead = store.get_lead(lead_id)

    if not lead:
        click.echo(f"Lead {lead_id} not found.", err=True)
        return
    click.echo(follow_up.reminder_message(lead))


# =============================================================================
# QUALIFICATION / PARSING COMMANDS
# =============================================================================

@cli.command('qualify')
@click.argument('lead_id')
@click.option('--slot', type=click.Choice(_SLOT_IDS), help='Slot being answered')
@click.option('--answer', help="The lead's answer, in their own words")
@log_call
def qualify(lead_id, slot, answer):
    """Show the next qualification question, or record an answer"""
    if bool(slot) != bool(answer):
        click.echo("Use --slot and --answer together.", err=True)
        return

    with open_store() as store:
        if slot:
            recorded = crm.record_answer(store, lead_id, slot, answer)
            lead = recorded[0] if recorded else None
        else:
            lead = store.get_lead(lead_id)

    if not lead:
        click.echo(f"Lead {lead_id} not found.", err=True)
        return

    click.echo(qualification.build_qualification_prompt(lead))


@cli.command('search')
@click.argument('phrase')
@log_call
def search(phrase):
    """Parse a search phrase into structured criteria"""
    result = criteria.extract_criteria(phrase)

    if result.text is not None:
        click.echo(f"No structured criteria found; full-text search for: {result.text}")
        return

    labels = [
        ('Types', ', '.join(result.property_types)),
        ('Deal', result.deal_type),
        ('Neighborhood', result.neighborhood),
        ('Min rooms', result.min_rooms),
        ('Min suites', result.min_suites),
        ('Min garage spots', result.min_garage_spots),
        ('Min price', format_price(result.min_price) if result.min_price is not None else None),
        ('Max price', format_price(result.max_price) if result.max_price is not None else None),
        ('Min area', f"{result.min_area} m²" if result.min_area is not None else None),
        ('Max area', f"{result.max_area} m²" if result.max_area is not None else None),
    ]
    for label, value in labels:
        if value not in (None, ''):
            click.echo(f"{label + ':':<18} {value}")


@cli.command('price')
@click.argument('phrase')
@log_call
def price_cmd(phrase):
    """Parse a price phrase ("500 mil", "1,2 milhão", "R$ 350.000")"""
    amount = price.parse_price(phrase)
    if amount is None:
        click.echo(f"Could not read a price from {phrase!r}.", err=True)
        return
    click.echo(f"{format_price(amount)} ({amount} centavos)")


# =============================================================================
# VISITS COMMANDS
# =============================================================================

@cli.group()
def visits():
    """Property visits"""
    pass


@visits.command('list')
@click.option('--lead', 'lead_id', help='Filter by lead')
@click.option('--property', 'property_id', help='Filter by property')
@click.option('--status', type=click.Choice(VISIT_STATUSES), help='Filter by visit status')
@click.option('--today', is_flag=True, help='Only visits scheduled today')
@log_call
def visits_list(lead_id, property_id, status, today):
    """List visits, earliest first"""
    with open_store() as store:
        if today:
            results = crm.visits_on(store, datetime.now(_local_tz()))
        else:
            results = store.list_visits(lead_id=lead_id, property_id=property_id, status=status)

    if not results:
        click.echo("No visits found.")
        return

    click.echo(f"\n{len(results)} visit(s):\n")
    for v in results:
        click.echo(f"- {visit_summary(v)}")


@visits.command('add')
@click.argument('lead_id')
@click.argument('property_id')
@click.argument('when', type=click.DateTime(formats=['%Y-%m-%d %H:%M', '%Y-%m-%dT%H:%M']))
@click.option('--agent', 'agent_id', help='Agent who will show the property')
@click.option('--duration', type=int, help='Duration in minutes')
@click.option('--notes', help='Notes for the agent')
@log_call
def visits_add(lead_id, property_id, when, agent_id, duration, notes):
    """Schedule a visit (WHEN in local time, e.g. "2026-10-21 15:00")"""
    scheduled_at = when.replace(tzinfo=_local_tz())
    with open_store() as store:
        visit, error = crm.schedule_visit(
            store, lead_id, property_id, scheduled_at,
            agent_id=agent_id, duration_minutes=duration, notes=notes,
        )

    if error:
        click.echo(f"{error}", err=True)
        return
    click.echo(f"✓ {visit_summary(visit)}")


@visits.command('status')
@click.argument('visit_id')
@click.argument('status', type=click.Choice(VISIT_STATUSES))
@log_call
def visits_status(visit_id, status):
    """Update a visit's status"""
    with open_store() as store:
        error = crm.update_visit_status(store, visit_id, status)

    if error:
        click.echo(f"{error}", err=True)
        return
    click.echo(f"✓ Visit {visit_id} is now {status}")


@visits.command('feedback')
@click.argument('visit_id')
@click.option('--score', type=click.IntRange(1, 5), help='Interest score 1-5')
@click.option('--comment', help='Free comment')
@click.option('--objection', 'objections', multiple=True, help='Objection raised (repeatable)')
@log_call
def visits_feedback(visit_id, score, comment, objections):
    """Record post-visit feedback"""
    feedback = VisitFeedback(interest_score=score, comment=comment, objections=list(objections))
    with open_store() as store:
        error = crm.record_visit_feedback(store, visit_id, feedback)

    if error:
        click.echo(f"{error}", err=True)
        return
    click.echo(f"✓ Feedback saved for visit {visit_id}")


if __name__ == '__main__':
    cli()
