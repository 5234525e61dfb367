"""
Business-rule errors.

These are returned inside result objects (see engine.pipeline.TransitionResult)
so callers can render them directly. They are exceptions so that a caller that
prefers raising can simply `raise result.error`.
"""


class CrmError(Exception):
    """Base class for CRM business-rule violations."""


class LeadNotFound(CrmError):
    def __init__(self, lead_id=None):
        self.lead_id = lead_id
        super().__init__("Lead not found" if lead_id is None else f"Lead {lead_id} not found")


class VisitNotFound(CrmError):
    def __init__(self, visit_id=None):
        self.visit_id = visit_id
        super().__init__("Visit not found" if visit_id is None else f"Visit {visit_id} not found")


class InvalidTransition(CrmError):
    def __init__(self, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f"Invalid transition: {from_status} -> {to_status}")
