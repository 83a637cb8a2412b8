from typing import TypedDict, Optional, List, Dict, Any

from mapping.models import LeadSubmission, ReconciledField, ScoreResult


class LeadState(TypedDict, total=False):
    """State shape for the lead intake workflow."""
    raw: Dict[str, Any]                   # inbound form payload
    form_kind: str                        # "get-started" | "assessment", fixed by the caller
    submission: LeadSubmission
    score: ScoreResult
    catalog_status: str                   # "ok" | "unavailable" | "disabled"
    custom_fields: List[ReconciledField]
    unmapped: List[str]                   # semantic keys with no CRM field
    failed: List[str]                     # semantic keys whose value could not be transformed
    fallback_used: bool
    crm_contact_id: Optional[str]
    notifications: List[str]              # Slack message ids
    errors: List[str]
    warning: Optional[str]
