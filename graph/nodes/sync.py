from graph.state import LeadState
from loguru import logger

from mapping.payload import build_contact_payload
from tools import ghl


def sync(state: LeadState) -> LeadState:
    """Upsert the contact, with whatever custom fields were reconciled, into the CRM."""
    submission = state["submission"]
    payload = build_contact_payload(
        submission,
        state["score"],
        state.get("custom_fields", []),
        location_id=ghl.ghl_client.location_id,
    )

    try:
        result = ghl.upsert_contact(payload)
    except Exception as e:
        result = None
        logger.error(f"Contact upsert raised: {e}")

    if result and result.get("id"):
        state["crm_contact_id"] = result["id"]
        logger.info(f"Synced {submission.contact.email} to CRM contact {result['id']} ({result.get('action')})")
    else:
        state["crm_contact_id"] = None
        state.setdefault("errors", []).append("crm_upsert_failed")
        state["warning"] = state.get("warning") or "CRM contact sync failed; lead accepted but not synced"

    return state
