from graph.state import LeadState
from loguru import logger

from mapping.submission import normalize_submission


def capture(state: LeadState) -> LeadState:
    """Normalize the inbound payload into a LeadSubmission.

    InvalidSubmission propagates: a submission without contact basics or a
    form kind is rejected by the caller, not processed.
    """
    raw = state.get("raw", {})
    logger.info(f"Starting capture for {state.get('form_kind') or raw.get('formType', 'unknown')} submission")

    submission = normalize_submission(raw, state.get("form_kind"))

    state["submission"] = submission
    state["form_kind"] = submission.form_kind.value
    logger.info(f"Capture completed for {submission.contact.email}")
    return state
