from graph.state import LeadState
from loguru import logger

from mapping.scoring import score as score_submission


def score(state: LeadState) -> LeadState:
    """Deterministic lead score and quality tier for the captured submission."""
    submission = state["submission"]
    result = score_submission(submission)
    state["score"] = result

    logger.info(
        f"Scored {submission.contact.email}: {result.numeric_score} ({result.quality_tier.value})"
    )
    return state
