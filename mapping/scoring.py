import math
from typing import Dict, Iterable, Tuple

from loguru import logger

from mapping.catalog import ASSESSMENT_QUESTIONS, CRM_INTEGRATION, MAX_POINTS_PER_QUESTION
from mapping.models import FormKind, LeadSubmission, QualityTier, ScoreResult

ONBOARDING_BASE = 50

BUSINESS_TYPE_BONUS = {
    "agency": 10,
    "business": 10,
    "coach": 5,
    "consultant": 5,
    "podcaster": 5,
}

PLAN_BONUS = {
    "custom": 20,
    "complete-system": 20,
    "content-engine": 10,
    "standard": 10,
}

# (minimum count, bonus), highest threshold first
CONTENT_GOAL_BONUS = ((4, 15), (2, 10), (1, 5))
INTEGRATION_BONUS = ((3, 10), (1, 5))
CRM_INTEGRATION_BONUS = 10

HOT_THRESHOLD = 75
WARM_THRESHOLD = 50

# (minimum score, readiness level, recommended plan)
READINESS_LEVELS = (
    (75, "Highly Ready", "Complete System"),
    (50, "Ready", "Complete System"),
    (25, "Getting Ready", "Content Engine"),
    (0, "Building Foundation", "Content Engine"),
)


def clamp(value: float, low: int = 0, high: int = 100) -> int:
    """Round half up, then bound to [low, high]."""
    return int(max(low, min(high, math.floor(value + 0.5))))


def tier_for(score: int) -> QualityTier:
    """Lower bounds are inclusive: 75 is hot, 50 is warm."""
    if score >= HOT_THRESHOLD:
        return QualityTier.HOT
    if score >= WARM_THRESHOLD:
        return QualityTier.WARM
    return QualityTier.COLD


def readiness_for(score: int) -> Tuple[str, str]:
    """Readiness level and recommended plan for an assessment score."""
    for minimum, level, plan in READINESS_LEVELS:
        if score >= minimum:
            return level, plan
    return READINESS_LEVELS[-1][1], READINESS_LEVELS[-1][2]


def _threshold_bonus(count: int, table: Iterable[Tuple[int, int]]) -> int:
    for minimum, bonus in table:
        if count >= minimum:
            return bonus
    return 0


def _as_list(value) -> list:
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple, set)):
        return [item for item in value if item not in (None, "")]
    return [value]


def max_assessment_points() -> int:
    return MAX_POINTS_PER_QUESTION * len(ASSESSMENT_QUESTIONS)


def assessment_points(submission: LeadSubmission) -> int:
    answers = submission.raw_answers or {}
    return sum(answer.score for answer in answers.values())


def score_assessment(submission: LeadSubmission) -> int:
    """Answered points over the maximum attainable for the question bank, as a percentage."""
    total = assessment_points(submission)
    percentage = total / max_assessment_points() * 100
    return clamp(percentage)


def _onboarding_breakdown(submission: LeadSubmission) -> Dict[str, int]:
    attrs = submission.attributes
    goals = _as_list(attrs.get("content_goals"))
    integrations = [str(item).lower() for item in _as_list(attrs.get("integration_preferences"))]
    return {
        "base": ONBOARDING_BASE,
        "business_type": BUSINESS_TYPE_BONUS.get(str(attrs.get("business_type") or "").lower(), 0),
        "selected_plan": PLAN_BONUS.get(str(attrs.get("selected_plan") or "").lower(), 0),
        "content_goals": _threshold_bonus(len(goals), CONTENT_GOAL_BONUS),
        "integrations": _threshold_bonus(len(integrations), INTEGRATION_BONUS),
        "crm_integration": CRM_INTEGRATION_BONUS if CRM_INTEGRATION in integrations else 0,
    }


def score_onboarding(submission: LeadSubmission) -> int:
    """Base 50 plus business type, plan, content goal and integration bonuses."""
    return clamp(sum(_onboarding_breakdown(submission).values()))


def score(submission: LeadSubmission) -> ScoreResult:
    """Score a normalized submission with the rule set for its form kind."""
    if submission.form_kind == FormKind.ASSESSMENT:
        numeric = score_assessment(submission)
    else:
        numeric = score_onboarding(submission)

    result = ScoreResult(numeric_score=numeric, quality_tier=tier_for(numeric))
    logger.info(f"Scored {submission.form_kind.value} lead {submission.contact.email}: "
                f"{result.numeric_score} ({result.quality_tier.value})")
    return result


def score_breakdown(submission: LeadSubmission) -> Dict[str, int]:
    """Per-rule contributions, for logs and notifications."""
    if submission.form_kind == FormKind.ASSESSMENT:
        answers = submission.raw_answers or {}
        return {question_id: answer.score for question_id, answer in answers.items()}
    return _onboarding_breakdown(submission)
