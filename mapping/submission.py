"""
Submission normalizers: turn the two inbound form shapes into a LeadSubmission.

The form kind is decided by the caller (route or explicit formType), never
guessed from which optional fields happen to be present.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

from loguru import logger
from pydantic import ValidationError

from mapping.catalog import (
    ASSESSMENT_QUESTIONS,
    BUSINESS_TYPES,
    CONTENT_GOALS,
    INTEGRATIONS,
    PLANS,
    answer_labels,
)
from mapping.errors import InvalidSubmission
from mapping.models import AssessmentAnswer, ContactInfo, FormKind, LeadSubmission

REQUIRED_CONTACT_FIELDS = ("firstName", "lastName", "email")

# Inbound camelCase name -> semantic key
ONBOARDING_ATTRIBUTES = {
    "businessName": "business_name",
    "businessType": "business_type",
    "selectedPlan": "selected_plan",
    "contentGoals": "content_goals",
    "integrations": "integration_preferences",
    "monthlyLeads": "monthly_leads",
    "teamSize": "team_size",
    "currentTools": "current_tools",
    "biggestChallenge": "biggest_challenge",
}

# The assessment form may also carry the business profile step
ASSESSMENT_PROFILE_ATTRIBUTES = {
    "businessName": "business_name",
    "businessType": "business_type",
    "selectedPlan": "selected_plan",
    "contentGoals": "content_goals",
    "integrations": "integration_preferences",
}

CODE_TABLES = {
    "business_type": BUSINESS_TYPES,
    "selected_plan": PLANS,
    "content_goals": CONTENT_GOALS,
    "integration_preferences": INTEGRATIONS,
}

FORM_KIND_ALIASES = {
    "get-started": FormKind.ONBOARDING,
    "getstarted": FormKind.ONBOARDING,
    "get_started": FormKind.ONBOARDING,
    "onboarding": FormKind.ONBOARDING,
    "assessment": FormKind.ASSESSMENT,
    "readiness-assessment": FormKind.ASSESSMENT,
}


def parse_form_kind(value: Any) -> FormKind:
    if isinstance(value, FormKind):
        return value
    kind = FORM_KIND_ALIASES.get(str(value or "").strip().lower())
    if kind is None:
        raise InvalidSubmission(f"Unknown or missing form type: {value!r}")
    return kind


def _reverse(table: Dict[str, str]) -> Dict[str, str]:
    reverse = {}
    for code, label in table.items():
        reverse.setdefault(label.lower(), code)
    return reverse


def to_code(value: Any, table: Dict[str, str]) -> Any:
    """Map a display label back to its code; codes and unknown values pass through."""
    if not isinstance(value, str):
        return value
    text = value.strip()
    if text in table:
        return text
    lowered = text.lower()
    if lowered in table:
        return lowered
    slug = lowered.replace(" ", "-")
    if slug in table:
        return slug
    return _reverse(table).get(lowered, text)


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() != ""
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) > 0
    return True


def _canonical(semantic_key: str, value: Any) -> Any:
    table = CODE_TABLES.get(semantic_key)
    if isinstance(value, str):
        value = value.strip()
    if table is None:
        return value
    if isinstance(value, (list, tuple)):
        return [to_code(item, table) for item in value if _present(item)]
    return to_code(value, table)


def _contact(payload: Dict[str, Any]) -> ContactInfo:
    missing = [name for name in REQUIRED_CONTACT_FIELDS if not _present(payload.get(name))]
    if missing:
        raise InvalidSubmission(f"Missing required fields: {', '.join(missing)}")
    try:
        return ContactInfo(
            first_name=str(payload["firstName"]).strip(),
            last_name=str(payload["lastName"]).strip(),
            email=str(payload["email"]).strip().lower(),
            phone=str(payload["phone"]).strip() if _present(payload.get("phone")) else None,
        )
    except ValidationError as e:
        raise InvalidSubmission(f"Invalid contact details: {e}")


def _submitted_at(payload: Dict[str, Any]) -> Any:
    return payload.get("submissionDate") or payload.get("timestamp") or datetime.now(timezone.utc)


def _collect(payload: Dict[str, Any], names: Dict[str, str]) -> Dict[str, Any]:
    attributes = {}
    for inbound, semantic_key in names.items():
        value = payload.get(inbound)
        if inbound == "selectedPlan" and not _present(value):
            value = payload.get("pricingPlan")
        if _present(value):
            attributes[semantic_key] = _canonical(semantic_key, value)
    return attributes


def _submission_id(payload: Dict[str, Any]) -> Optional[str]:
    value = payload.get("submissionId") or payload.get("event_id")
    return str(value) if value else None


def _ensure_object(payload: Any) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise InvalidSubmission("Submission body must be a JSON object")
    return payload


def normalize_onboarding(payload: Dict[str, Any]) -> LeadSubmission:
    """Normalize a get-started wizard submission."""
    payload = _ensure_object(payload)
    contact = _contact(payload)
    attributes = _collect(payload, ONBOARDING_ATTRIBUTES)
    attributes["submission_date"] = _submitted_at(payload)

    logger.info(f"Normalized get-started submission for {contact.email} ({len(attributes)} attributes)")
    return LeadSubmission(
        form_kind=FormKind.ONBOARDING,
        contact=contact,
        attributes=attributes,
        submission_id=_submission_id(payload),
    )


def _answer_items(answers: Any) -> Iterable[Dict[str, Any]]:
    """Accept {question_id: code} or [{questionId, answer|value, score?}, ...]."""
    if isinstance(answers, dict):
        for question_id, value in answers.items():
            if isinstance(value, dict):
                yield {"questionId": question_id, **value}
            else:
                yield {"questionId": question_id, "value": value}
    elif isinstance(answers, (list, tuple)):
        for item in answers:
            if isinstance(item, dict):
                yield item
            else:
                logger.warning(f"Ignoring malformed assessment answer: {item!r}")
    elif answers is not None:
        raise InvalidSubmission("Assessment answers must be an object or a list")


def _answer(item: Dict[str, Any]) -> Optional[AssessmentAnswer]:
    question_id = str(item.get("questionId") or item.get("id") or "").strip()
    if question_id not in ASSESSMENT_QUESTIONS:
        logger.warning(f"Ignoring answer for unknown assessment question {question_id!r}")
        return None

    question, _, options = ASSESSMENT_QUESTIONS[question_id]
    labels = answer_labels(question_id)
    raw_value = item.get("value", item.get("answer"))
    if not _present(raw_value):
        return None
    code = to_code(str(raw_value), labels)

    points = {opt_code: opt_points for opt_code, _, opt_points in options}
    embedded = item.get("score")
    if embedded is not None and not isinstance(embedded, bool):
        try:
            score = int(embedded)
        except (TypeError, ValueError):
            raise InvalidSubmission(f"Non-numeric score for {question_id}: {embedded!r}")
    else:
        score = points.get(code, 0)

    return AssessmentAnswer(
        question_id=question_id,
        question=str(item.get("question") or question),
        value=code,
        label=labels.get(code, str(raw_value)),
        score=max(score, 0),
    )


def normalize_assessment(payload: Dict[str, Any]) -> LeadSubmission:
    """Normalize a readiness assessment submission."""
    payload = _ensure_object(payload)
    contact = _contact(payload)

    raw_answers: Dict[str, AssessmentAnswer] = {}
    source = payload.get("answers")
    if not _present(source):
        source = payload.get("assessmentAnswers")
    for item in _answer_items(source):
        answer = _answer(item)
        if answer is not None:
            raw_answers[answer.question_id] = answer

    attributes = _collect(payload, ASSESSMENT_PROFILE_ATTRIBUTES)
    for question_id, answer in raw_answers.items():
        attributes[ASSESSMENT_QUESTIONS[question_id][1]] = answer.value
    if raw_answers:
        attributes["assessment_answers"] = {
            answer.question: f"{answer.label} ({answer.score} pts)" for answer in raw_answers.values()
        }
    attributes["submission_date"] = _submitted_at(payload)

    logger.info(f"Normalized assessment submission for {contact.email} ({len(raw_answers)} answers)")
    return LeadSubmission(
        form_kind=FormKind.ASSESSMENT,
        contact=contact,
        attributes=attributes,
        raw_answers=raw_answers,
        submission_id=_submission_id(payload),
    )


NORMALIZERS = {
    FormKind.ONBOARDING: normalize_onboarding,
    FormKind.ASSESSMENT: normalize_assessment,
}


def normalize_submission(payload: Dict[str, Any], form_kind: Any = None) -> LeadSubmission:
    """Normalize with an explicit form kind, or the payload's mandatory formType."""
    payload = _ensure_object(payload)
    kind = parse_form_kind(form_kind if form_kind is not None else payload.get("formType"))
    return NORMALIZERS[kind](payload)
