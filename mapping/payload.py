import re
from typing import Any, Dict, List, Optional, Sequence

from mapping.models import FormKind, LeadSubmission, ReconciledField, ScoreResult

SOURCES = {
    FormKind.ONBOARDING: "Get Started Form",
    FormKind.ASSESSMENT: "Readiness Assessment Form",
}

FORM_TAGS = {
    FormKind.ONBOARDING: "get-started-form",
    FormKind.ASSESSMENT: "assessment-form",
}

# (minimum score, tag), highest first
SCORE_BAND_TAGS = (
    (80, "lead-score-80-100"),
    (60, "lead-score-60-79"),
    (40, "lead-score-40-59"),
    (20, "lead-score-20-39"),
    (0, "lead-score-0-19"),
)


def slugify(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")


def score_band_tag(score: int) -> str:
    for minimum, tag in SCORE_BAND_TAGS:
        if score >= minimum:
            return tag
    return SCORE_BAND_TAGS[-1][1]


def build_tags(submission: LeadSubmission, score: ScoreResult) -> List[str]:
    tags = [
        "web-lead",
        f"lead-quality-{score.quality_tier.value}",
        FORM_TAGS[submission.form_kind],
        score_band_tag(score.numeric_score),
    ]
    business_type = submission.attributes.get("business_type")
    if isinstance(business_type, str) and slugify(business_type):
        tags.append(f"business-type-{slugify(business_type)}")
    return tags


def build_contact_payload(submission: LeadSubmission, score: ScoreResult,
                          custom_fields: Sequence[ReconciledField],
                          location_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Body for the CRM contact upsert.

    Contact basics always go out, even with no custom fields. Custom fields
    use the bare key and a `field_value` property; a namespaced key or a
    `value` property is silently dropped by the CRM.
    """
    contact = submission.contact
    payload: Dict[str, Any] = {
        "firstName": contact.first_name,
        "lastName": contact.last_name,
        "name": contact.full_name,
        "email": contact.email,
        "source": SOURCES[submission.form_kind],
        "tags": build_tags(submission, score),
        "customFields": [field.to_payload() for field in custom_fields],
    }
    if contact.phone:
        payload["phone"] = contact.phone
    business_name = submission.attributes.get("business_name")
    if business_name:
        payload["companyName"] = str(business_name)
    if location_id:
        payload["locationId"] = location_id
    return payload
