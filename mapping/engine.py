"""
Reconciliation engine: semantic lead data -> CRM custom field values.

For every semantic field that applies to the submission's form, resolve the
matching CRM field in the live catalog, transform the value and emit it.
Individual fields fail in isolation; when too little lands, the whole
submission is dumped into a free-text notes field so nothing is lost.
"""
from typing import Any, Dict, List, Sequence, Set

from loguru import logger

from mapping.catalog import FIELDS_BY_KEY, NOTES_FIELD, NOTES_FIELD_NAMES, specs_for
from mapping.errors import UnsupportedValueShape
from mapping.models import (
    ExternalFieldDefinition,
    FormKind,
    LeadSubmission,
    ReconciledField,
    ReconciliationResult,
    ScoreResult,
)
from mapping.normalize import strip_namespace
from mapping.resolver import resolve, resolve_by_name
from mapping.scoring import readiness_for
from mapping.transform import transform

# Fewer reconciled fields than this triggers the notes fallback
MIN_RECONCILED_FIELDS = 3


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() != ""
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) > 0
    return True


def semantic_values(submission: LeadSubmission, score: ScoreResult) -> Dict[str, Any]:
    """Submission attributes plus the values derived from form kind and score."""
    values: Dict[str, Any] = {
        "form_type": submission.form_kind.value,
        "lead_score": score.numeric_score,
        "lead_quality": score.quality_tier.value,
    }
    if submission.form_kind == FormKind.ASSESSMENT:
        level, plan = readiness_for(score.numeric_score)
        values["assessment_score"] = score.numeric_score
        values["readiness_level"] = level
        values["recommended_plan"] = plan
    values.update(submission.attributes)
    return values


def _preview(value: str, size: int = 50) -> str:
    return value if len(value) <= size else value[:size] + "..."


def _dump_line(key: str, value: Any) -> str:
    spec = FIELDS_BY_KEY.get(key)
    label = spec.preferred_external_name if spec else key
    if spec:
        try:
            text = transform(spec, value)
        except UnsupportedValueShape:
            text = str(value)
    elif isinstance(value, (list, tuple)):
        text = ", ".join(str(item) for item in value if _present(item))
    else:
        text = str(value)
    return f"{label}: {text}"


def submission_summary(submission: LeadSubmission, score: ScoreResult) -> str:
    """Human-readable `key: value` dump of everything the submission carries."""
    contact = submission.contact
    lines = [
        f"First Name: {contact.first_name}",
        f"Last Name: {contact.last_name}",
        f"Email: {contact.email}",
    ]
    if contact.phone:
        lines.append(f"Phone: {contact.phone}")
    for key, value in semantic_values(submission, score).items():
        if _present(value):
            lines.append(_dump_line(key, value))
    return "\n".join(lines)


def _notes_fallback(submission: LeadSubmission, score: ScoreResult,
                    catalog: Sequence[ExternalFieldDefinition], used_ids: Set[str]):
    field = resolve_by_name(NOTES_FIELD_NAMES, catalog)
    if field is None:
        logger.warning("Notes fallback wanted but no Notes/Description/Additional Info field exists")
        return None
    if field.id in used_ids:
        return None

    summary = submission_summary(submission, score)[:NOTES_FIELD.limit]
    return ReconciledField(
        external_field_id=field.id,
        key=strip_namespace(field.key) if field.key else None,
        value=summary,
        semantic_key=NOTES_FIELD.semantic_key,
    )


def reconcile_submission(submission: LeadSubmission, score: ScoreResult,
                         catalog: Sequence[ExternalFieldDefinition]) -> ReconciliationResult:
    """Reconcile and report which semantic keys were unmapped or failed to transform."""
    catalog = list(catalog or [])
    values = semantic_values(submission, score)
    result = ReconciliationResult()
    used_ids: Set[str] = set()

    for spec in specs_for(submission.form_kind):
        field = resolve(spec, catalog)
        if field is None:
            result.unmapped.append(spec.semantic_key)
            continue

        value = values.get(spec.semantic_key)
        if not _present(value):
            continue
        if field.id in used_ids:
            logger.warning(f"CRM field {field.display_name} ({field.id}) already written, skipping {spec.semantic_key}")
            continue

        try:
            text = transform(spec, value)
        except UnsupportedValueShape as e:
            logger.error(f"Skipping {spec.semantic_key}: {e}")
            result.failed.append(spec.semantic_key)
            continue

        result.fields.append(ReconciledField(
            external_field_id=field.id,
            key=strip_namespace(field.key) if field.key else None,
            value=text,
            semantic_key=spec.semantic_key,
        ))
        used_ids.add(field.id)
        logger.debug(f"Mapped {spec.semantic_key} -> {field.display_name}: {_preview(text)!r}")

    if len(result.fields) < MIN_RECONCILED_FIELDS:
        logger.warning(f"Only {len(result.fields)} fields reconciled for {submission.contact.email}, "
                       f"trying notes fallback")
        notes = _notes_fallback(submission, score, catalog, used_ids)
        if notes is not None:
            result.fields.append(notes)
            result.fallback_used = True
            logger.info(f"Dumped submission into notes field {notes.external_field_id} ({len(notes.value)} chars)")

    logger.info(
        f"Reconciled {len(result.fields)} fields for {submission.form_kind.value} lead "
        f"{submission.contact.email}; unmapped={len(result.unmapped)} failed={len(result.failed)}"
    )
    return result


def reconcile(submission: LeadSubmission, score: ScoreResult,
              catalog: Sequence[ExternalFieldDefinition]) -> List[ReconciledField]:
    """Ordered custom field values for the CRM write call."""
    return reconcile_submission(submission, score, catalog).fields
