from typing import Iterable, List, Optional, Sequence, Tuple

from loguru import logger

from mapping.catalog import SEMANTIC_FIELDS
from mapping.models import ExternalFieldDefinition, SemanticFieldSpec
from mapping.normalize import normalize_field_name, strip_namespace


def _match_by_key(keys: Sequence[str], catalog: Sequence[ExternalFieldDefinition]) -> Optional[ExternalFieldDefinition]:
    for key in keys:
        for definition in catalog:
            if definition.key and strip_namespace(definition.key) == key:
                return definition
    return None


def _match_by_normalized_name(names: Sequence[str], catalog: Sequence[ExternalFieldDefinition]) -> Optional[ExternalFieldDefinition]:
    for name in names:
        wanted = normalize_field_name(name)
        if not wanted:
            continue
        for definition in catalog:
            if normalize_field_name(definition.display_name) == wanted:
                return definition
    return None


def _match_by_casefold_name(names: Sequence[str], catalog: Sequence[ExternalFieldDefinition]) -> Optional[ExternalFieldDefinition]:
    for name in names:
        wanted = name.strip().casefold()
        if not wanted:
            continue
        for definition in catalog:
            if definition.display_name.strip().casefold() == wanted:
                return definition
    return None


def _find(spec: SemanticFieldSpec, catalog: Sequence[ExternalFieldDefinition]) -> Tuple[Optional[ExternalFieldDefinition], str]:
    keys = (spec.semantic_key,) + tuple(spec.key_aliases)
    names = (spec.preferred_external_name,) + tuple(spec.name_aliases)

    field = _match_by_key(keys, catalog)
    if field:
        return field, "key"
    field = _match_by_normalized_name(names, catalog)
    if field:
        return field, "normalized name"
    field = _match_by_casefold_name(names, catalog)
    if field:
        return field, "case-insensitive name"
    return None, ""


def resolve(spec: SemanticFieldSpec, catalog: Sequence[ExternalFieldDefinition]) -> Optional[ExternalFieldDefinition]:
    """
    Find the external field a semantic field should be written to.

    Strategies, first match wins:
      1. bare field key (namespace stripped) equals the semantic key or a key alias
      2. normalized display name equals the preferred name or a name alias
      3. case-insensitive display name equality

    Partial or substring matches are never accepted. Returns None when
    nothing matches; that is an expected outcome, logged as a warning.
    """
    field, strategy = _find(spec, catalog)
    if field:
        logger.debug(f"Resolved {spec.semantic_key} by {strategy} -> {field.display_name} ({field.id})")
        return field

    logger.warning(
        f"No CRM field for {spec.semantic_key}: wanted {spec.preferred_external_name!r} "
        f"(normalized {normalize_field_name(spec.preferred_external_name)!r})"
    )
    return None


def resolve_by_name(names: Sequence[str], catalog: Sequence[ExternalFieldDefinition]) -> Optional[ExternalFieldDefinition]:
    """Find a field by display name only, trying each name in order."""
    for name in names:
        field = _match_by_normalized_name([name], catalog) or _match_by_casefold_name([name], catalog)
        if field:
            return field
    return None


def missing_fields(catalog: Sequence[ExternalFieldDefinition],
                   specs: Iterable[SemanticFieldSpec] = None) -> List[str]:
    """Semantic keys that cannot be resolved against this catalog."""
    specs = SEMANTIC_FIELDS if specs is None else specs
    return [spec.semantic_key for spec in specs if _find(spec, catalog)[0] is None]
