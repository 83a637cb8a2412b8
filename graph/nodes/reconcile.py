from typing import Optional

from graph.state import LeadState
from loguru import logger

from mapping.engine import reconcile_submission
from mapping.errors import CatalogUnavailable
from mapping.resolver import missing_fields
from tools.catalog_cache import CatalogCache, fetch_catalog

# Set by the app at startup; None means every reconciliation fetches live
catalog_cache: Optional[CatalogCache] = None


def reconcile(state: LeadState) -> LeadState:
    """Fetch the live field catalog and map the submission onto it.

    A catalog that cannot be read degrades to no custom fields; the contact
    basics are still synced downstream.
    """
    submission = state["submission"]
    logger.info(f"Starting reconciliation for {submission.contact.email}")

    try:
        catalog = fetch_catalog(catalog_cache)
        state["catalog_status"] = "ok"
    except CatalogUnavailable as e:
        error_msg = f"catalog_unavailable: {e}"
        logger.error(error_msg)
        state.setdefault("errors", []).append(error_msg)
        state["catalog_status"] = "unavailable"
        state["warning"] = "CRM field catalog unavailable; contact synced without custom fields"
        catalog = []

    if state["catalog_status"] == "ok":
        if not catalog:
            logger.warning("CRM field catalog is empty")
        missing = missing_fields(catalog)
        if missing:
            logger.warning(f"{len(missing)} semantic fields have no CRM field: {', '.join(missing)}")

    result = reconcile_submission(submission, state["score"], catalog)
    state["custom_fields"] = result.fields
    state["unmapped"] = result.unmapped
    state["failed"] = result.failed
    state["fallback_used"] = result.fallback_used
    if result.failed:
        state.setdefault("errors", []).extend(f"transform_failed: {key}" for key in result.failed)

    return state
