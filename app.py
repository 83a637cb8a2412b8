import os
import sys
import time
from typing import Dict, Any, Optional
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from loguru import logger
from langgraph.graph import StateGraph, START, END
from dotenv import load_dotenv

# Import our modules
from graph.state import LeadState
from graph.nodes import reconcile as reconcile_node
from graph.nodes.capture import capture
from graph.nodes.score import score
from graph.nodes.reconcile import reconcile
from graph.nodes.sync import sync
from mapping.catalog import SEMANTIC_FIELDS
from mapping.errors import CatalogUnavailable, InvalidSubmission
from mapping.models import FormKind, QualityTier
from mapping.resolver import missing_fields
from tools import ghl
from tools.catalog_cache import CatalogCache, fetch_catalog
from tools.idempotency import Idem, submission_key
from tools.slack import send_lead_notification, send_hot_lead_alert

VERSION = "1.0.0"

# Load environment variables
load_dotenv()

# Configure logging
logger.remove()
logger.add(sys.stderr, level=os.getenv("LOG_LEVEL", "INFO"))
logger.add("logs/app.log", rotation="1 day", retention="7 days", level="INFO")

# Initialize FastAPI app
app = FastAPI(
    title="TrueFlow Lead Intake",
    description="Form lead scoring and CRM custom field reconciliation",
    version=VERSION
)


# Build the LangGraph workflow
def build_workflow():
    """Build the lead intake workflow."""
    workflow = StateGraph(LeadState)

    # Add nodes
    workflow.add_node("capture", capture)
    workflow.add_node("scoring", score)
    workflow.add_node("reconcile", reconcile)
    workflow.add_node("sync", sync)

    # Add edges
    workflow.add_edge(START, "capture")
    workflow.add_edge("capture", "scoring")

    # Reconciliation only runs against a configured CRM
    def branch_decision(state: LeadState) -> str:
        if ghl.ghl_client.enabled:
            return "reconcile"
        logger.info("CRM disabled, skipping reconciliation and sync")
        return "skip"

    workflow.add_conditional_edges(
        "scoring",
        branch_decision,
        {
            "reconcile": "reconcile",
            "skip": END
        }
    )

    workflow.add_edge("reconcile", "sync")
    workflow.add_edge("sync", END)

    return workflow.compile()


# Initialize workflow, cache and idempotency
app_graph = build_workflow()
catalog_cache = CatalogCache()
reconcile_node.catalog_cache = catalog_cache
idem = Idem()


def _notify(result: Dict[str, Any]) -> None:
    """Slack notifications; failures are recorded and never affect the response."""
    try:
        slack_ts = send_lead_notification(result)
        if slack_ts:
            result["notifications"].append(f"slack:{slack_ts}")
        if result["score"].quality_tier == QualityTier.HOT:
            alert_ts = send_hot_lead_alert(result)
            if alert_ts:
                result["notifications"].append(f"hot_lead_slack:{alert_ts}")
    except Exception as e:
        logger.error(f"Slack notification failed: {e}")
        result.setdefault("errors", []).append(f"slack_notification_failed: {e}")


def _response(result: Dict[str, Any]) -> Dict[str, Any]:
    lead_score = result["score"]
    content = {
        "status": "success",
        "form_type": result["submission"].form_kind.value,
        "lead_score": lead_score.numeric_score,
        "lead_quality": lead_score.quality_tier.value,
        "custom_fields_used": len(result.get("custom_fields", [])),
        "unmapped": result.get("unmapped", []),
        "crm_contact_id": result.get("crm_contact_id"),
    }
    if result.get("warning"):
        content["warning"] = result["warning"]
    return content


def process_lead(payload: Any, form_kind: Optional[FormKind] = None) -> JSONResponse:
    """
    Run one submission through the workflow.

    Structurally invalid submissions get a 400; anything that goes wrong
    after capture (catalog, CRM, Slack) still returns 200 with a warning.
    """
    start_time = time.time()

    if not isinstance(payload, dict):
        return JSONResponse(status_code=400, content={"status": "error", "message": "Submission body must be a JSON object"})

    form_type = form_kind.value if form_kind else str(payload.get("formType") or "")
    key = submission_key(payload, form_type)
    if key and not idem.check_and_set(key):
        logger.warning(f"Duplicate submission ignored: {key}")
        return JSONResponse(
            status_code=200,
            content={"status": "duplicate_ignored", "message": "Submission already processed"}
        )

    initial_state = {
        "raw": payload,
        "errors": [],
        "notifications": [],
        "unmapped": [],
        "custom_fields": [],
        "crm_contact_id": None,
        "warning": None,
    }
    if form_kind:
        initial_state["form_kind"] = form_kind.value
    if not ghl.ghl_client.enabled:
        initial_state["catalog_status"] = "disabled"
        initial_state["warning"] = "CRM disabled; lead scored but not synced"

    try:
        result = app_graph.invoke(initial_state)
    except InvalidSubmission as e:
        logger.warning(f"Rejected submission: {e}")
        if key:
            idem.clear_key(key)
        return JSONResponse(status_code=400, content={"status": "error", "message": str(e)})
    except Exception:
        # Allow a retry
        if key:
            idem.clear_key(key)
        raise

    _notify(result)

    processing_time = time.time() - start_time
    logger.info(
        f"Lead processing completed in {processing_time:.2f}s: {result['submission'].contact.email} "
        f"({len(result.get('errors', []))} errors)"
    )
    return JSONResponse(status_code=200, content=_response(result))


async def _read_json(req: Request) -> Any:
    try:
        return await req.json()
    except ValueError:
        return None


@app.post("/leads/onboarding")
async def ingest_onboarding(req: Request):
    """Get-started wizard submission."""
    return await run_in_threadpool(process_lead, await _read_json(req), FormKind.ONBOARDING)


@app.post("/leads/assessment")
async def ingest_assessment(req: Request):
    """Readiness assessment submission."""
    return await run_in_threadpool(process_lead, await _read_json(req), FormKind.ASSESSMENT)


@app.post("/webhooks/lead")
async def ingest_lead(req: Request):
    """
    Generic webhook entry point.

    The payload must name its form explicitly:
    {
        "formType": "assessment",
        "firstName": "Jane",
        "lastName": "Doe",
        "email": "jane@example.com",
        "answers": {"crm-usage": "advanced-crm", ...}
    }
    """
    return await run_in_threadpool(process_lead, await _read_json(req))


@app.get("/health")
def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": time.time(),
        "version": VERSION,
        "services": {
            "redis": "connected" if idem.r else "disconnected",
            "crm": "enabled" if ghl.ghl_client.enabled else "disabled",
            "workflow": "ready"
        }
    }


@app.get("/admin/catalog")
def get_catalog():
    """Live CRM field catalog and which semantic fields it cannot serve."""
    try:
        catalog = fetch_catalog(catalog_cache)
    except CatalogUnavailable as e:
        logger.error(f"Catalog unavailable for admin view: {e}")
        return JSONResponse(status_code=503, content={"status": "unavailable", "message": str(e)})

    missing = missing_fields(catalog)
    return {
        "status": "ok",
        "location_id": ghl.ghl_client.location_id,
        "field_count": len(catalog),
        "fields": [field.model_dump(mode="json") for field in catalog],
        "semantic_fields": len(SEMANTIC_FIELDS),
        "missing_fields": missing,
    }


@app.post("/admin/catalog/provision")
def provision_catalog():
    """Create a CRM custom field for every semantic field the live catalog cannot serve."""
    try:
        catalog = fetch_catalog()
    except CatalogUnavailable as e:
        logger.error(f"Catalog unavailable for provisioning: {e}")
        return JSONResponse(status_code=503, content={"status": "unavailable", "message": str(e)})

    missing = set(missing_fields(catalog))
    created, failed = [], []
    for spec in SEMANTIC_FIELDS:
        if spec.semantic_key not in missing:
            continue
        options = list(dict.fromkeys(spec.value_transform.values())) if spec.value_transform else None
        field = ghl.create_custom_field(spec.preferred_external_name, spec.semantic_key,
                                        spec.data_type.value, options)
        if field is None:
            failed.append(spec.semantic_key)
        else:
            created.append({"semantic_key": spec.semantic_key, "id": field.id, "name": field.display_name})

    catalog_cache.clear(ghl.ghl_client.location_id or "")
    logger.info(f"Provisioned {len(created)} custom fields, {len(failed)} failed")
    return {
        "status": "ok" if not failed else "partial",
        "created": created,
        "failed": failed,
    }


# Error handlers
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={"status": "error", "message": "Internal server error"}
    )


if __name__ == "__main__":
    import uvicorn

    # Create logs directory if it doesn't exist
    os.makedirs("logs", exist_ok=True)

    logger.info("Starting TrueFlow Lead Intake")

    uvicorn.run(
        "app:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
