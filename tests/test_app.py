import asyncio
import json
import time
from unittest.mock import MagicMock, PropertyMock, patch

import httpx

import pytest
from fastapi.testclient import TestClient

import app as app_module
from mapping.catalog import SEMANTIC_FIELDS
from mapping.errors import CatalogUnavailable
from mapping.resolver import missing_fields
from tools.ghl import GHLClient


@pytest.fixture
def client():
    return TestClient(app_module.app)


@pytest.fixture(autouse=True)
def fresh_idempotency():
    with patch("redis.from_url", side_effect=ConnectionError("no redis")):
        idem = app_module.Idem()
    with patch.object(app_module, "idem", idem):
        yield


@pytest.fixture
def crm_enabled():
    with patch.object(GHLClient, "enabled", new_callable=PropertyMock, return_value=True):
        yield


class TestLeadEndpoints:

    def test_onboarding_crm_disabled(self, client, onboarding_payload):
        with patch.object(GHLClient, "enabled", new_callable=PropertyMock, return_value=False):
            response = client.post("/leads/onboarding", json=onboarding_payload)

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "success"
        assert body["form_type"] == "get-started"
        assert body["lead_score"] == 100
        assert body["lead_quality"] == "hot"
        assert body["custom_fields_used"] == 0
        assert body["crm_contact_id"] is None
        assert "CRM disabled" in body["warning"]

    def test_assessment_synced(self, client, assessment_payload, full_catalog, crm_enabled):
        with patch("graph.nodes.reconcile.fetch_catalog", return_value=full_catalog), \
             patch("tools.ghl.upsert_contact", return_value={"id": "c_7", "action": "created"}) as mock_upsert:
            response = client.post("/leads/assessment", json=assessment_payload)

        assert response.status_code == 200
        body = response.json()
        assert body["form_type"] == "assessment"
        assert body["lead_score"] == 25
        assert body["lead_quality"] == "cold"
        assert body["crm_contact_id"] == "c_7"
        assert body["custom_fields_used"] >= 3
        assert "warning" not in body
        assert mock_upsert.call_args.args[0]["source"] == "Readiness Assessment Form"

    def test_catalog_failure_still_accepted(self, client, onboarding_payload, crm_enabled):
        with patch("graph.nodes.reconcile.fetch_catalog", side_effect=CatalogUnavailable("down")), \
             patch("tools.ghl.upsert_contact", return_value={"id": "c_8", "action": "updated"}) as mock_upsert:
            response = client.post("/leads/onboarding", json=onboarding_payload)

        assert response.status_code == 200
        body = response.json()
        assert body["custom_fields_used"] == 0
        assert body["crm_contact_id"] == "c_8"
        assert "unavailable" in body["warning"]
        assert mock_upsert.call_args.args[0]["customFields"] == []

    def test_missing_contact_fields(self, client):
        response = client.post("/leads/onboarding", json={"email": "a@b.co"})
        assert response.status_code == 400
        assert "firstName" in response.json()["message"]

    def test_non_object_body(self, client):
        response = client.post("/leads/assessment", json=["a", "b"])
        assert response.status_code == 400

    def test_webhook_requires_form_type(self, client, onboarding_payload):
        response = client.post("/webhooks/lead", json=onboarding_payload)
        assert response.status_code == 400

    def test_webhook_with_form_type(self, client, onboarding_payload):
        onboarding_payload["formType"] = "onboarding"
        with patch.object(GHLClient, "enabled", new_callable=PropertyMock, return_value=False):
            response = client.post("/webhooks/lead", json=onboarding_payload)
        assert response.status_code == 200
        assert response.json()["form_type"] == "get-started"

    def test_duplicate_ignored(self, client, onboarding_payload):
        onboarding_payload["submissionId"] = "sub_1"
        with patch.object(GHLClient, "enabled", new_callable=PropertyMock, return_value=False):
            first = client.post("/leads/onboarding", json=onboarding_payload)
            second = client.post("/leads/onboarding", json=onboarding_payload)

        assert first.json()["status"] == "success"
        assert second.json()["status"] == "duplicate_ignored"

    def test_hot_lead_alert(self, client, onboarding_payload):
        with patch.object(GHLClient, "enabled", new_callable=PropertyMock, return_value=False), \
             patch.object(app_module, "send_lead_notification", return_value="ts1"), \
             patch.object(app_module, "send_hot_lead_alert", return_value="ts2") as mock_alert:
            response = client.post("/leads/onboarding", json=onboarding_payload)

        assert response.status_code == 200
        assert mock_alert.call_count == 1

    def test_slack_failure_does_not_fail_request(self, client, onboarding_payload):
        with patch.object(GHLClient, "enabled", new_callable=PropertyMock, return_value=False), \
             patch.object(app_module, "send_lead_notification", side_effect=RuntimeError("slack down")):
            response = client.post("/leads/onboarding", json=onboarding_payload)
        assert response.status_code == 200


class TestAdminEndpoints:

    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["services"]["redis"] == "disconnected"

    def test_catalog(self, client, full_catalog):
        with patch.object(app_module, "fetch_catalog", return_value=full_catalog):
            response = client.get("/admin/catalog")

        assert response.status_code == 200
        body = response.json()
        assert body["field_count"] == len(full_catalog)
        assert "biggest_challenge" in body["missing_fields"]
        assert "business_type" not in body["missing_fields"]

    def test_catalog_unavailable(self, client):
        with patch.object(app_module, "fetch_catalog", side_effect=CatalogUnavailable("not authorized", 401)):
            response = client.get("/admin/catalog")
        assert response.status_code == 503
        assert response.json()["status"] == "unavailable"


class TestConcurrentSubmissions:

    def test_slow_catalog_does_not_serialize_requests(self, onboarding_payload, crm_enabled):
        def slow_fetch(cache=None):
            time.sleep(0.5)
            return []

        async def submit_all():
            transport = httpx.ASGITransport(app=app_module.app)
            async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
                payloads = [dict(onboarding_payload, submissionId=f"sub_{i}") for i in range(3)]
                return await asyncio.gather(*(client.post("/leads/onboarding", json=p) for p in payloads))

        with patch("graph.nodes.reconcile.fetch_catalog", side_effect=slow_fetch), \
             patch("tools.ghl.upsert_contact", return_value={"id": "c_1", "action": "created"}):
            started = time.perf_counter()
            responses = asyncio.run(submit_all())
            elapsed = time.perf_counter() - started

        assert [r.status_code for r in responses] == [200, 200, 200]
        assert elapsed < 1.2, f"submissions ran one after another ({elapsed:.2f}s)"


class TestFailedSubmissionRetry:

    def test_unexpected_error_releases_key(self, onboarding_payload):
        onboarding_payload["submissionId"] = "sub_retry"
        broken_graph = MagicMock()
        broken_graph.invoke.side_effect = RuntimeError("graph exploded")

        client = TestClient(app_module.app, raise_server_exceptions=False)
        with patch.object(app_module, "app_graph", broken_graph):
            first = client.post("/leads/onboarding", json=onboarding_payload)
        assert first.status_code == 500

        with patch.object(GHLClient, "enabled", new_callable=PropertyMock, return_value=False):
            retry = client.post("/leads/onboarding", json=onboarding_payload)
        assert retry.status_code == 200
        assert retry.json()["status"] == "success"


class TestCatalogProvisioning:

    def crm(self, existing):
        created = []

        def handler(request):
            if request.method == "GET":
                return httpx.Response(200, json={"customFields": existing})
            body = json.loads(request.content)
            created.append(body)
            return httpx.Response(201, json={"customField": {
                "id": f"new_{body['fieldKey']}",
                "name": body["name"],
                "fieldKey": f"contact.{body['fieldKey']}",
                "dataType": body["dataType"],
            }})

        client = GHLClient(access_token="pit-test", location_id="loc_1",
                           transport=httpx.MockTransport(handler))
        return client, created

    def test_creates_every_missing_field(self, client, full_catalog):
        existing = [field.model_dump(mode="json", by_alias=True) for field in full_catalog]
        crm, created = self.crm(existing)
        expected = missing_fields(full_catalog)

        with patch("tools.ghl.ghl_client", crm), \
             patch.object(app_module.catalog_cache, "clear") as mock_clear:
            response = client.post("/admin/catalog/provision")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert [item["semantic_key"] for item in body["created"]] == expected
        assert [c["fieldKey"] for c in created] == expected
        mock_clear.assert_called_once_with("loc_1")

        by_key = {c["fieldKey"]: c for c in created}
        assert by_key["biggest_challenge"]["dataType"] == "LARGE_TEXT"
        assert "Spreadsheets or manual tracking" in by_key["crm_usage"]["options"]

    def test_complete_catalog_creates_nothing(self, client):
        existing = [
            {"id": spec.semantic_key, "name": spec.preferred_external_name, "fieldKey": f"contact.{spec.semantic_key}"}
            for spec in SEMANTIC_FIELDS
        ]
        crm, created = self.crm(existing)

        with patch("tools.ghl.ghl_client", crm):
            response = client.post("/admin/catalog/provision")

        assert response.json()["created"] == []
        assert created == []

    def test_unavailable_catalog(self, client):
        with patch.object(app_module, "fetch_catalog", side_effect=CatalogUnavailable("down")):
            response = client.post("/admin/catalog/provision")
        assert response.status_code == 503
