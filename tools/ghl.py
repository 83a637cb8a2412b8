import os
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger
from pydantic import ValidationError

from mapping.errors import CatalogUnavailable
from mapping.models import ExternalFieldDefinition

DEFAULT_API_BASE = "https://services.leadconnectorhq.com"
DEFAULT_API_VERSION = "2021-07-28"
DEFAULT_TIMEOUT = 10.0


def _configured(value: Optional[str]) -> bool:
    return bool(value) and "your_" not in value


class GHLClient:
    """GoHighLevel CRM client: custom field catalog reads, field provisioning and contact upserts."""

    def __init__(self, access_token: str = None, location_id: str = None,
                 timeout: float = None, transport: httpx.BaseTransport = None):
        # Unset arguments are read from the environment on use, so .env loading order does not matter
        self._access_token = access_token
        self._location_id = location_id
        self._timeout = timeout
        self.transport = transport

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token if self._access_token is not None else os.getenv("GHL_ACCESS_TOKEN")

    @property
    def location_id(self) -> Optional[str]:
        return self._location_id if self._location_id is not None else os.getenv("GHL_LOCATION_ID")

    @property
    def timeout(self) -> float:
        return self._timeout if self._timeout is not None else float(os.getenv("GHL_TIMEOUT", DEFAULT_TIMEOUT))

    @property
    def base_url(self) -> str:
        return os.getenv("GHL_API_BASE", DEFAULT_API_BASE).rstrip("/")

    @property
    def api_version(self) -> str:
        return os.getenv("GHL_API_VERSION", DEFAULT_API_VERSION)

    @property
    def enabled(self) -> bool:
        if os.getenv("GHL_ENABLED", "true").lower() == "false":
            return False
        return _configured(self.access_token) and _configured(self.location_id)

    def _get_headers(self) -> Dict[str, str]:
        """Get headers for GoHighLevel API requests."""
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Version": self.api_version,
        }

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self.timeout, transport=self.transport)

    def fetch_custom_fields(self) -> List[ExternalFieldDefinition]:
        """
        Fetch the contact custom field catalog for the configured location.

        Performs exactly one request. Every failure (not configured, timeout,
        transport error, non-2xx, unreadable body) raises CatalogUnavailable.
        Entries that fail validation are skipped, unknown data types become TEXT.
        """
        if not self.enabled:
            raise CatalogUnavailable("GoHighLevel credentials not configured")

        url = f"{self.base_url}/locations/{self.location_id}/customFields"
        try:
            with self._client() as client:
                response = client.get(url, params={"model": "contact"}, headers=self._get_headers())
        except httpx.TimeoutException as e:
            logger.error(f"Custom field fetch timed out after {self.timeout}s: {e}")
            raise CatalogUnavailable(f"timeout after {self.timeout}s")
        except httpx.HTTPError as e:
            logger.error(f"Custom field fetch failed: {e}")
            raise CatalogUnavailable(f"transport error: {e}")

        if response.status_code in (401, 403):
            logger.error(f"Custom field fetch rejected: {response.status_code}")
            raise CatalogUnavailable("not authorized to read custom fields", response.status_code)
        if response.is_error:
            logger.error(f"Custom field fetch failed: {response.status_code}")
            raise CatalogUnavailable(f"unexpected status {response.status_code}", response.status_code)

        try:
            data = response.json()
        except ValueError:
            raise CatalogUnavailable("custom field response is not JSON", response.status_code)
        if not isinstance(data, dict):
            raise CatalogUnavailable("custom field response is not an object", response.status_code)

        fields = []
        for raw in data.get("customFields") or []:
            try:
                fields.append(ExternalFieldDefinition.model_validate(raw))
            except ValidationError as e:
                logger.warning(f"Skipping malformed custom field {raw!r}: {e.error_count()} errors")

        logger.info(f"Fetched {len(fields)} custom fields for location {self.location_id}")
        return fields

    def create_custom_field(self, name: str, field_key: str, data_type: str = "TEXT",
                            options: Optional[List[str]] = None) -> Optional[ExternalFieldDefinition]:
        """
        Create a contact custom field in the configured location.

        Returns the created definition, or None if the CRM refused it.
        """
        if not self.enabled:
            logger.warning(f"Cannot create custom field {name}: GoHighLevel not configured")
            return None

        body: Dict[str, Any] = {
            "name": name,
            "fieldKey": field_key,
            "dataType": data_type,
            "placeholder": name,
            "model": "contact",
        }
        if options:
            body["options"] = list(options)

        try:
            with self._client() as client:
                response = client.post(f"{self.base_url}/locations/{self.location_id}/customFields",
                                       headers=self._get_headers(), json=body)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Failed to create custom field {name}: {e.response.status_code} {e.response.text[:200]}")
            return None
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Error creating custom field {name}: {e}")
            return None

        raw = data.get("customField") if isinstance(data, dict) else None
        try:
            field = ExternalFieldDefinition.model_validate(raw or {})
        except ValidationError:
            logger.warning(f"Custom field {name} created but the response carried no definition")
            return None
        logger.info(f"Created custom field {field.display_name} ({field.id})")
        return field

    def upsert_contact(self, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Create or update a contact.

        Returns {"id", "action"} or None if the CRM rejected the write.
        """
        if not self.enabled:
            logger.info("Using mock contact upsert")
            return self._mock_contact_upsert(payload)

        body = dict(payload)
        body.setdefault("locationId", self.location_id)
        try:
            with self._client() as client:
                response = client.post(f"{self.base_url}/contacts/upsert",
                                       headers=self._get_headers(), json=body)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Contact upsert rejected: {e.response.status_code} {e.response.text[:200]}")
            return None
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Contact upsert failed: {e}")
            return None

        if not isinstance(data, dict):
            logger.error("Contact upsert returned a non-object body")
            return None
        contact = data.get("contact") or {}
        contact_id = contact.get("id") or data.get("id")
        action = "created" if data.get("new") else "updated"
        logger.info(f"Contact {action}: {contact_id}")
        return {"id": contact_id, "action": action}

    def _mock_contact_upsert(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Mock contact upsert for local runs without credentials."""
        return {"id": "mock_contact_12345", "action": "created"}


# Global GoHighLevel client instance
ghl_client = GHLClient()


def fetch_custom_fields() -> List[ExternalFieldDefinition]:
    """Fetch the catalog using the global GoHighLevel client."""
    return ghl_client.fetch_custom_fields()


def upsert_contact(payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Upsert a contact using the global GoHighLevel client."""
    return ghl_client.upsert_contact(payload)


def create_custom_field(name: str, field_key: str, data_type: str = "TEXT",
                        options: Optional[List[str]] = None) -> Optional[ExternalFieldDefinition]:
    """Create a custom field using the global GoHighLevel client."""
    return ghl_client.create_custom_field(name, field_key, data_type, options)
