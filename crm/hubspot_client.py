"""
HubSpot CRM client.

Thin async wrapper over the HubSpot v3 object API and the v4 default
association API. Failures come back as CrmResponse values, not exceptions.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)

OBJECT_TYPES = ("contacts", "deals", "tickets")


class CrmRequestError(Exception):
    """Raised for requests the client refuses to send."""


@dataclass
class CrmResponse:
    """Result of a single CRM call."""
    success: bool
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    status: Optional[int] = None

    @property
    def object_id(self) -> Optional[str]:
        if self.data and self.data.get("id") is not None:
            return str(self.data["id"])
        return None


class CrmClient(ABC):
    """Interface used by the sync orchestrator."""

    @abstractmethod
    async def create(self, object_type: str, payload: Dict[str, Any]) -> CrmResponse:
        """Create one CRM object."""

    @abstractmethod
    async def associate(self, deal_id: str, contact_id: str) -> CrmResponse:
        """Link a deal to a contact."""


class HubSpotClient(CrmClient):
    """
    HubSpot private-app client.

    Uses bearer token authentication. Each call opens a short-lived
    httpx.AsyncClient bounded by ``timeout_seconds``.
    """

    def __init__(
        self,
        access_token: Optional[str],
        base_url: str = "https://api.hubapi.com",
        timeout_seconds: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            access_token: HubSpot private app token
            base_url: API root
            timeout_seconds: Per-request timeout
            transport: Optional httpx transport (used by tests)
        """
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }

    async def create(self, object_type: str, payload: Dict[str, Any]) -> CrmResponse:
        """
        Create a contact, deal or ticket.

        Args:
            object_type: One of contacts, deals, tickets
            payload: ``{"properties": {...}}`` with optional ``associations``

        Returns:
            CrmResponse
        """
        if object_type not in OBJECT_TYPES:
            raise CrmRequestError(f"Unsupported CRM object type: {object_type}")

        url = f"{self.base_url}/crm/v3/objects/{object_type}"
        return await self._send("POST", url, payload)

    async def associate(self, deal_id: str, contact_id: str) -> CrmResponse:
        url = f"{self.base_url}/crm/v4/objects/deals/{deal_id}/associations/default/contacts/{contact_id}"
        return await self._send("PUT", url)

    async def _send(self, method: str, url: str, payload: Optional[Dict[str, Any]] = None) -> CrmResponse:
        if not self.access_token:
            return CrmResponse(success=False, error="HubSpot access token not configured")

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout_seconds) as client:
                response = await client.request(method, url, json=payload, headers=self._headers())
        except httpx.TimeoutException:
            logger.warning(f"HubSpot {method} {url} timed out")
            return CrmResponse(success=False, error=f"timed out after {self.timeout_seconds}s")
        except httpx.HTTPError as e:
            logger.warning(f"HubSpot {method} {url} failed: {e}")
            return CrmResponse(success=False, error=str(e))

        data = self._json(response)
        if response.status_code in (200, 201, 202, 204):
            return CrmResponse(success=True, data=data, status=response.status_code)

        message = (data or {}).get("message") or response.text[:500]
        logger.warning(f"HubSpot {method} {url} returned {response.status_code}: {message}")
        return CrmResponse(
            success=False,
            data=data,
            error=f"HTTP {response.status_code}: {message}",
            status=response.status_code,
        )

    @staticmethod
    def _json(response: httpx.Response) -> Optional[Dict[str, Any]]:
        if not response.content:
            return None
        try:
            data = response.json()
        except ValueError:
            return None
        return data if isinstance(data, dict) else None
