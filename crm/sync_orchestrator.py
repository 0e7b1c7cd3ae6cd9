"""
CRM sync orchestration.

Creates the Contact first, then the Deal and Ticket concurrently with
associations back to the Contact.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .hubspot_client import CrmClient, CrmResponse

logger = logging.getLogger(__name__)

# HubSpot-defined association type ids
DEAL_TO_CONTACT = 3
TICKET_TO_CONTACT = 16


class SyncOutcome(Enum):
    """How much of a lead reached the CRM."""
    NOTHING_CREATED = "nothing_created"
    CONTACT_ONLY = "contact_only"
    PARTIAL = "partial"
    SYNCED = "synced"


@dataclass
class CrmSyncResult:
    """Per-object results of one lead sync."""
    contact: Optional[Dict[str, Any]] = None
    deal: Optional[Dict[str, Any]] = None
    ticket: Optional[Dict[str, Any]] = None
    success: bool = False
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def outcome(self) -> SyncOutcome:
        if self.contact is None:
            return SyncOutcome.NOTHING_CREATED
        if self.deal is not None and self.ticket is not None:
            return SyncOutcome.SYNCED
        if self.deal is not None or self.ticket is not None:
            return SyncOutcome.PARTIAL
        return SyncOutcome.CONTACT_ONLY

    def to_dict(self) -> Dict[str, Any]:
        return {
            "contact": self.contact,
            "deal": self.deal,
            "ticket": self.ticket,
            "success": self.success,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "outcome": self.outcome.value,
        }


def with_contact_association(payload: Dict[str, Any], contact_id: str, type_id: int) -> Dict[str, Any]:
    """Copy of a create payload with an association to the contact."""
    return {
        **payload,
        "associations": [{
            "to": {"id": contact_id},
            "types": [{"associationCategory": "HUBSPOT_DEFINED", "associationTypeId": type_id}],
        }],
    }


class CrmSyncOrchestrator:
    """
    Writes one lead to the CRM.

    Each call is bounded by ``timeout_seconds``; a timeout or exception
    is recorded as that object's error.
    """

    def __init__(self, client: CrmClient, timeout_seconds: float = 15.0, associate_deals: bool = True):
        self.client = client
        self.timeout_seconds = timeout_seconds
        self.associate_deals = associate_deals

    async def sync(
        self,
        contact: Dict[str, Any],
        deal: Dict[str, Any],
        ticket: Dict[str, Any],
    ) -> CrmSyncResult:
        """
        Create Contact, then Deal and Ticket.

        Args:
            contact: Contact create payload
            deal: Deal create payload
            ticket: Ticket create payload

        Returns:
            CrmSyncResult; ``success`` requires the Contact and at least
            one of Deal / Ticket
        """
        result = CrmSyncResult()

        contact_response = await self._call(self.client.create("contacts", contact))
        if not contact_response.success:
            result.errors.append(f"Contact creation failed: {contact_response.error}")
            logger.warning(result.errors[-1])
            return result

        result.contact = contact_response.data or {}
        contact_id = contact_response.object_id
        if contact_id is None:
            result.errors.append("Contact creation failed: no id returned")
            logger.warning(result.errors[-1])
            return result

        deal_response, ticket_response = await asyncio.gather(
            self._call(self.client.create("deals", with_contact_association(deal, contact_id, DEAL_TO_CONTACT))),
            self._call(self.client.create("tickets", with_contact_association(ticket, contact_id, TICKET_TO_CONTACT))),
        )

        if deal_response.success:
            result.deal = deal_response.data or {}
        else:
            result.errors.append(f"Deal creation failed: {deal_response.error}")

        if ticket_response.success:
            result.ticket = ticket_response.data or {}
        else:
            result.errors.append(f"Ticket creation failed: {ticket_response.error}")

        if self.associate_deals and deal_response.success and deal_response.object_id:
            link = await self._call(self.client.associate(deal_response.object_id, contact_id))
            if not link.success:
                result.warnings.append(f"Deal association failed: {link.error}")

        result.success = deal_response.success or ticket_response.success

        for error in result.errors:
            logger.warning(error)
        logger.info(f"CRM sync finished: {result.outcome.value} (contact {contact_id})")
        return result

    async def _call(self, request) -> CrmResponse:
        try:
            return await asyncio.wait_for(request, timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            return CrmResponse(success=False, error=f"timed out after {self.timeout_seconds}s")
        except Exception as e:
            return CrmResponse(success=False, error=str(e))
