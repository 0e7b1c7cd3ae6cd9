"""
CRM Module.

HubSpot client and the Contact / Deal / Ticket sync orchestrator.
"""

from .hubspot_client import CrmClient, CrmRequestError, CrmResponse, HubSpotClient
from .sync_orchestrator import CrmSyncOrchestrator, CrmSyncResult, SyncOutcome

__all__ = [
    "CrmClient",
    "CrmRequestError",
    "CrmResponse",
    "HubSpotClient",
    "CrmSyncOrchestrator",
    "CrmSyncResult",
    "SyncOutcome",
]
