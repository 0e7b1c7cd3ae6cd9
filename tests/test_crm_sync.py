"""Tests for the HubSpot client and CRM sync orchestration."""

import asyncio
import json

import httpx
import pytest

from crm.hubspot_client import CrmRequestError, CrmResponse, HubSpotClient
from crm.sync_orchestrator import CrmSyncOrchestrator, SyncOutcome

CONTACT = {"properties": {"email": "jane@acme.com", "firstname": "Jane"}}
DEAL = {"properties": {"dealname": "web-development Project", "amount": "5000"}}
TICKET = {"properties": {"subject": "Follow-up: web-development inquiry"}}


def run_sync(client, **kwargs):
    orchestrator = CrmSyncOrchestrator(client, **kwargs)
    return asyncio.run(orchestrator.sync(CONTACT, DEAL, TICKET))


# ── Orchestrator ──────────────────────────────────────

class TestCrmSyncOrchestrator:
    def test_full_sync(self, fake_crm):
        client = fake_crm()
        result = run_sync(client)

        assert result.success
        assert result.errors == []
        assert result.outcome == SyncOutcome.SYNCED
        contact_id = result.contact["id"]

        deal = client.created("deals")[0]
        assert deal["associations"] == [{
            "to": {"id": contact_id},
            "types": [{"associationCategory": "HUBSPOT_DEFINED", "associationTypeId": 3}],
        }]
        ticket = client.created("tickets")[0]
        assert ticket["associations"][0]["types"][0]["associationTypeId"] == 16
        assert client.associations == [(result.deal["id"], contact_id)]

    def test_input_payloads_not_mutated(self, fake_crm):
        run_sync(fake_crm())
        assert "associations" not in DEAL
        assert "associations" not in TICKET

    def test_contact_failure_short_circuits(self, fake_crm):
        client = fake_crm(fail={"contacts"})
        result = run_sync(client)

        assert not result.success
        assert result.outcome == SyncOutcome.NOTHING_CREATED
        assert len(result.errors) == 1
        assert result.errors[0].startswith("Contact creation failed:")
        assert [kind for kind, _ in client.calls] == ["contacts"]

    def test_deal_failure_still_succeeds(self, fake_crm):
        result = run_sync(fake_crm(fail={"deals"}))

        assert result.success
        assert result.outcome == SyncOutcome.PARTIAL
        assert result.deal is None
        assert result.ticket is not None
        assert len(result.errors) == 1
        assert result.errors[0].startswith("Deal creation failed:")

    def test_ticket_failure_still_succeeds(self, fake_crm):
        result = run_sync(fake_crm(fail={"tickets"}))
        assert result.success
        assert result.errors == ["Ticket creation failed: HTTP 400: Property values were not valid"]

    def test_deal_and_ticket_failure(self, fake_crm):
        result = run_sync(fake_crm(fail={"deals", "tickets"}))
        assert not result.success
        assert result.outcome == SyncOutcome.CONTACT_ONLY
        assert len(result.errors) == 2

    def test_association_failure_is_a_warning(self, fake_crm):
        result = run_sync(fake_crm(fail={"associate"}))
        assert result.success
        assert result.errors == []
        assert result.warnings == ["Deal association failed: HTTP 404: Not found"]

    def test_slow_call_times_out_per_object(self, fake_crm):
        class SlowTicketClient(fake_crm):
            async def create(self, object_type, payload):
                if object_type == "tickets":
                    await asyncio.sleep(1.0)
                return await super().create(object_type, payload)

        result = run_sync(SlowTicketClient(), timeout_seconds=0.05)
        assert result.success
        assert result.errors == ["Ticket creation failed: timed out after 0.05s"]

    def test_raising_client_is_recorded(self, fake_crm):
        class BrokenDealClient(fake_crm):
            async def create(self, object_type, payload):
                if object_type == "deals":
                    raise RuntimeError("connection reset")
                return await super().create(object_type, payload)

        result = run_sync(BrokenDealClient())
        assert result.success
        assert result.errors == ["Deal creation failed: connection reset"]

    def test_contact_without_id_stops_sync(self, fake_crm):
        class NoIdContactClient(fake_crm):
            async def create(self, object_type, payload):
                if object_type == "contacts":
                    self.calls.append((object_type, payload))
                    return CrmResponse(success=True, data=None, status=201)
                return await super().create(object_type, payload)

        client = NoIdContactClient()
        result = run_sync(client)

        assert not result.success
        assert result.errors == ["Contact creation failed: no id returned"]
        assert result.outcome == SyncOutcome.CONTACT_ONLY
        assert [kind for kind, _ in client.calls] == ["contacts"]
        assert client.associations == []

    def test_success_follows_response_flags_not_bodies(self, fake_crm):
        class EmptyBodyClient(fake_crm):
            async def create(self, object_type, payload):
                response = await super().create(object_type, payload)
                if object_type == "contacts":
                    return response
                return CrmResponse(success=True, data=None, status=201)

        result = run_sync(EmptyBodyClient())

        assert result.success
        assert result.errors == []
        assert result.outcome == SyncOutcome.SYNCED

    def test_deal_and_ticket_are_created_concurrently(self, fake_crm):
        class RendezvousClient(fake_crm):
            """Deal and ticket each wait until the other has started."""

            def __init__(self):
                super().__init__()
                self.started = 0
                self.both_started = None

            async def create(self, object_type, payload):
                if object_type in ("deals", "tickets"):
                    if self.both_started is None:
                        self.both_started = asyncio.Event()
                    self.started += 1
                    if self.started == 2:
                        self.both_started.set()
                    await self.both_started.wait()
                return await super().create(object_type, payload)

        result = run_sync(RendezvousClient(), timeout_seconds=1.0)

        assert result.success
        assert result.errors == []
        assert result.outcome == SyncOutcome.SYNCED

    def test_to_dict(self, fake_crm):
        data = run_sync(fake_crm(fail={"tickets"})).to_dict()
        assert data["outcome"] == "partial"
        assert data["success"] is True
        assert data["ticket"] is None


# ── HubSpot client ────────────────────────────────────

def hubspot(handler, token="pat-test"):
    return HubSpotClient(
        access_token=token,
        base_url="https://hubspot.test",
        transport=httpx.MockTransport(handler),
    )


class TestHubSpotClient:
    def test_create_posts_payload_with_bearer_token(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={"id": "901", "properties": {}})

        response = asyncio.run(hubspot(handler).create("contacts", CONTACT))

        assert response.success
        assert response.object_id == "901"
        assert seen["method"] == "POST"
        assert seen["url"] == "https://hubspot.test/crm/v3/objects/contacts"
        assert seen["auth"] == "Bearer pat-test"
        assert seen["body"] == CONTACT

    def test_error_status_is_failure(self):
        def handler(request):
            return httpx.Response(409, json={"message": "Contact already exists"})

        response = asyncio.run(hubspot(handler).create("contacts", CONTACT))
        assert not response.success
        assert response.status == 409
        assert response.error == "HTTP 409: Contact already exists"

    def test_transport_error_is_failure(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        response = asyncio.run(hubspot(handler).create("deals", DEAL))
        assert not response.success
        assert "refused" in response.error

    def test_missing_token(self):
        def handler(request):
            raise AssertionError("no request expected")

        response = asyncio.run(hubspot(handler, token=None).create("tickets", TICKET))
        assert response == CrmResponse(success=False, error="HubSpot access token not configured")

    def test_associate_uses_default_association_endpoint(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["path"] = request.url.path
            return httpx.Response(200, json={"status": "COMPLETE"})

        response = asyncio.run(hubspot(handler).associate("55", "77"))
        assert response.success
        assert seen["method"] == "PUT"
        assert seen["path"] == "/crm/v4/objects/deals/55/associations/default/contacts/77"

    def test_unknown_object_type(self):
        with pytest.raises(CrmRequestError):
            asyncio.run(hubspot(lambda r: httpx.Response(200)).create("companies", {}))
