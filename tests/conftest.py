"""Shared fixtures for chat lead pipeline tests."""

import itertools
import os

import pytest
from fastapi.testclient import TestClient

# Ensure tests never reach real services
os.environ.setdefault("REPLY_PROVIDER", "rag_api")
os.environ.setdefault("RAG_API_URL", "http://rag.test")
os.environ.setdefault("ENABLE_LLM_EXTRACTION", "false")

from crm.hubspot_client import CrmClient, CrmResponse
from crm.sync_orchestrator import CrmSyncOrchestrator
from lead_scoring.entity_extractor import HeuristicExtractor
from llm.orchestrator import ChatPipeline
from llm.reply_generator import GeneratedReply, ReplyGenerationError, ReplyGenerator
from protection.gate import ProtectionConfig, ProtectionGate


class FakeClock:
    """Controllable replacement for time.time."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeReplyGenerator(ReplyGenerator):
    def __init__(self, text="Thanks for reaching out! How can we help?", structured_info=None):
        self.text = text
        self.structured_info = structured_info
        self.calls = []

    async def generate(self, message, history=(), user_id=None):
        self.calls.append((message, list(history), user_id))
        return GeneratedReply(text=self.text, structured_info=self.structured_info, source="fake")


class FailingReplyGenerator(ReplyGenerator):
    async def generate(self, message, history=(), user_id=None):
        raise ReplyGenerationError("reply service down", status=503)


class FakeCrmClient(CrmClient):
    """In-memory CRM. Object types listed in ``fail`` return errors."""

    def __init__(self, fail=()):
        self.fail = set(fail)
        self.calls = []
        self.associations = []
        self._ids = itertools.count(101)

    async def create(self, object_type, payload):
        self.calls.append((object_type, payload))
        if object_type in self.fail:
            return CrmResponse(success=False, error="HTTP 400: Property values were not valid", status=400)
        return CrmResponse(
            success=True,
            data={"id": str(next(self._ids)), "properties": payload["properties"]},
            status=201,
        )

    async def associate(self, deal_id, contact_id):
        self.associations.append((deal_id, contact_id))
        if "associate" in self.fail:
            return CrmResponse(success=False, error="HTTP 404: Not found", status=404)
        return CrmResponse(success=True, status=200)

    def created(self, object_type):
        return [payload for kind, payload in self.calls if kind == object_type]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def gate(clock):
    """Gate with every layer off (the default configuration)."""
    return ProtectionGate(ProtectionConfig(), clock=clock)


@pytest.fixture
def reply_generator():
    return FakeReplyGenerator()


@pytest.fixture
def failing_reply_generator():
    return FailingReplyGenerator()


@pytest.fixture
def fake_crm():
    """The in-memory CRM client class, for tests that configure or subclass it."""
    return FakeCrmClient


@pytest.fixture
def crm_client():
    return FakeCrmClient()


@pytest.fixture
def extractor():
    return HeuristicExtractor(ignored_names=["Jarvis"])


@pytest.fixture
def pipeline(reply_generator, extractor, gate, crm_client):
    return ChatPipeline(
        reply_generator=reply_generator,
        extractor=extractor,
        gate=gate,
        crm_sync=CrmSyncOrchestrator(crm_client, timeout_seconds=2.0),
    )


@pytest.fixture
def services(pipeline, gate):
    from api.services import Services
    from config.settings import get_settings

    container = Services()
    container.settings = get_settings()
    container.gate = gate
    container.extractor = pipeline.extractor
    container.reply_generator = pipeline.reply_generator
    container.crm_sync = pipeline.crm_sync
    container.pipeline = pipeline
    container._initialized = True
    return container


@pytest.fixture
def client(services, monkeypatch):
    """FastAPI test client wired to the fake services."""
    import api.services
    from api.main import app

    monkeypatch.setattr(api.services, "_services", services)
    with TestClient(app) as test_client:
        yield test_client
