"""Tests for the bot protection gate."""

import asyncio
from concurrent.futures import ThreadPoolExecutor

import pytest

from protection.activity_store import InMemoryActivityStore
from protection.gate import ActivityJanitor, ProtectionConfig, ProtectionGate, ProtectionRequest


def make_gate(clock, **flags):
    return ProtectionGate(ProtectionConfig(**flags), clock=clock)


def request(message="I need help with my website", **fields):
    return ProtectionRequest(message=message, fields=fields)


# ── Defaults ──────────────────────────────────────────

class TestDisabledLayers:
    def test_all_layers_off_by_default(self, gate):
        verdict = gate.evaluate(request("!!!!!!!!!!!!!!!!!!!! FREE PRIZE", website="spam.example"), "1.2.3.4_u")
        assert verdict.allowed
        assert not verdict.blocked
        assert not verdict.suspicious
        assert verdict.actions.allow_reply
        assert verdict.actions.allow_lead_creation
        assert verdict.enabled_layers == ()

    def test_no_activity_recorded_when_tracking_off(self, gate):
        gate.evaluate(request(), "1.2.3.4_u")
        assert gate.store.client_count() == 0

    def test_client_identifier(self):
        assert ProtectionGate.client_identifier("10.0.0.1", "user-7") == "10.0.0.1_user-7"
        assert ProtectionGate.client_identifier(None, None) == "unknown_anonymous"


# ── Rate limiting ─────────────────────────────────────

class TestRateLimiting:
    def test_blocks_after_minute_limit_with_cooldown(self, clock):
        gate = make_gate(clock, rate_limiting=True, messages_per_minute=3, cooldown_seconds=45)

        for _ in range(3):
            assert not gate.evaluate(request(), "a").blocked
            clock.advance(1)

        verdict = gate.evaluate(request(), "a")
        assert verdict.blocked
        assert not verdict.allowed
        assert verdict.retry_after_seconds == 45
        assert not verdict.actions.allow_reply
        assert not verdict.actions.allow_lead_creation
        assert verdict.reasons == ("Too many messages per minute",)

    def test_other_clients_unaffected(self, clock):
        gate = make_gate(clock, rate_limiting=True, messages_per_minute=2)
        gate.evaluate(request(), "a")
        gate.evaluate(request(), "a")
        assert gate.evaluate(request(), "a").blocked
        assert not gate.evaluate(request(), "b").blocked

    def test_blocked_requests_are_not_recorded(self, clock):
        gate = make_gate(clock, rate_limiting=True, messages_per_minute=1)
        gate.evaluate(request(), "a")
        gate.evaluate(request(), "a")
        gate.evaluate(request(), "a")
        assert gate.store.count_since("a", clock.now - 60) == 1

    def test_minute_window_expires(self, clock):
        gate = make_gate(clock, rate_limiting=True, messages_per_minute=1)
        gate.evaluate(request(), "a")
        assert gate.evaluate(request(), "a").blocked
        clock.advance(61)
        assert not gate.evaluate(request(), "a").blocked

    def test_hour_limit_retry_after(self, clock):
        gate = make_gate(clock, rate_limiting=True, messages_per_minute=100, messages_per_hour=3)
        for _ in range(3):
            gate.evaluate(request(), "a")
            clock.advance(120)
        verdict = gate.evaluate(request(), "a")
        assert verdict.blocked
        assert verdict.retry_after_seconds == 300

    def test_day_limit_retry_after(self, clock):
        gate = make_gate(
            clock, rate_limiting=True,
            messages_per_minute=100, messages_per_hour=100, messages_per_day=2,
        )
        gate.evaluate(request(), "a")
        clock.advance(7200)
        gate.evaluate(request(), "a")
        clock.advance(7200)
        verdict = gate.evaluate(request(), "a")
        assert verdict.blocked
        assert verdict.retry_after_seconds == 3600
        assert verdict.reasons == ("Daily message limit reached",)

    def test_block_short_circuits_other_layers(self, clock):
        gate = make_gate(clock, rate_limiting=True, honeypot=True, messages_per_minute=1)
        gate.evaluate(request(), "a")
        verdict = gate.evaluate(request(website="http://spam.example"), "a")
        assert verdict.blocked
        assert not verdict.suspicious
        assert "honeypot" not in verdict.detections

    def test_concurrent_requests_lose_no_updates(self, clock):
        gate = make_gate(
            clock, rate_limiting=True,
            messages_per_minute=50, messages_per_hour=1000, messages_per_day=1000,
        )

        def burst(_):
            return [gate.evaluate(request(), "shared") for _ in range(5)]

        with ThreadPoolExecutor(max_workers=20) as pool:
            verdicts = [v for batch in pool.map(burst, range(20)) for v in batch]

        allowed = sum(1 for v in verdicts if v.allowed)
        assert allowed == 50
        assert gate.store.count_since("shared", clock.now - 60) == allowed


# ── Honeypot ──────────────────────────────────────────

class TestHoneypot:
    @pytest.mark.parametrize("field_name", ["website", "bot_field", "url", "homepage"])
    def test_filled_field_is_suspicious(self, clock, field_name):
        gate = make_gate(clock, honeypot=True)
        verdict = gate.evaluate(request(**{field_name: "anything"}), "a")
        assert verdict.suspicious
        assert not verdict.blocked
        assert verdict.actions.allow_reply
        assert not verdict.actions.allow_lead_creation

    def test_blank_fields_pass(self, clock):
        gate = make_gate(clock, honeypot=True)
        verdict = gate.evaluate(request(website="   ", url=None), "a")
        assert not verdict.suspicious
        assert verdict.actions.allow_lead_creation


# ── Timing ────────────────────────────────────────────

class TestTiming:
    def test_submit_right_after_page_load(self, clock):
        gate = make_gate(clock, time_validation=True)
        req = ProtectionRequest(message="hello there", page_load_time=clock.now - 0.5)
        verdict = gate.evaluate(req, "a")
        assert verdict.suspicious
        assert not verdict.actions.allow_lead_creation

    def test_page_load_in_milliseconds(self, clock):
        gate = make_gate(clock, time_validation=True)
        req = ProtectionRequest(message="hello there", page_load_time=(clock.now - 30) * 1000)
        assert not gate.evaluate(req, "a").suspicious

    def test_rapid_messages_from_same_client(self, clock):
        gate = make_gate(clock, time_validation=True)
        assert not gate.evaluate(request(), "a").suspicious
        clock.advance(0.3)
        assert gate.evaluate(request(), "a").suspicious
        clock.advance(5)
        assert not gate.evaluate(request(), "a").suspicious

    @pytest.mark.parametrize("page_load_time", ["soon", [1, 2], {"at": 1}])
    def test_unparseable_page_load_time_is_suspicious(self, clock, page_load_time):
        gate = make_gate(clock, time_validation=True)
        verdict = gate.evaluate(ProtectionRequest(message="hello there", page_load_time=page_load_time), "a")
        assert verdict.suspicious
        assert verdict.reasons == ("Invalid page load timestamp",)
        assert verdict.actions.allow_reply
        assert not verdict.actions.allow_lead_creation


# ── Message patterns ──────────────────────────────────

class TestMessagePatterns:
    @pytest.mark.parametrize("message", [
        "see http://a.example http://b.example http://c.example",
        "heyyyyyyyyyyyyyyy",
        "PLEASE CALL ME BACK RIGHT NOW",
        "You are a WINNER, claim it",
        "click here for cheap stuff",
        "x" * 5001,
        "k",
    ])
    def test_spam_patterns(self, clock, message):
        gate = make_gate(clock, pattern_detection=True)
        verdict = gate.evaluate(request(message), "a")
        assert verdict.suspicious
        assert verdict.actions.allow_reply
        assert not verdict.actions.allow_lead_creation

    @pytest.mark.parametrize("message", [
        "Hi, my name is Jane Doe and I need a website",
        "IT SUPPORT",
        "Visit https://acme.example for our current site",
    ])
    def test_normal_messages_pass(self, clock, message):
        gate = make_gate(clock, pattern_detection=True)
        assert not gate.evaluate(request(message), "a").suspicious


# ── Activity store and maintenance ────────────────────

class TestActivityStore:
    def test_count_since_is_strict(self):
        store = InMemoryActivityStore()
        store.record("a", 100.0)
        store.record("a", 200.0)
        assert store.count_since("a", 100.0) == 1
        assert store.count_since("a", 99.0) == 2
        assert store.last_seen("a") == 200.0
        assert store.last_seen("missing") is None

    def test_purge_before_removes_idle_clients(self):
        store = InMemoryActivityStore()
        store.record("old", 10.0)
        store.record("mixed", 10.0)
        store.record("mixed", 500.0)
        assert store.purge_before(100.0) == 1
        assert store.client_count() == 1
        assert store.count_since("mixed", 0) == 1

    def test_gate_cleanup_purges_day_old_activity(self, clock):
        gate = make_gate(clock, rate_limiting=True)
        gate.evaluate(request(), "a")
        clock.advance(25 * 3600)
        gate.evaluate(request(), "b")
        assert gate.cleanup() == 1
        assert gate.store.client_count() == 1

    def test_status_reports_layers_and_clients(self, clock):
        gate = make_gate(clock, rate_limiting=True, messages_per_minute=7)
        gate.evaluate(request(), "a")
        status = gate.status()
        assert status["enabled"] is True
        assert status["layers"]["RATE_LIMITING"] is True
        assert status["layers"]["HONEYPOT"] is False
        assert status["config"]["rateLimits"]["perMinute"] == 7
        assert status["stats"]["trackedClients"] == 1

    def test_janitor_runs_cleanup(self, clock):
        gate = make_gate(clock, rate_limiting=True)
        gate.evaluate(request(), "a")
        clock.advance(2 * 24 * 3600)

        async def run():
            janitor = ActivityJanitor(gate, interval_seconds=0.01)
            janitor.start()
            await asyncio.sleep(0.05)
            await janitor.stop()

        asyncio.run(run())
        assert gate.store.client_count() == 0


def test_verdict_to_dict(clock):
    gate = make_gate(clock, honeypot=True)
    data = gate.evaluate(request(bot_field="x"), "a").to_dict()
    assert data["suspicious"] is True
    assert data["actions"] == {
        "allowReply": True,
        "allowLeadCreation": False,
        "requireVerification": False,
    }
