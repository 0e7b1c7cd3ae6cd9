"""Tests for CRM payload transformation."""

from datetime import datetime, timedelta, timezone

import pytest

from lead_scoring.lead_info import LeadInfo
from lead_scoring.payload_transformer import (
    PayloadTransformer,
    contact_name,
    deal_name,
    estimate_delivery_date,
    normalize_budget,
)

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


class TestNormalizeBudget:
    @pytest.mark.parametrize("raw, expected", [
        ("$5k", "5000"),
        ("10K", "10000"),
        ("$2.5k", "2500"),
        ("$5,000", "5000"),
        ("5000", "5000"),
        ("5 thousand", "5000"),
        ("$5k-10k", "5000"),
        ("", "0"),
        (None, "0"),
        ("flexible", "0"),
    ])
    def test_examples(self, raw, expected):
        assert normalize_budget(raw) == expected

    @pytest.mark.parametrize("raw", ["$5k", "$2.5k", "$1,250.50", "12", "nothing"])
    def test_idempotent(self, raw):
        once = normalize_budget(raw)
        assert normalize_budget(once) == once


class TestDeliveryDate:
    @pytest.mark.parametrize("timeline, days", [
        ("ASAP", 7),
        ("this is urgent", 7),
        ("1 month", 30),
        ("next quarter", 90),
        ("3 weeks", 30),
        (None, 30),
    ])
    def test_offsets(self, timeline, days):
        result = datetime.fromisoformat(estimate_delivery_date(timeline, now=NOW))
        assert result == NOW + timedelta(days=days)

    def test_default_now_is_utc(self):
        result = datetime.fromisoformat(estimate_delivery_date("asap"))
        assert result.utcoffset() == timedelta(0)


def test_deal_name():
    assert deal_name("web-development") == "web-development Project"
    assert deal_name("General Inquiry") == "General Inquiry Project"
    assert deal_name(None) == "New Lead Project"
    assert deal_name("") == "New Lead Project"


class TestContactName:
    def test_explicit_name(self):
        assert contact_name(LeadInfo(first_name="Jane", last_name="Doe")) == ("Jane", "Doe")

    def test_from_email_two_tokens(self):
        assert contact_name(LeadInfo(email="john.smith@acme.com")) == ("John", "Smith")

    def test_from_email_one_token(self):
        assert contact_name(LeadInfo(email="jane@acme.com")) == ("Jane", "User")

    def test_no_email(self):
        assert contact_name(LeadInfo(company="Acme")) == ("Prospect", "Lead")


class TestPayloadTransformer:
    def test_jane_doe_payloads(self):
        info = LeadInfo(
            email="jane@acme.com",
            first_name="Jane",
            last_name="Doe",
            service_requested="web-development",
            budget_range="$5k",
            timeline="1 month",
        )
        transformer = PayloadTransformer(deal_stage="qualifiedtobuy", ticket_pipeline_stage="2", assigned_team="KDH Sales Team")
        payloads = transformer.transform(info, "raw message", now=NOW)

        assert payloads.contact == {"properties": {
            "email": "jane@acme.com",
            "firstname": "Jane",
            "lastname": "Doe",
        }}

        deal = payloads.deal["properties"]
        assert deal["dealname"] == "web-development Project"
        assert deal["amount"] == "5000"
        assert deal["closedate"] == (NOW + timedelta(days=30)).isoformat()
        assert deal["dealstage"] == "qualifiedtobuy"
        assert deal["pipeline"] == "default"
        assert "Budget: $5k" in deal["description"]

        ticket = payloads.ticket["properties"]
        assert ticket["subject"] == "Follow-up: web-development inquiry"
        assert ticket["content"].startswith("raw message")
        assert "Assigned Team: KDH Sales Team" in ticket["content"]
        assert ticket["hs_ticket_priority"] == "HIGH"
        assert ticket["hs_pipeline_stage"] == "2"

    def test_project_description_preferred_for_ticket(self):
        info = LeadInfo(email="a@b.com", project_description="Rebuild our booking site")
        payloads = PayloadTransformer().transform(info, "hello there", now=NOW)
        assert payloads.ticket["properties"]["content"].startswith("Rebuild our booking site")

    def test_from_settings(self):
        from config.settings import Settings

        settings = Settings(hubspot_deal_pipeline="sales", crm_assigned_team="Web Group")
        transformer = PayloadTransformer.from_settings(settings)
        assert transformer.deal_pipeline == "sales"
        assert transformer.assigned_team == "Web Group"
