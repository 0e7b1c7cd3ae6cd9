"""
Lead to CRM payload transformation.

Builds HubSpot v3 shaped Contact, Deal and Ticket payloads from a
qualified LeadInfo.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

from .lead_info import LeadInfo

logger = logging.getLogger(__name__)

TICKET_PRIORITY = "HIGH"
ISSUE_TYPE = "Lead Follow-up"

# Checked in order; first keyword found in the timeline wins.
DELIVERY_DAYS = (
    ("urgent", 7),
    ("asap", 7),
    ("month", 30),
    ("quarter", 90),
)
DEFAULT_DELIVERY_DAYS = 30

_BUDGET_AMOUNT = re.compile(r"(\d+(?:\.\d+)?)(?:\s*(k|thousand)\b)?", re.IGNORECASE)


def normalize_budget(budget_range: Optional[str]) -> str:
    """
    Normalize a budget string to a plain amount.

    "$5k" -> "5000", "$2.5k" -> "2500", "$5,000" -> "5000".
    Blank or unparseable input gives "0". Idempotent.
    """
    if not budget_range:
        return "0"
    match = _BUDGET_AMOUNT.search(budget_range.replace(",", ""))
    if not match:
        return "0"

    amount = float(match.group(1))
    if match.group(2):
        amount *= 1000
    return str(int(amount)) if amount.is_integer() else str(amount)


def estimate_delivery_date(timeline: Optional[str], now: Optional[datetime] = None) -> str:
    """Project close date from timeline keywords, as an ISO-8601 UTC string."""
    now = now or datetime.now(timezone.utc)
    lowered = (timeline or "").lower()
    days = DEFAULT_DELIVERY_DAYS
    for keyword, keyword_days in DELIVERY_DAYS:
        if keyword in lowered:
            days = keyword_days
            break
    return (now + timedelta(days=days)).isoformat()


def deal_name(service_requested: Optional[str]) -> str:
    return f"{service_requested} Project" if service_requested else "New Lead Project"


def contact_name(info: LeadInfo) -> Tuple[str, str]:
    """
    First / last name for the contact, derived from the email local part
    when the conversation did not supply one.
    """
    if info.first_name or info.last_name:
        return info.first_name or "", info.last_name or ""
    if not info.email:
        return "Prospect", "Lead"

    local_part = info.email.split("@")[0]
    tokens = [t.capitalize() for t in re.split(r"[._-]+", local_part) if t]
    if len(tokens) >= 2:
        return tokens[0], " ".join(tokens[1:])
    if tokens:
        return tokens[0], "User"
    return "Prospect", "Lead"


@dataclass
class CrmPayloads:
    """HubSpot create payloads for one lead."""
    contact: Dict[str, Any]
    deal: Dict[str, Any]
    ticket: Dict[str, Any]


class PayloadTransformer:
    """Maps LeadInfo onto HubSpot Contact, Deal and Ticket payloads."""

    def __init__(
        self,
        deal_pipeline: str = "default",
        deal_stage: str = "appointmentscheduled",
        ticket_pipeline_stage: str = "1",
        assigned_team: str = "Sales Team",
    ):
        self.deal_pipeline = deal_pipeline
        self.deal_stage = deal_stage
        self.ticket_pipeline_stage = ticket_pipeline_stage
        self.assigned_team = assigned_team

    @classmethod
    def from_settings(cls, settings) -> "PayloadTransformer":
        return cls(
            deal_pipeline=settings.hubspot_deal_pipeline,
            deal_stage=settings.hubspot_deal_stage,
            ticket_pipeline_stage=settings.hubspot_ticket_pipeline_stage,
            assigned_team=settings.crm_assigned_team,
        )

    def transform(self, info: LeadInfo, raw_message: str, now: Optional[datetime] = None) -> CrmPayloads:
        """
        Build all three payloads.

        Args:
            info: Qualified lead information
            raw_message: The user message that triggered the lead
            now: Reference time for the close date

        Returns:
            CrmPayloads
        """
        description = info.project_description or raw_message
        payloads = CrmPayloads(
            contact=self.build_contact(info),
            deal=self.build_deal(info, now),
            ticket=self.build_ticket(info, description),
        )
        logger.debug(f"Built CRM payloads for {info.email or 'anonymous lead'}")
        return payloads

    def build_contact(self, info: LeadInfo) -> Dict[str, Any]:
        first_name, last_name = contact_name(info)
        properties = {
            "email": info.email,
            "firstname": first_name,
            "lastname": last_name,
            "phone": info.phone,
            "company": info.company,
            "website": info.website,
        }
        return {"properties": {k: v for k, v in properties.items() if v}}

    def build_deal(self, info: LeadInfo, now: Optional[datetime] = None) -> Dict[str, Any]:
        return {
            "properties": {
                "dealname": deal_name(info.service_requested),
                "amount": normalize_budget(info.budget_range),
                "closedate": estimate_delivery_date(info.timeline, now),
                "dealstage": self.deal_stage,
                "pipeline": self.deal_pipeline,
                "description": (
                    f"Service: {info.service_requested or 'Not specified'}\n"
                    f"Budget: {info.budget_range or 'Not specified'}\n"
                    f"Timeline: {info.timeline or 'Not specified'}\n"
                    f"Keywords: {info.conversation_keywords or 'None'}"
                ),
            }
        }

    def build_ticket(self, info: LeadInfo, description: str) -> Dict[str, Any]:
        return {
            "properties": {
                "subject": f"Follow-up: {info.service_requested} inquiry",
                "content": (
                    f"{description}\n\n"
                    f"Assigned Team: {self.assigned_team}\n"
                    f"Issue Type: {ISSUE_TYPE}\n"
                    f"Keywords: {info.conversation_keywords or 'None'}"
                ),
                "hs_ticket_priority": TICKET_PRIORITY,
                "hs_pipeline_stage": self.ticket_pipeline_stage,
            }
        }
