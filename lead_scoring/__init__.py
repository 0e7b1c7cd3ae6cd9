"""
Lead Scoring Module.

This module turns chat messages into CRM-ready leads:
- Lead information extraction (heuristic and model-assisted)
- Qualification rules
- HubSpot payload transformation
"""

from .lead_info import GENERAL_INQUIRY, ChatTurn, LeadInfo, ServiceCategory
from .entity_extractor import HeuristicExtractor, LeadExtractor, NameMatcher
from .llm_extractor import FallbackExtractor, LLMExtractor
from .qualification import QualificationResult, should_create_lead
from .payload_transformer import (
    CrmPayloads,
    PayloadTransformer,
    deal_name,
    estimate_delivery_date,
    normalize_budget,
)

__all__ = [
    "GENERAL_INQUIRY",
    "ChatTurn",
    "LeadInfo",
    "ServiceCategory",
    "HeuristicExtractor",
    "LeadExtractor",
    "NameMatcher",
    "FallbackExtractor",
    "LLMExtractor",
    "QualificationResult",
    "should_create_lead",
    "CrmPayloads",
    "PayloadTransformer",
    "deal_name",
    "estimate_delivery_date",
    "normalize_budget",
]
