"""
Model-assisted lead extraction.

Asks an OpenAI chat model to fill a fixed lead schema through a single
function tool. Any failure yields an empty LeadInfo so the caller can
fall back to the heuristic extractor.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional, Sequence

from openai import AsyncOpenAI

from .entity_extractor import LeadExtractor
from .lead_info import GENERAL_INQUIRY, ChatTurn, LeadInfo, ServiceCategory

logger = logging.getLogger(__name__)


EXTRACTION_PROMPT = """You extract structured information from customer inquiries sent to a digital services company.
Record only details the customer actually stated. Leave a field out when it is not mentioned.

Fields:
- email: customer's email address
- first_name / last_name: customer's name
- phone: customer's phone number
- company: customer's company name
- website: customer's website URL
- service_requested: one of web-development, networking, it-services, ai-solutions, or "General Inquiry"
- budget_range: budget as stated (e.g. "$5k-10k", "under $5k", "$10k+")
- timeline: when they need the project completed
- project_description: short description of their project or needs

Always answer by calling record_lead_info."""

_STRING = {"type": ["string", "null"]}

RECORD_LEAD_TOOL = {
    "type": "function",
    "function": {
        "name": "record_lead_info",
        "description": "Record lead details mentioned by the customer.",
        "parameters": {
            "type": "object",
            "properties": {
                "email": _STRING,
                "first_name": _STRING,
                "last_name": _STRING,
                "phone": _STRING,
                "company": _STRING,
                "website": _STRING,
                "service_requested": _STRING,
                "budget_range": _STRING,
                "timeline": _STRING,
                "project_description": _STRING,
            },
            "additionalProperties": False,
        },
    },
}

_SERVICE_ALIASES = {
    "web development": ServiceCategory.WEB_DEVELOPMENT.value,
    "web design": ServiceCategory.WEB_DEVELOPMENT.value,
    "networking": ServiceCategory.NETWORKING.value,
    "it services": ServiceCategory.IT_SERVICES.value,
    "it support": ServiceCategory.IT_SERVICES.value,
    "ai solutions": ServiceCategory.AI_SOLUTIONS.value,
    "ai integration": ServiceCategory.AI_SOLUTIONS.value,
    "general inquiry": GENERAL_INQUIRY,
    "general-inquiry": GENERAL_INQUIRY,
}


def normalize_service(value: Optional[str]) -> Optional[str]:
    """Map common service names onto category slugs; keep other text as-is."""
    if not value:
        return value
    key = value.strip().lower().replace("_", " ")
    if key in _SERVICE_ALIASES:
        return _SERVICE_ALIASES[key]
    slug = key.replace(" ", "-")
    for category in ServiceCategory:
        if category.value == slug:
            return GENERAL_INQUIRY if category is ServiceCategory.GENERAL_INQUIRY else slug
    return value.strip()


class LLMExtractor(LeadExtractor):
    """
    OpenAI function-calling extractor.

    Never raises: timeouts, API errors, missing tool calls and malformed
    arguments all produce an empty LeadInfo.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_id: str = "gpt-4o-mini",
        timeout_seconds: float = 15.0,
        client: Optional[AsyncOpenAI] = None,
    ):
        self._client = client or (AsyncOpenAI(api_key=api_key) if api_key else AsyncOpenAI())
        self.model_id = model_id
        self.timeout_seconds = timeout_seconds

        logger.info(f"LLM extractor initialized: {model_id}")

    async def extract(self, message: str, history: Sequence[ChatTurn] = ()) -> LeadInfo:
        try:
            arguments = await asyncio.wait_for(
                self._request(message, history), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning(f"LLM extraction timed out after {self.timeout_seconds}s")
            return LeadInfo()
        except Exception as e:
            logger.warning(f"LLM extraction failed: {e}")
            return LeadInfo()

        if arguments is None:
            logger.warning("LLM extraction returned no tool call")
            return LeadInfo()

        info = LeadInfo.from_dict(arguments)
        info.service_requested = normalize_service(info.service_requested)
        return info

    async def _request(self, message: str, history: Sequence[ChatTurn]) -> Optional[Dict[str, Any]]:
        messages = [{"role": "system", "content": EXTRACTION_PROMPT}]
        messages.extend(turn.to_dict() for turn in history)
        messages.append({"role": "user", "content": message})

        response = await self._client.chat.completions.create(
            model=self.model_id,
            messages=messages,
            tools=[RECORD_LEAD_TOOL],
            tool_choice={"type": "function", "function": {"name": "record_lead_info"}},
            temperature=0.1,
            max_tokens=500,
        )

        tool_calls = response.choices[0].message.tool_calls or []
        for call in tool_calls:
            if call.function.name == "record_lead_info":
                return self._parse_arguments(call.function.arguments)
        return None

    @staticmethod
    def _parse_arguments(raw: str) -> Optional[Dict[str, Any]]:
        try:
            data = json.loads(raw)
        except (TypeError, json.JSONDecodeError) as e:
            logger.warning(f"Malformed tool arguments from LLM: {e}")
            return None
        return data if isinstance(data, dict) else None


class FallbackExtractor(LeadExtractor):
    """
    Compose two extractors.

    The fallback is used when the primary raises or finds nothing, and
    it fills any field the primary left blank.
    """

    def __init__(self, primary: LeadExtractor, fallback: LeadExtractor):
        self.primary = primary
        self.fallback = fallback

    async def extract(self, message: str, history: Sequence[ChatTurn] = ()) -> LeadInfo:
        try:
            primary = await self.primary.extract(message, history)
        except Exception as e:
            logger.warning(f"{type(self.primary).__name__} failed, using fallback: {e}")
            primary = LeadInfo()

        secondary = await self.fallback.extract(message, history)
        if primary.is_empty():
            return secondary
        return primary.merged_with(secondary)
