"""
Reply generation for chat turns.

Two providers:
- RagApiReplyGenerator: the retrieval service over HTTP
- OpenAIReplyGenerator: a direct chat completion with the company prompt
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import httpx
from openai import AsyncOpenAI

from lead_scoring.lead_info import ChatTurn, LeadInfo

from .prompt_templates import PromptTemplates

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class ReplyGenerationError(Exception):
    """Raised when no reply could be produced."""

    def __init__(self, message: str, status: Optional[int] = None, retryable: bool = False):
        super().__init__(message)
        self.status = status
        self.retryable = retryable


@dataclass
class GeneratedReply:
    """Reply text plus any lead details the provider extracted."""
    text: str
    structured_info: Optional[LeadInfo] = None
    source: str = "unknown"


class ReplyGenerator(ABC):
    """Interface for reply providers."""

    @abstractmethod
    async def generate(
        self,
        message: str,
        history: Sequence[ChatTurn] = (),
        user_id: Optional[str] = None,
    ) -> GeneratedReply:
        """Produce a reply or raise ReplyGenerationError."""


class RagApiReplyGenerator(ReplyGenerator):
    """
    Client for the retrieval-augmented reply service.

    POSTs ``{query, conversationHistory, userId}`` to ``/api/chat`` and
    reads ``response`` and ``structuredInfo``. Transport errors, 429 and
    5xx are retried with exponential backoff; other 4xx fail at once.
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 30.0,
        max_attempts: int = 3,
        retry_base_delay: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Initialize the client.

        Args:
            base_url: Reply service root URL
            timeout_seconds: Per-attempt timeout
            max_attempts: Total attempts including the first
            retry_base_delay: First backoff delay; doubles per retry
            transport: Optional httpx transport (used by tests)
            sleep: Awaitable sleep used between attempts
        """
        self.url = f"{base_url.rstrip('/')}/api/chat"
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max(1, max_attempts)
        self.retry_base_delay = retry_base_delay
        self._transport = transport
        self._sleep = sleep

    async def generate(
        self,
        message: str,
        history: Sequence[ChatTurn] = (),
        user_id: Optional[str] = None,
    ) -> GeneratedReply:
        payload = {
            "query": message,
            "conversationHistory": [turn.to_dict() for turn in history],
            "userId": user_id or "anonymous",
        }

        last_error: Optional[ReplyGenerationError] = None
        for attempt in range(self.max_attempts):
            try:
                return await self._post(payload)
            except ReplyGenerationError as e:
                if not e.retryable:
                    raise
                last_error = e

            if attempt < self.max_attempts - 1:
                delay = self.retry_base_delay * (2 ** attempt)
                logger.info(f"Retrying reply service in {delay}s (attempt {attempt + 1}/{self.max_attempts}): {last_error}")
                await self._sleep(delay)

        raise last_error

    async def _post(self, payload: Dict[str, Any]) -> GeneratedReply:
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout_seconds) as client:
                response = await client.post(self.url, json=payload)
        except httpx.TransportError as e:
            raise ReplyGenerationError(f"Reply service unreachable: {e}", retryable=True) from e

        if response.status_code >= 400:
            raise ReplyGenerationError(
                f"Reply service returned {response.status_code}",
                status=response.status_code,
                retryable=response.status_code in RETRYABLE_STATUS,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ReplyGenerationError(f"Reply service sent invalid JSON: {e}") from e

        text = data.get("response") if isinstance(data, dict) else None
        if not isinstance(text, str) or not text.strip():
            raise ReplyGenerationError("Reply service sent an empty response")

        structured = data.get("structuredInfo")
        return GeneratedReply(
            text=text,
            structured_info=LeadInfo.from_dict(structured) if isinstance(structured, dict) else None,
            source="rag_api",
        )


class OpenAIReplyGenerator(ReplyGenerator):
    """Chat completion with the company system prompt. No structured info."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_id: str = "gpt-4o-mini",
        max_tokens: int = 800,
        temperature: float = 0.7,
        timeout_seconds: float = 30.0,
        brand_name: str = "Kingdom Design House",
        assistant_name: str = "Jarvis",
        client: Optional[AsyncOpenAI] = None,
    ):
        self._client = client or AsyncOpenAI(api_key=api_key, timeout=timeout_seconds, max_retries=2)
        self.model_id = model_id
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.system_prompt = PromptTemplates.get_system_prompt(
            brand_name=brand_name, assistant_name=assistant_name
        )

        logger.info(f"OpenAI reply generator initialized: {model_id}")

    async def generate(
        self,
        message: str,
        history: Sequence[ChatTurn] = (),
        user_id: Optional[str] = None,
    ) -> GeneratedReply:
        messages: List[Dict[str, str]] = [{"role": "system", "content": self.system_prompt}]
        messages.extend(turn.to_dict() for turn in history)
        messages.append({"role": "user", "content": message})

        try:
            response = await self._client.chat.completions.create(
                model=self.model_id,
                messages=messages,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except Exception as e:
            raise ReplyGenerationError(f"OpenAI generation failed: {e}") from e

        text = response.choices[0].message.content
        if not text or not text.strip():
            raise ReplyGenerationError("OpenAI returned an empty reply")
        return GeneratedReply(text=text.strip(), source="openai")
