"""
Chat Pipeline for the lead assistant.

Orchestrates one chat turn from inbound message to reply and CRM lead.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

from crm.sync_orchestrator import CrmSyncOrchestrator, CrmSyncResult
from lead_scoring.entity_extractor import LeadExtractor
from lead_scoring.lead_info import ChatTurn, LeadInfo
from lead_scoring.payload_transformer import PayloadTransformer
from lead_scoring.qualification import QualificationResult, should_create_lead
from protection.gate import ProtectionActions, ProtectionGate, ProtectionRequest, ProtectionVerdict

from .prompt_templates import PromptTemplates
from .reply_generator import ReplyGenerator

logger = logging.getLogger(__name__)

# Used when the gate itself fails: reply, but never create a lead
PROTECTION_UNAVAILABLE = ProtectionVerdict(
    suspicious=True,
    reasons=("Protection check unavailable",),
    actions=ProtectionActions(allow_reply=True, allow_lead_creation=False),
)


class PipelineStage(Enum):
    """Furthest point a chat turn reached."""
    RECEIVED = "received"
    PROTECTION_CHECKED = "protection_checked"
    BLOCKED = "blocked"
    REPLY_GENERATED = "reply_generated"
    INFO_EXTRACTED = "info_extracted"
    LEAD_SYNC_SKIPPED = "lead_sync_skipped"
    LEAD_SYNC_ATTEMPTED = "lead_sync_attempted"


class InvalidChatRequest(ValueError):
    """Malformed chat input (missing message, bad history)."""


@dataclass
class ClientContext:
    """Who sent the message, and the raw form fields the gate inspects."""
    client_id: str = "unknown_anonymous"
    user_id: Optional[str] = None
    fields: Dict[str, Any] = field(default_factory=dict)
    page_load_time: Optional[float] = None


@dataclass
class ChatTurnResult:
    """Outcome of one chat turn."""
    reply: Optional[str] = None
    structured_info: LeadInfo = field(default_factory=LeadInfo)
    lead_created: bool = False
    lead_error: Optional[str] = None
    blocked: bool = False
    block_reason: Optional[str] = None
    retry_after_seconds: int = 0
    stage: PipelineStage = PipelineStage.RECEIVED
    qualification: Optional[QualificationResult] = None
    crm_result: Optional[CrmSyncResult] = None
    fallback_reply_used: bool = False
    verdict: Optional[ProtectionVerdict] = None
    processing_time_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "reply": self.reply,
            "structured_info": self.structured_info.to_dict(),
            "lead_created": self.lead_created,
            "lead_error": self.lead_error,
            "blocked": self.blocked,
            "block_reason": self.block_reason,
            "retry_after_seconds": self.retry_after_seconds,
            "stage": self.stage.value,
            "qualification": self.qualification.to_dict() if self.qualification else None,
            "crm_result": self.crm_result.to_dict() if self.crm_result else None,
            "fallback_reply_used": self.fallback_reply_used,
            "processing_time_ms": self.processing_time_ms,
        }


def parse_history(raw: Optional[Iterable[Any]]) -> List[ChatTurn]:
    """Validate caller-supplied history into ChatTurn objects."""
    if raw is None:
        return []
    if isinstance(raw, (str, bytes, Mapping)):
        raise InvalidChatRequest("conversationHistory must be a list of turns")

    turns = []
    for item in raw:
        if isinstance(item, ChatTurn):
            turns.append(item)
        elif isinstance(item, Mapping):
            try:
                turns.append(ChatTurn.from_dict(item))
            except ValueError as e:
                raise InvalidChatRequest(str(e)) from e
        else:
            raise InvalidChatRequest(f"Invalid chat turn: {item!r}")
    return turns


class ChatPipeline:
    """
    Runs a chat turn through the pipeline.

    Pipeline:
    1. Validate input
    2. Protection check (hard block stops here)
    3. Generate reply (fixed fallback on failure)
    4. Extract lead info
    5. Qualify
    6. Transform and sync to CRM when qualified and allowed
    7. Return result

    Nothing raised by a collaborator escapes ``handle_chat_turn``;
    only InvalidChatRequest does.
    """

    def __init__(
        self,
        reply_generator: ReplyGenerator,
        extractor: LeadExtractor,
        gate: Optional[ProtectionGate] = None,
        transformer: Optional[PayloadTransformer] = None,
        crm_sync: Optional[CrmSyncOrchestrator] = None,
        brand_name: str = "Kingdom Design House",
        assistant_name: str = "Jarvis",
        company_phone: str = "347.927.8846",
        company_email: str = "kingdomdesignhouse@gmail.com",
    ):
        """
        Initialize the pipeline.

        Args:
            reply_generator: Produces the assistant reply
            extractor: Lead info extractor (or extractor chain)
            gate: Optional bot protection gate
            transformer: Builds CRM payloads
            crm_sync: Optional CRM sync; None disables lead creation
            brand_name: Company name for fallback replies
            assistant_name: Assistant persona name
            company_phone: Phone shown in fallback replies
            company_email: Email shown in fallback replies
        """
        self.reply_generator = reply_generator
        self.extractor = extractor
        self.gate = gate
        self.transformer = transformer or PayloadTransformer()
        self.crm_sync = crm_sync
        self.brand_name = brand_name
        self.assistant_name = assistant_name
        self.company_phone = company_phone
        self.company_email = company_email

    async def handle_chat_turn(
        self,
        message: Any,
        history: Optional[Iterable[Any]] = None,
        client_context: Optional[ClientContext] = None,
    ) -> ChatTurnResult:
        """
        Process one chat turn.

        Args:
            message: User message
            history: Earlier turns, oldest first
            client_context: Sender identity and form fields

        Returns:
            ChatTurnResult

        Raises:
            InvalidChatRequest: message missing/blank or history malformed
        """
        start_time = time.time()

        if not isinstance(message, str) or not message.strip():
            raise InvalidChatRequest("message is required")
        turns = parse_history(history)
        context = client_context or ClientContext()

        result = ChatTurnResult()

        # Step 1: Protection
        verdict = self._check_protection(message, context)
        result.verdict = verdict
        result.stage = PipelineStage.PROTECTION_CHECKED

        if verdict is not None and verdict.blocked:
            result.blocked = True
            result.block_reason = verdict.reasons[0] if verdict.reasons else "Request blocked"
            result.retry_after_seconds = verdict.retry_after_seconds
            result.stage = PipelineStage.BLOCKED
            return self._finish(result, start_time)

        # Step 2: Reply
        generated = None
        try:
            generated = await self.reply_generator.generate(message, turns, context.user_id)
            result.reply = generated.text
        except Exception as e:
            logger.warning(f"Reply generation failed, using fallback reply: {e}")
            result.fallback_reply_used = True
        result.stage = PipelineStage.REPLY_GENERATED

        # Step 3: Extraction
        try:
            extracted = await self.extractor.extract(message, turns)
        except Exception as e:
            logger.warning(f"Lead extraction failed: {e}")
            extracted = LeadInfo()

        if generated is not None and generated.structured_info is not None:
            info = generated.structured_info.merged_with(extracted)
        else:
            info = extracted
        result.structured_info = info
        result.stage = PipelineStage.INFO_EXTRACTED

        if result.fallback_reply_used:
            result.reply = PromptTemplates.fallback_reply(
                brand_name=self.brand_name,
                assistant_name=self.assistant_name,
                phone=self.company_phone,
                email=self.company_email,
                service_requested=info.service_requested,
            )

        # Step 4: Qualification
        result.qualification = should_create_lead(info, raw_message=message)
        lead_allowed = verdict is None or verdict.actions.allow_lead_creation

        if not result.qualification.qualified or not lead_allowed or self.crm_sync is None:
            if result.qualification.qualified:
                reason = "blocked by protection" if not lead_allowed else "CRM sync disabled"
                logger.info(f"Qualified lead not synced: {reason}")
            result.stage = PipelineStage.LEAD_SYNC_SKIPPED
            return self._finish(result, start_time)

        # Step 5: CRM sync
        result.stage = PipelineStage.LEAD_SYNC_ATTEMPTED
        try:
            payloads = self.transformer.transform(info, message)
            # CRM writes continue even if the caller is cancelled
            crm_result = await asyncio.shield(
                self.crm_sync.sync(payloads.contact, payloads.deal, payloads.ticket)
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Lead sync error: {e}")
            result.lead_error = str(e)
            return self._finish(result, start_time)

        result.crm_result = crm_result
        result.lead_created = crm_result.success
        result.lead_error = "; ".join(crm_result.errors) or None
        return self._finish(result, start_time)

    def _check_protection(self, message: str, context: ClientContext) -> Optional[ProtectionVerdict]:
        if self.gate is None:
            return None
        request = ProtectionRequest(
            message=message,
            fields=dict(context.fields),
            page_load_time=context.page_load_time,
        )
        try:
            return self.gate.evaluate(request, context.client_id)
        except Exception as e:
            logger.warning(f"Protection check failed, replying without lead creation: {e}")
            return PROTECTION_UNAVAILABLE

    @staticmethod
    def _finish(result: ChatTurnResult, start_time: float) -> ChatTurnResult:
        result.processing_time_ms = round((time.time() - start_time) * 1000, 2)
        logger.info(
            f"Chat turn finished at {result.stage.value} in {result.processing_time_ms}ms "
            f"(lead_created={result.lead_created}, fallback={result.fallback_reply_used})"
        )
        return result
