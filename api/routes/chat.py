"""
Chat API Routes.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from ..middleware.metrics import record_lead_sync, record_protection_verdict, record_reply_fallback
from ..services import get_services
from llm.orchestrator import ChatTurnResult, ClientContext, InvalidChatRequest
from protection.gate import HONEYPOT_FIELDS, ProtectionGate

logger = logging.getLogger(__name__)

router = APIRouter()


# ── Request / Response Models ─────────────────────────────────────

class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: Optional[str] = None
    conversation_history: Optional[List[Any]] = Field(default=None, alias="conversationHistory")
    user_id: Optional[str] = Field(default=None, alias="userId")
    page_load_time: Optional[float] = Field(default=None, alias="pageLoadTime")

    # Honeypot fields; hidden from real visitors
    website: Optional[str] = None
    bot_field: Optional[str] = None
    url: Optional[str] = None
    homepage: Optional[str] = None


class ChatResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    response: str
    structured_info: Dict[str, Any] = Field(alias="structuredInfo")
    lead_created: bool = Field(alias="leadCreated")
    lead_error: Optional[str] = Field(default=None, alias="leadError")
    fallback_reply_used: bool = Field(default=False, alias="fallbackReplyUsed")
    processing_time_ms: float = 0.0


# ── Helpers ───────────────────────────────────────────────────────

def client_address(request: Request) -> str:
    """Sender address from proxy headers, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    netlify_ip = request.headers.get("x-nf-client-connection-ip")
    if netlify_ip:
        return netlify_ip.strip()
    return request.client.host if request.client else "unknown"


def _record_metrics(result: ChatTurnResult):
    verdict = result.verdict
    if verdict is None:
        record_protection_verdict("disabled")
    elif verdict.blocked:
        record_protection_verdict("blocked")
    elif verdict.suspicious:
        record_protection_verdict("suspicious")
    else:
        record_protection_verdict("clean")

    if result.fallback_reply_used:
        record_reply_fallback()
    if result.crm_result is not None:
        record_lead_sync(result.crm_result.outcome.value)
    elif result.lead_error:
        record_lead_sync("error")


# ── Endpoints ─────────────────────────────────────────────────────

@router.post("/chat", response_model=ChatResponse)
async def chat(body: ChatRequest, request: Request):
    """
    Handle one chat turn.

    1. Bot protection  2. Reply  3. Lead extraction
    4. Qualification  5. CRM sync  6. Return reply
    """
    services = get_services()
    if not services.is_ready:
        raise HTTPException(status_code=503, detail="Chat pipeline not initialized")

    context = ClientContext(
        client_id=ProtectionGate.client_identifier(client_address(request), body.user_id),
        user_id=body.user_id,
        fields={name: getattr(body, name) for name in HONEYPOT_FIELDS},
        page_load_time=body.page_load_time,
    )

    try:
        result = await services.pipeline.handle_chat_turn(
            body.message,
            body.conversation_history,
            context,
        )
    except InvalidChatRequest as e:
        raise HTTPException(status_code=400, detail=str(e))

    _record_metrics(result)

    if result.blocked:
        return JSONResponse(
            status_code=429,
            headers={"Retry-After": str(result.retry_after_seconds)},
            content={
                "error": "Too many requests",
                "message": result.block_reason,
                "retryAfter": result.retry_after_seconds,
            },
        )

    return ChatResponse(
        response=result.reply,
        structured_info=result.structured_info.to_dict(),
        lead_created=result.lead_created,
        lead_error=result.lead_error,
        fallback_reply_used=result.fallback_reply_used,
        processing_time_ms=result.processing_time_ms,
    )
