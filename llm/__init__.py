"""
LLM Orchestration Module.

This module handles:
- Reply generation (retrieval service or OpenAI)
- Prompt template management
- The chat turn pipeline
"""

from .orchestrator import (
    ChatPipeline,
    ChatTurnResult,
    ClientContext,
    InvalidChatRequest,
    PipelineStage,
)
from .prompt_templates import PromptTemplates, PromptType
from .reply_generator import (
    GeneratedReply,
    OpenAIReplyGenerator,
    RagApiReplyGenerator,
    ReplyGenerationError,
    ReplyGenerator,
)

__all__ = [
    "ChatPipeline",
    "ChatTurnResult",
    "ClientContext",
    "InvalidChatRequest",
    "PipelineStage",
    "PromptTemplates",
    "PromptType",
    "GeneratedReply",
    "OpenAIReplyGenerator",
    "RagApiReplyGenerator",
    "ReplyGenerationError",
    "ReplyGenerator",
]
