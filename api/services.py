"""
Service initialization and dependency injection for the chat lead API.

Creates and manages all service instances used by the API.
"""

import logging
from typing import Optional

from config.settings import get_settings, Settings
from crm.hubspot_client import HubSpotClient
from crm.sync_orchestrator import CrmSyncOrchestrator
from lead_scoring.entity_extractor import HeuristicExtractor, LeadExtractor
from lead_scoring.llm_extractor import FallbackExtractor, LLMExtractor
from lead_scoring.payload_transformer import PayloadTransformer
from llm.orchestrator import ChatPipeline
from llm.reply_generator import OpenAIReplyGenerator, RagApiReplyGenerator, ReplyGenerator
from protection.gate import ActivityJanitor, ProtectionConfig, ProtectionGate

logger = logging.getLogger(__name__)


class Services:
    """Container for all application services."""

    def __init__(self):
        self.settings: Optional[Settings] = None
        self.gate: Optional[ProtectionGate] = None
        self.janitor: Optional[ActivityJanitor] = None
        self.extractor: Optional[LeadExtractor] = None
        self.reply_generator: Optional[ReplyGenerator] = None
        self.crm_sync: Optional[CrmSyncOrchestrator] = None
        self.pipeline: Optional[ChatPipeline] = None
        self._initialized = False

    def initialize(self, settings: Optional[Settings] = None):
        """Initialize all services."""
        if self._initialized:
            return

        self.settings = settings or get_settings()
        logger.info(f"Initializing services with reply provider: {self.settings.reply_provider}")

        try:
            self._init_protection()
            self._init_extraction()
            self._init_reply_generator()
            self._init_crm()
            self._init_pipeline()
            logger.info("All services initialized successfully")
        except Exception as e:
            logger.error(f"Service initialization failed: {e}")
            logger.warning("API starting in degraded mode")
        self._initialized = True

    def _init_protection(self):
        """Initialize the bot protection gate."""
        config = ProtectionConfig.from_settings(self.settings)
        self.gate = ProtectionGate(config)
        self.janitor = ActivityJanitor(self.gate, self.settings.activity_cleanup_interval_seconds)
        logger.info(f"Protection layers enabled: {config.enabled_layers() or 'none'}")

    def _init_extraction(self):
        """Initialize lead extraction (model-assisted first when enabled)."""
        s = self.settings
        heuristic = HeuristicExtractor(ignored_names=[s.assistant_name])

        if s.enable_llm_extraction and s.openai_api_key:
            self.extractor = FallbackExtractor(
                primary=LLMExtractor(
                    api_key=s.openai_api_key,
                    model_id=s.openai_llm_model,
                    timeout_seconds=s.llm_extraction_timeout_seconds,
                ),
                fallback=heuristic,
            )
            logger.info("Lead extraction: LLM with heuristic fallback")
        else:
            if s.enable_llm_extraction:
                logger.warning("ENABLE_LLM_EXTRACTION set without OPENAI_API_KEY, using heuristics only")
            self.extractor = heuristic
            logger.info("Lead extraction: heuristic")

    def _init_reply_generator(self):
        """Initialize the reply generator."""
        s = self.settings

        if s.is_openai and s.openai_api_key:
            self.reply_generator = OpenAIReplyGenerator(
                api_key=s.openai_api_key,
                model_id=s.openai_llm_model,
                max_tokens=s.max_tokens,
                temperature=s.temperature,
                timeout_seconds=s.reply_timeout_seconds,
                brand_name=s.brand_name,
                assistant_name=s.assistant_name,
            )
        else:
            if s.is_openai:
                logger.warning("REPLY_PROVIDER=openai without OPENAI_API_KEY, using the RAG API")
            self.reply_generator = RagApiReplyGenerator(
                base_url=s.rag_api_url,
                timeout_seconds=s.reply_timeout_seconds,
                max_attempts=s.reply_max_attempts,
                retry_base_delay=s.reply_retry_base_delay,
            )
        logger.info(f"Reply generator ready: {type(self.reply_generator).__name__}")

    def _init_crm(self):
        """Initialize CRM sync."""
        s = self.settings

        if not s.enable_crm_sync:
            logger.info("CRM sync disabled")
            return
        if not s.crm_configured:
            logger.warning("HUBSPOT_ACCESS_TOKEN not set, CRM sync disabled")
            return

        client = HubSpotClient(
            access_token=s.hubspot_access_token,
            base_url=s.hubspot_base_url,
            timeout_seconds=s.crm_timeout_seconds,
        )
        self.crm_sync = CrmSyncOrchestrator(client, timeout_seconds=s.crm_timeout_seconds)
        logger.info("CRM sync ready")

    def _init_pipeline(self):
        """Initialize the chat pipeline."""
        s = self.settings
        self.pipeline = ChatPipeline(
            reply_generator=self.reply_generator,
            extractor=self.extractor,
            gate=self.gate,
            transformer=PayloadTransformer.from_settings(s),
            crm_sync=self.crm_sync,
            brand_name=s.brand_name,
            assistant_name=s.assistant_name,
            company_phone=s.company_phone,
            company_email=s.company_email,
        )
        logger.info("Chat pipeline ready")

    async def shutdown(self):
        """Stop background tasks."""
        if self.janitor:
            await self.janitor.stop()

    @property
    def is_ready(self) -> bool:
        return self._initialized and self.pipeline is not None

    def health(self) -> dict:
        """Return health status of all services."""
        return {
            "initialized": self._initialized,
            "protection": self.gate is not None,
            "extraction": self.extractor is not None,
            "reply_generator": self.reply_generator is not None,
            "crm_sync": self.crm_sync is not None,
            "pipeline": self.pipeline is not None,
        }


# Singleton
_services = Services()


def get_services() -> Services:
    """Get the global services instance."""
    return _services


def initialize_services():
    """Initialize all services (called at startup)."""
    _services.initialize()
