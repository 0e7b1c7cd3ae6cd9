"""
Centralized configuration for the chat lead pipeline.

All settings are loaded from environment variables via .env file.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    """Application settings."""

    # Brand / company contact details (used by the fallback reply)
    brand_name: str = Field(default="Kingdom Design House", env="BRAND_NAME")
    assistant_name: str = Field(default="Jarvis", env="ASSISTANT_NAME")
    company_phone: str = Field(default="347.927.8846", env="COMPANY_PHONE")
    company_email: str = Field(default="kingdomdesignhouse@gmail.com", env="COMPANY_EMAIL")

    # Reply generation
    reply_provider: str = Field(default="rag_api", env="REPLY_PROVIDER")  # rag_api | openai
    rag_api_url: str = Field(default="http://localhost:3001", env="RAG_API_URL")
    reply_timeout_seconds: float = Field(default=30.0, env="REPLY_TIMEOUT_SECONDS")
    reply_max_attempts: int = Field(default=3, env="REPLY_MAX_ATTEMPTS")
    reply_retry_base_delay: float = Field(default=1.0, env="REPLY_RETRY_BASE_DELAY")

    # OpenAI
    openai_api_key: Optional[str] = Field(default=None, env="OPENAI_API_KEY")
    openai_llm_model: str = Field(default="gpt-4o-mini", env="OPENAI_LLM_MODEL")
    max_tokens: int = Field(default=800, env="MAX_TOKENS")
    temperature: float = Field(default=0.7, env="TEMPERATURE")

    # Structured extraction
    enable_llm_extraction: bool = Field(default=False, env="ENABLE_LLM_EXTRACTION")
    llm_extraction_timeout_seconds: float = Field(default=15.0, env="LLM_EXTRACTION_TIMEOUT_SECONDS")

    # Bot protection (all layers off until explicitly enabled)
    enable_rate_limiting: bool = Field(default=False, env="ENABLE_RATE_LIMITING")
    enable_honeypot: bool = Field(default=False, env="ENABLE_HONEYPOT")
    enable_time_validation: bool = Field(default=False, env="ENABLE_TIME_VALIDATION")
    enable_pattern_detection: bool = Field(default=False, env="ENABLE_PATTERN_DETECTION")
    rate_limit_per_minute: int = Field(default=5, env="RATE_LIMIT_PER_MINUTE")
    rate_limit_per_hour: int = Field(default=30, env="RATE_LIMIT_PER_HOUR")
    rate_limit_per_day: int = Field(default=100, env="RATE_LIMIT_PER_DAY")
    rate_limit_cooldown: int = Field(default=30, env="RATE_LIMIT_COOLDOWN")
    min_seconds_before_submit: float = Field(default=2.0, env="MIN_SECONDS_BEFORE_SUBMIT")
    min_seconds_between_messages: float = Field(default=1.0, env="MIN_SECONDS_BETWEEN_MESSAGES")
    activity_cleanup_interval_seconds: int = Field(default=3600, env="ACTIVITY_CLEANUP_INTERVAL_SECONDS")

    # CRM (HubSpot)
    enable_crm_sync: bool = Field(default=True, env="ENABLE_CRM_SYNC")
    hubspot_base_url: str = Field(default="https://api.hubapi.com", env="HUBSPOT_BASE_URL")
    hubspot_access_token: Optional[str] = Field(default=None, env="HUBSPOT_ACCESS_TOKEN")
    hubspot_deal_pipeline: str = Field(default="default", env="HUBSPOT_DEAL_PIPELINE")
    hubspot_deal_stage: str = Field(default="appointmentscheduled", env="HUBSPOT_DEAL_STAGE")
    hubspot_ticket_pipeline_stage: str = Field(default="1", env="HUBSPOT_TICKET_PIPELINE_STAGE")
    crm_timeout_seconds: float = Field(default=15.0, env="CRM_TIMEOUT_SECONDS")
    crm_assigned_team: str = Field(default="Sales Team", env="CRM_ASSIGNED_TEAM")

    # API
    api_host: str = Field(default="0.0.0.0", env="API_HOST")
    api_port: int = Field(default=8000, env="API_PORT")
    api_title: str = Field(default="Chat Lead Pipeline API", env="API_TITLE")
    api_version: str = Field(default="1.0.0", env="API_VERSION")
    cors_origins: str = Field(default="*", env="CORS_ORIGINS")

    # Logging
    log_level: str = Field(default="INFO", env="LOG_LEVEL")
    debug: bool = Field(default=False, env="DEBUG")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

    @property
    def is_openai(self) -> bool:
        return self.reply_provider.lower() == "openai"

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def crm_configured(self) -> bool:
        return self.enable_crm_sync and bool(self.hubspot_access_token)


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
