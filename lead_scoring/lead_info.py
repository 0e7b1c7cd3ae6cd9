"""
Lead data structures shared by extraction, qualification and CRM sync.
"""

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional


class ServiceCategory(Enum):
    """Service lines a lead can be interested in."""
    WEB_DEVELOPMENT = "web-development"
    NETWORKING = "networking"
    IT_SERVICES = "it-services"
    AI_SOLUTIONS = "ai-solutions"
    GENERAL_INQUIRY = "general-inquiry"


# Value carried in service_requested when no category keyword matched.
GENERAL_INQUIRY = "General Inquiry"

_DEFAULT_SERVICE_VALUES = {GENERAL_INQUIRY.lower(), ServiceCategory.GENERAL_INQUIRY.value}


def is_default_service(value: Optional[str]) -> bool:
    """True for the general-inquiry category in any of its spellings."""
    return not value or value.strip().lower() in _DEFAULT_SERVICE_VALUES


@dataclass(frozen=True)
class ChatTurn:
    """One message of a conversation."""
    role: str
    content: str

    ROLES = ("user", "assistant")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ChatTurn":
        role = data.get("role")
        content = data.get("content")
        if role not in cls.ROLES or not isinstance(content, str):
            raise ValueError(f"Invalid chat turn: {dict(data)!r}")
        return cls(role=role, content=content)

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


def user_turns(history: Iterable[ChatTurn]) -> List[str]:
    """Contents of user-authored turns, oldest first."""
    return [turn.content for turn in history if turn.role == "user"]


# Wire names used by the reply generator and the model-assisted extractor.
_CAMEL_ALIASES = {
    "firstName": "first_name",
    "lastName": "last_name",
    "serviceRequested": "service_requested",
    "budgetRange": "budget_range",
    "projectDescription": "project_description",
    "conversationKeywords": "conversation_keywords",
}


@dataclass
class LeadInfo:
    """Structured lead information extracted from a conversation."""

    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    website: Optional[str] = None
    service_requested: str = GENERAL_INQUIRY
    budget_range: Optional[str] = None
    timeline: Optional[str] = None
    project_description: Optional[str] = None
    conversation_keywords: Optional[str] = None

    def __post_init__(self):
        if not self.service_requested or not str(self.service_requested).strip():
            self.service_requested = GENERAL_INQUIRY

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "LeadInfo":
        """Build from a snake_case or camelCase mapping, ignoring unknown keys."""
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        values: Dict[str, Any] = {}
        for key, value in data.items():
            name = _CAMEL_ALIASES.get(key, key)
            if name not in known or value is None:
                continue
            text = str(value).strip()
            if text and text.lower() not in ("null", "none", "n/a"):
                values[name] = text
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def is_empty(self) -> bool:
        """True when nothing beyond the default service category was found."""
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "service_requested":
                if not is_default_service(value):
                    return False
            elif value:
                return False
        return True

    def merged_with(self, other: "LeadInfo") -> "LeadInfo":
        """Fill blank fields (and a default service) from another record."""
        values = self.to_dict()
        for key, value in other.to_dict().items():
            if key == "service_requested":
                if is_default_service(values[key]) and not is_default_service(value):
                    values[key] = value
            elif not values[key] and value:
                values[key] = value
        return LeadInfo(**values)
