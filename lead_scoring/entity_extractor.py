"""
Heuristic lead extraction for the chat lead pipeline.

Extracts lead details from a message and the user side of the
conversation using regex and keyword matching:
- Email, phone and website
- First / last name (prioritized name matchers)
- Company
- Service interest
- Budget and timeline
- Conversation keyword tags

Always available; no external calls.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Collection, Iterable, List, Optional, Pattern, Sequence, Tuple

from .lead_info import GENERAL_INQUIRY, ChatTurn, LeadInfo, ServiceCategory, user_turns

logger = logging.getLogger(__name__)


class LeadExtractor(ABC):
    """Strategy interface shared by all lead extractors."""

    @abstractmethod
    async def extract(self, message: str, history: Sequence[ChatTurn] = ()) -> LeadInfo:
        """Derive a LeadInfo record from a message and its conversation."""


# Words that the name patterns capture but are never names
# ("I am looking...", "Hi there", "this is urgent").
NAME_STOPWORDS = frozenset({
    "a", "an", "the", "and", "or", "but", "so", "just", "not", "also", "still",
    "i", "im", "me", "my", "you", "your", "we", "our", "it", "its", "this", "that",
    "is", "am", "are", "was", "be", "here", "there", "from", "at", "with", "in",
    "on", "for", "to", "of", "about", "after", "back", "well", "very", "really",
    "hi", "hello", "hey", "name", "looking", "interested", "trying", "hoping",
    "wondering", "calling", "writing", "reaching", "contacting", "asking",
    "need", "needing", "want", "wanting", "planning", "going", "thinking",
    "building", "starting", "running", "working", "based", "ready", "curious",
    "sure", "good", "fine", "great", "ok", "okay", "glad", "happy", "new",
    "urgent", "important", "greetings", "call", "email", "text", "contact",
    "reach", "message", "ping", "what", "how", "who", "when", "where", "why",
    "currently", "only", "all", "any", "some", "no", "yes", "thanks", "thank",
    "excited", "sorry", "having", "getting", "seeking", "launching", "moving",
    "doing", "opening", "out", "down", "up", "over",
})


@dataclass(frozen=True)
class NameMatcher:
    """
    One name pattern. Group 1 is the first name; an optional group 2 is
    the last name.
    """
    label: str
    pattern: Pattern

    def match(self, text: str, ignored: Collection[str] = ()) -> Optional[Tuple[str, Optional[str]]]:
        for m in self.pattern.finditer(text):
            first = m.group(1)
            if _is_stopword(first, ignored):
                continue
            last = m.group(2) if self.pattern.groups >= 2 else None
            if last and _is_stopword(last, ignored):
                last = None
            return _tidy_name(first), _tidy_name(last) if last else None
        return None


def _is_stopword(word: str, ignored: Collection[str]) -> bool:
    lowered = word.lower()
    return lowered in NAME_STOPWORDS or lowered in ignored


def _tidy_name(word: str) -> str:
    return word.title() if word.islower() else word


_NAME_FLAGS = re.IGNORECASE | re.MULTILINE

# Evaluated in order; the first matcher that yields a name wins.
NAME_MATCHERS: Tuple[NameMatcher, ...] = (
    NameMatcher(
        "introduction",  # "My name is John Smith", "I'm John Smith"
        re.compile(r"\b(?:my name is|i'm|i am|this is)\s+([a-z]+)(?:[ \t]+([a-z]+))?\b", _NAME_FLAGS),
    ),
    NameMatcher(
        "sign_on",  # "John Smith here", "John calling"
        re.compile(r"^\s*([a-z]+)(?:[ \t]+([a-z]+))?[ \t]+(?:here|calling|speaking)\b", _NAME_FLAGS),
    ),
    NameMatcher(
        "greeting",  # "Hi, I'm John", "Hello John"
        re.compile(r"\b(?:hi|hello|hey)\b,?[ \t]*(?:i'm|i am)?[ \t]*([a-z]+)\b", _NAME_FLAGS),
    ),
    NameMatcher(
        "its_me",  # "It's John"
        re.compile(r"\b(?:this is|it's|its)\s+([a-z]+)\b", _NAME_FLAGS),
    ),
    NameMatcher(
        "affiliation",  # "John from Acme", "John at Acme"
        re.compile(r"^\s*([a-z]+)[ \t]+(?:from|at)[ \t]+", _NAME_FLAGS),
    ),
    NameMatcher(
        "call_me",  # "Call me John", "Name: John Smith"
        re.compile(r"\b(?:call me|name\s*:)\s*([a-z]+)(?:[ \t]+([a-z]+))?\b", _NAME_FLAGS),
    ),
)


# Keyword groups per service line. Several groups can feed one category.
SERVICE_KEYWORDS: Tuple[Tuple[ServiceCategory, Tuple[str, ...]], ...] = (
    (ServiceCategory.AI_SOLUTIONS, (
        "ai integration", "ai solution", "ai solutions", "artificial intelligence",
        "machine learning", "chatbot", "ai agent", "sales automation", "lead automation",
        "automated sales", "ai tools", "intelligent automation", "smart automation",
        "predictive analytics", "ai assistant", "ai system",
    )),
    (ServiceCategory.WEB_DEVELOPMENT, (
        "website", "web development", "site", "online", "web app", "web application",
        "ecommerce", "e-commerce", "cms", "frontend", "backend", "online store",
    )),
    (ServiceCategory.WEB_DEVELOPMENT, (
        "web design", "redesign", "landing page", "ui design", "ux design", "wordpress",
    )),
    (ServiceCategory.NETWORKING, (
        "network", "networking", "infrastructure", "server", "wifi", "wi-fi", "internet",
        "connectivity", "lan", "wan", "firewall", "router", "switch", "cabling",
        "wireless", "ethernet", "network setup", "corporate office", "mbps",
        "router and switch", "load balancing", "network redundancy",
    )),
    (ServiceCategory.IT_SERVICES, (
        "it services", "it support", "it department", "technology", "computer",
        "system", "managed services", "desktop", "laptop", "hardware", "software",
        "backup", "cloud migration",
    )),
    (ServiceCategory.IT_SERVICES, (
        "tech support", "technical support", "help desk", "helpdesk", "troubleshooting",
    )),
)

CONVERSATION_KEYWORDS = {
    "business": ["business", "company", "startup", "enterprise", "small business", "corporate"],
    "technology": ["website", "app", "mobile", "ecommerce", "cms", "database", "cloud", "security", "seo"],
    "urgency": ["urgent", "asap", "quickly", "soon", "immediately", "rush", "deadline"],
    "budget": ["budget", "cost", "price", "affordable", "expensive", "cheap", "investment"],
}


def _keyword_pattern(keyword: str) -> Pattern:
    return re.compile(rf"(?<![\w-]){re.escape(keyword)}(?![\w-])", re.IGNORECASE)


class HeuristicExtractor(LeadExtractor):
    """
    Regex and keyword based lead extractor.

    Names and service interest are read from user turns only, so the
    assistant's own wording ("I'm Jarvis", "our web development team")
    never leaks into the lead.
    """

    def __init__(self, ignored_names: Iterable[str] = ()):
        """
        Initialize the extractor.

        Args:
            ignored_names: Words never accepted as a name (e.g. the assistant's name)
        """
        self.ignored_names = frozenset(n.lower() for n in ignored_names)
        self.name_matchers = NAME_MATCHERS
        self._build_patterns()

    def _build_patterns(self):
        """Build regex patterns for entity extraction."""
        self.email_pattern = re.compile(
            r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b'
        )

        # US style: 555-123-4567, 555.123.4567, (555) 123 4567, 5551234567
        self.phone_pattern = re.compile(
            r'(?<!\d)(?:\+?1[\s.-]?)?\(?\d{3}\)?[\s.-]?\d{3}[\s.-]?\d{4}(?!\d)'
        )

        # Requires a "$" or a k/thousand suffix so "50 users" is not a budget
        self.budget_pattern = re.compile(
            r'\$\s?\d+(?:,\d{3})*(?:\.\d+)?(?:\s?(?:k|thousand)\b)?'
            r'|\b\d+(?:,\d{3})*(?:\.\d+)?\s?(?:k|thousand)\b',
            re.IGNORECASE,
        )

        self.timeline_pattern = re.compile(
            r'\b(?:timeline|deadline|complete|finish|deliver)\w*\b.*?(\d+)\s*(weeks?|months?|days?)\b',
            re.IGNORECASE,
        )

        self.website_pattern = re.compile(
            r'\bhttps?://[^\s,;]+|\bwww\.[\w-]+(?:\.[\w-]+)+[^\s,;]*',
            re.IGNORECASE,
        )

        # Lead-in phrase is case-insensitive, the company name must be capitalized
        self.company_pattern = re.compile(
            r"(?i:\b(?:i work (?:at|for)|i'm with|i am with|my company is|our company is"
            r"|company name is|company is|we are))\s+"
            r"([A-Z][\w&'.-]*(?:[ \t]+[A-Z][\w&'.-]*){0,3})"
        )

        self.service_patterns = [
            (category, [(kw, _keyword_pattern(kw)) for kw in keywords])
            for category, keywords in SERVICE_KEYWORDS
        ]

    async def extract(self, message: str, history: Sequence[ChatTurn] = ()) -> LeadInfo:
        return self.parse(message, history)

    def parse(self, message: str, history: Sequence[ChatTurn] = ()) -> LeadInfo:
        """
        Extract lead info synchronously.

        Args:
            message: Current user message
            history: Earlier turns of the conversation

        Returns:
            LeadInfo
        """
        # Newest first: the current message, then earlier user turns
        user_texts = [message] + list(reversed(user_turns(history)))
        # Oldest first, for name and service detection
        user_text = "\n".join(reversed(user_texts))

        first_name, last_name = self.extract_name(user_text)

        info = LeadInfo(
            email=self._search_latest(self.email_pattern, user_texts),
            phone=self._search_latest(self.phone_pattern, user_texts),
            first_name=first_name,
            last_name=last_name,
            company=self._extract_company(user_texts),
            website=self._extract_website(user_texts),
            service_requested=self.detect_service(user_text),
            budget_range=self._search_latest(self.budget_pattern, user_texts),
            timeline=self._extract_timeline(user_texts),
            conversation_keywords=self.extract_conversation_keywords(message),
        )
        logger.debug(f"Heuristic extraction: {info.to_dict()}")
        return info

    def extract_name(self, user_text: str) -> Tuple[Optional[str], Optional[str]]:
        """Run the name matchers in priority order; first match wins."""
        for matcher in self.name_matchers:
            found = matcher.match(user_text, self.ignored_names)
            if found:
                logger.debug(f"Name matched by '{matcher.label}': {found}")
                return found
        return None, None

    def detect_service(self, user_text: str) -> str:
        """
        Pick the service category with the most keyword hits.

        Multi-word phrases count triple since they are more specific.
        """
        scores = {}
        for category, patterns in self.service_patterns:
            for keyword, pattern in patterns:
                if pattern.search(user_text):
                    bonus = 2 if " " in keyword else 0
                    scores[category] = scores.get(category, 0) + 1 + bonus

        best, best_score = None, 0
        for category, _ in SERVICE_KEYWORDS:
            score = scores.get(category, 0)
            if score > best_score:
                best, best_score = category, score

        return best.value if best else GENERAL_INQUIRY

    @staticmethod
    def extract_conversation_keywords(text: str) -> Optional[str]:
        """Comma-joined context tags found in the text."""
        found: List[str] = []
        for keywords in CONVERSATION_KEYWORDS.values():
            for keyword in keywords:
                if keyword not in found and _keyword_pattern(keyword).search(text):
                    found.append(keyword)
        return ", ".join(found) or None

    @staticmethod
    def _search_latest(pattern: Pattern, texts: Sequence[str]) -> Optional[str]:
        for text in texts:
            match = pattern.search(text)
            if match:
                return match.group(0).strip()
        return None

    def _extract_timeline(self, texts: Sequence[str]) -> Optional[str]:
        for text in texts:
            match = self.timeline_pattern.search(text)
            if match:
                return f"{match.group(1)} {match.group(2).lower()}"
        return None

    def _extract_website(self, texts: Sequence[str]) -> Optional[str]:
        website = self._search_latest(self.website_pattern, texts)
        return website.rstrip(".!?)") if website else None

    def _extract_company(self, texts: Sequence[str]) -> Optional[str]:
        for text in texts:
            match = self.company_pattern.search(text)
            if match:
                return match.group(1).rstrip(".,")
        return None
