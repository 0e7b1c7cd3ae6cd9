"""
Bot protection gate for inbound chat messages.

Runs four independently toggleable layers:
1. Rate limiting (hard block)
2. Honeypot fields
3. Submission timing
4. Message spam patterns

Only the rate limiter can block a reply. The other layers mark a request
suspicious and switch off lead creation, so the sender gets a normal reply
and never learns it was detected.
"""

import asyncio
import logging
import re
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .activity_store import ClientActivityStore, InMemoryActivityStore

logger = logging.getLogger(__name__)

ONE_MINUTE = 60
ONE_HOUR = 60 * 60
ONE_DAY = 24 * 60 * 60

HOUR_LIMIT_RETRY_SECONDS = 300
DAY_LIMIT_RETRY_SECONDS = 3600

HONEYPOT_FIELDS = ("website", "bot_field", "url", "homepage")


@dataclass(frozen=True)
class ProtectionConfig:
    """Immutable protection settings. Every layer is off by default."""
    rate_limiting: bool = False
    honeypot: bool = False
    time_validation: bool = False
    pattern_detection: bool = False

    messages_per_minute: int = 5
    messages_per_hour: int = 30
    messages_per_day: int = 100
    cooldown_seconds: int = 30

    min_seconds_since_page_load: float = 2.0
    min_seconds_between_messages: float = 1.0

    honeypot_fields: Tuple[str, ...] = HONEYPOT_FIELDS

    @classmethod
    def from_settings(cls, settings: Any) -> "ProtectionConfig":
        return cls(
            rate_limiting=settings.enable_rate_limiting,
            honeypot=settings.enable_honeypot,
            time_validation=settings.enable_time_validation,
            pattern_detection=settings.enable_pattern_detection,
            messages_per_minute=settings.rate_limit_per_minute,
            messages_per_hour=settings.rate_limit_per_hour,
            messages_per_day=settings.rate_limit_per_day,
            cooldown_seconds=settings.rate_limit_cooldown,
            min_seconds_since_page_load=settings.min_seconds_before_submit,
            min_seconds_between_messages=settings.min_seconds_between_messages,
        )

    def enabled_layers(self) -> List[str]:
        layers = {
            "RATE_LIMITING": self.rate_limiting,
            "HONEYPOT": self.honeypot,
            "TIME_VALIDATION": self.time_validation,
            "PATTERN_DETECTION": self.pattern_detection,
        }
        return [name for name, enabled in layers.items() if enabled]


@dataclass
class ProtectionRequest:
    """The parts of an inbound chat request the gate inspects."""
    message: str
    fields: Dict[str, Any] = field(default_factory=dict)
    page_load_time: Optional[float] = None


@dataclass(frozen=True)
class ProtectionActions:
    allow_reply: bool = True
    allow_lead_creation: bool = True
    require_verification: bool = False


@dataclass(frozen=True)
class ProtectionVerdict:
    """Outcome of a protection check. Built once, never mutated."""
    allowed: bool = True
    blocked: bool = False
    suspicious: bool = False
    reasons: Tuple[str, ...] = ()
    actions: ProtectionActions = field(default_factory=ProtectionActions)
    retry_after_seconds: int = 0
    enabled_layers: Tuple[str, ...] = ()
    detections: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "allowed": self.allowed,
            "blocked": self.blocked,
            "suspicious": self.suspicious,
            "reasons": list(self.reasons),
            "actions": {
                "allowReply": self.actions.allow_reply,
                "allowLeadCreation": self.actions.allow_lead_creation,
                "requireVerification": self.actions.require_verification,
            },
            "retryAfterSeconds": self.retry_after_seconds,
        }


@dataclass(frozen=True)
class LayerResult:
    """Result of a single protection layer."""
    flagged: bool = False
    reason: Optional[str] = None
    confidence: float = 0.0
    retry_after: int = 0


CLEAN = LayerResult()


class ProtectionGate:
    """
    Evaluates inbound chat requests against the enabled protection layers.

    The activity store is the only shared state; it is injected so a single
    process can use the in-memory store and tests can start from a clean one.
    """

    URL_PATTERN = re.compile(r'https?://', re.IGNORECASE)
    REPEATED_CHARS_PATTERN = re.compile(r'(.)\1{10,}')
    SPAM_PATTERN = re.compile(
        r'\b(?:viagra|casino|lottery|prize|winner|click here|buy now)\b',
        re.IGNORECASE,
    )
    MAX_URLS = 2
    MAX_MESSAGE_LENGTH = 5000
    MIN_MESSAGE_LENGTH = 2
    ALL_CAPS_MIN_LENGTH = 20

    def __init__(
        self,
        config: Optional[ProtectionConfig] = None,
        store: Optional[ClientActivityStore] = None,
        clock=time.time,
    ):
        """
        Args:
            config: Layer flags and thresholds
            store: Client activity store (in-memory by default)
            clock: Callable returning the current epoch time in seconds
        """
        self.config = config or ProtectionConfig()
        self.store = store or InMemoryActivityStore()
        self._clock = clock
        self._lock = threading.Lock()

    @staticmethod
    def client_identifier(source_address: Optional[str], user_id: Optional[str]) -> str:
        """Build a client id from the source address and session/user id."""
        return f"{source_address or 'unknown'}_{user_id or 'anonymous'}"

    def evaluate(self, request: ProtectionRequest, client_id: str) -> ProtectionVerdict:
        """
        Run all enabled layers against a request.

        Args:
            request: Message, raw form fields and optional page-load timestamp
            client_id: Stable identifier of the sender

        Returns:
            ProtectionVerdict
        """
        now = self._clock()
        enabled = tuple(self.config.enabled_layers())

        rate_limit, previous_seen = self._check_rate_limit(client_id, now)
        detections: Dict[str, LayerResult] = {"rate_limit": rate_limit}

        if rate_limit.flagged:
            logger.warning(f"Rate limit exceeded for {client_id}: {rate_limit.reason}")
            return ProtectionVerdict(
                allowed=False,
                blocked=True,
                suspicious=False,
                reasons=(rate_limit.reason,),
                actions=ProtectionActions(allow_reply=False, allow_lead_creation=False),
                retry_after_seconds=rate_limit.retry_after,
                enabled_layers=enabled,
                detections=detections,
            )

        detections["honeypot"] = self.check_honeypot(request.fields)
        detections["timing"] = self.check_timing(request.page_load_time, previous_seen, now)
        detections["patterns"] = self.check_message_patterns(request.message)

        reasons = [
            result.reason for name, result in detections.items()
            if name != "rate_limit" and result.flagged
        ]
        suspicious = bool(reasons)
        if suspicious:
            logger.warning(f"Suspicious request from {client_id}: {reasons}")

        return ProtectionVerdict(
            allowed=True,
            blocked=False,
            suspicious=suspicious,
            reasons=tuple(reasons),
            actions=ProtectionActions(
                allow_reply=True,
                allow_lead_creation=not suspicious,
            ),
            retry_after_seconds=0,
            enabled_layers=enabled,
            detections=detections,
        )

    # ── Layer 1: rate limiting ───────────────────────────────────────

    def _check_rate_limit(self, client_id: str, now: float) -> Tuple[LayerResult, Optional[float]]:
        """
        Check the three ceilings and record the request if it is allowed.

        Returns the layer result and the client's previous timestamp, which
        the timing layer compares against.
        """
        track = self.config.rate_limiting or self.config.time_validation
        if not track:
            return CLEAN, None

        with self._lock:
            previous_seen = self.store.last_seen(client_id)

            if self.config.rate_limiting:
                ceilings = (
                    (ONE_MINUTE, self.config.messages_per_minute,
                     "Too many messages per minute", self.config.cooldown_seconds),
                    (ONE_HOUR, self.config.messages_per_hour,
                     "Too many messages per hour", HOUR_LIMIT_RETRY_SECONDS),
                    (ONE_DAY, self.config.messages_per_day,
                     "Daily message limit reached", DAY_LIMIT_RETRY_SECONDS),
                )
                for window, limit, reason, retry_after in ceilings:
                    if self.store.count_since(client_id, now - window) >= limit:
                        return LayerResult(True, reason, 1.0, retry_after), previous_seen

            self.store.record(client_id, now)

        return CLEAN, previous_seen

    # ── Layer 2: honeypot ────────────────────────────────────────────

    def check_honeypot(self, fields: Mapping[str, Any]) -> LayerResult:
        """Flag requests where a hidden form field was filled in."""
        if not self.config.honeypot:
            return CLEAN

        for name in self.config.honeypot_fields:
            value = fields.get(name) if fields else None
            if value is not None and str(value).strip():
                logger.warning(f"Honeypot triggered: field={name}")
                return LayerResult(True, f'Honeypot field "{name}" was filled', 0.9)
        return CLEAN

    # ── Layer 3: timing ──────────────────────────────────────────────

    def check_timing(
        self,
        page_load_time: Optional[float],
        previous_seen: Optional[float],
        now: float,
    ) -> LayerResult:
        """Flag submissions that arrive faster than a human could type."""
        if not self.config.time_validation:
            return CLEAN

        if page_load_time:
            try:
                loaded_at = float(page_load_time)
            except (TypeError, ValueError):
                return LayerResult(True, "Invalid page load timestamp", 0.8)
            # Browsers send Date.now() in milliseconds
            if loaded_at > 1e11:
                loaded_at /= 1000.0
            if now - loaded_at < self.config.min_seconds_since_page_load:
                return LayerResult(True, "Submitted too quickly after page load", 0.8)

        if previous_seen is not None:
            if now - previous_seen < self.config.min_seconds_between_messages:
                return LayerResult(True, "Messages sent too rapidly", 0.8)

        return CLEAN

    # ── Layer 4: message patterns ────────────────────────────────────

    def check_message_patterns(self, message: Optional[str]) -> LayerResult:
        """Flag spam-looking message content."""
        if not self.config.pattern_detection:
            return CLEAN

        msg = message or ""
        checks = (
            ("hasExcessiveLinks", lambda m: len(self.URL_PATTERN.findall(m)) > self.MAX_URLS),
            ("hasRepeatedChars", lambda m: bool(self.REPEATED_CHARS_PATTERN.search(m))),
            ("isAllCaps", lambda m: len(m) > self.ALL_CAPS_MIN_LENGTH and m == m.upper() and m != m.lower()),
            ("hasSpamKeywords", lambda m: bool(self.SPAM_PATTERN.search(m))),
            ("isTooLong", lambda m: len(m) > self.MAX_MESSAGE_LENGTH),
            ("isSuspiciouslyShort", lambda m: len(m.strip()) < self.MIN_MESSAGE_LENGTH),
        )
        for name, check in checks:
            if check(msg):
                return LayerResult(True, f"Suspicious pattern detected: {name}", 0.8)
        return CLEAN

    # ── Maintenance ──────────────────────────────────────────────────

    def cleanup(self) -> int:
        """Purge activity older than 24 hours."""
        return self.store.purge_before(self._clock() - ONE_DAY)

    def status(self) -> Dict[str, Any]:
        """Current flags, thresholds and tracked-client count."""
        c = self.config
        return {
            "enabled": bool(c.enabled_layers()),
            "layers": {
                "RATE_LIMITING": c.rate_limiting,
                "HONEYPOT": c.honeypot,
                "TIME_VALIDATION": c.time_validation,
                "PATTERN_DETECTION": c.pattern_detection,
            },
            "config": {
                "rateLimits": {
                    "perMinute": c.messages_per_minute,
                    "perHour": c.messages_per_hour,
                    "perDay": c.messages_per_day,
                    "cooldownSeconds": c.cooldown_seconds,
                },
                "timeValidation": {
                    "minSecondsSincePageLoad": c.min_seconds_since_page_load,
                    "minSecondsBetweenMessages": c.min_seconds_between_messages,
                },
            },
            "stats": {"trackedClients": self.store.client_count()},
        }


class ActivityJanitor:
    """Periodically purges stale client activity from a gate's store."""

    def __init__(self, gate: ProtectionGate, interval_seconds: float = ONE_HOUR):
        self.gate = gate
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    def start(self):
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())
            logger.info(f"Activity janitor started (every {self.interval_seconds}s)")

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run(self):
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                self.gate.cleanup()
            except Exception as e:
                logger.error(f"Activity cleanup failed: {e}")
