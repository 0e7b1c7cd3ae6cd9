"""
Bot Protection Module.

Multi-layer protection for inbound chat messages:
- Rate limiting per client (hard block)
- Honeypot field validation
- Submission timing heuristics
- Spam pattern detection
"""

from .activity_store import ClientActivityStore, InMemoryActivityStore
from .gate import (
    ActivityJanitor,
    ProtectionActions,
    ProtectionConfig,
    ProtectionGate,
    ProtectionRequest,
    ProtectionVerdict,
)

__all__ = [
    "ClientActivityStore",
    "InMemoryActivityStore",
    "ActivityJanitor",
    "ProtectionActions",
    "ProtectionConfig",
    "ProtectionGate",
    "ProtectionRequest",
    "ProtectionVerdict",
]
