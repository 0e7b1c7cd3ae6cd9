"""
API Routes for the chat lead service.
"""

from . import chat, protection

__all__ = ["chat", "protection"]
