"""
fineer - data cache and session state core for the fineer portal.
"""

from .cache import MemoryCache
from .context import AppContext, build_context
from .session import SessionState, SessionStatus, SessionStore

__all__ = [
    "AppContext",
    "build_context",
    "MemoryCache",
    "SessionState",
    "SessionStatus",
    "SessionStore",
]
