"""
Session Event Constants
=======================

Noms d'evenements emis vers la couche UI par le session store.

Usage:
    from fineer.events import SESSION_EVENTS

    notifier(SESSION_EVENTS.EXPIRED, {"message": ..., "expiredAt": ...})

Convention de nommage:
- Prefixe par domaine (SESSION)
- Suffixe par action (EXPIRED)
"""


# ============================================
# SESSION Events
# ============================================
class SessionEvents:
    """Evenements de cycle de vie de la session."""
    EXPIRED = "session.expired"


SESSION_EVENTS = SessionEvents()

SESSION_EXPIRED_MESSAGE = "Your session has expired. Please sign in again."


__all__ = [
    "SessionEvents",
    "SESSION_EVENTS",
    "SESSION_EXPIRED_MESSAGE",
]
