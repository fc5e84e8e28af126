"""
Session - authentication state bounded by a wall-clock session duration.

Usage:
    from fineer.session import SessionStore, SessionStatus

    store = SessionStore(auth_provider, profile_store, expiry_marker)
    await store.start()
    store.subscribe(lambda state: print(state.status))
"""

from .expiry_marker import ExpiryMarker, InMemoryExpiryMarker, RedisExpiryMarker
from .models import INITIAL_STATE, Principal, Profile, SessionState, SessionStatus
from .providers import (
    AuthProvider,
    FirebaseAuthProvider,
    FirestoreProfileStore,
    ProfileStore,
)
from .store import (
    EXPIRY_CHECK_INTERVAL_SECONDS,
    SESSION_DURATION_SECONDS,
    SessionStore,
)

__all__ = [
    # State
    "INITIAL_STATE",
    "Principal",
    "Profile",
    "SessionState",
    "SessionStatus",
    # Store
    "EXPIRY_CHECK_INTERVAL_SECONDS",
    "SESSION_DURATION_SECONDS",
    "SessionStore",
    # Collaborators
    "AuthProvider",
    "ProfileStore",
    "FirebaseAuthProvider",
    "FirestoreProfileStore",
    "ExpiryMarker",
    "InMemoryExpiryMarker",
    "RedisExpiryMarker",
]
