"""
Application context.

Le cache et le session store sont construits une seule fois par la racine de
l'application puis passés explicitement aux consommateurs (pas de singleton au
niveau module).

Usage:
    context = build_context()
    await context.start()
    employees = await context.cache.get_data("employees", load_employees)
    ...
    await context.close()
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .cache import MemoryCache
from .config import Settings, get_settings
from .logging_setup import configure_logging
from .session import (
    AuthProvider,
    ExpiryMarker,
    FirebaseAuthProvider,
    FirestoreProfileStore,
    InMemoryExpiryMarker,
    ProfileStore,
    RedisExpiryMarker,
    SessionStore,
)
from .session.store import Notifier

logger = logging.getLogger("context")


@dataclass
class AppContext:
    settings: Settings
    cache: MemoryCache
    session: SessionStore

    async def start(self) -> None:
        await self.session.start()
        logger.info("✅ [CONTEXT] Session store démarré")

    async def close(self) -> None:
        await self.session.close()
        self.cache.clear_all()
        logger.info("[CONTEXT] Contexte fermé")


def _build_expiry_marker(settings: Settings) -> ExpiryMarker:
    if settings.session_marker_backend == "redis":
        from .redis_client import create_redis

        return RedisExpiryMarker(create_redis(settings), prefix=settings.session_marker_prefix)
    if settings.session_marker_backend != "memory":
        logger.warning(
            f"⚠️ [CONTEXT] SESSION_MARKER_BACKEND inconnu: {settings.session_marker_backend}, "
            f"utilisation de 'memory'"
        )
    return InMemoryExpiryMarker()


def build_context(
    settings: Optional[Settings] = None,
    *,
    auth_provider: Optional[AuthProvider] = None,
    profile_store: Optional[ProfileStore] = None,
    expiry_marker: Optional[ExpiryMarker] = None,
    notifier: Optional[Notifier] = None,
    setup_logging: bool = True,
) -> AppContext:
    """
    Assemble le contexte applicatif.

    Les collaborateurs non fournis sont construits depuis `settings`:
    Firebase Auth, Firestore (collection des profils) et le marqueur
    d'expiration (Redis ou mémoire).

    Avec `setup_logging`, installe aussi le format de logs clé=valeur au
    niveau `settings.log_level` (point d'entrée unique de l'application).
    """
    settings = settings or get_settings()
    if setup_logging:
        configure_logging(settings.log_level)

    if auth_provider is None:
        from .firebase_client import get_firebase_app

        auth_provider = FirebaseAuthProvider(get_firebase_app(settings))
    if profile_store is None:
        from .firebase_client import create_firestore

        profile_store = FirestoreProfileStore(
            create_firestore(settings), collection=settings.profile_collection
        )
    if expiry_marker is None:
        expiry_marker = _build_expiry_marker(settings)

    cache: MemoryCache = MemoryCache(default_ttl_seconds=settings.cache_default_ttl_seconds)
    session = SessionStore(
        auth_provider,
        profile_store,
        expiry_marker,
        session_duration_seconds=settings.session_duration_seconds,
        expiry_check_interval_seconds=settings.session_expiry_check_interval_seconds,
        notifier=notifier,
    )
    return AppContext(settings=settings, cache=cache, session=session)
