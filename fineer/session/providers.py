"""
Auth Provider & Profile Store Adapters
======================================

Narrow interfaces the session store depends on, plus their Firebase-backed
implementations.

Interfaces:
    - AuthProvider: subscribe_auth_changes(callback), sign_out()
    - ProfileStore: query_user_record(uid) -> Profile | None

Firebase implementations:
    - FirebaseAuthProvider: verifies Firebase ID tokens with the Admin SDK and
      broadcasts the resulting principal (or None) to subscribers
    - FirestoreProfileStore: single-document lookup in the profile collection
      keyed by the Firebase uid

Blocking SDK calls are offloaded with asyncio.to_thread so the event loop keeps
serving other coroutines.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Protocol

from firebase_admin import auth as firebase_auth
from google.cloud.firestore_v1.base_query import FieldFilter

from ..errors import AuthenticationError, LookupTransientError, ProviderError
from .models import Principal, Profile

logger = logging.getLogger("session.providers")

AuthCallback = Callable[[Optional[Principal]], Awaitable[None]]
Unsubscribe = Callable[[], None]


class AuthProvider(Protocol):
    async def subscribe_auth_changes(self, callback: AuthCallback) -> Unsubscribe: ...

    async def sign_out(self) -> None: ...


class ProfileStore(Protocol):
    async def query_user_record(self, uid: str) -> Optional[Profile]: ...


class FirebaseAuthProvider:
    """
    Firebase Auth as seen from the session store.

    Subscribers are awaited one after the other, so a transition triggered by
    one event runs to completion before the next subscriber (or the next
    event) is served.
    """

    def __init__(self, firebase_app=None):
        self._app = firebase_app
        self._subscribers: List[AuthCallback] = []
        self._current: Optional[Principal] = None

    @property
    def current_principal(self) -> Optional[Principal]:
        return self._current

    async def subscribe_auth_changes(self, callback: AuthCallback) -> Unsubscribe:
        """Register `callback` and immediately replay the current principal."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        await callback(self._current)
        return unsubscribe

    async def _notify(self, principal: Optional[Principal]) -> None:
        for callback in list(self._subscribers):
            await callback(principal)

    async def sign_in_with_id_token(self, id_token: str) -> Principal:
        """
        Verify a Firebase ID token and report the principal to subscribers.

        Raises:
            AuthenticationError: token missing, invalid or expired
        """
        if not id_token:
            raise AuthenticationError("Missing Firebase token")

        # clock_skew_seconds=5 tolerates small clock drift between client and server
        try:
            decoded_token = await asyncio.to_thread(
                firebase_auth.verify_id_token,
                id_token,
                app=self._app,
                clock_skew_seconds=5,
            )
        except firebase_auth.ExpiredIdTokenError as e:
            logger.error(f"[AUTH] Expired Firebase token: {e}")
            raise AuthenticationError("Firebase token expired") from e
        except firebase_auth.InvalidIdTokenError as e:
            if "Token used too early" in str(e):
                logger.warning(f"[AUTH] Clock skew detected: {e}")
            logger.error(f"[AUTH] Invalid Firebase token: {e}")
            raise AuthenticationError("Invalid Firebase token") from e
        except Exception as e:
            logger.error(f"[AUTH] Firebase token verification failed: {e}")
            raise AuthenticationError(f"Token verification failed: {e}") from e

        principal = Principal.from_decoded_token(decoded_token)
        logger.info(f"[AUTH] Token verified successfully for uid={principal.uid}")
        self._current = principal
        await self._notify(principal)
        return principal

    async def sign_out(self) -> None:
        """
        Revoke the current user's refresh tokens and report sign-out.

        Subscribers are notified even when revocation fails; the failure is
        then raised as ProviderError.
        """
        principal = self._current
        if principal is None:
            return
        self._current = None

        failure: Optional[Exception] = None
        try:
            await asyncio.to_thread(
                firebase_auth.revoke_refresh_tokens, principal.uid, app=self._app
            )
            logger.info(f"[AUTH] Refresh tokens revoked for uid={principal.uid}")
        except Exception as e:
            failure = e

        await self._notify(None)
        if failure is not None:
            raise ProviderError("sign_out") from failure


class FirestoreProfileStore:
    """Profile lookup in a Firestore collection whose documents carry a `uid` field."""

    def __init__(self, firestore_client, collection: str = "pegawai"):
        self._db = firestore_client
        self.collection = collection

    def _query(self, uid: str) -> Optional[Profile]:
        query = (
            self._db.collection(self.collection)
            .where(filter=FieldFilter("uid", "==", uid))
            .limit(1)
        )
        for doc in query.get():
            return Profile(id=doc.id, data=doc.to_dict() or {})
        return None

    async def query_user_record(self, uid: str) -> Optional[Profile]:
        try:
            return await asyncio.to_thread(self._query, uid)
        except Exception as e:
            logger.error(f"[SESSION] Firestore lookup failed for uid={uid}: {e}")
            raise LookupTransientError(uid) from e
