"""
Session Store - Session-bounded authentication state
=====================================================

Observable state machine tracking who is signed in, driven by auth-provider
events and a wall-clock expiry check.

States:
    ANONYMOUS -> AUTHENTICATING -> AUTHENTICATED -> EXPIRED -> ANONYMOUS

Flow (principal reported by the provider):
    1. Publish AUTHENTICATING
    2. Persisted expiry already passed -> EXPIRED, sign-out cleanup, no lookup
    3. Look up the application profile for the principal uid
       - no record      -> ProfileNotFound, provider sign-out, ANONYMOUS
       - lookup failure -> LookupTransientError, ANONYMOUS (no retry)
       - record found   -> persist now + 8h, arm the expiry check, AUTHENTICATED

Expiry check:
    A single asyncio task per store sleeps `expiry_check_interval_seconds`
    between checks. Arming always cancels the previous task first. The check
    ignores every status except AUTHENTICATED, so a lookup in progress can never
    be expired under its feet. When it fires it emits one `session.expired`
    notice and ends itself.

Stale lookups:
    Every provider event (and every explicit sign-out or expiry) bumps a
    generation counter. A lookup that completes after a newer event is dropped.
"""

import asyncio
import inspect
import logging
import time
from dataclasses import replace
from typing import Any, Callable, List, Optional

from ..errors import LookupTransientError, ProfileNotFound
from ..events import SESSION_EVENTS, SESSION_EXPIRED_MESSAGE
from .expiry_marker import ExpiryMarker
from .models import INITIAL_STATE, Principal, SessionState, SessionStatus
from .providers import AuthProvider, ProfileStore

logger = logging.getLogger("session.store")

SESSION_DURATION_SECONDS = 8 * 60 * 60
EXPIRY_CHECK_INTERVAL_SECONDS = 60

StateListener = Callable[[SessionState], None]
Notifier = Callable[[str, dict], Any]


class SessionStore:
    def __init__(
        self,
        auth_provider: AuthProvider,
        profile_store: ProfileStore,
        expiry_marker: ExpiryMarker,
        session_duration_seconds: float = SESSION_DURATION_SECONDS,
        expiry_check_interval_seconds: float = EXPIRY_CHECK_INTERVAL_SECONDS,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            auth_provider: Source of principal present/absent events
            profile_store: Lookup of the application profile by uid
            expiry_marker: Persisted `sessionExpiryMillis` (survives restarts)
            session_duration_seconds: Session lifetime from login/refresh
            expiry_check_interval_seconds: Period of the expiry check
            notifier: Called as notifier(event_type, payload) for user-visible
                notices; may be sync or async
            clock: Wall clock in epoch seconds (injectable for tests)
        """
        self._auth = auth_provider
        self._profiles = profile_store
        self._marker = expiry_marker
        self.session_duration_seconds = session_duration_seconds
        self.expiry_check_interval_seconds = expiry_check_interval_seconds
        self._notifier = notifier
        self._clock = clock

        self._state: SessionState = INITIAL_STATE
        self._listeners: List[StateListener] = []
        self._settled = asyncio.Event()
        self._generation = 0
        self._expiry_task: Optional[asyncio.Task] = None
        self._unsubscribe_provider: Optional[Callable[[], None]] = None

    # =========================================================================
    # OBSERVABLE
    # =========================================================================

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def expiry_check_armed(self) -> bool:
        return self._expiry_task is not None and not self._expiry_task.done()

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Call `listener` now with the current state, then on every change."""
        self._listeners.append(listener)
        self._call_listener(listener, self._state)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _call_listener(self, listener: StateListener, state: SessionState) -> None:
        try:
            listener(state)
        except Exception as e:
            logger.error(f"[SESSION] State listener failed: {e}", exc_info=True)

    def _set_state(self, state: SessionState) -> None:
        if state == self._state:
            return
        previous = self._state.status
        self._state = state
        if not state.loading:
            self._settled.set()
        logger.info(
            f"[SESSION] {previous.value} -> {state.status.value} "
            f"uid={state.principal.uid if state.principal else None}"
        )
        for listener in list(self._listeners):
            self._call_listener(listener, state)

    async def wait_until_settled(self) -> SessionState:
        """Resolve once the initial provider report has been processed."""
        await self._settled.wait()
        return self._state

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def start(self) -> None:
        if self._unsubscribe_provider is not None:
            return
        self._unsubscribe_provider = await self._auth.subscribe_auth_changes(
            self.handle_auth_change
        )

    async def close(self) -> None:
        if self._unsubscribe_provider is not None:
            self._unsubscribe_provider()
            self._unsubscribe_provider = None
        self._cancel_expiry_check()

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    def _now_millis(self) -> int:
        return int(self._clock() * 1000)

    def _read_marker(self) -> Optional[int]:
        # An unreadable marker counts as absent; the in-state expiry still applies
        try:
            return self._marker.read()
        except Exception as e:
            logger.error(f"[SESSION] Expiry marker read failed: {e}", exc_info=True)
            return None

    def _write_marker(self, expires_at: int) -> None:
        try:
            self._marker.write(expires_at)
        except Exception as e:
            logger.error(f"[SESSION] Expiry marker write failed: {e}", exc_info=True)

    def _clear_marker(self) -> None:
        try:
            self._marker.clear()
        except Exception as e:
            logger.error(f"[SESSION] Expiry marker clear failed: {e}", exc_info=True)

    def _expiry_passed(self, fallback: Optional[int] = None) -> bool:
        expires_at = self._read_marker()
        if expires_at is None:
            expires_at = fallback
        return expires_at is not None and self._now_millis() >= expires_at

    async def handle_auth_change(self, principal: Optional[Principal]) -> None:
        """Provider callback: `principal` is the signed-in identity or None."""
        self._generation += 1
        generation = self._generation

        if principal is None:
            self._clear_marker()
            self._cancel_expiry_check()
            # Keep an error reported by a cleanup that triggered this event
            if self._state.status is not SessionStatus.ANONYMOUS or self._state.loading:
                self._set_state(SessionState())
            return

        self._set_state(
            SessionState(status=SessionStatus.AUTHENTICATING, principal=principal, loading=True)
        )

        if self._expiry_passed():
            logger.info(f"[SESSION] Persisted session expired before restore uid={principal.uid}")
            self._set_state(SessionState(status=SessionStatus.EXPIRED, principal=principal))
            await self._sign_out_cleanup()
            return

        try:
            profile = await self._profiles.query_user_record(principal.uid)
        except Exception as e:
            if generation != self._generation:
                return
            error = e if isinstance(e, LookupTransientError) else LookupTransientError(principal.uid)
            if error is not e:
                error.__cause__ = e
            logger.error(f"[SESSION] Error fetching user data for uid={principal.uid}: {e}")
            self._cancel_expiry_check()
            self._set_state(SessionState(error=error))
            return

        if generation != self._generation:
            logger.info(f"[SESSION] Dropping stale profile lookup for uid={principal.uid}")
            return

        if profile is None:
            logger.error(
                f"[SESSION] No profile record for uid={principal.uid}; "
                f"check the profile collection, forcing sign-out"
            )
            await self._sign_out_cleanup(error=ProfileNotFound(principal.uid))
            return

        expires_at = self._now_millis() + int(self.session_duration_seconds * 1000)
        self._write_marker(expires_at)
        self._arm_expiry_check()
        self._set_state(
            SessionState(
                status=SessionStatus.AUTHENTICATED,
                principal=principal,
                profile=profile,
                expires_at_millis=expires_at,
            )
        )

    async def sign_out(self) -> None:
        """Explicit sign-out: same cleanup as an expiry, without the notice."""
        self._generation += 1
        logger.info("[SESSION] Sign-out requested")
        await self._sign_out_cleanup()

    def refresh_session(self) -> bool:
        """
        Push the expiry back to now + session duration (e.g. on user activity).

        Must be called from the running event loop. Returns False when no
        session is authenticated.
        """
        if self._state.status is not SessionStatus.AUTHENTICATED:
            return False
        expires_at = self._now_millis() + int(self.session_duration_seconds * 1000)
        self._write_marker(expires_at)
        self._arm_expiry_check()
        self._set_state(replace(self._state, expires_at_millis=expires_at))
        logger.debug(f"[SESSION] Session refreshed until {expires_at}")
        return True

    async def _sign_out_cleanup(self, error=None) -> None:
        self._cancel_expiry_check()
        self._clear_marker()
        self._set_state(SessionState(error=error))
        try:
            await self._auth.sign_out()
        except Exception as e:
            logger.warning(f"[SESSION] Provider sign-out failed, local session cleared anyway: {e}")

    # =========================================================================
    # EXPIRY CHECK
    # =========================================================================

    def _arm_expiry_check(self) -> None:
        self._cancel_expiry_check()
        self._expiry_task = asyncio.create_task(
            self._expiry_check_loop(), name="session-expiry-check"
        )

    def _cancel_expiry_check(self) -> None:
        task = self._expiry_task
        self._expiry_task = None
        if task is not None and not task.done():
            task.cancel()

    async def _expiry_check_loop(self) -> None:
        while True:
            await asyncio.sleep(self.expiry_check_interval_seconds)
            try:
                if await self.check_expiry():
                    return
            except Exception as e:
                logger.error(f"[SESSION] Expiry check failed, retrying next interval: {e}", exc_info=True)

    async def check_expiry(self) -> bool:
        """Run one expiry check; returns True when the session was expired."""
        state = self._state
        if state.status is not SessionStatus.AUTHENTICATED:
            return False
        if not self._expiry_passed(fallback=state.expires_at_millis):
            return False

        # The check task finishes on its own; cleanup must not cancel it
        if self._expiry_task is asyncio.current_task():
            self._expiry_task = None
        self._generation += 1
        logger.warning(
            f"[SESSION] Session expired uid={state.principal.uid if state.principal else None}"
        )
        self._set_state(replace(state, status=SessionStatus.EXPIRED))
        await self._sign_out_cleanup()
        await self._notify(
            SESSION_EVENTS.EXPIRED,
            {"message": SESSION_EXPIRED_MESSAGE, "expiredAt": state.expires_at_millis},
        )
        return True

    async def _notify(self, event_type: str, payload: dict) -> None:
        if self._notifier is None:
            return
        try:
            result = self._notifier(event_type, payload)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"[SESSION] Notifier failed for {event_type}: {e}", exc_info=True)
