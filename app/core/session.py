"""
Session resolution: identity store session -> application profile.

SessionResolver is the single writer of the "current profile" for one
client session. Access guards and live screens only subscribe to it.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Protocol, Set

from supabase import AsyncClient

from app.config import settings
from app.modules.users.schemas import ProfileResponse
from app.realtime.subscriptions import ChangeEvent, ChangeHandlers, ChangeSubscriptionManager

logger = logging.getLogger(__name__)

SessionListener = Callable[[Optional[ProfileResponse]], Any]
ProfileLookup = Callable[[str], Awaitable[Optional[ProfileResponse]]]


@dataclass(frozen=True)
class IdentitySession:
    user_id: str
    email: Optional[str] = None
    access_token: Optional[str] = None


class IdentityStore(Protocol):
    async def get_session(self) -> Optional[IdentitySession]: ...

    def on_session_change(
        self, callback: Callable[[str, Optional[IdentitySession]], None]
    ) -> Callable[[], None]: ...


class SupabaseIdentityStore:
    """IdentityStore backed by supabase-py's async GoTrue client."""

    def __init__(self, client: AsyncClient):
        self.client = client

    @staticmethod
    def _to_identity(session) -> Optional[IdentitySession]:
        if session is None or session.user is None:
            return None
        return IdentitySession(
            user_id=session.user.id,
            email=session.user.email,
            access_token=session.access_token,
        )

    async def get_session(self) -> Optional[IdentitySession]:
        return self._to_identity(await self.client.auth.get_session())

    def on_session_change(self, callback):
        def _on_auth_state_change(event, session):
            callback(str(event), self._to_identity(session))

        subscription = self.client.auth.on_auth_state_change(_on_auth_state_change)
        return subscription.unsubscribe


class SessionResolver:
    def __init__(self, identity_store: IdentityStore, profile_lookup: ProfileLookup):
        self._identity_store = identity_store
        self._profile_lookup = profile_lookup
        self._identity: Optional[IdentitySession] = None
        self._profile: Optional[ProfileResponse] = None
        self._listeners: List[SessionListener] = []
        self._unregister: Optional[Callable[[], None]] = None
        self._tasks: Set[asyncio.Task] = set()
        self._generation = 0
        self._profile_unsubscribe = None

    @property
    def identity(self) -> Optional[IdentitySession]:
        return self._identity

    def current_session(self) -> Optional[ProfileResponse]:
        return self._profile

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a read-only listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def start(self) -> Optional[ProfileResponse]:
        """Resolve the initial session and keep one identity-store listener registered."""
        if self._unregister is None:
            self._unregister = self._identity_store.on_session_change(self._on_session_change)
        try:
            identity = await self._identity_store.get_session()
        except Exception as e:
            logger.warning(f"Could not read current session: {e}")
            identity = None
        await self._resolve(identity)
        return self._profile

    async def refresh(self) -> Optional[ProfileResponse]:
        """Re-fetch the profile for the current identity and publish it."""
        await self._resolve(self._identity)
        return self._profile

    async def watch_profile(self, manager: ChangeSubscriptionManager, table: Optional[str] = None) -> None:
        """Re-resolve whenever the current user's profile row changes (e.g. role downgrade)."""

        def _maybe_refresh(event: ChangeEvent) -> None:
            row_id = event.row_id
            if self._identity is not None and row_id == self._identity.user_id:
                self._spawn(self.refresh())

        self._profile_unsubscribe = await manager.subscribe(
            table or settings.profiles_table,
            ChangeHandlers(on_insert=_maybe_refresh, on_update=_maybe_refresh, on_delete=_maybe_refresh),
        )

    async def stop(self) -> None:
        if self._unregister is not None:
            self._unregister()
            self._unregister = None
        if self._profile_unsubscribe is not None:
            await self._profile_unsubscribe()
            self._profile_unsubscribe = None
        current = asyncio.current_task()
        for task in list(self._tasks):
            if task is not current:
                task.cancel()
        self._tasks.clear()
        self._listeners.clear()

    def _on_session_change(self, event: str, identity: Optional[IdentitySession]) -> None:
        logger.debug(f"Session change: {event}")
        self._spawn(self._resolve(identity))

    def _spawn(self, coro) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _resolve(self, identity: Optional[IdentitySession]) -> None:
        self._generation += 1
        generation = self._generation
        self._identity = identity
        profile = None
        if identity is not None:
            try:
                profile = await self._profile_lookup(identity.user_id)
            except Exception as e:
                # Fail closed: a failed lookup is indistinguishable from logged out
                logger.warning(f"Profile lookup failed for {identity.user_id}: {e}")
                profile = None
        if generation != self._generation:
            return
        self._profile = profile
        await self._publish(profile)

    async def _publish(self, profile: Optional[ProfileResponse]) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(profile)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Session listener failed")
