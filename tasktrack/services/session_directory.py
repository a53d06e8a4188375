"""
Session directory: the bounded set of refresh tokens per account.

Each active refresh token is one session (one device or client). Saving a
token purges the account's expired tokens and evicts the oldest active ones
so that at most max_sessions stay active. Saving and rotating run under a
per-account asyncio.Lock, so concurrent logins and refreshes of one account
cannot overshoot the cap or rotate the same token twice.
"""
import asyncio
import logging
import weakref
from datetime import datetime
from typing import List, Optional

from tasktrack.clock import Clock, utcnow
from tasktrack.errors import SessionNotOwned
from tasktrack.models import RefreshToken
from tasktrack.stores.base import RefreshTokenStore
from tasktrack.utils.logger import get_audit_logger

logger = logging.getLogger(__name__)
audit = get_audit_logger("tasktrack.audit.sessions")

MAX_ACTIVE_SESSIONS = 5


class SessionDirectory:

    def __init__(self, store: RefreshTokenStore, clock: Clock = utcnow,
                 max_sessions: int = MAX_ACTIVE_SESSIONS):
        self.store = store
        self.clock = clock
        self.max_sessions = max_sessions
        # A lock lives only while some coroutine holds or awaits it
        self._locks: "weakref.WeakValueDictionary[int, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock(self, account_id: int) -> asyncio.Lock:
        lock = self._locks.get(account_id)
        if lock is None:
            lock = self._locks[account_id] = asyncio.Lock()
        return lock

    async def save(self, account_id: int, token: str, expires_at: datetime) -> RefreshToken:
        async with self._lock(account_id):
            return await self._save_locked(account_id, token, expires_at)

    async def _save_locked(self, account_id: int, token: str, expires_at: datetime) -> RefreshToken:
        now = self.clock()

        purged = await self.store.delete_expired(account_id, now)
        if purged:
            logger.debug("Purged %d expired refresh tokens for account %s", purged, account_id)

        active = await self.store.list_active(account_id, now)
        overflow = len(active) - self.max_sessions + 1
        if overflow > 0:
            oldest_first = sorted(active, key=lambda t: (t.created_at, t.id))
            for evicted in oldest_first[:overflow]:
                await self.store.delete(evicted.id)
                audit.info("session_evicted", account_id=account_id,
                           token_id=evicted.id, token_preview=evicted.preview)

        record = RefreshToken(
            token=token,
            account_id=account_id,
            expires_at=expires_at,
            is_revoked=False,
            created_at=now,
            updated_at=now,
        )
        return await self.store.add(record)

    async def list_active(self, account_id: int) -> List[RefreshToken]:
        """Active sessions, newest first."""
        return await self.store.list_active(account_id, self.clock())

    async def find_active(self, token: str) -> Optional[RefreshToken]:
        if not token:
            return None
        record = await self.store.get_by_token(token)
        if record is None or not record.is_active(self.clock()):
            return None
        return record

    async def is_active(self, token: str) -> bool:
        return await self.find_active(token) is not None

    async def revoke_by_id(self, token_id: int) -> bool:
        """Revoke one session; False (and no change) when missing or already inactive."""
        record = await self.store.get(token_id)
        if record is None:
            return False

        async with self._lock(record.account_id):
            record = await self.store.get(token_id)
            now = self.clock()
            if record is None or not record.is_active(now):
                return False
            record.revoke(now)
            await self.store.update(record)

        audit.info("session_revoked", account_id=record.account_id,
                   token_id=record.id, token_preview=record.preview)
        return True

    async def revoke_by_token(self, token: str) -> bool:
        """Revoke by value; False when unknown or already revoked."""
        if not token:
            return False
        record = await self.store.get_by_token(token)
        if record is None:
            return False

        async with self._lock(record.account_id):
            record = await self.store.get_by_token(token)
            if record is None or record.is_revoked:
                return False
            record.revoke(self.clock())
            await self.store.update(record)

        audit.info("session_revoked", account_id=record.account_id,
                   token_id=record.id, token_preview=record.preview)
        return True

    async def revoke_all(self, account_id: int) -> int:
        async with self._lock(account_id):
            revoked = await self.store.revoke_all(account_id, self.clock())
        audit.info("sessions_revoked_all", account_id=account_id, count=revoked)
        return revoked

    async def revoke_all_except(self, account_id: int, current_token: Optional[str]) -> int:
        """Revoke every active session of the account except the one holding current_token."""
        revoked = 0
        async with self._lock(account_id):
            now = self.clock()
            for record in await self.store.list_active(account_id, now):
                if current_token and record.token == current_token:
                    continue
                record.revoke(now)
                await self.store.update(record)
                revoked += 1
        audit.info("sessions_revoked_others", account_id=account_id, count=revoked)
        return revoked

    async def revoke_owned(self, account_id: int, token_id: int) -> None:
        """
        Revoke a session on behalf of its owner.

        Raises:
            SessionNotOwned: If token_id is not one of the account's active sessions
        """
        active = await self.list_active(account_id)
        if token_id not in {record.id for record in active}:
            audit.warning("session_revoke_denied", account_id=account_id, token_id=token_id)
            raise SessionNotOwned()
        await self.revoke_by_id(token_id)

    async def rotate(self, old_token: str, account_id: int, new_token: str, expires_at: datetime) -> bool:
        """
        Replace old_token with new_token atomically for this account.

        Returns False when old_token is no longer active (e.g. a concurrent
        rotation already consumed it); nothing is changed in that case.
        """
        async with self._lock(account_id):
            now = self.clock()
            current = await self.store.get_by_token(old_token)
            if current is None or current.account_id != account_id or not current.is_active(now):
                return False

            current.revoke(now)
            await self.store.update(current)
            saved = await self._save_locked(account_id, new_token, expires_at)

        audit.info("session_rotated", account_id=account_id,
                   old_token_id=current.id, new_token_id=saved.id, token_preview=saved.preview)
        return True
