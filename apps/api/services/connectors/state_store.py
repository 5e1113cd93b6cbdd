"""Storage for pending authorization requests (state + PKCE verifier)."""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.oauth_state import OAuthState
from services.connectors.types import Platform
from services.users import ensure_user


logger = logging.getLogger(__name__)

DISPLAY_PAGE = "page"
DISPLAY_POPUP = "popup"


@dataclass(frozen=True)
class PendingAuthorization:
    state: str
    platform: Platform
    user_id: Optional[str]
    code_verifier: Optional[str]
    display: str = DISPLAY_PAGE


@dataclass
class CallbackContext:
    """Per-request facts the callback flow learns as it runs."""

    session_token: Optional[str] = None
    pending: Optional[PendingAuthorization] = None


class OAuthStateStore(Protocol):
    async def save(self, pending: PendingAuthorization) -> None: ...

    async def consume(self, state: str) -> Optional[PendingAuthorization]:
        """Return and forget the pending request, or None if unknown or expired."""
        ...


def new_state() -> str:
    return secrets.token_urlsafe(24)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SqlOAuthStateStore:
    def __init__(
        self,
        db: AsyncSession,
        *,
        ttl_seconds: int = 600,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.db = db
        self.ttl_seconds = ttl_seconds
        self._now = now

    async def save(self, pending: PendingAuthorization) -> None:
        if pending.user_id:
            await ensure_user(self.db, pending.user_id)
        self.db.add(
            OAuthState(
                state=pending.state,
                platform=pending.platform.value,
                user_id=pending.user_id,
                code_verifier=pending.code_verifier,
                display=pending.display,
                expires_at=self._now() + timedelta(seconds=self.ttl_seconds),
            )
        )
        await self.db.commit()

    async def consume(self, state: str) -> Optional[PendingAuthorization]:
        result = await self.db.execute(select(OAuthState).where(OAuthState.state == state))
        record = result.scalar_one_or_none()
        if record is None:
            return None

        await self.db.delete(record)
        await self.db.commit()

        if _as_utc(record.expires_at) <= self._now():
            logger.info("Discarded expired OAuth state for platform=%s", record.platform)
            return None
        try:
            platform = Platform(record.platform)
        except ValueError:
            return None
        return PendingAuthorization(
            state=record.state,
            platform=platform,
            user_id=record.user_id,
            code_verifier=record.code_verifier,
            display=record.display or DISPLAY_PAGE,
        )
