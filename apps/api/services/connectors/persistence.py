"""Credential persistence gateway for exchanged provider tokens."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.connection import Connection
from services.connectors.state_store import CallbackContext
from services.connectors.types import Platform, PersistenceError
from services.crypto import encrypt_optional_token, encrypt_token
from services.users import ensure_user
from services.session_token import session_user_id


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredCredential:
    platform: Platform
    access_token: str
    refresh_token: Optional[str]
    expires_at: Optional[datetime]
    user_id: str

    def to_record(self) -> Dict[str, Any]:
        return {
            "platform": self.platform.value,
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "user_id": self.user_id,
        }


class CredentialStore(Protocol):
    async def upsert(self, record: StoredCredential) -> None: ...


class UserResolver(Protocol):
    async def current_user_id(self) -> Optional[str]: ...


class SocialAccountNotifier(Protocol):
    """Downstream registration of a connected account."""

    async def connect_account(self, platform: str) -> None: ...


class SessionUserResolver:
    """Resolves the user who started the authorization, falling back to the session cookie."""

    def __init__(self, context: CallbackContext) -> None:
        self.context = context

    async def current_user_id(self) -> Optional[str]:
        pending = self.context.pending
        if pending is not None and pending.user_id:
            return pending.user_id
        return session_user_id(self.context.session_token)


class SqlCredentialStore:
    """Upserts one encrypted `connections` row per (user, platform)."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def upsert(self, record: StoredCredential) -> None:
        platform = record.platform.value
        try:
            await ensure_user(self.db, record.user_id)
            result = await self.db.execute(
                select(Connection).where(
                    Connection.user_id == record.user_id,
                    Connection.platform == platform,
                )
            )
            connection = result.scalar_one_or_none()
            if connection is None:
                connection = Connection(user_id=record.user_id, platform=platform)
                self.db.add(connection)

            connection.access_token_encrypted = encrypt_token(record.access_token)
            connection.refresh_token_encrypted = encrypt_optional_token(record.refresh_token)
            connection.expires_at = record.expires_at
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.exception("Credential upsert failed for user=%s platform=%s", record.user_id, platform)
            raise PersistenceError(f"Failed to store {record.platform.display_name} credentials") from exc

        logger.info("Stored %s credentials for user=%s", platform, record.user_id)
