"""
Social media account registration.

The callback flow reports every successful connection here; the rest of the
product reads connected accounts from the `profiles` table.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.profile import Profile
from services.connectors.persistence import UserResolver
from services.connectors.types import NoAuthenticatedUserError, PersistenceError
from services.users import ensure_user

logger = logging.getLogger(__name__)


class SocialAccountService:
    def __init__(self, db: AsyncSession, user_resolver: UserResolver) -> None:
        self.db = db
        self.user_resolver = user_resolver

    async def connect_account(self, platform: str) -> None:
        user_id: Optional[str] = await self.user_resolver.current_user_id()
        if not user_id:
            raise NoAuthenticatedUserError("No authenticated user to attach the account to")

        try:
            await ensure_user(self.db, user_id)
            result = await self.db.execute(
                select(Profile).where(Profile.user_id == user_id, Profile.platform == platform)
            )
            profile = result.scalar_one_or_none()
            if profile is None:
                profile = Profile(user_id=user_id, platform=platform)
                self.db.add(profile)
            profile.status = "connected"
            profile.connected_at = datetime.now(timezone.utc)
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.exception("Account registration failed for user=%s platform=%s", user_id, platform)
            raise PersistenceError(f"Failed to register {platform} account") from exc

        logger.info("Connected %s account for user=%s", platform, user_id)
