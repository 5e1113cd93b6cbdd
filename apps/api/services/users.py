"""User rows for session-authenticated account holders."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from models.user import User

logger = logging.getLogger(__name__)


async def ensure_user(db: AsyncSession, user_id: str) -> User:
    """
    Return the `users` row for a session user, creating it on first use.

    Session tokens are issued outside this service, so the first write that
    references a user (state, credential or profile) has to create the row
    the foreign keys point at. The caller owns the commit.
    """
    user = await db.get(User, user_id)
    if user is None:
        user = User(id=user_id)
        db.add(user)
        await db.flush()
        logger.info("Created user row for user=%s", user_id)
    return user
