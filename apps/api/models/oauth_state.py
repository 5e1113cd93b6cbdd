"""Pending OAuth authorization requests."""

from sqlalchemy import Column, String, DateTime, ForeignKey, Text
from sqlalchemy.sql import func

from database import Base


class OAuthState(Base):
    """State and PKCE verifier issued when an authorization request starts."""

    __tablename__ = "oauth_states"

    state = Column(String, primary_key=True)
    platform = Column(String, nullable=False)
    user_id = Column(String, ForeignKey("users.id"), nullable=True, index=True)
    code_verifier = Column(Text, nullable=True)
    display = Column(String, nullable=False, default="page")  # page, popup
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
