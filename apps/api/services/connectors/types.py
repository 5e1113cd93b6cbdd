"""Connector provider contracts."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from config import ConnectorConfigurationError


class Platform(str, Enum):
    TWITTER = "twitter"
    LINKEDIN = "linkedin"
    FACEBOOK = "facebook"
    INSTAGRAM = "instagram"

    @property
    def display_name(self) -> str:
        return {
            Platform.TWITTER: "Twitter",
            Platform.LINKEDIN: "LinkedIn",
            Platform.FACEBOOK: "Facebook",
            Platform.INSTAGRAM: "Instagram",
        }[self]

    @classmethod
    def parse(cls, value: str) -> "Platform":
        try:
            return cls(value)
        except ValueError as exc:
            raise UnsupportedPlatformError(f"Unsupported platform: {value}") from exc


class ConnectorError(RuntimeError):
    """Base class for every failure the callback flow can report."""

    kind = "ConnectorError"


class ProviderDeniedAuthError(ConnectorError):
    """The provider redirected back with an `error` parameter."""

    kind = "ProviderDeniedAuth"


class MissingParametersError(ConnectorError):
    kind = "MissingParameters"


class UnsupportedPlatformError(ConnectorError):
    kind = "UnsupportedPlatform"


class InvalidStateError(ConnectorError):
    """The `state` parameter does not match a pending authorization request."""

    kind = "InvalidState"


class TokenExchangeError(ConnectorError):
    kind = "TokenExchangeFailed"


class PersistenceError(ConnectorError):
    kind = "PersistenceFailed"


class NoAuthenticatedUserError(PersistenceError):
    kind = "NoAuthenticatedUser"


def error_kind(exc: BaseException) -> str:
    if isinstance(exc, (ConnectorError, ConnectorConfigurationError)):
        return exc.kind
    return "Unexpected"


@dataclass(frozen=True)
class CallbackParameters:
    platform: Platform
    code: str
    state: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class TokenSet:
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None

    def __repr__(self) -> str:
        # Token material never reaches logs through repr().
        refresh = "'***'" if self.refresh_token else None
        return f"TokenSet(access_token='***', refresh_token={refresh}, expires_at={self.expires_at!r})"


@dataclass(frozen=True)
class ConnectorStartResult:
    platform: Platform
    connect_url: str
    state: str
    provider: str
