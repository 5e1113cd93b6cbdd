"""Per-platform OAuth token exchange adapters."""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from config import OAuthClientConfig, ProviderCredentials
from services.connectors.pkce import CODE_CHALLENGE_METHOD
from services.connectors.types import Platform, TokenExchangeError, TokenSet


logger = logging.getLogger(__name__)

ClientFactory = Callable[[], httpx.AsyncClient]
Clock = Callable[[], datetime]

# Longer lifetimes are clamped; datetime arithmetic overflows past year 9999.
MAX_TOKEN_LIFETIME_SECONDS = 10 * 365 * 24 * 60 * 60

FORM_HEADERS = {
    "Content-Type": "application/x-www-form-urlencoded",
    "Accept": "application/json",
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class _TokenResponse(BaseModel):
    """Token endpoint payload; providers add fields we do not use."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_in: Optional[float] = None
    token_type: Optional[str] = None
    # Facebook nests an object here, the others use a string code.
    error: Optional[Any] = None
    error_description: Optional[str] = None


class BaseConnectorProvider(ABC):
    platform: Platform
    provider_name: str
    http_method: str = "POST"
    requires_pkce: bool = False

    def __init__(
        self,
        oauth_config: OAuthClientConfig,
        *,
        client_factory: Optional[ClientFactory] = None,
        now: Clock = utc_now,
    ) -> None:
        self.oauth_config = oauth_config
        self.endpoints = oauth_config.endpoints[self.platform.value]
        self._client_factory = client_factory or self._default_client
        self._now = now

    def _default_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.oauth_config.timeout_seconds)

    @property
    def redirect_uri(self) -> str:
        # Must match the redirect URI registered with the provider byte for byte.
        return f"{self.oauth_config.app_origin}/auth/callback?platform={self.platform.value}"

    @property
    def credentials(self) -> ProviderCredentials:
        return self.oauth_config.require(self.platform.value)

    def build_authorize_url(self, *, state: str, code_challenge: Optional[str] = None) -> str:
        if self.requires_pkce and not code_challenge:
            raise ValueError(f"{self.platform.display_name} authorization requires a PKCE code challenge")
        params: List[Tuple[str, str]] = [
            ("response_type", "code"),
            ("client_id", self.credentials.client_id),
            ("redirect_uri", self.redirect_uri),
            ("scope", self.endpoints.scope),
            ("state", state),
        ]
        if code_challenge:
            params.append(("code_challenge", code_challenge))
            params.append(("code_challenge_method", CODE_CHALLENGE_METHOD))
        return f"{self.endpoints.authorize_url}?{urlencode(params)}"

    @abstractmethod
    def token_request_fields(self, code: str, code_verifier: Optional[str]) -> Dict[str, str]:
        """Form fields the provider's token endpoint expects, in wire order."""
        raise NotImplementedError

    def failure_message(self, payload: Optional[Dict[str, Any]]) -> str:
        return f"Failed to get {self.platform.display_name} access token"

    async def exchange(self, code: str, *, code_verifier: Optional[str] = None) -> TokenSet:
        """Trade an authorization code for the provider's tokens."""
        fields = self.token_request_fields(code, code_verifier)
        response = await self._send(fields)
        token = self._parse_token_response(response)
        return TokenSet(
            access_token=token.access_token or "",
            refresh_token=token.refresh_token or None,
            expires_at=self._expires_at(token.expires_in),
        )

    def _expires_at(self, expires_in: Optional[float]) -> Optional[datetime]:
        if expires_in is None:
            return None
        if not math.isfinite(expires_in) or expires_in < 0:
            logger.warning("%s token endpoint returned unusable expires_in=%r", self.provider_name, expires_in)
            raise TokenExchangeError(self.failure_message(None))
        return self._now() + timedelta(seconds=min(expires_in, MAX_TOKEN_LIFETIME_SECONDS))

    async def _send(self, fields: Dict[str, str]) -> httpx.Response:
        try:
            async with self._client_factory() as client:
                if self.http_method == "GET":
                    return await client.get(self.endpoints.token_url, params=fields, headers=FORM_HEADERS)
                return await client.post(self.endpoints.token_url, data=fields, headers=FORM_HEADERS)
        except httpx.HTTPError as exc:
            logger.warning(
                "%s token request failed: %s: %s",
                self.platform.value,
                type(exc).__name__,
                exc,
            )
            raise TokenExchangeError(
                f"Could not reach {self.platform.display_name} to complete sign-in"
            ) from exc

    def _parse_token_response(self, response: httpx.Response) -> _TokenResponse:
        payload = self._json_object(response)

        if not response.is_success:
            logger.warning(
                "%s token endpoint returned %s: %s",
                self.platform.value,
                response.status_code,
                payload,
            )
            raise TokenExchangeError(self.failure_message(payload))

        if payload is None:
            logger.warning("%s token endpoint returned a non-object body", self.platform.value)
            raise TokenExchangeError(self.failure_message(None))

        try:
            token = _TokenResponse.model_validate(payload)
        except ValidationError as exc:
            logger.warning("%s token payload did not validate: %s", self.platform.value, exc)
            raise TokenExchangeError(self.failure_message(payload)) from exc

        if token.error is not None or not token.access_token:
            logger.warning(
                "%s token endpoint returned no access token (error=%s)",
                self.platform.value,
                token.error,
            )
            raise TokenExchangeError(self.failure_message(payload))

        return token

    @staticmethod
    def _json_object(response: httpx.Response) -> Optional[Dict[str, Any]]:
        try:
            data = response.json()
        except ValueError:
            return None
        return data if isinstance(data, dict) else None


class TwitterConnectorProvider(BaseConnectorProvider):
    """Twitter OAuth 2.0 with PKCE; the client secret is held by the token proxy."""

    platform = Platform.TWITTER
    provider_name = "twitter_oauth2_proxy"
    requires_pkce = True

    def token_request_fields(self, code: str, code_verifier: Optional[str]) -> Dict[str, str]:
        if not code_verifier:
            raise TokenExchangeError("Missing PKCE code verifier for Twitter authorization")
        return {
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": self.redirect_uri,
            "code_verifier": code_verifier,
            "client_id": self.credentials.client_id,
        }

    def failure_message(self, payload: Optional[Dict[str, Any]]) -> str:
        description = (payload or {}).get("error_description")
        if isinstance(description, str) and description.strip():
            return description.strip()
        return "Failed to get Twitter access token"


class LinkedInConnectorProvider(BaseConnectorProvider):
    platform = Platform.LINKEDIN
    provider_name = "linkedin_oauth2"

    def token_request_fields(self, code: str, code_verifier: Optional[str]) -> Dict[str, str]:
        credentials = self.credentials
        return {
            "grant_type": "authorization_code",
            "code": code,
            "client_id": credentials.client_id,
            "client_secret": credentials.client_secret or "",
            "redirect_uri": self.redirect_uri,
        }


class FacebookConnectorProvider(BaseConnectorProvider):
    """Graph API token exchange; fields travel as query parameters on a GET."""

    platform = Platform.FACEBOOK
    provider_name = "facebook_graph_oauth"
    http_method = "GET"

    def token_request_fields(self, code: str, code_verifier: Optional[str]) -> Dict[str, str]:
        credentials = self.credentials
        return {
            "client_id": credentials.client_id,
            "redirect_uri": self.redirect_uri,
            "client_secret": credentials.client_secret or "",
            "code": code,
        }


class InstagramConnectorProvider(BaseConnectorProvider):
    platform = Platform.INSTAGRAM
    provider_name = "instagram_basic_oauth"

    def token_request_fields(self, code: str, code_verifier: Optional[str]) -> Dict[str, str]:
        credentials = self.credentials
        return {
            "client_id": credentials.client_id,
            "client_secret": credentials.client_secret or "",
            "grant_type": "authorization_code",
            "redirect_uri": self.redirect_uri,
            "code": code,
        }


PROVIDER_CLASSES = {
    Platform.TWITTER: TwitterConnectorProvider,
    Platform.LINKEDIN: LinkedInConnectorProvider,
    Platform.FACEBOOK: FacebookConnectorProvider,
    Platform.INSTAGRAM: InstagramConnectorProvider,
}


def build_connector_providers(
    oauth_config: Optional[OAuthClientConfig] = None,
    *,
    client_factory: Optional[ClientFactory] = None,
    now: Clock = utc_now,
) -> Dict[Platform, BaseConnectorProvider]:
    oauth_config = oauth_config or OAuthClientConfig.from_settings()
    return {
        platform: provider_cls(oauth_config, client_factory=client_factory, now=now)
        for platform, provider_cls in PROVIDER_CLASSES.items()
    }


def get_connector_provider(
    platform: Platform,
    oauth_config: Optional[OAuthClientConfig] = None,
    **kwargs: Any,
) -> BaseConnectorProvider:
    oauth_config = oauth_config or OAuthClientConfig.from_settings()
    return PROVIDER_CLASSES[platform](oauth_config, **kwargs)
