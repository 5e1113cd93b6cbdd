"""Shared helpers for connector tests: OAuth config and a recording provider stub."""

from typing import Callable, Dict, List
from urllib.parse import parse_qsl

import httpx

from config import OAuthClientConfig, ProviderCredentials, ProviderEndpoints


TEST_ORIGIN = "https://app.example.com"
TEST_USER_ID = "connect-user"
TOKEN_URLS = {
    "twitter": "https://api.socialsync.fun/twitter/token",
    "linkedin": "https://www.linkedin.com/oauth/v2/accessToken",
    "facebook": "https://graph.facebook.com/v18.0/oauth/access_token",
    "instagram": "https://api.instagram.com/oauth/access_token",
}


def make_oauth_config(**overrides: ProviderCredentials) -> OAuthClientConfig:
    credentials = {
        "twitter": ProviderCredentials(client_id="tw-client"),
        "linkedin": ProviderCredentials(client_id="li-client", client_secret="li-secret"),
        "facebook": ProviderCredentials(client_id="fb-app", client_secret="fb-secret"),
        "instagram": ProviderCredentials(client_id="ig-client", client_secret="ig-secret"),
    }
    credentials.update(overrides)
    endpoints = {
        "twitter": ProviderEndpoints("https://twitter.com/i/oauth2/authorize", TOKEN_URLS["twitter"], "tweet.read"),
        "linkedin": ProviderEndpoints("https://www.linkedin.com/oauth/v2/authorization", TOKEN_URLS["linkedin"], "openid"),
        "facebook": ProviderEndpoints("https://www.facebook.com/v18.0/dialog/oauth", TOKEN_URLS["facebook"], "public_profile"),
        "instagram": ProviderEndpoints("https://api.instagram.com/oauth/authorize", TOKEN_URLS["instagram"], "user_profile"),
    }
    return OAuthClientConfig(app_origin=TEST_ORIGIN, credentials=credentials, endpoints=endpoints, timeout_seconds=5.0)


class ProviderStub:
    """Records provider token requests and answers them from a handler."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.handler = handler
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    def client_factory(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))

    @staticmethod
    def fields(request: httpx.Request) -> Dict[str, str]:
        if request.method == "GET":
            return dict(request.url.params)
        return dict(parse_qsl(request.content.decode()))


def token_response(status_code: int = 200, **payload) -> Callable[[httpx.Request], httpx.Response]:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json=payload)

    return handler
