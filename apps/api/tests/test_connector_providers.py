from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from config import ConnectorConfigurationError, ProviderCredentials
from connector_testkit import TEST_ORIGIN, TOKEN_URLS, ProviderStub, make_oauth_config, token_response
from services.connectors.providers import (
    FacebookConnectorProvider,
    MAX_TOKEN_LIFETIME_SECONDS,
    InstagramConnectorProvider,
    LinkedInConnectorProvider,
    TwitterConnectorProvider,
    build_connector_providers,
)
from services.connectors.types import Platform, TokenExchangeError, TokenSet


FIXED_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _provider(provider_cls, stub, oauth_config=None):
    return provider_cls(
        oauth_config or make_oauth_config(),
        client_factory=stub.client_factory,
        now=lambda: FIXED_NOW,
    )


@pytest.mark.asyncio
async def test_twitter_posts_form_to_proxy_with_session_verifier():
    stub = ProviderStub(token_response(access_token="tw-at", refresh_token="tw-rt", expires_in=7200))
    provider = _provider(TwitterConnectorProvider, stub)

    tokens = await provider.exchange("code-1", code_verifier="v" * 64)

    request = stub.requests[0]
    assert request.method == "POST"
    assert str(request.url) == TOKEN_URLS["twitter"]
    assert request.headers["content-type"] == "application/x-www-form-urlencoded"
    assert ProviderStub.fields(request) == {
        "code": "code-1",
        "grant_type": "authorization_code",
        "redirect_uri": f"{TEST_ORIGIN}/auth/callback?platform=twitter",
        "code_verifier": "v" * 64,
        "client_id": "tw-client",
    }
    assert tokens.access_token == "tw-at"
    assert tokens.refresh_token == "tw-rt"
    assert tokens.expires_at == FIXED_NOW + timedelta(seconds=7200)


@pytest.mark.asyncio
async def test_twitter_refuses_to_exchange_without_verifier():
    stub = ProviderStub(token_response(access_token="tw-at"))
    provider = _provider(TwitterConnectorProvider, stub)

    with pytest.raises(TokenExchangeError) as exc_info:
        await provider.exchange("code-1")

    assert "verifier" in str(exc_info.value)
    assert stub.requests == []


@pytest.mark.asyncio
async def test_twitter_surfaces_provider_error_description():
    stub = ProviderStub(token_response(400, error="invalid_request", error_description="Value passed for the authorization code was invalid."))
    provider = _provider(TwitterConnectorProvider, stub)

    with pytest.raises(TokenExchangeError) as exc_info:
        await provider.exchange("bad", code_verifier="v" * 64)

    assert str(exc_info.value) == "Value passed for the authorization code was invalid."
    assert exc_info.value.kind == "TokenExchangeFailed"


@pytest.mark.asyncio
async def test_twitter_falls_back_to_generic_message():
    stub = ProviderStub(lambda request: httpx.Response(502, text="bad gateway"))
    provider = _provider(TwitterConnectorProvider, stub)

    with pytest.raises(TokenExchangeError) as exc_info:
        await provider.exchange("code", code_verifier="v" * 64)

    assert str(exc_info.value) == "Failed to get Twitter access token"


@pytest.mark.asyncio
async def test_linkedin_posts_client_secret_directly():
    stub = ProviderStub(token_response(access_token="li-at", expires_in=5184000))
    provider = _provider(LinkedInConnectorProvider, stub)

    tokens = await provider.exchange("li-code")

    request = stub.requests[0]
    assert request.method == "POST"
    assert str(request.url) == TOKEN_URLS["linkedin"]
    assert ProviderStub.fields(request) == {
        "grant_type": "authorization_code",
        "code": "li-code",
        "client_id": "li-client",
        "client_secret": "li-secret",
        "redirect_uri": f"{TEST_ORIGIN}/auth/callback?platform=linkedin",
    }
    assert tokens.access_token == "li-at"
    assert tokens.refresh_token is None


@pytest.mark.asyncio
async def test_facebook_sends_fields_as_query_on_get():
    stub = ProviderStub(token_response(access_token="fb-at", token_type="bearer"))
    provider = _provider(FacebookConnectorProvider, stub)

    tokens = await provider.exchange("fb-code")

    request = stub.requests[0]
    assert request.method == "GET"
    assert f"{request.url.scheme}://{request.url.host}{request.url.path}" == TOKEN_URLS["facebook"]
    assert request.content == b""
    assert ProviderStub.fields(request) == {
        "client_id": "fb-app",
        "redirect_uri": f"{TEST_ORIGIN}/auth/callback?platform=facebook",
        "client_secret": "fb-secret",
        "code": "fb-code",
    }
    assert tokens.access_token == "fb-at"
    assert tokens.expires_at is None


@pytest.mark.asyncio
async def test_instagram_posts_authorization_code_grant():
    stub = ProviderStub(token_response(access_token="ig-at", user_id=1789))
    provider = _provider(InstagramConnectorProvider, stub)

    tokens = await provider.exchange("ig-code")

    request = stub.requests[0]
    assert request.method == "POST"
    assert ProviderStub.fields(request) == {
        "client_id": "ig-client",
        "client_secret": "ig-secret",
        "grant_type": "authorization_code",
        "redirect_uri": f"{TEST_ORIGIN}/auth/callback?platform=instagram",
        "code": "ig-code",
    }
    assert tokens.access_token == "ig-at"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "provider_cls, label",
    [
        (LinkedInConnectorProvider, "LinkedIn"),
        (FacebookConnectorProvider, "Facebook"),
        (InstagramConnectorProvider, "Instagram"),
    ],
)
async def test_non_success_status_is_a_readable_exchange_failure(provider_cls, label):
    stub = ProviderStub(token_response(400, error="invalid_grant"))
    provider = _provider(provider_cls, stub)

    with pytest.raises(TokenExchangeError) as exc_info:
        await provider.exchange("code")

    assert str(exc_info.value) == f"Failed to get {label} access token"


@pytest.mark.asyncio
async def test_success_status_without_access_token_is_rejected():
    stub = ProviderStub(token_response(200, token_type="bearer"))
    provider = _provider(LinkedInConnectorProvider, stub)

    with pytest.raises(TokenExchangeError):
        await provider.exchange("code")


@pytest.mark.asyncio
async def test_non_json_body_is_rejected():
    stub = ProviderStub(lambda request: httpx.Response(200, text="<html>oops</html>"))
    provider = _provider(InstagramConnectorProvider, stub)

    with pytest.raises(TokenExchangeError):
        await provider.exchange("code")


@pytest.mark.asyncio
async def test_transport_error_becomes_exchange_failure():
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    stub = ProviderStub(handler)
    provider = _provider(LinkedInConnectorProvider, stub)

    with pytest.raises(TokenExchangeError) as exc_info:
        await provider.exchange("code")

    assert "LinkedIn" in str(exc_info.value)


@pytest.mark.asyncio
async def test_missing_credentials_fail_before_any_request():
    stub = ProviderStub(token_response(access_token="never"))
    oauth_config = make_oauth_config(linkedin=ProviderCredentials(client_id="li-client", client_secret=""))
    provider = _provider(LinkedInConnectorProvider, stub, oauth_config)

    with pytest.raises(ConnectorConfigurationError) as exc_info:
        await provider.exchange("code")

    assert "client_secret" in str(exc_info.value)
    assert stub.requests == []


def test_twitter_authorize_url_carries_s256_challenge():
    provider = TwitterConnectorProvider(make_oauth_config())
    url = provider.build_authorize_url(state="st", code_challenge="challenge-value")

    query = parse_qs(urlsplit(url).query)
    assert url.startswith("https://twitter.com/i/oauth2/authorize?")
    assert query["client_id"] == ["tw-client"]
    assert query["redirect_uri"] == [f"{TEST_ORIGIN}/auth/callback?platform=twitter"]
    assert query["state"] == ["st"]
    assert query["code_challenge"] == ["challenge-value"]
    assert query["code_challenge_method"] == ["S256"]


def test_twitter_authorize_url_requires_challenge():
    provider = TwitterConnectorProvider(make_oauth_config())
    with pytest.raises(ValueError):
        provider.build_authorize_url(state="st")


def test_registry_covers_every_platform():
    providers = build_connector_providers(make_oauth_config())
    assert set(providers) == set(Platform)
    for platform, provider in providers.items():
        assert provider.platform is platform
        assert provider.redirect_uri == f"{TEST_ORIGIN}/auth/callback?platform={platform.value}"


@pytest.mark.asyncio
async def test_oversized_expires_in_is_clamped():
    stub = ProviderStub(token_response(access_token="li-at", expires_in=1e20))
    provider = _provider(LinkedInConnectorProvider, stub)

    tokens = await provider.exchange("code-1")

    assert tokens.expires_at == FIXED_NOW + timedelta(seconds=MAX_TOKEN_LIFETIME_SECONDS)


@pytest.mark.asyncio
async def test_negative_expires_in_fails_the_exchange():
    stub = ProviderStub(token_response(access_token="ig-at", expires_in=-5))
    provider = _provider(InstagramConnectorProvider, stub)

    with pytest.raises(TokenExchangeError) as exc_info:
        await provider.exchange("code-1")
    assert str(exc_info.value) == "Failed to get Instagram access token"


def test_token_set_repr_masks_tokens():
    tokens = TokenSet(access_token="secret-at", refresh_token="secret-rt")
    assert "secret" not in repr(tokens)
