"""
Authentication router for social account OAuth connections.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import ConnectorConfigurationError, OAuthClientConfig, settings
from database import get_db
from models.connection import Connection
from routers.auth_scope import AuthContext, get_auth_context
from services.connectors import (
    CallbackFlow,
    Platform,
    build_connector_providers,
    get_connector_provider,
    start_authorization,
)
from services.connectors.persistence import SessionUserResolver, SqlCredentialStore
from services.connectors.propagation import CallbackPageWindow, ResultPropagator, render_callback_page
from services.connectors.providers import ClientFactory
from services.connectors.state_store import CallbackContext, SqlOAuthStateStore
from services.connectors.types import UnsupportedPlatformError
from services.social_accounts import SocialAccountService

router = APIRouter()


class ConnectStartRequest(BaseModel):
    popup: bool = False


class ConnectStartResponse(BaseModel):
    platform: str
    connect_url: str
    state: str
    provider: str


class ConnectionSummary(BaseModel):
    platform: str
    expires_at: Optional[datetime] = None
    connected_at: Optional[datetime] = None


def get_oauth_config() -> OAuthClientConfig:
    return OAuthClientConfig.from_settings(settings)


def get_provider_client_factory() -> Optional[ClientFactory]:
    """Overridden in tests to route provider calls through a mock transport."""
    return None


@router.get("/connections", response_model=List[ConnectionSummary])
async def list_connections(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """List the platforms the current user has connected. Token material is never returned."""
    result = await db.execute(
        select(Connection)
        .where(Connection.user_id == auth.user_id)
        .order_by(Connection.platform.asc())
    )
    return [
        ConnectionSummary(
            platform=connection.platform,
            expires_at=connection.expires_at,
            connected_at=connection.updated_at or connection.created_at,
        )
        for connection in result.scalars().all()
    ]


@router.post("/connect/{platform}/start", response_model=ConnectStartResponse)
async def start_connect(
    platform: str,
    payload: Optional[ConnectStartRequest] = None,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
    oauth_config: OAuthClientConfig = Depends(get_oauth_config),
):
    """Begin an OAuth authorization for a platform and return the provider URL."""
    try:
        resolved = Platform.parse(platform)
    except UnsupportedPlatformError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    provider = get_connector_provider(resolved, oauth_config)
    state_store = SqlOAuthStateStore(db, ttl_seconds=settings.OAUTH_STATE_TTL_SECONDS)
    try:
        result = await start_authorization(
            provider,
            state_store,
            user_id=auth.user_id,
            popup=bool(payload and payload.popup),
        )
    except ConnectorConfigurationError as exc:
        raise HTTPException(
            status_code=503,
            detail={"platform": resolved.value, "message": str(exc)},
        ) from exc

    return ConnectStartResponse(
        platform=result.platform.value,
        connect_url=result.connect_url,
        state=result.state,
        provider=result.provider,
    )


@router.get("/callback", response_class=HTMLResponse)
async def oauth_callback(
    request: Request,
    db: AsyncSession = Depends(get_db),
    oauth_config: OAuthClientConfig = Depends(get_oauth_config),
    client_factory: Optional[ClientFactory] = Depends(get_provider_client_factory),
):
    """
    OAuth redirect target for every platform.

    The outcome is always rendered as a page; its script reports the result to
    the opener window (popup flows) or returns to the home page.
    """
    context = CallbackContext(session_token=request.cookies.get(settings.SESSION_COOKIE_NAME))
    window = CallbackPageWindow()
    user_resolver = SessionUserResolver(context)

    flow = CallbackFlow(
        build_connector_providers(oauth_config, client_factory=client_factory),
        SqlCredentialStore(db),
        SocialAccountService(db, user_resolver),
        ResultPropagator(window, oauth_config.app_origin, delay=window.defer),
        user_resolver=user_resolver,
        context=context,
        state_store=SqlOAuthStateStore(db, ttl_seconds=settings.OAUTH_STATE_TTL_SECONDS),
        persist_platforms=settings.CONNECTOR_PERSIST_PLATFORMS,
        failure_delay_ms=settings.AUTH_FAILURE_DELAY_MS,
    )
    result = await flow.run(dict(request.query_params))

    return HTMLResponse(
        render_callback_page(result.status.message, result.status.error, window),
        headers={"Cache-Control": "no-store"},
    )
