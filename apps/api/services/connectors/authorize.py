"""Starting an authorization request for a social connector."""

from __future__ import annotations

import logging
from typing import Optional

from services.connectors.pkce import generate_pkce_pair
from services.connectors.providers import BaseConnectorProvider
from services.connectors.state_store import (
    DISPLAY_PAGE,
    DISPLAY_POPUP,
    OAuthStateStore,
    PendingAuthorization,
    new_state,
)
from services.connectors.types import ConnectorStartResult


logger = logging.getLogger(__name__)


async def start_authorization(
    provider: BaseConnectorProvider,
    state_store: OAuthStateStore,
    *,
    user_id: Optional[str],
    popup: bool = False,
) -> ConnectorStartResult:
    """
    Issue a state (and a PKCE verifier where the provider needs one) and
    return the provider URL the browser should open.
    """
    state = new_state()
    pkce = generate_pkce_pair() if provider.requires_pkce else None
    # Built before saving so a missing credential leaves no orphaned state.
    connect_url = provider.build_authorize_url(
        state=state,
        code_challenge=pkce.code_challenge if pkce else None,
    )
    await state_store.save(
        PendingAuthorization(
            state=state,
            platform=provider.platform,
            user_id=user_id,
            code_verifier=pkce.code_verifier if pkce else None,
            display=DISPLAY_POPUP if popup else DISPLAY_PAGE,
        )
    )
    logger.info("Started %s authorization for user=%s popup=%s", provider.platform.value, user_id, popup)
    return ConnectorStartResult(
        platform=provider.platform,
        connect_url=connect_url,
        state=state,
        provider=provider.provider_name,
    )
