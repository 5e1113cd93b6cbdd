"""
OAuth callback orchestration.

One `CallbackFlow.run` call handles one redirect: it validates the query,
dispatches to the platform's adapter, stores the credentials, registers the
account and reports the outcome to the initiating window. Every failure is
caught here; nothing escapes `run`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Collection, Dict, List, Mapping, Optional

from config import ConnectorConfigurationError
from services.connectors.params import extract_callback_parameters
from services.connectors.persistence import (
    CredentialStore,
    SocialAccountNotifier,
    StoredCredential,
    UserResolver,
)
from services.connectors.propagation import AuthFailure, AuthSuccess, ResultPropagator
from services.connectors.providers import BaseConnectorProvider
from services.connectors.state_store import CallbackContext, OAuthStateStore, PendingAuthorization
from services.connectors.types import (
    CallbackParameters,
    ConnectorError,
    InvalidStateError,
    NoAuthenticatedUserError,
    Platform,
    TokenSet,
    error_kind,
)


logger = logging.getLogger(__name__)

DEFAULT_FAILURE_DELAY_MS = 3000
FALLBACK_ERROR_MESSAGE = "Authentication failed"


class FlowState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    EXCHANGING = "exchanging"
    PERSISTING = "persisting"
    PROPAGATING = "propagating"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class FlowStatus:
    message: str = "Verifying authentication..."
    error: Optional[str] = None


@dataclass
class FlowResult:
    state: FlowState
    status: FlowStatus
    platform: Optional[Platform] = None
    error_kind: Optional[str] = None
    transitions: List[FlowState] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.state == FlowState.SUCCEEDED


class CallbackFlow:
    def __init__(
        self,
        providers: Mapping[Platform, BaseConnectorProvider],
        credential_store: CredentialStore,
        accounts: SocialAccountNotifier,
        propagator: ResultPropagator,
        *,
        user_resolver: UserResolver,
        context: Optional[CallbackContext] = None,
        state_store: Optional[OAuthStateStore] = None,
        persist_platforms: Optional[Collection[str]] = None,
        failure_delay_ms: int = DEFAULT_FAILURE_DELAY_MS,
    ) -> None:
        self.providers: Dict[Platform, BaseConnectorProvider] = dict(providers)
        self.credential_store = credential_store
        self.accounts = accounts
        self.propagator = propagator
        self.user_resolver = user_resolver
        self.context = context or CallbackContext()
        self.state_store = state_store
        if persist_platforms is None:
            persist_platforms = [platform.value for platform in Platform]
        self.persist_platforms = frozenset(persist_platforms)
        self.failure_delay_ms = failure_delay_ms

        self.state = FlowState.IDLE
        self.status = FlowStatus()
        self._transitions: List[FlowState] = [FlowState.IDLE]

    def _transition(self, state: FlowState) -> None:
        self.state = state
        self._transitions.append(state)

    async def run(self, query: Mapping[str, str]) -> FlowResult:
        platform: Optional[Platform] = None
        try:
            self._transition(FlowState.VALIDATING)
            # Providers echo `state` alongside `error`, so the pending request
            # is consumed before the query is validated.
            state = (query.get("state") or "").strip() or None
            pending = await self._consume_state(state)
            params = extract_callback_parameters(query)
            platform = params.platform
            self._check_state(params, pending)
            self.status.message = f"Connecting {platform.value} account..."

            provider = self.providers.get(platform)
            if provider is None:
                raise ConnectorConfigurationError(f"{platform.display_name} OAuth connector is not configured.")

            self._transition(FlowState.EXCHANGING)
            tokens = await provider.exchange(
                params.code,
                code_verifier=pending.code_verifier if pending else None,
            )

            self._transition(FlowState.PERSISTING)
            await self._persist(platform, tokens)
            await self.accounts.connect_account(platform.value)

            self.status.message = "Successfully connected!"
            self._transition(FlowState.PROPAGATING)
            await self.propagator.propagate(AuthSuccess(platform=platform.value))
            self._transition(FlowState.SUCCEEDED)
            logger.info(
                "Connected %s account via OAuth callback (display=%s)",
                platform.value,
                pending.display if pending else "page",
            )
            return self._result(platform)
        except Exception as exc:
            return await self._fail(exc, platform)

    async def _consume_state(self, state: Optional[str]) -> Optional[PendingAuthorization]:
        if not state or self.state_store is None:
            return None
        pending = await self.state_store.consume(state)
        self.context.pending = pending
        return pending

    def _check_state(self, params: CallbackParameters, pending: Optional[PendingAuthorization]) -> None:
        if not params.state or self.state_store is None:
            return
        if pending is None:
            raise InvalidStateError("Authorization request expired or was not recognised. Please try again.")
        if pending.platform != params.platform:
            raise InvalidStateError("Authorization request does not match the returning platform.")

    async def _persist(self, platform: Platform, tokens: TokenSet) -> None:
        if platform.value not in self.persist_platforms:
            return
        user_id = await self.user_resolver.current_user_id()
        if not user_id:
            raise NoAuthenticatedUserError(
                f"Failed to store {platform.display_name} credentials: no authenticated user"
            )
        await self.credential_store.upsert(
            StoredCredential(
                platform=platform,
                access_token=tokens.access_token,
                refresh_token=tokens.refresh_token,
                expires_at=tokens.expires_at,
                user_id=user_id,
            )
        )

    async def _fail(self, exc: Exception, platform: Optional[Platform]) -> FlowResult:
        if isinstance(exc, (ConnectorError, ConnectorConfigurationError)):
            logger.warning("Auth callback error (%s): %s", exc.kind, exc)
            message = str(exc) or FALLBACK_ERROR_MESSAGE
        else:
            logger.exception("Auth callback error")
            message = "Unexpected error while connecting your account. Please try again."

        kind = error_kind(exc)
        self._transition(FlowState.FAILED)
        self.status.message = FALLBACK_ERROR_MESSAGE
        self.status.error = message

        try:
            await self.propagator.propagate(AuthFailure(message_text=message), delay_ms=self.failure_delay_ms)
        except Exception:
            logger.exception("Could not report auth failure to the initiating window")

        return self._result(platform, kind)

    def _result(self, platform: Optional[Platform], kind: Optional[str] = None) -> FlowResult:
        return FlowResult(
            state=self.state,
            status=FlowStatus(message=self.status.message, error=self.status.error),
            platform=platform,
            error_kind=kind,
            transitions=list(self._transitions),
        )
