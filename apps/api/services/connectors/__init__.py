"""Social connector OAuth: authorization start, callback flow and providers."""

from services.connectors.authorize import start_authorization
from services.connectors.flow import CallbackFlow, FlowResult, FlowState, FlowStatus
from services.connectors.providers import build_connector_providers, get_connector_provider
from services.connectors.types import (
    CallbackParameters,
    ConnectorError,
    ConnectorStartResult,
    Platform,
    TokenSet,
)

__all__ = [
    "CallbackFlow",
    "CallbackParameters",
    "ConnectorError",
    "ConnectorStartResult",
    "FlowResult",
    "FlowState",
    "FlowStatus",
    "Platform",
    "TokenSet",
    "build_connector_providers",
    "get_connector_provider",
    "start_authorization",
]
