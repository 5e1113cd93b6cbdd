"""Redirect query parameter extraction for the OAuth callback."""

from __future__ import annotations

from typing import Mapping, Optional

from services.connectors.types import (
    CallbackParameters,
    MissingParametersError,
    Platform,
    ProviderDeniedAuthError,
)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def extract_callback_parameters(query: Mapping[str, str]) -> CallbackParameters:
    """
    Validate the redirect parameters of one callback invocation.

    A provider `error` always wins; otherwise both `platform` and `code` are
    required and the platform must be one of the supported tags.
    """
    error = _clean(query.get("error"))
    if error:
        description = _clean(query.get("error_description"))
        message = f"Authentication failed: {error}"
        if description:
            message = f"{message} ({description})"
        raise ProviderDeniedAuthError(message)

    raw_platform = _clean(query.get("platform"))
    code = _clean(query.get("code"))
    if not raw_platform or not code:
        raise MissingParametersError("Missing required parameters")

    return CallbackParameters(
        platform=Platform.parse(raw_platform),
        code=code,
        state=_clean(query.get("state")),
    )
