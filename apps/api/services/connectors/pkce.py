"""PKCE (RFC 7636) verifier and challenge helpers."""

import base64
import hashlib
import re
import secrets
from dataclasses import dataclass


CODE_CHALLENGE_METHOD = "S256"
_VERIFIER_PATTERN = re.compile(r"^[A-Za-z0-9\-._~]{43,128}$")


@dataclass(frozen=True)
class PkcePair:
    code_verifier: str
    code_challenge: str
    code_challenge_method: str = CODE_CHALLENGE_METHOD


def generate_code_verifier(num_bytes: int = 48) -> str:
    # 48 random bytes encode to 64 URL-safe characters.
    return secrets.token_urlsafe(num_bytes)[:128]


def code_challenge_for(code_verifier: str) -> str:
    if not is_valid_code_verifier(code_verifier):
        raise ValueError("code_verifier must be 43-128 unreserved characters")
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def is_valid_code_verifier(code_verifier: str) -> bool:
    return bool(_VERIFIER_PATTERN.match(code_verifier or ""))


def generate_pkce_pair() -> PkcePair:
    verifier = generate_code_verifier()
    return PkcePair(code_verifier=verifier, code_challenge=code_challenge_for(verifier))
