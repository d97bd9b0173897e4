"""Miscellaneous helpers for the token refresher."""

from __future__ import annotations

import base64
import json
from typing import Any, Dict, Iterable

REDACTED = "[redacted]"
LOGGED_CLAIMS = ("aud", "iss", "tid", "oid", "appid", "exp")


def decode_jwt_without_verification(token: str) -> Dict[str, Any]:
    """Return the claims segment of a compact JWS without checking its signature."""

    segments = token.split(".")
    if len(segments) != 3:
        raise ValueError(f"expected 3 JWT segments, got {len(segments)}")

    claims_segment = segments[1]
    claims_segment += "=" * (-len(claims_segment) % 4)
    raw = base64.urlsafe_b64decode(claims_segment)
    return json.loads(raw)


def claims_for_logging(token: str, claims: Iterable[str] = LOGGED_CLAIMS) -> Dict[str, Any]:
    """Return the non-secret claims of ``token``, or an empty dict if it is opaque."""

    try:
        decoded = decode_jwt_without_verification(token)
    except (ValueError, UnicodeDecodeError):
        return {}
    if not isinstance(decoded, dict):
        return {}
    return {name: decoded[name] for name in claims if name in decoded}


def redact(text: str, *secrets: str) -> str:
    """Replace every occurrence of ``secrets`` in ``text``."""

    for secret in secrets:
        if secret:
            text = text.replace(secret, REDACTED)
    return text
