"""OAuth `state` values (CSRF protection).

The state is an unsigned base64 JSON blob carrying a random nonce and the
issue time. It is not secret; protection comes from the nonce being
unguessable combined with the freshness window.
"""
import base64
import binascii
import json
import secrets
import string
import time
from dataclasses import dataclass
from typing import Optional

NONCE_ALPHABET = string.ascii_letters + string.digits
NONCE_LENGTH = 32
STATE_MAX_AGE_MILLIS = 10 * 60 * 1000


class StateDecodeError(ValueError):
    """State value could not be decoded."""

    pass


@dataclass(frozen=True)
class StateToken:
    nonce: str
    issued_at_millis: int
    origin: Optional[str] = None  # Diagnostic only, never trusted


def now_millis() -> int:
    return int(time.time() * 1000)


def generate_nonce(length: int = NONCE_LENGTH) -> str:
    return "".join(secrets.choice(NONCE_ALPHABET) for _ in range(length))


def encode_state(nonce: str, issued_at_millis: int, origin: Optional[str] = None) -> str:
    payload = {"state": nonce, "timestamp": issued_at_millis, "origin": origin}
    raw = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return base64.b64encode(raw).decode("ascii")


def decode_state(value: str) -> StateToken:
    """
    Decode a state value produced by `encode_state`.

    Raises:
        StateDecodeError: If the value is not base64 JSON or lacks an
            integer `timestamp`
    """
    try:
        raw = base64.b64decode(value.encode("ascii"), validate=True)
        data = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError) as e:
        raise StateDecodeError(f"Malformed state: {e}") from None

    if not isinstance(data, dict):
        raise StateDecodeError("Malformed state: not an object")

    timestamp = data.get("timestamp")
    # bool is an int subclass; reject it explicitly
    if not isinstance(timestamp, int) or isinstance(timestamp, bool):
        raise StateDecodeError("Malformed state: missing timestamp")

    nonce = data.get("state")
    origin = data.get("origin")
    return StateToken(
        nonce=nonce if isinstance(nonce, str) else "",
        issued_at_millis=timestamp,
        origin=origin if isinstance(origin, str) else None,
    )


def is_fresh(
    token: StateToken, now_millis: int, max_age_millis: int = STATE_MAX_AGE_MILLIS
) -> bool:
    return now_millis - token.issued_at_millis < max_age_millis


def new_state(
    origin: Optional[str] = None, issued_at_millis: Optional[int] = None
) -> tuple[StateToken, str]:
    """Create a fresh state token and its encoded form."""
    token = StateToken(
        nonce=generate_nonce(),
        issued_at_millis=issued_at_millis if issued_at_millis is not None else now_millis(),
        origin=origin,
    )
    return token, encode_state(token.nonce, token.issued_at_millis, token.origin)
