"""Session tokens: HS256 JWTs asserting a verified committee identity."""
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from jose import JWTError, jwt
from jose.exceptions import JWTClaimsError
from pydantic import ValidationError

from committee_auth.errors import AuthFailure, AuthFailureReason
from committee_auth.schemas.auth import SessionClaims

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
DEFAULT_TTL_SECONDS = 24 * 60 * 60


class SessionTokenErrorKind(str, Enum):
    EXPIRED = "expired"
    BAD_SIGNATURE = "bad_signature"
    CLAIM_MISMATCH = "claim_mismatch"
    MALFORMED = "malformed"


class SessionTokenError(ValueError):
    def __init__(self, kind: SessionTokenErrorKind, message: str):
        self.kind = kind
        super().__init__(message)


def issue_session_token(
    claims: SessionClaims,
    secret: str,
    *,
    issuer: str,
    audience: str,
    ttl_seconds: int = DEFAULT_TTL_SECONDS,
    now: Optional[int] = None,
) -> str:
    issued_at = int(now if now is not None else time.time())
    to_encode = {
        **claims.to_jwt_claims(),
        "iss": issuer,
        "aud": audience,
        "iat": issued_at,
        "exp": issued_at + ttl_seconds,
    }
    return jwt.encode(to_encode, secret, algorithm=ALGORITHM)


def decode_session_token(
    token: str,
    secret: str,
    *,
    issuer: str,
    audience: str,
    now: Optional[int] = None,
) -> tuple[SessionClaims, int]:
    """
    Verify a session token and return its claims and expiry (epoch seconds).

    The signature is checked before any claim is looked at. Expiry is compared
    against `now` here rather than inside python-jose so the clock can be
    injected: a token with `exp <= now` is expired.

    Raises:
        SessionTokenError: with the kind of failure
    """
    try:
        jwt.get_unverified_header(token)
    except JWTError as e:
        raise SessionTokenError(SessionTokenErrorKind.MALFORMED, str(e)) from None

    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[ALGORITHM],
            audience=audience,
            issuer=issuer,
            options={"verify_exp": False},
        )
    except JWTClaimsError as e:
        raise SessionTokenError(SessionTokenErrorKind.CLAIM_MISMATCH, str(e)) from None
    except JWTError as e:
        raise SessionTokenError(SessionTokenErrorKind.BAD_SIGNATURE, str(e)) from None

    # python-jose skips iss/aud checks when the claim is absent
    if payload.get("iss") != issuer or payload.get("aud") != audience:
        raise SessionTokenError(SessionTokenErrorKind.CLAIM_MISMATCH, "Invalid issuer or audience")

    exp = payload.get("exp")
    if not isinstance(exp, int) or isinstance(exp, bool):
        raise SessionTokenError(SessionTokenErrorKind.MALFORMED, "Token missing expiry")

    current = int(now if now is not None else time.time())
    if exp <= current:
        raise SessionTokenError(SessionTokenErrorKind.EXPIRED, "Signature has expired")

    try:
        claims = SessionClaims.model_validate(payload)
    except ValidationError as e:
        raise SessionTokenError(SessionTokenErrorKind.MALFORMED, str(e)) from None

    return claims, exp


@dataclass(frozen=True)
class VerifiedSession:
    claims: SessionClaims
    expires_at: int


class SessionVerifier:
    """Validates presented session tokens, mapping codec errors to auth failures."""

    def __init__(
        self,
        secret: str,
        issuer: str,
        audience: str,
        clock: Callable[[], float] = time.time,
    ):
        self._secret = secret
        self._issuer = issuer
        self._audience = audience
        self._clock = clock

    def verify(self, token: str) -> VerifiedSession:
        try:
            claims, exp = decode_session_token(
                token,
                self._secret,
                issuer=self._issuer,
                audience=self._audience,
                now=int(self._clock()),
            )
        except SessionTokenError as e:
            logger.info("Session token rejected (%s): %s", e.kind.value, e)
            if e.kind == SessionTokenErrorKind.EXPIRED:
                raise AuthFailure(AuthFailureReason.EXPIRED) from None
            raise AuthFailure(AuthFailureReason.INVALID_TOKEN) from None

        return VerifiedSession(claims=claims, expires_at=exp)
