"""GitHub OAuth handshake for committee sign-in.

begin() hands the browser a GitHub authorize URL carrying a fresh state.
callback() runs the return leg strictly in order: provider error, missing
parameters, state freshness, code exchange, identity fetch, committee policy,
session issue. Every failure is terminal and raised as AuthFailure; nothing is
retried.

The state is checked for freshness only. A captured state value can be replayed
until it expires (10 minutes); enforcing single use would need a shared store.
"""
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from committee_auth.config import COMMITTEE_ROLE, TOKEN_AUDIENCE, TOKEN_ISSUER, Settings
from committee_auth.errors import AuthFailure, AuthFailureReason, ConfigError
from committee_auth.schemas.auth import SessionClaims
from committee_auth.services.authorization import AuthorizationPolicy
from committee_auth.services.github_provider import Identity, IdentityProvider, ProviderError
from committee_auth.utils.session import issue_session_token
from committee_auth.utils.state import StateDecodeError, decode_state, is_fresh, new_state

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BeginResult:
    auth_url: str
    state: str


@dataclass(frozen=True)
class CallbackResult:
    session_token: str
    identity: Identity
    claims: SessionClaims


class OAuthService:
    def __init__(
        self,
        settings: Settings,
        provider: IdentityProvider,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self.provider = provider
        self._clock = clock

    def begin(self, redirect_uri: str, origin: Optional[str] = None) -> BeginResult:
        """
        Start the handshake.

        Raises:
            ConfigError: If the GitHub client id is not configured
        """
        if not self.settings.github_client_id:
            raise ConfigError("GitHub Client ID not configured")

        _, encoded = new_state(
            origin=origin or self.settings.client_url or None,
            issued_at_millis=int(self._clock() * 1000),
        )
        auth_url = self.provider.build_authorization_url(
            client_id=self.settings.github_client_id,
            redirect_uri=redirect_uri,
            scope=self.provider.scope,
            state=encoded,
        )
        logger.info("Generated OAuth URL (redirect_uri=%s)", redirect_uri)
        return BeginResult(auth_url=auth_url, state=encoded)

    def _check_state(self, state: str) -> None:
        try:
            token = decode_state(state)
        except StateDecodeError as e:
            logger.warning("State validation error: %s", e)
            raise AuthFailure(AuthFailureReason.INVALID_STATE) from None

        max_age_millis = self.settings.state_max_age_seconds * 1000
        if not is_fresh(token, int(self._clock() * 1000), max_age_millis):
            logger.warning("Stale OAuth state (origin=%s)", token.origin)
            raise AuthFailure(AuthFailureReason.INVALID_STATE)

    def _build_claims(self, identity: Identity) -> SessionClaims:
        login_time = datetime.fromtimestamp(self._clock(), tz=timezone.utc)
        return SessionClaims(
            user_id=identity.id,
            username=identity.login,
            name=identity.display_name,
            # Configured address, not the provider's casing of it
            email=self.settings.allowed_email,
            role=COMMITTEE_ROLE,
            login_time=login_time.isoformat().replace("+00:00", "Z"),
        )

    async def callback(
        self,
        code: Optional[str],
        state: Optional[str],
        provider_error: Optional[str] = None,
    ) -> CallbackResult:
        """
        Complete the handshake and issue a session token.

        Raises:
            ConfigError: If client id/secret, JWT secret, committee email or client URL is unset
            AuthFailure: For every rejected or failed sign-in
        """
        self.settings.require(
            "GITHUB_CLIENT_ID",
            "GITHUB_CLIENT_SECRET",
            "JWT_SECRET",
            "ALLOWED_EMAIL",
            "CLIENT_URL",
        )

        if provider_error:
            raise AuthFailure(AuthFailureReason.PROVIDER_DENIED, provider_error)

        if not code or not state:
            raise AuthFailure(AuthFailureReason.MISSING_PARAMS)

        self._check_state(state)

        try:
            credential = await self.provider.exchange_code(code)
        except ProviderError as e:
            logger.warning("Code exchange failed (status=%s): %s", e.status_code, e)
            raise AuthFailure(AuthFailureReason.EXCHANGE_FAILED, str(e)) from None

        try:
            identity = await self.provider.fetch_identity(credential)
        except ProviderError as e:
            logger.warning("Identity fetch failed (status=%s): %s", e.status_code, e)
            raise AuthFailure(AuthFailureReason.IDENTITY_FETCH_FAILED, str(e)) from None

        policy = AuthorizationPolicy(self.settings.allowed_email)
        has_access = policy.is_authorized(identity)
        logger.info(
            "Email validation for %s: %d emails (%d verified), has_access=%s",
            identity.login,
            len(identity.emails),
            sum(1 for e in identity.emails if e.verified),
            has_access,
        )
        if not has_access:
            raise AuthFailure(AuthFailureReason.NOT_COMMITTEE_MEMBER)

        claims = self._build_claims(identity)
        token = issue_session_token(
            claims,
            self.settings.jwt_secret,
            issuer=TOKEN_ISSUER,
            audience=TOKEN_AUDIENCE,
            ttl_seconds=self.settings.session_ttl_seconds,
            now=int(self._clock()),
        )
        logger.info("Committee session issued for %s", identity.login)
        return CallbackResult(session_token=token, identity=identity, claims=claims)
