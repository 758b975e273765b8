import logging
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from committee_auth.config import TOKEN_AUDIENCE, TOKEN_ISSUER, Settings, get_settings
from committee_auth.errors import AuthFailure
from committee_auth.schemas.auth import SessionClaims
from committee_auth.services.authorization import AuthorizationPolicy
from committee_auth.services.github_provider import GitHubIdentityProvider, IdentityProvider
from committee_auth.services.oauth_service import OAuthService
from committee_auth.utils.session import SessionVerifier

logger = logging.getLogger(__name__)

# HTTP Bearer token scheme
bearer_scheme = HTTPBearer(auto_error=False)

SettingsDep = Annotated[Settings, Depends(get_settings)]


def get_identity_provider(settings: SettingsDep) -> IdentityProvider:
    return GitHubIdentityProvider(
        client_id=settings.github_client_id,
        client_secret=settings.github_client_secret,
        timeout=settings.github_timeout,
    )


def get_oauth_service(
    settings: SettingsDep,
    provider: Annotated[IdentityProvider, Depends(get_identity_provider)],
) -> OAuthService:
    return OAuthService(settings, provider)


def get_session_verifier(settings: SettingsDep) -> SessionVerifier:
    """
    Raises:
        ConfigError: If JWT_SECRET is not configured
    """
    settings.require("JWT_SECRET")
    return SessionVerifier(settings.jwt_secret, issuer=TOKEN_ISSUER, audience=TOKEN_AUDIENCE)


def get_authorization_policy(settings: SettingsDep) -> AuthorizationPolicy:
    settings.require("ALLOWED_EMAIL")
    return AuthorizationPolicy(settings.allowed_email)


async def require_committee_session(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
    settings: SettingsDep,
) -> SessionClaims:
    """
    Gate for proxied calls: a valid session token whose email is still the
    committee email.

    The bearer token is checked before configuration, so a request without
    one is always a 401.
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No valid auth token provided",
            headers={"WWW-Authenticate": "Bearer"},
        )

    verifier = get_session_verifier(settings)
    policy = get_authorization_policy(settings)

    try:
        session = verifier.verify(credentials.credentials)
    except AuthFailure as e:
        logger.info("Token verification failed: %s", e.message)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid auth token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None

    if not policy.permits(session.claims):
        logger.info("User %s does not have committee email access", session.claims.username)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Committee access required",
        )

    logger.info("Token verified for user: %s", session.claims.username)
    return session.claims


# Type aliases for dependency injection
CommitteeSession = Annotated[SessionClaims, Depends(require_committee_session)]
OAuthServiceDep = Annotated[OAuthService, Depends(get_oauth_service)]
SessionVerifierDep = Annotated[SessionVerifier, Depends(get_session_verifier)]
