"""Service layer for business logic."""

from committee_auth.services.authorization import AuthorizationPolicy, is_authorized
from committee_auth.services.claude_service import ClaudeService, ClaudeServiceError
from committee_auth.services.github_provider import (
    GitHubIdentityProvider,
    Identity,
    IdentityProvider,
    ProviderError,
)
from committee_auth.services.oauth_service import OAuthService

__all__ = [
    "AuthorizationPolicy",
    "is_authorized",
    "ClaudeService",
    "ClaudeServiceError",
    "GitHubIdentityProvider",
    "Identity",
    "IdentityProvider",
    "ProviderError",
    "OAuthService",
]
