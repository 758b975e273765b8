import os

# Set test environment
os.environ["GITHUB_CLIENT_ID"] = "test-client-id"
os.environ["GITHUB_CLIENT_SECRET"] = "test-client-secret"
os.environ["JWT_SECRET"] = "test-jwt-secret-with-enough-entropy-0123456789"
os.environ["ALLOWED_EMAIL"] = "hiking@manchesterstudentsunion.com"
os.environ["CLIENT_URL"] = "https://client.example.com"

from collections.abc import AsyncGenerator
from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from committee_auth.config import TOKEN_AUDIENCE, TOKEN_ISSUER, Settings, get_settings
from committee_auth.main import app
from committee_auth.schemas.auth import SessionClaims
from committee_auth.services.github_provider import (
    AccessCredential,
    EmailAddress,
    GitHubIdentityProvider,
    Identity,
    ProviderError,
)
from committee_auth.utils.auth import get_identity_provider
from committee_auth.utils.session import issue_session_token

COMMITTEE_EMAIL = "hiking@manchesterstudentsunion.com"


class FakeIdentityProvider:
    """In-memory identity provider that records every network-bound call."""

    scope = "user:email"

    def __init__(
        self,
        identity: Optional[Identity] = None,
        exchange_error: Optional[ProviderError] = None,
        identity_error: Optional[ProviderError] = None,
    ):
        self.identity = identity
        self.exchange_error = exchange_error
        self.identity_error = identity_error
        self.calls: list[tuple[str, str]] = []

    def build_authorization_url(self, client_id, redirect_uri, scope, state):
        return GitHubIdentityProvider(None, None).build_authorization_url(
            client_id, redirect_uri, scope, state
        )

    async def exchange_code(self, code: str) -> AccessCredential:
        self.calls.append(("exchange_code", code))
        if self.exchange_error:
            raise self.exchange_error
        return AccessCredential(access_token="gho_test")

    async def fetch_identity(self, credential: AccessCredential) -> Identity:
        self.calls.append(("fetch_identity", credential.access_token))
        if self.identity_error:
            raise self.identity_error
        return self.identity


def make_identity(*emails: tuple[str, bool]) -> Identity:
    return Identity(
        id=4242,
        login="octocat",
        display_name="The Octocat",
        emails=tuple(EmailAddress(address=a, verified=v) for a, v in emails),
    )


def make_settings(**overrides) -> Settings:
    values = {
        "github_client_id": "test-client-id",
        "github_client_secret": "test-client-secret",
        "jwt_secret": "test-jwt-secret-with-enough-entropy-0123456789",
        "allowed_email": COMMITTEE_EMAIL,
        "client_url": "https://client.example.com",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_claims(email: str = COMMITTEE_EMAIL) -> SessionClaims:
    return SessionClaims(
        user_id=4242,
        username="octocat",
        name="The Octocat",
        email=email,
        login_time="2026-01-01T00:00:00Z",
    )


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def fake_provider() -> FakeIdentityProvider:
    return FakeIdentityProvider(identity=make_identity((COMMITTEE_EMAIL, True)))


@pytest_asyncio.fixture(scope="function")
async def client(
    settings: Settings, fake_provider: FakeIdentityProvider
) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client with settings and provider overrides."""
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_identity_provider] = lambda: fake_provider

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def session_token(settings: Settings) -> str:
    return issue_session_token(
        make_claims(),
        settings.jwt_secret,
        issuer=TOKEN_ISSUER,
        audience=TOKEN_AUDIENCE,
    )


@pytest.fixture
def auth_headers(session_token: str) -> dict[str, str]:
    """Create authorization headers for authenticated requests."""
    return {"Authorization": f"Bearer {session_token}"}
