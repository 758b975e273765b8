import time
from urllib.parse import parse_qs, urlparse

import pytest
from conftest import COMMITTEE_EMAIL, FakeIdentityProvider, make_identity, make_settings

from committee_auth.config import TOKEN_AUDIENCE, TOKEN_ISSUER
from committee_auth.errors import AuthFailure, AuthFailureReason, ConfigError
from committee_auth.services.github_provider import ProviderError
from committee_auth.services.oauth_service import OAuthService
from committee_auth.utils.session import decode_session_token
from committee_auth.utils.state import decode_state, encode_state, generate_nonce

REDIRECT_URI = "https://auth.example.com/api/auth-callback"


def _fresh_state() -> str:
    return encode_state(generate_nonce(), int(time.time() * 1000))


class TestBegin:
    """Tests for starting the OAuth handshake."""

    def test_begin_returns_authorize_url_with_state(self, fake_provider):
        """Test that begin builds a GitHub URL with a decodable, current state."""
        service = OAuthService(make_settings(), fake_provider)
        called_at = time.time() * 1000
        result = service.begin(redirect_uri=REDIRECT_URI, origin="https://client.example.com")

        parsed = urlparse(result.auth_url)
        assert result.auth_url.startswith("https://github.com/login/oauth/authorize?")
        query = parse_qs(parsed.query)
        assert query["state"] == [result.state]
        assert query["client_id"] == ["test-client-id"]
        assert query["scope"] == ["user:email"]
        assert query["redirect_uri"] == [REDIRECT_URI]

        token = decode_state(query["state"][0])
        assert abs(token.issued_at_millis - called_at) < 1000
        assert token.origin == "https://client.example.com"
        assert len(token.nonce) == 32

    def test_begin_defaults_origin_to_client_url(self, fake_provider):
        """Test that origin falls back to the configured client URL."""
        result = OAuthService(make_settings(), fake_provider).begin(redirect_uri=REDIRECT_URI)
        assert decode_state(result.state).origin == "https://client.example.com"

    def test_begin_without_client_id(self, fake_provider):
        """Test that begin fails with ConfigError when client id is unset."""
        service = OAuthService(make_settings(github_client_id=None), fake_provider)
        with pytest.raises(ConfigError):
            service.begin(redirect_uri=REDIRECT_URI)


class TestCallback:
    """Tests for completing the OAuth handshake."""

    @pytest.mark.asyncio
    async def test_committee_member_gets_session(self):
        """Test that the allowed verified email yields a committee session."""
        provider = FakeIdentityProvider(identity=make_identity(("a@x.com", True)))
        settings = make_settings(allowed_email="a@x.com")
        service = OAuthService(settings, provider)

        result = await service.callback(code="abc", state=_fresh_state())

        claims, _ = decode_session_token(
            result.session_token,
            settings.jwt_secret,
            issuer=TOKEN_ISSUER,
            audience=TOKEN_AUDIENCE,
        )
        assert claims.email == "a@x.com"
        assert claims.role == "committee"
        assert claims.user_id == 4242
        assert claims.username == "octocat"
        assert claims.name == "The Octocat"
        assert result.identity.login == "octocat"
        assert provider.calls == [("exchange_code", "abc"), ("fetch_identity", "gho_test")]

    @pytest.mark.asyncio
    async def test_session_uses_configured_email(self):
        """Test that the token carries the configured email, not the provider's casing."""
        provider = FakeIdentityProvider(identity=make_identity((COMMITTEE_EMAIL.upper(), True)))
        service = OAuthService(make_settings(), provider)

        result = await service.callback(code="abc", state=_fresh_state())
        assert result.claims.email == COMMITTEE_EMAIL

    @pytest.mark.asyncio
    async def test_session_keeps_configured_casing(self):
        """Test that a mixed-case committee email reaches the token unchanged."""
        configured = "Hiking@ManchesterStudentsUnion.COM"
        provider = FakeIdentityProvider(identity=make_identity((configured.lower(), True)))
        service = OAuthService(make_settings(allowed_email=configured), provider)

        result = await service.callback(code="abc", state=_fresh_state())
        assert result.claims.email == configured

    @pytest.mark.asyncio
    async def test_session_expires_after_ttl(self):
        """Test that the session token expires 24 hours after issue."""
        now = 1_800_000_000.0
        settings = make_settings()
        provider = FakeIdentityProvider(identity=make_identity((COMMITTEE_EMAIL, True)))
        service = OAuthService(settings, provider, clock=lambda: now)
        state = encode_state(generate_nonce(), int(now * 1000))

        result = await service.callback(code="abc", state=state)

        _, exp = decode_session_token(
            result.session_token,
            settings.jwt_secret,
            issuer=TOKEN_ISSUER,
            audience=TOKEN_AUDIENCE,
            now=int(now),
        )
        assert exp == int(now) + 86400
        assert result.claims.login_time == "2027-01-15T08:00:00Z"

    @pytest.mark.asyncio
    async def test_other_email_denied(self):
        """Test that a non-committee email is denied with no session."""
        provider = FakeIdentityProvider(identity=make_identity(("b@x.com", True)))
        service = OAuthService(make_settings(allowed_email="a@x.com"), provider)

        with pytest.raises(AuthFailure) as exc_info:
            await service.callback(code="abc", state=_fresh_state())
        assert exc_info.value.reason == AuthFailureReason.NOT_COMMITTEE_MEMBER
        assert "a@x.com" not in exc_info.value.message

    @pytest.mark.asyncio
    async def test_unverified_email_denied(self):
        """Test that an unverified committee email is denied."""
        provider = FakeIdentityProvider(identity=make_identity((COMMITTEE_EMAIL, False)))
        service = OAuthService(make_settings(), provider)

        with pytest.raises(AuthFailure) as exc_info:
            await service.callback(code="abc", state=_fresh_state())
        assert exc_info.value.reason == AuthFailureReason.NOT_COMMITTEE_MEMBER

    @pytest.mark.asyncio
    async def test_stale_state_makes_no_provider_call(self, fake_provider):
        """Test that an 11-minute-old state is rejected before any network call."""
        service = OAuthService(make_settings(), fake_provider)
        stale = encode_state(generate_nonce(), int(time.time() * 1000) - 11 * 60 * 1000)

        with pytest.raises(AuthFailure) as exc_info:
            await service.callback(code="abc", state=stale)
        assert exc_info.value.reason == AuthFailureReason.INVALID_STATE
        assert fake_provider.calls == []

    @pytest.mark.asyncio
    async def test_undecodable_state(self, fake_provider):
        """Test that a garbage state is an invalid state."""
        service = OAuthService(make_settings(), fake_provider)
        with pytest.raises(AuthFailure) as exc_info:
            await service.callback(code="abc", state="%%%garbage")
        assert exc_info.value.reason == AuthFailureReason.INVALID_STATE
        assert fake_provider.calls == []

    @pytest.mark.asyncio
    async def test_provider_error_first(self, fake_provider):
        """Test that a provider error wins over every other check."""
        service = OAuthService(make_settings(), fake_provider)
        with pytest.raises(AuthFailure) as exc_info:
            await service.callback(code=None, state=None, provider_error="access_denied")
        assert exc_info.value.reason == AuthFailureReason.PROVIDER_DENIED
        assert exc_info.value.message == "GitHub OAuth error: access_denied"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code,state", [(None, "s"), ("abc", None), ("", "")])
    async def test_missing_params(self, fake_provider, code, state):
        """Test that missing code or state is rejected."""
        service = OAuthService(make_settings(), fake_provider)
        with pytest.raises(AuthFailure) as exc_info:
            await service.callback(code=code, state=state)
        assert exc_info.value.reason == AuthFailureReason.MISSING_PARAMS

    @pytest.mark.asyncio
    async def test_exchange_failure(self):
        """Test that a failed code exchange surfaces upstream detail."""
        provider = FakeIdentityProvider(
            exchange_error=ProviderError("Token exchange failed: 502", status_code=502)
        )
        service = OAuthService(make_settings(), provider)

        with pytest.raises(AuthFailure) as exc_info:
            await service.callback(code="abc", state=_fresh_state())
        assert exc_info.value.reason == AuthFailureReason.EXCHANGE_FAILED
        assert exc_info.value.detail == "Token exchange failed: 502"
        assert provider.calls == [("exchange_code", "abc")]

    @pytest.mark.asyncio
    async def test_identity_fetch_failure(self):
        """Test that a failed identity fetch aborts the handshake."""
        provider = FakeIdentityProvider(
            identity_error=ProviderError("Failed to fetch user emails: 403", status_code=403)
        )
        service = OAuthService(make_settings(), provider)

        with pytest.raises(AuthFailure) as exc_info:
            await service.callback(code="abc", state=_fresh_state())
        assert exc_info.value.reason == AuthFailureReason.IDENTITY_FETCH_FAILED
        assert "403" in exc_info.value.message

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "override",
        [
            {"github_client_secret": None},
            {"jwt_secret": None},
            {"allowed_email": None},
            {"client_url": ""},
        ],
    )
    async def test_missing_configuration(self, fake_provider, override):
        """Test that missing secrets fail fast before any provider call."""
        service = OAuthService(make_settings(**override), fake_provider)
        with pytest.raises(ConfigError):
            await service.callback(code="abc", state=_fresh_state())
        assert fake_provider.calls == []
