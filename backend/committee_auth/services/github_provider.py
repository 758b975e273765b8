import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol
from urllib.parse import urlencode

import httpx

logger = logging.getLogger(__name__)

GITHUB_AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
GITHUB_TOKEN_URL = "https://github.com/login/oauth/access_token"
GITHUB_API_URL = "https://api.github.com"
GITHUB_SCOPE = "user:email"
USER_AGENT = "UMHC-Finance-System"


@dataclass(frozen=True)
class AccessCredential:
    access_token: str
    token_type: str = "bearer"
    scope: str = ""


@dataclass(frozen=True)
class EmailAddress:
    address: str
    verified: bool
    primary: bool = False


@dataclass(frozen=True)
class Identity:
    """Provider-neutral identity. Only lives for the duration of a callback."""

    id: int
    login: str
    display_name: Optional[str] = None
    emails: tuple[EmailAddress, ...] = field(default_factory=tuple)


class ProviderError(Exception):
    """Identity provider request failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class IdentityProvider(Protocol):
    scope: str

    def build_authorization_url(
        self, client_id: str, redirect_uri: str, scope: str, state: str
    ) -> str: ...

    async def exchange_code(self, code: str) -> AccessCredential: ...

    async def fetch_identity(self, credential: AccessCredential) -> Identity: ...


class GitHubIdentityProvider:
    """GitHub OAuth App adapter."""

    scope = GITHUB_SCOPE

    def __init__(
        self,
        client_id: Optional[str],
        client_secret: Optional[str],
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    def _api_headers(self, credential: AccessCredential) -> dict:
        return {
            "Authorization": f"token {credential.access_token}",
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": USER_AGENT,
        }

    def build_authorization_url(
        self, client_id: str, redirect_uri: str, scope: str, state: str
    ) -> str:
        params = {
            "client_id": client_id,
            "scope": scope,
            "state": state,
            "redirect_uri": redirect_uri,
        }
        return f"{GITHUB_AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> AccessCredential:
        """
        Exchange an authorization code for an access token.

        Raises:
            ProviderError: On transport failure, non-2xx status, or an
                error payload
        """
        async with self._client() as client:
            try:
                response = await client.post(
                    GITHUB_TOKEN_URL,
                    headers={"Accept": "application/json"},
                    json={
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "code": code,
                    },
                )
            except httpx.RequestError as e:
                logger.error(f"GitHub token exchange request error: {e}")
                raise ProviderError(f"Token exchange failed: {e}") from None

        if not response.is_success:
            raise ProviderError(
                f"Token exchange failed: {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError:
            raise ProviderError("Token exchange failed: invalid response") from None
        if not isinstance(data, dict):
            raise ProviderError("Token exchange failed: invalid response")

        if data.get("error"):
            raise ProviderError(
                f"GitHub token error: {data.get('error_description') or data['error']}"
            )

        access_token = data.get("access_token")
        if not access_token:
            raise ProviderError("GitHub token error: no access token in response")

        return AccessCredential(
            access_token=access_token,
            token_type=data.get("token_type", "bearer"),
            scope=data.get("scope", ""),
        )

    async def _get_json(self, client: httpx.AsyncClient, path: str, headers: dict, what: str):
        try:
            response = await client.get(f"{GITHUB_API_URL}{path}", headers=headers)
        except httpx.RequestError as e:
            logger.error(f"GitHub {what} request error: {e}")
            raise ProviderError(f"Failed to fetch {what}: {e}") from None

        if not response.is_success:
            raise ProviderError(
                f"Failed to fetch {what}: {response.status_code}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError:
            raise ProviderError(f"Failed to fetch {what}: invalid response") from None

    async def fetch_identity(self, credential: AccessCredential) -> Identity:
        """
        Fetch the user profile, then the user's email list.

        Both requests must succeed; there is no partial identity.

        Raises:
            ProviderError: If either request fails
        """
        headers = self._api_headers(credential)
        async with self._client() as client:
            user = await self._get_json(client, "/user", headers, "user data")
            emails = await self._get_json(client, "/user/emails", headers, "user emails")

        if not isinstance(user, dict) or "id" not in user or "login" not in user:
            raise ProviderError("Failed to fetch user data: unexpected response")
        if not isinstance(emails, list):
            raise ProviderError("Failed to fetch user emails: unexpected response")

        return Identity(
            id=user["id"],
            login=user["login"],
            display_name=user.get("name"),
            emails=tuple(
                EmailAddress(
                    address=entry["email"],
                    verified=entry.get("verified") is True,
                    primary=entry.get("primary") is True,
                )
                for entry in emails
                if isinstance(entry, dict) and isinstance(entry.get("email"), str)
            ),
        )
