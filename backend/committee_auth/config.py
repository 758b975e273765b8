from functools import lru_cache

from pydantic import Field, field_validator
from pydantic.networks import validate_email
from pydantic_settings import BaseSettings, SettingsConfigDict

from committee_auth.errors import ConfigError

# Fixed JWT registered claims shared by issuer and verifiers
TOKEN_ISSUER = "umhc-auth-server"
TOKEN_AUDIENCE = "umhc-finance-system"
COMMITTEE_ROLE = "committee"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Committee Auth Server"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000

    # CORS
    cors_origins: list[str] = Field(default=["*"])

    # GitHub OAuth
    github_client_id: str | None = Field(default=None)
    github_client_secret: str | None = Field(default=None)
    github_redirect_uri: str | None = Field(default=None)  # Derived from request when unset
    github_timeout: float = Field(default=10.0)

    # Session tokens
    jwt_secret: str | None = Field(default=None)
    session_ttl_seconds: int = Field(default=86400)  # 24 hours
    state_max_age_seconds: int = Field(default=600)  # 10 minutes

    # Committee access
    allowed_email: str | None = Field(default=None)

    # Client pages the callback redirects to
    client_url: str = Field(default="")
    client_success_path: str = Field(default="/admin-dashboard.html")
    client_error_path: str = Field(default="/admin-login.html")

    # Claude API proxy
    claude_api_key: str | None = Field(default=None)  # Fallback when request carries none
    claude_api_url: str = Field(default="https://api.anthropic.com/v1/messages")
    claude_api_version: str = Field(default="2023-06-01")
    claude_default_model: str = Field(default="claude-3-5-sonnet-20241022")
    claude_default_max_tokens: int = Field(default=8000)
    claude_timeout: float = Field(default=120.0)

    @field_validator("allowed_email")
    @classmethod
    def validate_allowed_email(cls, v: str | None) -> str | None:
        # Checked for syntax only; the claim carries the address as configured
        if not v or not v.strip():
            return None
        validate_email(v.strip())
        return v.strip()

    def missing_required(self) -> list[str]:
        """Names of required settings that are not configured."""
        required = {
            "GITHUB_CLIENT_ID": self.github_client_id,
            "GITHUB_CLIENT_SECRET": self.github_client_secret,
            "JWT_SECRET": self.jwt_secret,
            "ALLOWED_EMAIL": self.allowed_email,
            "CLIENT_URL": self.client_url,
        }
        return [name for name, value in required.items() if not value]

    def require(self, *names: str) -> None:
        """
        Fail fast when any of the given settings is unset.

        Raises:
            ConfigError: naming the first missing setting (never its value)
        """
        missing = [name for name in names if name in self.missing_required()]
        if missing:
            raise ConfigError(f"{missing[0]} not configured")

    def client_page(self, path: str) -> str:
        return f"{self.client_url.rstrip('/')}{path}"


@lru_cache
def get_settings() -> Settings:
    return Settings()
