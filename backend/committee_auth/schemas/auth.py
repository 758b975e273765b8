from pydantic import BaseModel, ConfigDict, Field

from committee_auth.config import COMMITTEE_ROLE


class SessionClaims(BaseModel):
    """Private claims carried by a session token (camelCase on the wire)."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: int = Field(..., alias="userId")
    username: str
    name: str | None = None  # GitHub display name
    email: str  # Always the committee email, never the provider's value
    role: str = COMMITTEE_ROLE
    login_time: str = Field(..., alias="loginTime")  # ISO-8601 UTC

    def to_jwt_claims(self) -> dict:
        return self.model_dump(by_alias=True)


class AuthBeginResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    auth_url: str = Field(..., alias="authUrl")
    state: str


class VerifyRequest(BaseModel):
    token: str | None = None


class VerifyResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    valid: bool
    user: SessionClaims | None = None
    expires_at: int | None = Field(None, alias="expiresAt")  # Epoch seconds
    error: str | None = None


class HealthEnvironment(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    has_github_client_id: bool = Field(..., alias="hasGitHubClientId")
    has_github_secret: bool = Field(..., alias="hasGitHubSecret")
    has_jwt_secret: bool = Field(..., alias="hasJwtSecret")
    has_allowed_email: bool = Field(..., alias="hasAllowedEmail")
    has_client_url: bool = Field(..., alias="hasClientUrl")


class HealthResponse(BaseModel):
    status: str
    message: str
    timestamp: str
    environment: HealthEnvironment
