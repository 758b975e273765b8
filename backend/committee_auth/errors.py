from enum import Enum


class ConfigError(RuntimeError):
    """Required server configuration is missing."""

    pass


class AuthFailureReason(str, Enum):
    PROVIDER_DENIED = "provider_denied"
    MISSING_PARAMS = "missing_params"
    INVALID_STATE = "invalid_state"
    EXCHANGE_FAILED = "exchange_failed"
    IDENTITY_FETCH_FAILED = "identity_fetch_failed"
    NOT_COMMITTEE_MEMBER = "not_committee_member"
    INVALID_TOKEN = "invalid_token"
    EXPIRED = "expired"


# User-facing text per reason; detail is appended where it helps the user
_MESSAGES = {
    AuthFailureReason.PROVIDER_DENIED: "GitHub OAuth error",
    AuthFailureReason.MISSING_PARAMS: "Missing OAuth parameters",
    AuthFailureReason.INVALID_STATE: "Invalid OAuth state - security check failed",
    AuthFailureReason.EXCHANGE_FAILED: "Authentication failed",
    AuthFailureReason.IDENTITY_FETCH_FAILED: "Authentication failed",
    AuthFailureReason.NOT_COMMITTEE_MEMBER: (
        "Access denied: Only committee members can access admin features"
    ),
    AuthFailureReason.INVALID_TOKEN: "Invalid token",
    AuthFailureReason.EXPIRED: "Token has expired",
}

_DETAILED = {
    AuthFailureReason.PROVIDER_DENIED,
    AuthFailureReason.EXCHANGE_FAILED,
    AuthFailureReason.IDENTITY_FETCH_FAILED,
}


class AuthFailure(Exception):
    """
    Terminal authentication or authorization failure for one request.

    `detail` holds upstream diagnostics (status codes, provider error text).
    It never contains the signing secret or the committee email.
    """

    def __init__(self, reason: AuthFailureReason, detail: str | None = None):
        self.reason = reason
        self.detail = detail
        super().__init__(self.message)

    @property
    def message(self) -> str:
        base = _MESSAGES[self.reason]
        if self.detail and self.reason in _DETAILED:
            return f"{base}: {self.detail}"
        return base
