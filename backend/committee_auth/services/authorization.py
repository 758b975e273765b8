from committee_auth.schemas.auth import SessionClaims
from committee_auth.services.github_provider import Identity


def is_authorized(identity: Identity, allowed_email: str) -> bool:
    """True iff the identity has a provider-verified email equal to the allowed one (any case)."""
    wanted = allowed_email.lower()
    return any(e.verified and e.address.lower() == wanted for e in identity.emails)


class AuthorizationPolicy:
    """Single allow-listed committee email."""

    def __init__(self, allowed_email: str):
        self.allowed_email = allowed_email

    def is_authorized(self, identity: Identity) -> bool:
        return is_authorized(identity, self.allowed_email)

    def permits(self, claims: SessionClaims) -> bool:
        # Re-checked on every proxied call in case the committee email changed
        return claims.email.lower() == self.allowed_email.lower()
