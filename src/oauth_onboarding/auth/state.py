"""Per-attempt OAuth state tokens for CSRF protection."""

import secrets
from typing import Any

from itsdangerous import BadSignature, URLSafeTimedSerializer

from ..models import ProviderId

STATE_SALT = "oauth-onboarding-state"


class StateTokenError(Exception):
    """State token is malformed, tampered with or expired."""

    pass


class StateTokens:
    """Issues and verifies signed state tokens bound to a provider."""

    def __init__(self, secret: str, max_age: int = 600):
        self._serializer = URLSafeTimedSerializer(secret, salt=STATE_SALT)
        self.max_age = max_age

    def issue(self, provider: ProviderId) -> str:
        """Create a fresh state token for one authorization attempt."""
        return self._serializer.dumps(
            {"provider": provider.value, "nonce": secrets.token_urlsafe(16)}
        )

    def verify(self, token: str) -> dict[str, Any]:
        """
        Decode a state token.

        Raises:
            StateTokenError: If the signature is invalid or the token expired
        """
        try:
            payload = self._serializer.loads(token, max_age=self.max_age)
        except BadSignature as e:
            # SignatureExpired is a BadSignature subclass
            raise StateTokenError(f"Invalid state: {e}")
        if not isinstance(payload, dict) or "provider" not in payload:
            raise StateTokenError("Invalid state payload")
        return payload

    def provider_of(self, token: str) -> ProviderId:
        """Return the provider a state token was issued for."""
        payload = self.verify(token)
        try:
            return ProviderId(payload["provider"])
        except ValueError:
            raise StateTokenError(f"Unknown provider in state: {payload['provider']}")
