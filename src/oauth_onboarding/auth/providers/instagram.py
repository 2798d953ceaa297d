"""Instagram OAuth provider."""

from typing import Any

from ...models import ProviderId
from .base import ProviderConfig, TokenEndpointProvider

# Instagram OAuth URLs
INSTAGRAM_AUTHORIZE_URL = "https://api.instagram.com/oauth/authorize"
INSTAGRAM_TOKEN_URL = "https://api.instagram.com/oauth/access_token"

INSTAGRAM_CONFIG = ProviderConfig(
    id=ProviderId.SOCIAL,
    display_name="Instagram",
    authorization_endpoint=INSTAGRAM_AUTHORIZE_URL,
    token_endpoint=INSTAGRAM_TOKEN_URL,
    scopes=("user_profile", "user_media"),
    token_field="instagram_token",
    description="Connect your Instagram account to automate social media",
)


class InstagramProvider(TokenEndpointProvider):
    """Instagram OAuth2 provider."""

    def _error_message(self, token_data: dict[str, Any]) -> str | None:
        """Instagram reports errors as error_type/error_message."""
        if "error_type" in token_data:
            return str(token_data.get("error_message") or token_data["error_type"])
        return super()._error_message(token_data)
