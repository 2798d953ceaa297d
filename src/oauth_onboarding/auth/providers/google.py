"""Google (Gmail) OAuth provider."""

from ...models import ProviderId
from .base import ProviderConfig, TokenEndpointProvider

# Google OAuth URLs
GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"

GMAIL_CONFIG = ProviderConfig(
    id=ProviderId.EMAIL,
    display_name="Gmail",
    authorization_endpoint=GOOGLE_AUTHORIZE_URL,
    token_endpoint=GOOGLE_TOKEN_URL,
    scopes=("https://www.googleapis.com/auth/gmail.readonly",),
    token_field="gmail_token",
    description="Connect your Google account to automate email workflows",
)


class GoogleProvider(TokenEndpointProvider):
    """Google OAuth2 provider."""

    def get_authorization_url(self, redirect_uri: str, state: str) -> str:
        """Generate Google authorization URL."""
        # Always show the consent screen
        return super().get_authorization_url(redirect_uri, state) + "&prompt=consent"
