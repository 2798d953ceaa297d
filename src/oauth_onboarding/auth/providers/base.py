"""Provider descriptors and the OAuth client interface."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote, urlencode

import httpx

from ...errors import ExchangeFailure
from ...models import ProviderId, ProviderInfo

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderConfig:
    """Static descriptor of a connectable provider."""

    id: ProviderId
    display_name: str
    authorization_endpoint: str
    token_endpoint: str
    scopes: tuple[str, ...]
    token_field: str  # Webhook body field carrying this provider's token
    description: str = ""

    def info(self) -> ProviderInfo:
        return ProviderInfo(
            id=self.id,
            display_name=self.display_name,
            description=self.description,
            scopes=list(self.scopes),
        )


class OAuthProvider(ABC):
    """Abstract base class for provider OAuth clients."""

    def __init__(self, config: ProviderConfig, client_id: str):
        self.config = config
        self.client_id = client_id

    @property
    def name(self) -> str:
        """Provider name (e.g., 'email')."""
        return self.config.id.value

    def get_authorization_url(self, redirect_uri: str, state: str) -> str:
        """
        Generate the authorization URL for the OAuth flow.

        Args:
            redirect_uri: Where the provider redirects after consent
            state: Per-attempt CSRF state token

        Returns:
            Authorization URL to open in the popup
        """
        params = {
            "client_id": self.client_id,
            "redirect_uri": redirect_uri,
            "scope": " ".join(self.config.scopes),
            "response_type": "code",
            "state": state,
        }
        return f"{self.config.authorization_endpoint}?{urlencode(params, quote_via=quote)}"

    @abstractmethod
    async def exchange_code(self, code: str, redirect_uri: str) -> str:
        """
        Exchange authorization code for access token.

        Args:
            code: Authorization code from the popup
            redirect_uri: Same redirect_uri used in authorization

        Returns:
            Access token from the provider

        Raises:
            ExchangeFailure: If the provider rejects the code
        """
        pass


class TokenEndpointProvider(OAuthProvider):
    """Provider that exchanges codes with a standard form POST to its token endpoint."""

    def __init__(
        self,
        config: ProviderConfig,
        client_id: str,
        client_secret: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(config, client_id)
        self.client_secret = client_secret
        self._transport = transport

    def _token_request(self, code: str, redirect_uri: str) -> dict[str, str]:
        return {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
        }

    def _error_message(self, token_data: dict[str, Any]) -> str | None:
        """Extract a provider error from a token response body."""
        if "error" in token_data:
            return str(token_data.get("error_description") or token_data["error"])
        return None

    async def exchange_code(self, code: str, redirect_uri: str) -> str:
        """Exchange authorization code for an access token."""
        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.post(
                self.config.token_endpoint,
                data=self._token_request(code, redirect_uri),
                headers={"Accept": "application/json"},
            )

        try:
            token_data = response.json()
        except ValueError:
            token_data = {}
        if not isinstance(token_data, dict):
            token_data = {}

        error = self._error_message(token_data)
        if error:
            logger.error(f"{self.config.display_name} token error: {error}")
            raise ExchangeFailure(f"Token error: {error}")

        if response.status_code != 200:
            logger.error(
                f"{self.config.display_name} token exchange failed: {response.status_code}"
            )
            raise ExchangeFailure(f"Token exchange failed: {response.status_code}")

        access_token = token_data.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise ExchangeFailure("No access token in response")

        return access_token
