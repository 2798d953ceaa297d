"""OAuth providers for the onboarding gateway."""

import httpx

from ...models import ProviderId
from ..config import OnboardingConfig
from .base import OAuthProvider, ProviderConfig, TokenEndpointProvider
from .google import GMAIL_CONFIG, GoogleProvider
from .instagram import INSTAGRAM_CONFIG, InstagramProvider
from .simulated import SimulatedProvider

# Read-only registry, one descriptor per provider
PROVIDER_CONFIGS: dict[ProviderId, ProviderConfig] = {
    ProviderId.EMAIL: GMAIL_CONFIG,
    ProviderId.SOCIAL: INSTAGRAM_CONFIG,
}

_PROVIDER_CLASSES: dict[ProviderId, type[TokenEndpointProvider]] = {
    ProviderId.EMAIL: GoogleProvider,
    ProviderId.SOCIAL: InstagramProvider,
}


def get_provider(
    provider_id: ProviderId,
    config: OnboardingConfig,
    transport: httpx.AsyncBaseTransport | None = None,
) -> OAuthProvider:
    """Build the OAuth client for a provider from configuration."""
    provider_config = PROVIDER_CONFIGS[provider_id]
    if config.simulate_exchange:
        return SimulatedProvider(
            provider_config,
            client_id=config.client_id(provider_id),
            delay=config.simulate_delay,
        )
    return _PROVIDER_CLASSES[provider_id](
        provider_config,
        client_id=config.client_id(provider_id),
        client_secret=config.client_secret(provider_id),
        transport=transport,
    )


__all__ = [
    "PROVIDER_CONFIGS",
    "GoogleProvider",
    "InstagramProvider",
    "OAuthProvider",
    "ProviderConfig",
    "SimulatedProvider",
    "TokenEndpointProvider",
    "get_provider",
]
