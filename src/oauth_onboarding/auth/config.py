"""Configuration for the onboarding gateway."""

import os
import secrets
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

from ..models import ProviderId

DEFAULT_ORIGIN = "http://localhost:8080"


@dataclass
class OnboardingConfig:
    """Onboarding gateway configuration."""

    # Origin of the onboarding UI; popup messages must come from here
    origin: str = DEFAULT_ORIGIN
    redirect_path: str = "/oauth/callback"

    # Provider OAuth credentials
    email_client_id: str = ""
    email_client_secret: str = ""
    social_client_id: str = ""
    social_client_secret: str = ""

    # Signing key and lifetime of per-attempt state tokens
    state_secret: str = ""
    state_max_age: int = 600

    # Default webhook for token submission
    webhook_url: str = ""

    # Replace real token exchange with mock tokens
    simulate_exchange: bool = False
    simulate_delay: float = 0.0

    # Gating order; sequential=False lets providers authorize independently
    sequence: list[ProviderId] = field(
        default_factory=lambda: [ProviderId.EMAIL, ProviderId.SOCIAL]
    )
    sequential: bool = True

    # Seconds; None disables the bound
    authorize_timeout: float | None = None
    exchange_timeout: float | None = 30.0

    def __post_init__(self):
        """Validate configuration."""
        if not self.simulate_exchange:
            for provider in self.sequence:
                if not self.client_id(provider):
                    raise ValueError(
                        f"ONBOARDING_{provider.value.upper()}_CLIENT_ID required "
                        "unless ONBOARDING_SIMULATE_EXCHANGE is set"
                    )
        if not self.sequence:
            raise ValueError("ONBOARDING_SEQUENCE must name at least one provider")
        if len(set(self.sequence)) != len(self.sequence):
            raise ValueError("ONBOARDING_SEQUENCE must not repeat providers")
        for name in ("authorize_timeout", "exchange_timeout"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise ValueError(f"{name} must be positive")
        if not self.state_secret:
            # Random per process; state tokens do not survive restarts
            self.state_secret = secrets.token_urlsafe(32)

    @property
    def redirect_uri(self) -> str:
        """Callback URL registered with the providers."""
        return f"{self.origin.rstrip('/')}{self.redirect_path}"

    def client_id(self, provider: ProviderId) -> str:
        if provider == ProviderId.EMAIL:
            return self.email_client_id
        return self.social_client_id

    def client_secret(self, provider: ProviderId) -> str:
        if provider == ProviderId.EMAIL:
            return self.email_client_secret
        return self.social_client_secret


def _read_secret_file(path: str) -> str:
    """Read a secret from a file path."""
    try:
        return Path(path).read_text().strip()
    except (FileNotFoundError, PermissionError):
        return ""


def _secret(name: str) -> str:
    """Read a secret from ONBOARDING_<name>, falling back to ONBOARDING_<name>_FILE."""
    value = os.environ.get(f"ONBOARDING_{name}", "")
    if not value:
        secret_file = os.environ.get(f"ONBOARDING_{name}_FILE", "")
        if secret_file:
            value = _read_secret_file(secret_file)
    return value


def _flag(name: str, default: str = "") -> bool:
    return os.environ.get(name, default).lower() in ("true", "1", "yes")


def _optional_seconds(name: str, default: str) -> float | None:
    raw = os.environ.get(name, default).strip()
    if not raw or raw.lower() in ("none", "off", "0"):
        return None
    return float(raw)


def get_origin() -> str:
    """Origin of the onboarding UI, from ONBOARDING_ORIGIN."""
    return os.environ.get("ONBOARDING_ORIGIN", DEFAULT_ORIGIN)


@lru_cache
def get_config() -> OnboardingConfig:
    """Load onboarding configuration from environment variables."""

    sequence_str = os.environ.get("ONBOARDING_SEQUENCE", "email,social")
    sequence = [ProviderId(p.strip()) for p in sequence_str.split(",") if p.strip()]

    return OnboardingConfig(
        origin=get_origin(),
        redirect_path=os.environ.get("ONBOARDING_REDIRECT_PATH", "/oauth/callback"),
        email_client_id=os.environ.get("ONBOARDING_EMAIL_CLIENT_ID", ""),
        email_client_secret=_secret("EMAIL_CLIENT_SECRET"),
        social_client_id=os.environ.get("ONBOARDING_SOCIAL_CLIENT_ID", ""),
        social_client_secret=_secret("SOCIAL_CLIENT_SECRET"),
        state_secret=_secret("STATE_SECRET"),
        state_max_age=int(os.environ.get("ONBOARDING_STATE_MAX_AGE", "600")),
        webhook_url=os.environ.get("ONBOARDING_WEBHOOK_URL", ""),
        simulate_exchange=_flag("ONBOARDING_SIMULATE_EXCHANGE"),
        simulate_delay=float(os.environ.get("ONBOARDING_SIMULATE_DELAY", "0")),
        sequence=sequence,
        sequential=_flag("ONBOARDING_SEQUENTIAL", "true"),
        authorize_timeout=_optional_seconds("ONBOARDING_AUTHORIZE_TIMEOUT", ""),
        exchange_timeout=_optional_seconds("ONBOARDING_EXCHANGE_TIMEOUT", "30"),
    )
