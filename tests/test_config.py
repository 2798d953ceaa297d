"""Tests for environment-driven configuration."""

import os

import pytest

from oauth_onboarding.auth.config import DEFAULT_ORIGIN, OnboardingConfig, get_config, get_origin
from oauth_onboarding.models import ProviderId


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Start each test without ONBOARDING_ variables and a fresh cache."""
    for name in list(os.environ):
        if name.startswith("ONBOARDING_"):
            monkeypatch.delenv(name)
    get_config.cache_clear()
    yield
    get_config.cache_clear()


class TestValidation:
    """Tests for config validation."""

    def test_live_mode_requires_client_ids(self):
        with pytest.raises(ValueError, match="ONBOARDING_EMAIL_CLIENT_ID"):
            OnboardingConfig()

    def test_simulated_mode_needs_no_credentials(self):
        config = OnboardingConfig(simulate_exchange=True)
        assert config.sequence == [ProviderId.EMAIL, ProviderId.SOCIAL]

    def test_state_secret_generated(self):
        assert OnboardingConfig(simulate_exchange=True).state_secret

    def test_reject_non_positive_timeout(self):
        with pytest.raises(ValueError, match="authorize_timeout"):
            OnboardingConfig(simulate_exchange=True, authorize_timeout=0)

    def test_reject_repeated_provider(self):
        with pytest.raises(ValueError, match="repeat"):
            OnboardingConfig(simulate_exchange=True, sequence=[ProviderId.EMAIL, ProviderId.EMAIL])

    def test_redirect_uri(self):
        config = OnboardingConfig(simulate_exchange=True, origin="https://app.example/")
        assert config.redirect_uri == "https://app.example/oauth/callback"


class TestEnvironment:
    """Tests for loading from environment variables."""

    def test_defaults(self, monkeypatch):
        monkeypatch.setenv("ONBOARDING_SIMULATE_EXCHANGE", "true")
        config = get_config()
        assert config.simulate_exchange is True
        assert config.sequential is True
        assert config.authorize_timeout is None
        assert config.exchange_timeout == 30.0

    def test_full_environment(self, monkeypatch, tmp_path):
        secret_file = tmp_path / "social_secret"
        secret_file.write_text("from-file\n")
        monkeypatch.setenv("ONBOARDING_ORIGIN", "https://onboard.example")
        monkeypatch.setenv("ONBOARDING_EMAIL_CLIENT_ID", "email-id")
        monkeypatch.setenv("ONBOARDING_EMAIL_CLIENT_SECRET", "email-secret")
        monkeypatch.setenv("ONBOARDING_SOCIAL_CLIENT_ID", "social-id")
        monkeypatch.setenv("ONBOARDING_SOCIAL_CLIENT_SECRET_FILE", str(secret_file))
        monkeypatch.setenv("ONBOARDING_SEQUENCE", "social, email")
        monkeypatch.setenv("ONBOARDING_SEQUENTIAL", "false")
        monkeypatch.setenv("ONBOARDING_AUTHORIZE_TIMEOUT", "120")
        monkeypatch.setenv("ONBOARDING_EXCHANGE_TIMEOUT", "off")
        monkeypatch.setenv("ONBOARDING_WEBHOOK_URL", "https://hook.example/x")

        config = get_config()

        assert config.origin == "https://onboard.example"
        assert config.client_id(ProviderId.EMAIL) == "email-id"
        assert config.client_secret(ProviderId.SOCIAL) == "from-file"
        assert config.sequence == [ProviderId.SOCIAL, ProviderId.EMAIL]
        assert config.sequential is False
        assert config.authorize_timeout == 120.0
        assert config.exchange_timeout is None
        assert config.webhook_url == "https://hook.example/x"

    def test_unknown_provider_in_sequence(self, monkeypatch):
        monkeypatch.setenv("ONBOARDING_SIMULATE_EXCHANGE", "1")
        monkeypatch.setenv("ONBOARDING_SEQUENCE", "email,fax")
        with pytest.raises(ValueError):
            get_config()

    def test_origin_default_shared(self, monkeypatch):
        monkeypatch.setenv("ONBOARDING_SIMULATE_EXCHANGE", "true")
        assert get_origin() == DEFAULT_ORIGIN
        assert get_config().origin == get_origin()

    def test_origin_from_environment(self, monkeypatch):
        monkeypatch.setenv("ONBOARDING_SIMULATE_EXCHANGE", "true")
        monkeypatch.setenv("ONBOARDING_ORIGIN", "https://onboard.example")
        assert get_origin() == "https://onboard.example"
        assert get_config().origin == "https://onboard.example"
