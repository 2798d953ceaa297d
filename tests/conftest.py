"""Shared fixtures for onboarding tests."""

import asyncio
from urllib.parse import parse_qs, urlparse

import pytest

from oauth_onboarding.auth.config import OnboardingConfig
from oauth_onboarding.auth.providers import OAuthProvider
from oauth_onboarding.auth.providers.google import GMAIL_CONFIG
from oauth_onboarding.auth.providers.instagram import INSTAGRAM_CONFIG
from oauth_onboarding.auth.session import AuthorizationSession, PopupSettings
from oauth_onboarding.auth.state import StateTokens
from oauth_onboarding.models import ProviderId
from oauth_onboarding.orchestrator import ConnectionOrchestrator

ORIGIN = "http://localhost:8080"


class FakeProvider(OAuthProvider):
    """Provider whose token exchange is scripted by the test."""

    def __init__(self, config, token="token", error=None, delay=0.0):
        super().__init__(config, client_id=f"{config.id.value}-client")
        self.token = token
        self.error = error
        self.delay = delay
        self.calls: list[str] = []

    async def exchange_code(self, code, redirect_uri):
        self.calls.append(code)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.token


def state_from_url(url: str) -> str:
    """Pull the state token out of an authorization URL."""
    return parse_qs(urlparse(url).query)["state"][0]


def code_message(authorization_url: str, provider=ProviderId.EMAIL, code="abc") -> dict:
    """The message a trusted popup would post for this attempt."""
    return {
        "type": "OAUTH_CODE",
        "provider": provider.value,
        "code": code,
        "state": state_from_url(authorization_url),
    }


@pytest.fixture
def config():
    """Simulated-exchange config with a fixed state secret."""
    return OnboardingConfig(
        origin=ORIGIN,
        simulate_exchange=True,
        state_secret="test-state-secret",
    )


@pytest.fixture
def state_tokens(config):
    return StateTokens(config.state_secret, max_age=config.state_max_age)


@pytest.fixture
def fake_clients():
    return {
        ProviderId.EMAIL: FakeProvider(GMAIL_CONFIG, token="email-token"),
        ProviderId.SOCIAL: FakeProvider(INSTAGRAM_CONFIG, token="social-token"),
    }


@pytest.fixture
def popup_settings(config, state_tokens):
    return PopupSettings(
        state_tokens=state_tokens,
        redirect_uri=config.redirect_uri,
        expected_origin=ORIGIN,
    )


@pytest.fixture
def session(fake_clients, popup_settings):
    """Idle email session backed by a fake provider."""
    return AuthorizationSession(fake_clients[ProviderId.EMAIL], popup_settings)


@pytest.fixture
def orchestrator(config, fake_clients):
    orch = ConnectionOrchestrator(config, clients=fake_clients)
    yield orch
    orch.close()
