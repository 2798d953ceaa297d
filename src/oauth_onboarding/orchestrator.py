"""Connection orchestrator - owns the authorization sessions and enforces gating."""

import logging
from typing import Any, Callable

import httpx

from .auth.config import OnboardingConfig
from .auth.providers import OAuthProvider, get_provider
from .auth.session import AuthorizationSession, PopupSettings
from .auth.state import StateTokens
from .errors import GateViolation
from .models import OrchestratorSnapshot, ProviderId, SessionInfo, SessionState

logger = logging.getLogger(__name__)


class ConnectionOrchestrator:
    """Coordinates per-provider sessions for one onboarding flow."""

    def __init__(
        self,
        config: OnboardingConfig,
        clients: dict[ProviderId, OAuthProvider] | None = None,
        opener: Callable[[str], Any] | None = None,
        closer: Callable[[], Any] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config
        self.sequence: list[ProviderId] = list(config.sequence)
        self.sequential = config.sequential
        self.state_tokens = StateTokens(config.state_secret, max_age=config.state_max_age)
        self._popup = PopupSettings(
            state_tokens=self.state_tokens,
            redirect_uri=config.redirect_uri,
            expected_origin=config.origin,
            opener=opener,
            closer=closer,
            authorize_timeout=config.authorize_timeout,
        )
        self._clients: dict[ProviderId, OAuthProvider] = {}
        for provider in self.sequence:
            if clients and provider in clients:
                self._clients[provider] = clients[provider]
            else:
                self._clients[provider] = get_provider(provider, config, transport=transport)

        self._sessions: dict[ProviderId, AuthorizationSession] = {
            provider: self._new_session(provider) for provider in self.sequence
        }

    def _new_session(self, provider: ProviderId) -> AuthorizationSession:
        return AuthorizationSession(
            self._clients[provider],
            self._popup,
            exchange_timeout=self.config.exchange_timeout,
        )

    def _session(self, provider: ProviderId) -> AuthorizationSession:
        if provider not in self._clients:
            raise KeyError(f"Provider {provider} not in sequence")
        session = self._sessions.get(provider)
        if session is None:
            session = self._sessions[provider] = self._new_session(provider)
        return session

    def _check_gate(self, provider: ProviderId) -> None:
        """Raise GateViolation unless every earlier provider is connected."""
        if not self.sequential:
            return
        for earlier in self.sequence[: self.sequence.index(provider)]:
            if self._sessions[earlier].state != SessionState.CONNECTED:
                raise GateViolation(provider.value, earlier.value)

    # -------------------------------------------------------------------------
    # Intents
    # -------------------------------------------------------------------------

    def connect(self, provider: ProviderId) -> SessionInfo:
        """Begin authorizing a provider."""
        session = self._session(provider)
        try:
            self._check_gate(provider)
        except GateViolation as e:
            logger.warning(str(e))
            raise
        session.start()
        return session.info()

    def deliver_message(self, provider: ProviderId, origin: str, payload: Any) -> bool:
        return self._session(provider).deliver_message(origin, payload)

    def popup_closed(self, provider: ProviderId) -> bool:
        return self._session(provider).popup_closed()

    def submit_code(self, provider: ProviderId, code: str) -> SessionInfo:
        session = self._session(provider)
        session.submit_code(code)
        return session.info()

    def restart(self, provider: ProviderId) -> SessionInfo:
        session = self._session(provider)
        session.restart()
        return session.info()

    async def exchange(self, provider: ProviderId) -> SessionInfo:
        session = self._session(provider)
        state = await session.exchange()
        if state == SessionState.CONNECTED:
            logger.info(f"Connected {provider.value}")
        return session.info()

    def reset(self, provider: ProviderId) -> SessionInfo:
        """Replace a failed session with a fresh idle one."""
        session = self._session(provider)
        session.reset()
        session.close()
        self._sessions[provider] = self._new_session(provider)
        return self._sessions[provider].info()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def provider_status(self, provider: ProviderId) -> SessionState:
        return self._session(provider).state

    def all_connected(self) -> bool:
        return all(
            self._sessions[provider].state == SessionState.CONNECTED
            for provider in self.sequence
        )

    def session_info(self, provider: ProviderId) -> SessionInfo:
        return self._session(provider).info()

    def tokens(self) -> dict[ProviderId, str]:
        """Tokens of every connected provider."""
        return {
            provider: session.token
            for provider, session in self._sessions.items()
            if session.state == SessionState.CONNECTED and session.token
        }

    def snapshot(self) -> OrchestratorSnapshot:
        return OrchestratorSnapshot(
            sequence=list(self.sequence),
            sessions={provider: self._sessions[provider].info() for provider in self.sequence},
            all_connected=self.all_connected(),
        )

    def close(self) -> None:
        """Tear down every session's popup."""
        for session in self._sessions.values():
            session.close()
        logger.info("Orchestrator closed")
