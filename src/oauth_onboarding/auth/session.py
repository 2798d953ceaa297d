"""Per-provider authorization state machine."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

import httpx

from ..errors import ExchangeFailure, InvalidTransition
from ..models import ErrorKind, ProviderId, SessionInfo, SessionState
from .popup import PopupChannel
from .providers.base import OAuthProvider
from .state import StateTokens

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[SessionState, set[SessionState]] = {
    SessionState.IDLE: {SessionState.AUTHORIZING},
    SessionState.AUTHORIZING: {SessionState.CODE_RECEIVED, SessionState.FAILED},
    SessionState.CODE_RECEIVED: {SessionState.EXCHANGING, SessionState.AUTHORIZING},
    SessionState.EXCHANGING: {SessionState.CONNECTED, SessionState.FAILED},
    SessionState.CONNECTED: set(),
    SessionState.FAILED: {SessionState.IDLE},
}


@dataclass
class PopupSettings:
    """How sessions open and verify their authorization popups."""

    state_tokens: StateTokens
    redirect_uri: str
    expected_origin: str
    opener: Callable[[str], Any] | None = None
    closer: Callable[[], Any] | None = None
    authorize_timeout: float | None = None


class AuthorizationSession:
    """Manages one provider's authorization attempt end-to-end."""

    def __init__(
        self,
        client: OAuthProvider,
        popup: PopupSettings,
        exchange_timeout: float | None = None,
    ):
        self.client = client
        self.provider: ProviderId = client.config.id
        self.popup = popup
        self.exchange_timeout = exchange_timeout
        self.state = SessionState.IDLE
        self.authorization_code: str | None = None
        self.token: str | None = None
        self.started_at: datetime | None = None
        self.error: ErrorKind | None = None
        self.error_detail: str | None = None
        self._channel: PopupChannel | None = None

    def _transition(self, new_state: SessionState) -> None:
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise InvalidTransition(self.provider.value, f"move to {new_state.value}", self.state.value)
        logger.info(f"Session {self.provider.value}: {self.state.value} -> {new_state.value}")
        self.state = new_state

    def _require(self, operation: str, *states: SessionState) -> None:
        if self.state not in states:
            raise InvalidTransition(self.provider.value, operation, self.state.value)

    def _open_channel(self) -> None:
        self._close_channel()
        self._channel = PopupChannel(
            provider=self.client,
            state_tokens=self.popup.state_tokens,
            redirect_uri=self.popup.redirect_uri,
            expected_origin=self.popup.expected_origin,
            on_code=self.on_code_received,
            on_abandoned=self.on_popup_abandoned,
            opener=self.popup.opener,
            closer=self.popup.closer,
            timeout=self.popup.authorize_timeout,
        )
        self._channel.open()

    def _close_channel(self) -> None:
        if self._channel is not None:
            self._channel.close()

    @property
    def authorization_url(self) -> str | None:
        if self._channel is not None and self._channel.is_open:
            return self._channel.authorization_url
        return None

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Open the authorization popup. Gating is checked by the caller."""
        self._require("start", SessionState.IDLE)
        self._transition(SessionState.AUTHORIZING)
        self.started_at = datetime.now(timezone.utc)
        self._open_channel()

    def on_code_received(self, code: str) -> None:
        """Record a code from the popup. Ignored unless authorizing."""
        if not code:
            raise ValueError("Authorization code cannot be empty")
        if self.state != SessionState.AUTHORIZING:
            return
        self._close_channel()
        self.authorization_code = code
        self._transition(SessionState.CODE_RECEIVED)

    def on_popup_abandoned(self, detail: str = "Authorization window closed") -> None:
        """Fail the attempt when the popup closes without a code."""
        if self.state != SessionState.AUTHORIZING or self.authorization_code:
            return
        self._close_channel()
        self._fail(ErrorKind.USER_ABANDONED, detail)

    def submit_code(self, code: str) -> None:
        """Manually entered code, used when the popup channel cannot deliver one."""
        self._require("submit a code for", SessionState.AUTHORIZING, SessionState.CODE_RECEIVED)
        code = (code or "").strip()
        if not code:
            raise ValueError("Authorization code cannot be empty")
        self._close_channel()
        self.authorization_code = code
        if self.state == SessionState.AUTHORIZING:
            self._transition(SessionState.CODE_RECEIVED)

    def restart(self) -> None:
        """Discard a received code and reopen the popup."""
        self._require("restart", SessionState.CODE_RECEIVED)
        self.authorization_code = None
        self._transition(SessionState.AUTHORIZING)
        self.started_at = datetime.now(timezone.utc)
        self._open_channel()

    async def exchange(self) -> SessionState:
        """
        Exchange the received code for a token.

        Exchange errors leave the session failed rather than raising.

        Returns:
            The terminal state, CONNECTED or FAILED

        Raises:
            InvalidTransition: If no code is waiting (including while exchanging)
        """
        self._require("exchange", SessionState.CODE_RECEIVED)
        self._transition(SessionState.EXCHANGING)

        try:
            token = await asyncio.wait_for(
                self.client.exchange_code(self.authorization_code, self.popup.redirect_uri),
                timeout=self.exchange_timeout,
            )
        except asyncio.TimeoutError:
            self._fail(ErrorKind.EXCHANGE_FAILURE, "Token exchange timed out")
        except (ExchangeFailure, httpx.HTTPError) as e:
            logger.error(f"Token exchange failed for {self.provider.value}: {e}")
            self._fail(ErrorKind.EXCHANGE_FAILURE, str(e) or type(e).__name__)
        except Exception as e:
            logger.exception(f"Unexpected error exchanging code for {self.provider.value}")
            self._fail(ErrorKind.EXCHANGE_FAILURE, str(e) or type(e).__name__)
        else:
            if not isinstance(token, str) or not token:
                self._fail(ErrorKind.EXCHANGE_FAILURE, "No access token in response")
            else:
                self.token = token
                self._transition(SessionState.CONNECTED)

        return self.state

    def reset(self) -> None:
        """Return a failed session to idle so it can be started again."""
        self._require("reset", SessionState.FAILED)
        self.authorization_code = None
        self.token = None
        self.error = None
        self.error_detail = None
        self.started_at = None
        self._transition(SessionState.IDLE)

    def _fail(self, kind: ErrorKind, detail: str) -> None:
        self.token = None
        self.error = kind
        self.error_detail = detail
        self._transition(SessionState.FAILED)

    # -------------------------------------------------------------------------
    # Popup events
    # -------------------------------------------------------------------------

    def deliver_message(self, origin: str, payload: Any) -> bool:
        """Forward a popup message to the open channel."""
        if self._channel is None:
            return False
        return self._channel.deliver(origin, payload)

    def popup_closed(self) -> bool:
        """Forward a popup closure to the open channel."""
        if self._channel is None:
            return False
        return self._channel.notify_closed()

    def close(self) -> None:
        """Tear down any open popup without producing an event."""
        self._close_channel()

    def info(self) -> SessionInfo:
        return SessionInfo(
            provider=self.provider,
            display_name=self.client.config.display_name,
            state=self.state,
            authorization_url=self.authorization_url,
            has_code=bool(self.authorization_code),
            token=self.token,
            started_at=self.started_at,
            error=self.error,
            error_detail=self.error_detail,
        )
