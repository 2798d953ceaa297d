"""Authorization popup and its cross-context message channel.

A channel opens one external authorization surface and delivers exactly one
terminal event to its owner: either an authorization code carried by a trusted
message, or an abandonment when the surface closes (or times out) first.
"""

import asyncio
import hmac
import logging
from typing import Any, Callable

from pydantic import ValidationError

from ..errors import UntrustedMessage
from ..models import PopupMessage, ProviderId
from .providers.base import OAuthProvider
from .state import StateTokenError, StateTokens

logger = logging.getLogger(__name__)


class PopupChannel:
    """One authorization surface plus the listener waiting on it."""

    def __init__(
        self,
        provider: OAuthProvider,
        state_tokens: StateTokens,
        redirect_uri: str,
        expected_origin: str,
        on_code: Callable[[str], Any],
        on_abandoned: Callable[[str], Any],
        opener: Callable[[str], Any] | None = None,
        closer: Callable[[], Any] | None = None,
        timeout: float | None = None,
    ):
        self.provider = provider
        self.provider_id: ProviderId = provider.config.id
        self.redirect_uri = redirect_uri
        self.expected_origin = expected_origin.rstrip("/")
        self._state_tokens = state_tokens
        self._on_code = on_code
        self._on_abandoned = on_abandoned
        self._opener = opener
        self._closer = closer
        self._timeout = timeout
        self._timer: asyncio.TimerHandle | None = None
        self.state: str | None = None
        self.authorization_url: str | None = None
        self.settled = False

    @property
    def is_open(self) -> bool:
        return self.state is not None and not self.settled

    def open(self) -> str:
        """Issue a state token, build the authorization URL and open the surface."""
        if self.state is not None:
            raise RuntimeError("Popup channel already opened")

        self.state = self._state_tokens.issue(self.provider_id)
        self.authorization_url = self.provider.get_authorization_url(
            redirect_uri=self.redirect_uri,
            state=self.state,
        )

        if self._timeout is not None:
            loop = asyncio.get_running_loop()
            self._timer = loop.call_later(self._timeout, self._on_timeout)

        if self._opener:
            self._opener(self.authorization_url)

        logger.info(f"Opened authorization popup for {self.provider_id.value}")
        return self.authorization_url

    def _verify(self, origin: str, payload: Any) -> PopupMessage:
        """
        Check that a message came from the expected origin and this attempt.

        Raises:
            UntrustedMessage: On any origin, shape, provider or state mismatch
        """
        if not isinstance(origin, str) or origin.rstrip("/") != self.expected_origin:
            raise UntrustedMessage(f"Unexpected origin: {origin!r}")

        try:
            message = PopupMessage.model_validate(payload)
        except ValidationError as e:
            raise UntrustedMessage(f"Malformed message: {e.error_count()} errors")

        if message.provider != self.provider_id:
            raise UntrustedMessage(f"Message for {message.provider.value}")

        if self.state is None or not hmac.compare_digest(
            message.state.encode(), self.state.encode()
        ):
            raise UntrustedMessage("State token mismatch")

        try:
            self._state_tokens.verify(message.state)
        except StateTokenError as e:
            raise UntrustedMessage(str(e))

        return message

    def deliver(self, origin: str, payload: Any) -> bool:
        """
        Handle a message posted by the popup.

        Untrusted messages are dropped. Returns True only if the message
        settled the channel with a code.
        """
        if not self.is_open:
            return False

        try:
            message = self._verify(origin, payload)
        except UntrustedMessage as e:
            logger.warning(f"Dropped popup message for {self.provider_id.value}: {e}")
            return False

        self._settle()
        self._on_code(message.code)
        return True

    def notify_closed(self) -> bool:
        """Handle the popup closing. Returns True if this settled the channel."""
        if not self.is_open:
            return False
        self._settle()
        self._on_abandoned("Authorization window closed")
        return True

    def _on_timeout(self) -> None:
        self._timer = None
        if not self.is_open:
            return
        logger.info(f"Authorization popup for {self.provider_id.value} timed out")
        self._settle()
        self._on_abandoned("Authorization timed out")

    def close(self) -> None:
        """Tear down without delivering an event."""
        if self.is_open:
            self._settle()

    def _settle(self) -> None:
        self.settled = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._closer:
            try:
                self._closer()
            except Exception as e:
                logger.debug(f"Error closing popup for {self.provider_id.value}: {e}")
