"""Forwards captured provider tokens to an operator-supplied webhook."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import httpx
from pydantic import BaseModel, HttpUrl, TypeAdapter, ValidationError

from .auth.providers import PROVIDER_CONFIGS
from .errors import DeliveryFailure
from .models import OrchestratorSnapshot, ProviderId, SessionState

logger = logging.getLogger(__name__)

_url_adapter = TypeAdapter(HttpUrl)


def _isoformat(moment: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision, e.g. 2024-01-01T12:00:00.000Z."""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class WebhookPayload(BaseModel):
    """Tokens captured during onboarding, built at submission time."""

    endpoint: str
    tokens_by_provider: dict[ProviderId, str]
    issued_at: datetime

    @classmethod
    def from_snapshot(cls, endpoint: str, snapshot: OrchestratorSnapshot) -> "WebhookPayload":
        tokens = {
            provider: info.token
            for provider, info in snapshot.sessions.items()
            if info.state == SessionState.CONNECTED and info.token
        }
        return cls(endpoint=endpoint, tokens_by_provider=tokens, issued_at=datetime.now(timezone.utc))

    def body(self) -> dict[str, Any]:
        """JSON body: the webhook URL, one token-or-null field per provider, a timestamp."""
        body: dict[str, Any] = {"webhook_url": self.endpoint}
        for provider_id, provider_config in PROVIDER_CONFIGS.items():
            body[provider_config.token_field] = self.tokens_by_provider.get(provider_id)
        body["timestamp"] = _isoformat(self.issued_at)
        return body


@dataclass
class SubmitResult:
    """A delivered webhook request."""

    status_code: int
    body: dict[str, Any]

    @property
    def timestamp(self) -> str:
        return self.body["timestamp"]


def validate_endpoint(endpoint: str | None) -> str:
    """Return the endpoint if it is a usable http(s) URL, else raise ValueError."""
    endpoint = (endpoint or "").strip()
    if not endpoint:
        raise ValueError("Webhook URL cannot be empty")
    try:
        _url_adapter.validate_python(endpoint)
    except ValidationError:
        raise ValueError(f"Invalid webhook URL: {endpoint}")
    return endpoint


class WebhookSubmitter:
    """Posts the aggregate token payload once, without retries."""

    def __init__(
        self,
        timeout: float | None = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout = timeout
        self._transport = transport

    async def submit(self, endpoint: str, snapshot: OrchestratorSnapshot) -> SubmitResult:
        """
        Send the tokens in a snapshot to a webhook.

        Args:
            endpoint: Webhook URL
            snapshot: Current orchestrator state; not modified

        Returns:
            The response status and the body that was sent

        Raises:
            ValueError: If the URL is invalid or no provider is connected
            DeliveryFailure: On a non-2xx response or transport error
        """
        endpoint = validate_endpoint(endpoint)
        payload = WebhookPayload.from_snapshot(endpoint, snapshot)
        if not payload.tokens_by_provider:
            raise ValueError("Connect at least one account before submitting")

        body = payload.body()
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.post(
                    endpoint,
                    json=body,
                    headers={"Content-Type": "application/json"},
                )
        except httpx.HTTPError as e:
            logger.error(f"Webhook submission failed: {e}")
            raise DeliveryFailure(f"Webhook request failed: {e}") from e

        if not response.is_success:
            logger.error(f"Webhook submission failed: HTTP {response.status_code}")
            raise DeliveryFailure(f"HTTP {response.status_code}", status_code=response.status_code)

        logger.info(
            f"Submitted {len(payload.tokens_by_provider)} token(s) to webhook "
            f"({response.status_code})"
        )
        return SubmitResult(status_code=response.status_code, body=body)
