"""Tests for webhook token submission."""

import json
from datetime import datetime

import httpx
import pytest

from conftest import ORIGIN, code_message
from oauth_onboarding.errors import DeliveryFailure
from oauth_onboarding.models import ProviderId
from oauth_onboarding.webhook import WebhookSubmitter, validate_endpoint

HOOK = "https://hook.example/x"


class CapturingTransport:
    """Records requests and answers with a fixed status."""

    def __init__(self, status_code=200):
        self.status_code = status_code
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json={"ok": self.status_code < 300})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


async def connect(orch, provider):
    info = orch.connect(provider)
    orch.deliver_message(provider, ORIGIN, code_message(info.authorization_url, provider))
    await orch.exchange(provider)


class TestEndpointValidation:
    """Tests for webhook URL validation."""

    def test_valid_url(self):
        assert validate_endpoint(f"  {HOOK} ") == HOOK

    @pytest.mark.parametrize("endpoint", ["", None, "   "])
    def test_reject_empty(self, endpoint):
        with pytest.raises(ValueError, match="cannot be empty"):
            validate_endpoint(endpoint)

    @pytest.mark.parametrize("endpoint", ["not a url", "ftp://hook.example/x", "hook.example/x"])
    def test_reject_invalid(self, endpoint):
        with pytest.raises(ValueError, match="Invalid webhook URL"):
            validate_endpoint(endpoint)


class TestSubmit:
    """Tests for delivering the token payload."""

    @pytest.mark.asyncio
    async def test_posts_both_tokens(self, orchestrator):
        """Scenario C: both tokens and a timestamp are posted as JSON."""
        await connect(orchestrator, ProviderId.EMAIL)
        await connect(orchestrator, ProviderId.SOCIAL)
        capture = CapturingTransport(200)
        submitter = WebhookSubmitter(transport=capture.transport())

        result = await submitter.submit(HOOK, orchestrator.snapshot())

        assert result.status_code == 200
        assert len(capture.requests) == 1
        request = capture.requests[0]
        assert request.method == "POST"
        assert str(request.url) == HOOK
        assert request.headers["content-type"] == "application/json"

        body = json.loads(request.content)
        assert body["webhook_url"] == HOOK
        assert body["gmail_token"] == "email-token"
        assert body["instagram_token"] == "social-token"
        assert body["timestamp"].endswith("Z")
        datetime.fromisoformat(body["timestamp"].replace("Z", "+00:00"))

    @pytest.mark.asyncio
    async def test_missing_token_is_null(self, orchestrator):
        await connect(orchestrator, ProviderId.EMAIL)
        capture = CapturingTransport(204)
        submitter = WebhookSubmitter(transport=capture.transport())

        result = await submitter.submit(HOOK, orchestrator.snapshot())

        assert result.status_code == 204
        body = json.loads(capture.requests[0].content)
        assert body["gmail_token"] == "email-token"
        assert body["instagram_token"] is None

    @pytest.mark.asyncio
    async def test_non_2xx_is_delivery_failure(self, orchestrator):
        """A rejected delivery raises and leaves the orchestrator untouched."""
        await connect(orchestrator, ProviderId.EMAIL)
        await connect(orchestrator, ProviderId.SOCIAL)
        before = orchestrator.snapshot()
        submitter = WebhookSubmitter(transport=CapturingTransport(500).transport())

        with pytest.raises(DeliveryFailure) as exc_info:
            await submitter.submit(HOOK, before)

        assert exc_info.value.status_code == 500
        assert orchestrator.snapshot() == before

    @pytest.mark.asyncio
    async def test_no_retry(self, orchestrator):
        await connect(orchestrator, ProviderId.EMAIL)
        capture = CapturingTransport(503)
        submitter = WebhookSubmitter(transport=capture.transport())
        with pytest.raises(DeliveryFailure):
            await submitter.submit(HOOK, orchestrator.snapshot())
        assert len(capture.requests) == 1

    @pytest.mark.asyncio
    async def test_transport_error_is_delivery_failure(self, orchestrator):
        await connect(orchestrator, ProviderId.EMAIL)

        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        submitter = WebhookSubmitter(transport=httpx.MockTransport(refuse))
        with pytest.raises(DeliveryFailure) as exc_info:
            await submitter.submit(HOOK, orchestrator.snapshot())
        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_requires_a_connected_provider(self, orchestrator):
        capture = CapturingTransport(200)
        submitter = WebhookSubmitter(transport=capture.transport())
        with pytest.raises(ValueError, match="at least one"):
            await submitter.submit(HOOK, orchestrator.snapshot())
        assert capture.requests == []

    @pytest.mark.asyncio
    async def test_invalid_endpoint_sends_nothing(self, orchestrator):
        await connect(orchestrator, ProviderId.EMAIL)
        capture = CapturingTransport(200)
        submitter = WebhookSubmitter(transport=capture.transport())
        with pytest.raises(ValueError):
            await submitter.submit("", orchestrator.snapshot())
        assert capture.requests == []
