"""OAuth Onboarding Gateway - FastAPI application exposing the connection flow."""

import json
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse

from .auth.config import get_config, get_origin
from .auth.providers import PROVIDER_CONFIGS
from .auth.state import StateTokenError
from .errors import DeliveryFailure, GateViolation, InvalidTransition
from .models import (
    CodeSubmitRequest,
    MessageAcceptedResponse,
    OrchestratorSnapshot,
    PopupMessageEnvelope,
    ProviderId,
    ProviderInfo,
    SessionInfo,
    SubmitRequest,
    SubmitResponse,
)
from .orchestrator import ConnectionOrchestrator
from .webhook import WebhookSubmitter

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# One onboarding flow per process
orchestrator: ConnectionOrchestrator | None = None
submitter: WebhookSubmitter | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - initialize and cleanup."""
    global orchestrator, submitter

    config = get_config()
    orchestrator = ConnectionOrchestrator(config)
    submitter = WebhookSubmitter()
    mode = "simulated" if config.simulate_exchange else "live"
    logger.info(
        f"Onboarding sequence: {[p.value for p in config.sequence]} "
        f"(exchange: {mode}, sequential: {config.sequential})"
    )

    yield

    if orchestrator:
        orchestrator.close()
    orchestrator = None
    submitter = None


app = FastAPI(
    title="OAuth Onboarding Gateway",
    description="Sequential OAuth onboarding with webhook token handoff",
    version="0.1.0",
    lifespan=lifespan,
)


# CORS middleware for the onboarding UI, served from its own origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=[get_origin()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _require_orchestrator() -> ConnectionOrchestrator:
    if not orchestrator:
        raise HTTPException(status_code=503, detail="Orchestrator not initialized")
    return orchestrator


def _provider_or_404(orch: ConnectionOrchestrator, provider: ProviderId) -> ProviderId:
    if provider not in orch.sequence:
        raise HTTPException(status_code=404, detail=f"Provider {provider.value} not enabled")
    return provider


# =============================================================================
# State
# =============================================================================


@app.get("/api/providers", response_model=list[ProviderInfo])
async def list_providers():
    """List the providers of the onboarding sequence, in order."""
    orch = _require_orchestrator()
    return [PROVIDER_CONFIGS[provider].info() for provider in orch.sequence]


@app.get("/api/status", response_model=OrchestratorSnapshot)
async def get_status():
    """Snapshot of every session for rendering."""
    return _require_orchestrator().snapshot()


@app.get("/api/providers/{provider}", response_model=SessionInfo)
async def get_session(provider: ProviderId):
    """Get a single provider's session."""
    orch = _require_orchestrator()
    return orch.session_info(_provider_or_404(orch, provider))


# =============================================================================
# Intents
# =============================================================================


@app.post("/api/providers/{provider}/connect", response_model=SessionInfo)
async def connect_provider(provider: ProviderId):
    """Start authorizing a provider; the response carries the popup URL."""
    orch = _require_orchestrator()
    _provider_or_404(orch, provider)
    try:
        return orch.connect(provider)
    except GateViolation as e:
        raise HTTPException(
            status_code=409,
            detail={"error": "gate_violation", "message": str(e), "blocked_by": e.blocked_by},
        )
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail={"error": "invalid_transition", "message": str(e)})


@app.post("/api/providers/{provider}/message", response_model=MessageAcceptedResponse)
async def popup_message(provider: ProviderId, envelope: PopupMessageEnvelope):
    """Relay a postMessage event received from the popup."""
    orch = _require_orchestrator()
    _provider_or_404(orch, provider)
    accepted = orch.deliver_message(provider, envelope.origin, envelope.data)
    return MessageAcceptedResponse(accepted=accepted, session=orch.session_info(provider))


@app.post("/api/providers/{provider}/closed", response_model=MessageAcceptedResponse)
async def popup_closed(provider: ProviderId):
    """The popup was closed by the user."""
    orch = _require_orchestrator()
    _provider_or_404(orch, provider)
    accepted = orch.popup_closed(provider)
    return MessageAcceptedResponse(accepted=accepted, session=orch.session_info(provider))


@app.post("/api/providers/{provider}/code", response_model=SessionInfo)
async def submit_code(provider: ProviderId, request: CodeSubmitRequest):
    """Manually enter an authorization code."""
    orch = _require_orchestrator()
    _provider_or_404(orch, provider)
    try:
        return orch.submit_code(provider, request.code)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail={"error": "invalid_transition", "message": str(e)})


@app.post("/api/providers/{provider}/restart", response_model=SessionInfo)
async def restart_provider(provider: ProviderId):
    """Discard a received code and reopen the popup."""
    orch = _require_orchestrator()
    _provider_or_404(orch, provider)
    try:
        return orch.restart(provider)
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail={"error": "invalid_transition", "message": str(e)})


@app.post("/api/providers/{provider}/exchange", response_model=SessionInfo)
async def exchange_code(provider: ProviderId):
    """Exchange the received code for a token."""
    orch = _require_orchestrator()
    _provider_or_404(orch, provider)
    try:
        return await orch.exchange(provider)
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail={"error": "invalid_transition", "message": str(e)})


@app.post("/api/providers/{provider}/reset", response_model=SessionInfo)
async def reset_provider(provider: ProviderId):
    """Clear a failed session so it can be retried."""
    orch = _require_orchestrator()
    _provider_or_404(orch, provider)
    try:
        return orch.reset(provider)
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail={"error": "invalid_transition", "message": str(e)})


@app.post("/api/submit", response_model=SubmitResponse)
async def submit_tokens(request: SubmitRequest):
    """Forward the captured tokens to the webhook."""
    orch = _require_orchestrator()
    if not submitter:
        raise HTTPException(status_code=503, detail="Submitter not initialized")

    endpoint = request.webhook_url or orch.config.webhook_url
    try:
        result = await submitter.submit(endpoint, orch.snapshot())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DeliveryFailure as e:
        raise HTTPException(
            status_code=502,
            detail={"error": "delivery_failure", "message": str(e), "status_code": e.status_code},
        )

    return SubmitResponse(success=True, status_code=result.status_code, timestamp=result.timestamp)


# =============================================================================
# Popup callback
# =============================================================================


def _popup_page(title: str, message: dict | None, target_origin: str, status_code: int = 200) -> HTMLResponse:
    """Page shown in the popup; posts the code to its opener and closes."""
    # Keep "</script>" out of the inline script
    message_js = json.dumps(message).replace("</", "<\\/")
    origin_js = json.dumps(target_origin).replace("</", "<\\/")
    html = f"""
    <!DOCTYPE html>
    <html>
    <head>
        <title>{title} - OAuth Onboarding</title>
        <style>
            body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
                   max-width: 400px; margin: 100px auto; padding: 20px; text-align: center; }}
        </style>
    </head>
    <body>
        <h1>{title}</h1>
        <p>You can close this window and return to the setup.</p>
        <script>
            const message = {message_js};
            if (message && window.opener) {{
                window.opener.postMessage(message, {origin_js});
            }}
            window.close();
        </script>
    </body>
    </html>
    """
    return HTMLResponse(content=html, status_code=status_code)


@app.get("/oauth/callback", response_class=HTMLResponse)
async def oauth_callback(
    code: str = Query(None, description="Authorization code from provider"),
    state: str = Query(None, description="State parameter"),
    error: str = Query(None, description="Error code if authorization failed"),
    error_description: str = Query(None, description="Error description"),
):
    """
    Provider redirect target inside the popup.

    Forwards the code to the opener window, which relays it to
    /api/providers/{provider}/message. On error the popup just closes and the
    opener reports the closure.
    """
    orch = _require_orchestrator()
    origin = orch.config.origin

    if error:
        logger.error(f"OAuth callback error: {error} - {error_description}")
        return _popup_page("Authorization failed", None, origin, status_code=400)

    if not code or not state:
        return _popup_page("Missing code or state", None, origin, status_code=400)

    try:
        provider = orch.state_tokens.provider_of(state)
    except StateTokenError as e:
        logger.warning(f"Invalid state on callback: {e}")
        return _popup_page("Invalid or expired state", None, origin, status_code=400)

    message = {"type": "OAUTH_CODE", "provider": provider.value, "code": code, "state": state}
    return _popup_page("Authorized", message, origin)


# =============================================================================
# Health Check
# =============================================================================


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "providers": [p.value for p in orchestrator.sequence] if orchestrator else [],
        "all_connected": orchestrator.all_connected() if orchestrator else False,
    }


def main():
    """Run the onboarding gateway."""
    import uvicorn

    host = os.environ.get("ONBOARDING_HOST", "127.0.0.1")
    port = int(os.environ.get("ONBOARDING_PORT", "8085"))

    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
