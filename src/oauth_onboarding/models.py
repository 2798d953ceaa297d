"""Pydantic models for the onboarding gateway."""

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ProviderId(str, Enum):
    """Providers a user can connect during onboarding."""

    EMAIL = "email"
    SOCIAL = "social"


class SessionState(str, Enum):
    """Authorization session lifecycle."""

    IDLE = "idle"
    AUTHORIZING = "authorizing"
    CODE_RECEIVED = "code_received"
    EXCHANGING = "exchanging"
    CONNECTED = "connected"
    FAILED = "failed"


class ErrorKind(str, Enum):
    """Why a session ended up in the failed state."""

    USER_ABANDONED = "user_abandoned"
    EXCHANGE_FAILURE = "exchange_failure"


class ProviderInfo(BaseModel):
    """Static description of a provider."""

    id: ProviderId
    display_name: str
    description: str
    scopes: list[str]


class SessionInfo(BaseModel):
    """Read-only view of one authorization session."""

    model_config = ConfigDict(frozen=True)

    provider: ProviderId
    display_name: str
    state: SessionState
    authorization_url: str | None = None
    has_code: bool = False
    token: str | None = None
    started_at: datetime | None = None
    error: ErrorKind | None = None
    error_detail: str | None = None


class OrchestratorSnapshot(BaseModel):
    """Read-only copy of the orchestrator state for rendering."""

    model_config = ConfigDict(frozen=True)

    sequence: list[ProviderId]
    sessions: dict[ProviderId, SessionInfo]
    all_connected: bool


class PopupMessage(BaseModel):
    """Message posted from the authorization popup to its opener."""

    model_config = ConfigDict(extra="forbid")

    type: Literal["OAUTH_CODE"]
    provider: ProviderId
    code: str = Field(min_length=1)
    state: str = Field(min_length=1)


class PopupMessageEnvelope(BaseModel):
    """Relay of a browser postMessage event: its origin and data."""

    origin: str
    data: Any = None


class CodeSubmitRequest(BaseModel):
    """Manually entered authorization code."""

    code: str


class MessageAcceptedResponse(BaseModel):
    """Whether an inbound popup event was accepted."""

    accepted: bool
    session: SessionInfo


class SubmitRequest(BaseModel):
    """Request to forward captured tokens to a webhook."""

    webhook_url: str | None = None


class SubmitResponse(BaseModel):
    """Outcome of a webhook submission."""

    success: bool
    status_code: int
    timestamp: str
