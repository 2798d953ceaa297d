"""OAuth authorization sessions for the onboarding gateway."""

from .config import OnboardingConfig, get_config, get_origin
from .popup import PopupChannel
from .session import AuthorizationSession, PopupSettings
from .state import StateTokenError, StateTokens

__all__ = [
    "OnboardingConfig",
    "get_config",
    "get_origin",
    "PopupChannel",
    "AuthorizationSession",
    "PopupSettings",
    "StateTokens",
    "StateTokenError",
]
