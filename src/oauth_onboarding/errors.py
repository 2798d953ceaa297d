"""Error taxonomy for the onboarding gateway."""


class OnboardingError(Exception):
    """Base class for onboarding errors."""

    pass


class GateViolation(OnboardingError):
    """A provider was connected before the providers ahead of it in the sequence."""

    def __init__(self, provider: str, blocked_by: str):
        self.provider = provider
        self.blocked_by = blocked_by
        super().__init__(f"Cannot connect {provider} before {blocked_by} is connected")


class InvalidTransition(OnboardingError):
    """An operation was invoked in a session state that does not allow it."""

    def __init__(self, provider: str, operation: str, state: str):
        self.provider = provider
        self.operation = operation
        self.state = state
        super().__init__(f"Cannot {operation} {provider} session in state '{state}'")


class UntrustedMessage(OnboardingError):
    """A popup message failed origin, shape, provider or state token checks."""

    pass


class ExchangeFailure(OnboardingError):
    """The provider rejected the authorization code or could not be reached."""

    pass


class DeliveryFailure(OnboardingError):
    """The webhook POST did not complete with a 2xx response."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)
