"""OAuth Onboarding Gateway - sequential provider authorization with webhook handoff."""

__version__ = "0.1.0"
