"""Simulated token exchange for demos and tests."""

import asyncio
import logging
import secrets
import time

from .base import OAuthProvider, ProviderConfig

logger = logging.getLogger(__name__)


class SimulatedProvider(OAuthProvider):
    """Issues mock tokens instead of calling the provider's token endpoint."""

    def __init__(self, config: ProviderConfig, client_id: str = "", delay: float = 0.0):
        super().__init__(config, client_id or f"{config.id.value}-demo-client")
        self.delay = delay

    async def exchange_code(self, code: str, redirect_uri: str) -> str:
        if self.delay:
            await asyncio.sleep(self.delay)
        logger.info(f"Simulated token exchange for {self.name}")
        return f"{self.name}_{int(time.time() * 1000)}_{secrets.token_hex(6)}"
