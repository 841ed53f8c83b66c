from __future__ import annotations

import logging
import secrets
from typing import Protocol

from welcome_code.services.shopify import DiscountCodeTakenError

logger = logging.getLogger(__name__)

DEFAULT_CODE_PREFIX = "WELCOME-"
DEFAULT_MAX_ATTEMPTS = 5


class CodeMintingError(Exception):
    pass


class DiscountCodeRegistry(Protocol):
    async def create_discount_code(self, code: str) -> str: ...


class DiscountCodeMinter:
    """Generate random welcome codes and register them, retrying on name collisions."""

    def __init__(
        self,
        registry: DiscountCodeRegistry,
        *,
        prefix: str = DEFAULT_CODE_PREFIX,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        self.registry = registry
        self.prefix = prefix
        self.max_attempts = max(1, int(max_attempts))

    def make_code(self) -> str:
        # 3 random bytes -> 6 uppercase hex chars
        return self.prefix + secrets.token_hex(3).upper()

    async def mint(self) -> str:
        for attempt in range(1, self.max_attempts + 1):
            candidate = self.make_code()
            try:
                return await self.registry.create_discount_code(candidate)
            except DiscountCodeTakenError:
                logger.info(
                    "Discount code collision, retrying",
                    extra={"attempt": attempt, "max_attempts": self.max_attempts},
                )
        raise CodeMintingError("Could not mint unique code")
