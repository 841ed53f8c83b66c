"""First-purchase welcome code issuance.

Lookup (or create) the customer; resend a code already issued; otherwise refuse
shoppers with order history, mint a fresh code, store it on the customer and
email it. Each step depends on the previous one, so they run strictly in order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from welcome_code.core.logging_config import mask_email
from welcome_code.services.shopify import CustomerRecord, IssuedCodeConflictError

logger = logging.getLogger(__name__)


class FirstPurchaseOnlyError(Exception):
    pass


class CommerceGateway(Protocol):
    async def find_order_for_email(self, email: str) -> bool: ...

    async def find_or_create_customer(self, email: str) -> CustomerRecord: ...

    async def set_issued_code(self, customer_id: str, code: str) -> None: ...


class CodeMinter(Protocol):
    async def mint(self) -> str: ...


class CodeMailer(Protocol):
    async def send_welcome_code(self, to_email: str, code: str) -> bool: ...


@dataclass(slots=True)
class IssueOutcome:
    code: str
    resent: bool = False


class WelcomeCodeService:
    def __init__(self, shopify: CommerceGateway, minter: CodeMinter, mailer: CodeMailer) -> None:
        self.shopify = shopify
        self.minter = minter
        self.mailer = mailer

    async def _resend(self, email: str, code: str) -> IssueOutcome:
        await self.mailer.send_welcome_code(email, code)
        logger.info("Welcome code re-sent", extra={"email": mask_email(email)})
        return IssueOutcome(code=code, resent=True)

    async def issue(self, email: str) -> IssueOutcome:
        customer = await self.shopify.find_or_create_customer(email)
        if customer.existing_code:
            return await self._resend(email, customer.existing_code)

        if await self.shopify.find_order_for_email(email):
            logger.info("Welcome code refused: order history exists", extra={"email": mask_email(email)})
            raise FirstPurchaseOnlyError("Coupon codes are for first purchase only.")

        code = await self.minter.mint()
        try:
            await self.shopify.set_issued_code(customer.id, code)
        except IssuedCodeConflictError:
            # Another request stored a code first; that one is authoritative.
            current = await self.shopify.find_or_create_customer(email)
            if not current.existing_code:
                raise
            logger.warning(
                "Concurrent welcome code issuance; discarding freshly minted code",
                extra={"email": mask_email(email), "discarded_code": code},
            )
            return await self._resend(email, current.existing_code)

        await self.mailer.send_welcome_code(email, code)
        logger.info("Welcome code issued", extra={"email": mask_email(email)})
        return IssueOutcome(code=code, resent=False)
