from fastapi import Depends, HTTPException, Request, status

from welcome_code.core.config import Settings, get_settings
from welcome_code.services.discount_codes import DiscountCodeMinter
from welcome_code.services.email import WelcomeEmailSender
from welcome_code.services.proxy_signature import verify_proxy_signature
from welcome_code.services.shopify import ShopifyAdminClient
from welcome_code.services.welcome_codes import WelcomeCodeService


def get_shopify_client(settings: Settings = Depends(get_settings)) -> ShopifyAdminClient:
    return ShopifyAdminClient(settings)


def get_email_sender(settings: Settings = Depends(get_settings)) -> WelcomeEmailSender:
    return WelcomeEmailSender(settings)


def get_welcome_code_service(
    settings: Settings = Depends(get_settings),
    shopify: ShopifyAdminClient = Depends(get_shopify_client),
    mailer: WelcomeEmailSender = Depends(get_email_sender),
) -> WelcomeCodeService:
    minter = DiscountCodeMinter(
        shopify,
        prefix=settings.welcome_code_prefix,
        max_attempts=settings.welcome_code_max_attempts,
    )
    return WelcomeCodeService(shopify, minter, mailer)


async def require_proxy_signature(request: Request, settings: Settings = Depends(get_settings)) -> None:
    if not verify_proxy_signature(str(request.url), settings.app_proxy_signing_secret):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorised")
