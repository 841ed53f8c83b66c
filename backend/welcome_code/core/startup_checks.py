from __future__ import annotations

import logging

from welcome_code.core.config import Settings

logger = logging.getLogger(__name__)

_MIN_PROXY_SECRET_LENGTH = 32


def _is_production(settings: Settings) -> bool:
    env = (settings.environment or "").strip().lower()
    return env in {"prod", "production"}


def _append_if(problems: list[str], *, condition: bool, message: str) -> None:
    if condition:
        problems.append(message)


def _validate_shopify_settings(settings: Settings, problems: list[str]) -> None:
    shop = (settings.shopify_shop or "").strip().lower()
    _append_if(
        problems,
        condition=not shop,
        message="SHOPIFY_SHOP must be set (e.g. example.myshopify.com).",
    )
    _append_if(
        problems,
        condition=shop.startswith(("http://", "https://")),
        message="SHOPIFY_SHOP must be a bare host name without a scheme.",
    )
    _append_if(
        problems,
        condition=not (settings.shopify_admin_access_token or "").strip(),
        message="SHOPIFY_ADMIN_ACCESS_TOKEN must be set.",
    )


def _validate_proxy_settings(settings: Settings, problems: list[str]) -> None:
    secret = (settings.app_proxy_signing_secret or "").strip()
    _append_if(
        problems,
        condition=len(secret) < _MIN_PROXY_SECRET_LENGTH,
        message=f"APP_PROXY_SIGNING_SECRET must be set to the proxy secret (at least {_MIN_PROXY_SECRET_LENGTH} chars).",
    )


def _validate_smtp_settings(settings: Settings, problems: list[str]) -> None:
    _append_if(
        problems,
        condition=not settings.smtp_enabled,
        message="SMTP_ENABLED must be on in production; welcome codes are delivered by email.",
    )
    _append_if(
        problems,
        condition=settings.smtp_enabled and not (settings.smtp_host or "").strip(),
        message="SMTP_HOST must be set when SMTP_ENABLED=1.",
    )
    _append_if(
        problems,
        condition=settings.smtp_enabled and not (settings.smtp_from_email or "").strip(),
        message="SMTP_FROM_EMAIL must be set when SMTP_ENABLED=1.",
    )


def _validate_store_settings(settings: Settings, problems: list[str]) -> None:
    _append_if(
        problems,
        condition=not (settings.store_url or "").strip().lower().startswith("https://"),
        message="STORE_URL must be an https:// URL in production.",
    )


def collect_production_problems(settings: Settings) -> list[str]:
    problems: list[str] = []
    _validate_shopify_settings(settings, problems)
    _validate_proxy_settings(settings, problems)
    _validate_smtp_settings(settings, problems)
    _validate_store_settings(settings, problems)
    return problems


def validate_production_settings(settings: Settings) -> None:
    """
    Fail fast on missing secrets or insecure defaults when running in production.

    Outside production the same problems are only logged.
    """
    problems = collect_production_problems(settings)
    if not problems:
        return
    if not _is_production(settings):
        logger.info("Configuration incomplete for production: %s", "; ".join(problems))
        return
    raise RuntimeError("Production configuration checks failed:\n- " + "\n- ".join(problems))
