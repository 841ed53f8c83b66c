"""Verification of requests forwarded by the storefront app proxy.

The proxy appends a ``signature`` query parameter: the hex HMAC-SHA256 of the
request path plus the remaining query string (original parameter order,
form-encoded), keyed by the shared proxy secret.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from urllib.parse import parse_qsl, quote_plus, urlencode, urlsplit, urlunsplit

logger = logging.getLogger(__name__)

SIGNATURE_PARAM = "signature"


def _split_signature(query: str) -> tuple[str | None, list[tuple[str, str]]]:
    signature: str | None = None
    remaining: list[tuple[str, str]] = []
    for key, value in parse_qsl(query, keep_blank_values=True):
        if key == SIGNATURE_PARAM:
            if signature is None:
                signature = value
            continue
        remaining.append((key, value))
    return signature, remaining


def _form_quote(value: str, safe: str = "", encoding: str | None = None, errors: str | None = None) -> str:
    # WHATWG form encoding: "*" stays literal, "~" is escaped.
    return quote_plus(value, safe="*", encoding=encoding, errors=errors).replace("~", "%7E")


def signature_base(path: str, params: list[tuple[str, str]]) -> str:
    query = urlencode(params, quote_via=_form_quote)
    return f"{path}?{query}" if query else path


def compute_signature(base: str, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), base.encode("utf-8"), hashlib.sha256).hexdigest()


def verify_proxy_signature(url: str, secret: str) -> bool:
    """Return True only when ``url`` carries a valid proxy signature for ``secret``."""
    if not secret:
        logger.warning("Proxy signing secret is not configured; rejecting request")
        return False
    try:
        parts = urlsplit(url)
        provided, params = _split_signature(parts.query)
        if not provided:
            return False
        expected = compute_signature(signature_base(parts.path or "/", params), secret)
        return hmac.compare_digest(bytes.fromhex(provided), bytes.fromhex(expected))
    except ValueError:
        return False


def sign_proxy_url(url: str, secret: str) -> str:
    """Append (or replace) the ``signature`` parameter so that ``url`` verifies with ``secret``."""
    parts = urlsplit(url)
    _, params = _split_signature(parts.query)
    signature = compute_signature(signature_base(parts.path or "/", params), secret)
    query = urlencode([*params, (SIGNATURE_PARAM, signature)], quote_via=_form_quote)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))
