from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import httpx

from welcome_code.core.config import Settings
from welcome_code.core.logging_config import mask_email

logger = logging.getLogger(__name__)

WELCOME_METAFIELD_NAMESPACE = "welcome"
WELCOME_METAFIELD_KEY = "code"
WELCOME_DISCOUNT_PERCENTAGE = 0.1

_TAKEN_CODES = {"TAKEN"}
_TAKEN_TEXT = "has already been taken"
_STALE_CODES = {"STALE_OBJECT"}

ORDERS_FOR_EMAIL_QUERY = """
query($q: String!) {
  orders(first: 1, query: $q) { edges { node { id } } }
}
"""

CUSTOMER_BY_EMAIL_QUERY = """
query($q: String!) {
  customers(first: 1, query: $q) {
    edges {
      node {
        id
        email
        metafield(namespace: "welcome", key: "code") { value }
      }
    }
  }
}
"""

CUSTOMER_CREATE_MUTATION = """
mutation($input: CustomerInput!) {
  customerCreate(input: $input) {
    customer { id email }
    userErrors { field message }
  }
}
"""

DISCOUNT_CODE_CREATE_MUTATION = """
mutation($input: DiscountCodeBasicInput!) {
  discountCodeBasicCreate(basicCodeDiscount: $input) {
    codeDiscountNode {
      codeDiscount {
        ... on DiscountCodeBasic { codes(first: 1) { edges { node { code } } } }
      }
    }
    userErrors { field message code }
  }
}
"""

METAFIELDS_SET_MUTATION = """
mutation($m: [MetafieldsSetInput!]!) {
  metafieldsSet(metafields: $m) {
    metafields { id }
    userErrors { field message code }
  }
}
"""


class ShopifyError(Exception):
    """The Admin API call failed: transport error, non-2xx status, GraphQL errors or a malformed payload."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ShopifyUserError(ShopifyError):
    """A mutation was rejected with ``userErrors``."""

    def __init__(self, errors: list[dict[str, Any]]) -> None:
        self.errors = errors
        super().__init__(", ".join(str(err.get("message") or "") for err in errors))

    @property
    def codes(self) -> set[str]:
        return {str(err["code"]) for err in self.errors if err.get("code")}


class DiscountCodeTakenError(ShopifyUserError):
    """The discount code string is already registered on the shop."""


class IssuedCodeConflictError(ShopifyUserError):
    """The customer already holds a welcome code; the write-if-absent was refused."""


@dataclass(slots=True)
class CustomerRecord:
    id: str
    email: str
    existing_code: str | None = None


def _search_term(field: str, value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'{field}:"{escaped}"'


def _is_taken(errors: list[dict[str, Any]]) -> bool:
    for err in errors:
        if str(err.get("code") or "") in _TAKEN_CODES:
            return True
        if _TAKEN_TEXT in str(err.get("message") or "").lower():
            return True
    return False


def _is_stale(errors: list[dict[str, Any]]) -> bool:
    return any(str(err.get("code") or "") in _STALE_CODES for err in errors)


def _mutation_result(data: dict[str, Any], name: str) -> dict[str, Any]:
    result = data.get(name)
    if not isinstance(result, dict):
        raise ShopifyError(f"Shopify response missing {name}")
    return result


def _user_errors(result: dict[str, Any]) -> list[dict[str, Any]]:
    errors = result.get("userErrors") or []
    return [err for err in errors if isinstance(err, dict)]


def _first_node(data: dict[str, Any], connection: str) -> dict[str, Any] | None:
    edges = ((data.get(connection) or {}).get("edges")) or []
    if not edges:
        return None
    node = (edges[0] or {}).get("node")
    return node if isinstance(node, dict) else None


def _echoed_discount_code(result: dict[str, Any]) -> str | None:
    node = result.get("codeDiscountNode") or {}
    codes = ((node.get("codeDiscount") or {}).get("codes")) or {}
    first = _first_node({"codes": codes}, "codes")
    code = (first or {}).get("code")
    return code if isinstance(code, str) and code else None


class ShopifyAdminClient:
    """Thin client for the Shopify Admin GraphQL API."""

    def __init__(self, settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.settings = settings
        self._transport = transport

    @property
    def endpoint(self) -> str:
        shop = (self.settings.shopify_shop or "").strip().rstrip("/")
        version = (self.settings.shopify_admin_api_version or "").strip()
        return f"https://{shop}/admin/api/{version}/graphql.json"

    def _headers(self) -> dict[str, str]:
        return {
            "X-Shopify-Access-Token": self.settings.shopify_admin_access_token,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def execute(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        """Run a GraphQL document and return its ``data`` object."""
        body = {"query": query, "variables": variables or {}}
        try:
            async with httpx.AsyncClient(timeout=self.settings.shopify_timeout_seconds, transport=self._transport) as client:
                resp = await client.post(self.endpoint, json=body, headers=self._headers())
        except httpx.HTTPError as exc:
            raise ShopifyError(f"Shopify request failed: {exc}") from exc

        try:
            payload = resp.json()
        except ValueError:
            payload = None

        if resp.status_code >= 400 or not isinstance(payload, dict) or payload.get("errors"):
            detail = payload.get("errors") if isinstance(payload, dict) and payload.get("errors") else payload
            if detail is None:
                detail = resp.text
            raise ShopifyError(
                f"Shopify API error ({resp.status_code}): {json.dumps(detail, indent=2, default=str)}",
                status_code=resp.status_code,
            )

        data = payload.get("data")
        if not isinstance(data, dict):
            raise ShopifyError("Shopify response missing data", status_code=resp.status_code)
        return data

    async def find_order_for_email(self, email: str) -> bool:
        data = await self.execute(ORDERS_FOR_EMAIL_QUERY, {"q": _search_term("email", email)})
        return _first_node(data, "orders") is not None

    async def find_or_create_customer(self, email: str) -> CustomerRecord:
        data = await self.execute(CUSTOMER_BY_EMAIL_QUERY, {"q": _search_term("email", email)})
        node = _first_node(data, "customers")
        if node is not None:
            metafield = node.get("metafield") or {}
            return CustomerRecord(
                id=str(node["id"]),
                email=str(node.get("email") or email),
                existing_code=metafield.get("value") or None,
            )

        # A customer record is needed to hang the welcome metafield on.
        data = await self.execute(CUSTOMER_CREATE_MUTATION, {"input": {"email": email}})
        result = _mutation_result(data, "customerCreate")
        errors = _user_errors(result)
        if errors:
            raise ShopifyUserError(errors)
        customer = result.get("customer") or {}
        if not customer.get("id"):
            raise ShopifyError("Shopify customerCreate returned no customer")
        logger.info("Created customer for welcome code", extra={"email": mask_email(email)})
        return CustomerRecord(id=str(customer["id"]), email=str(customer.get("email") or email))

    def _discount_input(self, code: str) -> dict[str, Any]:
        return {
            "title": self.settings.welcome_discount_title,
            "code": code,
            "startsAt": datetime.now(timezone.utc).isoformat(),
            "usageLimit": 1,
            "appliesOncePerCustomer": True,
            "customerSelection": {"all": True},
            "customerGets": {"value": {"percentage": WELCOME_DISCOUNT_PERCENTAGE}, "items": {"all": True}},
        }

    async def create_discount_code(self, code: str) -> str:
        """Register a single-use 10% code; returns the code as stored by Shopify."""
        data = await self.execute(DISCOUNT_CODE_CREATE_MUTATION, {"input": self._discount_input(code)})
        result = _mutation_result(data, "discountCodeBasicCreate")
        errors = _user_errors(result)
        if errors:
            if _is_taken(errors):
                raise DiscountCodeTakenError(errors)
            raise ShopifyUserError(errors)
        return _echoed_discount_code(result) or code

    async def set_issued_code(self, customer_id: str, code: str) -> None:
        """Store ``code`` as the customer's welcome marker, only if none is stored yet."""
        metafield = {
            "ownerId": customer_id,
            "namespace": WELCOME_METAFIELD_NAMESPACE,
            "key": WELCOME_METAFIELD_KEY,
            "type": "single_line_text_field",
            "value": code,
            # null digest: write only if the metafield does not exist
            "compareDigest": None,
        }
        data = await self.execute(METAFIELDS_SET_MUTATION, {"m": [metafield]})
        result = _mutation_result(data, "metafieldsSet")
        errors = _user_errors(result)
        if errors:
            if _is_stale(errors):
                raise IssuedCodeConflictError(errors)
            raise ShopifyUserError(errors)
