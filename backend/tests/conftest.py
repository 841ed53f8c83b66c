import json
from collections.abc import Generator
from typing import Any

import httpx
import pytest

from welcome_code.core.config import Settings
from welcome_code.services.email import EmailDeliveryError

PROXY_SECRET = "proxy-secret-for-tests-0123456789abcdef"


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "environment": "test",
        "shopify_shop": "test-shop.myshopify.com",
        "shopify_admin_api_version": "2024-07",
        "shopify_admin_access_token": "shpat_test",
        "app_proxy_signing_secret": PROXY_SECRET,
        "smtp_enabled": False,
        "smtp_from_email": "hello@example.com",
    }
    values.update(overrides)
    return Settings(**values)


def _email_from_search(q: str) -> str:
    _, _, value = q.partition(":")
    return value.strip().strip('"')


class FakeShop:
    """In-memory stand-in for the Shopify Admin GraphQL endpoint."""

    def __init__(self) -> None:
        self.customers: dict[str, dict[str, Any]] = {}
        self.orders: set[str] = set()
        self.discount_codes: list[str] = []
        self.discount_inputs: list[dict[str, Any]] = []
        self.metafield_writes: list[dict[str, Any]] = []
        self.taken_codes_remaining = 0
        self.echo_code: str | None = None
        self.operations: list[str] = []
        self.requests: list[httpx.Request] = []
        self._next_id = 1

    def add_customer(self, email: str, code: str | None = None) -> str:
        customer_id = f"gid://shopify/Customer/{self._next_id}"
        self._next_id += 1
        self.customers[email] = {"id": customer_id, "email": email, "code": code}
        return customer_id

    def customer_by_id(self, customer_id: str) -> dict[str, Any]:
        return next(c for c in self.customers.values() if c["id"] == customer_id)

    @property
    def mutations(self) -> list[str]:
        return [op for op in self.operations if op in {"customerCreate", "discountCodeBasicCreate", "metafieldsSet"}]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        body = json.loads(request.content)
        query: str = body["query"]
        variables: dict[str, Any] = body.get("variables") or {}
        if "discountCodeBasicCreate" in query:
            return self._discount_create(request, variables["input"])
        if "metafieldsSet" in query:
            return self._metafields_set(request, variables["m"])
        if "customerCreate" in query:
            return self._customer_create(request, variables["input"])
        if "customers(" in query:
            return self._customers(request, _email_from_search(variables["q"]))
        if "orders(" in query:
            return self._orders(request, _email_from_search(variables["q"]))
        return httpx.Response(400, json={"errors": [{"message": "unknown operation"}]}, request=request)

    def _ok(self, request: httpx.Request, data: dict[str, Any]) -> httpx.Response:
        return httpx.Response(200, json={"data": data}, request=request)

    def _orders(self, request: httpx.Request, email: str) -> httpx.Response:
        self.operations.append("orders")
        edges = [{"node": {"id": "gid://shopify/Order/1"}}] if email in self.orders else []
        return self._ok(request, {"orders": {"edges": edges}})

    def _customers(self, request: httpx.Request, email: str) -> httpx.Response:
        self.operations.append("customers")
        customer = self.customers.get(email)
        if customer is None:
            return self._ok(request, {"customers": {"edges": []}})
        metafield = {"value": customer["code"]} if customer["code"] else None
        node = {"id": customer["id"], "email": customer["email"], "metafield": metafield}
        return self._ok(request, {"customers": {"edges": [{"node": node}]}})

    def _customer_create(self, request: httpx.Request, customer_input: dict[str, Any]) -> httpx.Response:
        self.operations.append("customerCreate")
        customer_id = self.add_customer(customer_input["email"])
        return self._ok(
            request,
            {"customerCreate": {"customer": {"id": customer_id, "email": customer_input["email"]}, "userErrors": []}},
        )

    def _discount_create(self, request: httpx.Request, discount_input: dict[str, Any]) -> httpx.Response:
        self.operations.append("discountCodeBasicCreate")
        self.discount_inputs.append(discount_input)
        code = discount_input["code"]
        if self.taken_codes_remaining > 0 or code in self.discount_codes:
            self.taken_codes_remaining = max(0, self.taken_codes_remaining - 1)
            error = {"field": ["basicCodeDiscount", "code"], "message": "Code has already been taken", "code": "TAKEN"}
            return self._ok(request, {"discountCodeBasicCreate": {"codeDiscountNode": None, "userErrors": [error]}})
        stored = self.echo_code or code
        self.discount_codes.append(stored)
        node = {"codeDiscount": {"codes": {"edges": [{"node": {"code": stored}}]}}}
        return self._ok(request, {"discountCodeBasicCreate": {"codeDiscountNode": node, "userErrors": []}})

    def _metafields_set(self, request: httpx.Request, metafields: list[dict[str, Any]]) -> httpx.Response:
        self.operations.append("metafieldsSet")
        self.metafield_writes.extend(metafields)
        field = metafields[0]
        customer = self.customer_by_id(field["ownerId"])
        if "compareDigest" in field and field["compareDigest"] is None and customer["code"]:
            error = {"field": ["metafields", "0"], "message": "The resource has been updated since it was loaded.", "code": "STALE_OBJECT"}
            return self._ok(request, {"metafieldsSet": {"metafields": None, "userErrors": [error]}})
        customer["code"] = field["value"]
        return self._ok(request, {"metafieldsSet": {"metafields": [{"id": "gid://shopify/Metafield/1"}], "userErrors": []}})


class RecordingMailer:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[tuple[str, str]] = []

    async def send_welcome_code(self, to_email: str, code: str) -> bool:
        if self.fail:
            raise EmailDeliveryError("Email send failed: connection refused")
        self.sent.append((to_email, code))
        return True


@pytest.fixture
def test_settings() -> Settings:
    return make_settings()


@pytest.fixture
def fake_shop() -> FakeShop:
    return FakeShop()


@pytest.fixture
def mailer() -> Generator[RecordingMailer, None, None]:
    yield RecordingMailer()
