import json
import logging

from welcome_code.core.logging_config import JsonFormatter, mask_email, request_id_ctx_var


def test_mask_email() -> None:
    assert mask_email("shopper@example.com") == "s***@example.com"
    assert mask_email("not-an-email") == "***"
    assert mask_email(None) == "***"


def test_json_formatter_includes_request_id_and_extras() -> None:
    record = logging.LogRecord("welcome_code.test", logging.INFO, __file__, 1, "Welcome code issued", None, None)
    record.request_id = "req-1"
    record.email = "s***@example.com"

    payload = json.loads(JsonFormatter().format(record))

    assert payload["message"] == "Welcome code issued"
    assert payload["request_id"] == "req-1"
    assert payload["email"] == "s***@example.com"
    assert payload["level"] == "INFO"


def test_request_id_context_default() -> None:
    assert request_id_ctx_var.get() is None
