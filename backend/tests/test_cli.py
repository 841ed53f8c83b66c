import pytest

from tests.conftest import PROXY_SECRET, make_settings
from welcome_code import cli
from welcome_code.services.proxy_signature import verify_proxy_signature


def test_sign_url_produces_verifiable_url() -> None:
    url = "https://shop.example.com/apps/welcome?shop=test-shop.myshopify.com&timestamp=1"
    signed = cli.sign_url(url, secret=None, settings=make_settings())
    assert verify_proxy_signature(signed, PROXY_SECRET) is True


def test_sign_url_secret_override() -> None:
    signed = cli.sign_url("https://shop.example.com/apps/welcome", secret="other-secret", settings=make_settings())
    assert verify_proxy_signature(signed, "other-secret") is True
    assert verify_proxy_signature(signed, PROXY_SECRET) is False


def test_sign_url_requires_secret_and_absolute_url() -> None:
    with pytest.raises(SystemExit):
        cli.sign_url("https://shop.example.com/apps", secret=None, settings=make_settings(app_proxy_signing_secret=""))
    with pytest.raises(SystemExit):
        cli.sign_url("/apps/welcome?x=1", secret="s", settings=make_settings())


def test_check_config_command_reports_problems(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.setattr(cli, "get_settings", lambda: make_settings(shopify_shop=""))

    with pytest.raises(SystemExit) as exc:
        cli.main(["check-config"])

    assert exc.value.code == 1
    assert "SHOPIFY_SHOP must be set" in capsys.readouterr().out


def test_sign_url_command_prints_signed_url(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.setattr(cli, "get_settings", lambda: make_settings())

    cli.main(["sign-url", "https://shop.example.com/apps/welcome?timestamp=1"])

    printed = capsys.readouterr().out.strip()
    assert verify_proxy_signature(printed, PROXY_SECRET) is True
