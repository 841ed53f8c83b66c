import argparse
from urllib.parse import urlsplit

from welcome_code.core.config import Settings, get_settings
from welcome_code.core.startup_checks import collect_production_problems
from welcome_code.services.proxy_signature import sign_proxy_url


def sign_url(url: str, *, secret: str | None, settings: Settings) -> str:
    resolved_secret = (secret if secret is not None else settings.app_proxy_signing_secret) or ""
    if not resolved_secret.strip():
        raise SystemExit("No signing secret: pass --secret or set APP_PROXY_SIGNING_SECRET")
    parts = urlsplit((url or "").strip())
    if not parts.scheme or not parts.netloc:
        raise SystemExit("URL must be absolute (scheme://host/path?query)")
    return sign_proxy_url(url.strip(), resolved_secret)


def check_config(settings: Settings) -> list[str]:
    return collect_production_problems(settings)


def _add_sign_command(subparsers) -> None:
    sign = subparsers.add_parser("sign-url", help="Append a valid proxy signature to a URL (manual testing)")
    sign.add_argument("url", help="Absolute URL, e.g. https://localhost:8000/api/v1/welcome/subscribe?shop=x")
    sign.add_argument("--secret", default=None, help="Override APP_PROXY_SIGNING_SECRET")


def _add_check_command(subparsers) -> None:
    subparsers.add_parser("check-config", help="Report settings that would fail production startup checks")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Welcome code service utilities")
    subparsers = parser.add_subparsers(dest="command")
    _add_sign_command(subparsers)
    _add_check_command(subparsers)
    return parser


def _run_cli_command(args: argparse.Namespace, settings: Settings) -> bool:
    if args.command == "sign-url":
        print(sign_url(args.url, secret=args.secret, settings=settings))
        return True

    if args.command == "check-config":
        problems = check_config(settings)
        if not problems:
            print("Configuration OK for production.")
            return True
        for problem in problems:
            print(f"- {problem}")
        raise SystemExit(1)

    return False


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not _run_cli_command(args, get_settings()):
        parser.print_help()


if __name__ == "__main__":
    main()
