import logging
import smtplib
from email.message import EmailMessage
from pathlib import Path

import anyio
from jinja2 import Environment, FileSystemLoader, select_autoescape

from welcome_code.core.config import Settings
from welcome_code.core.logging_config import mask_email

logger = logging.getLogger(__name__)

TEMPLATE_PATH = Path(__file__).parent.parent / "templates" / "emails"
env = Environment(loader=FileSystemLoader(TEMPLATE_PATH), autoescape=select_autoescape(["html", "xml", "html.j2"]))

WELCOME_CODE_SUBJECT = "Your 10% welcome code"


class EmailDeliveryError(Exception):
    pass


def render_template(template_name: str, context: dict) -> tuple[str, str]:
    base_text = env.get_template("base.txt.j2")
    base_html = env.get_template("base.html.j2")
    body_text = env.get_template(template_name).render(**context)
    body_html = env.get_template(template_name.replace(".txt.j2", ".html.j2")).render(**context)
    return base_text.render(body=body_text, **context), base_html.render(body=body_html, **context)


class WelcomeEmailSender:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def _build_message(self, to_email: str, subject: str, text_body: str, html_body: str | None = None) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.settings.smtp_from_email or "no-reply@localhost"
        msg["To"] = to_email
        msg.set_content(text_body)
        if html_body:
            msg.add_alternative(html_body, subtype="html")
        return msg

    def _use_implicit_tls(self) -> bool:
        return bool(self.settings.smtp_use_ssl) or int(self.settings.smtp_port) == 465

    def _deliver(self, msg: EmailMessage) -> None:
        s = self.settings
        smtp_cls = smtplib.SMTP_SSL if self._use_implicit_tls() else smtplib.SMTP
        with smtp_cls(s.smtp_host, s.smtp_port, timeout=s.smtp_timeout_seconds) as smtp:
            if smtp_cls is smtplib.SMTP and s.smtp_use_tls:
                smtp.starttls()
            if s.smtp_username and s.smtp_password:
                smtp.login(s.smtp_username, s.smtp_password)
            smtp.send_message(msg)

    async def send_email(self, to_email: str, subject: str, text_body: str, html_body: str | None = None) -> bool:
        if not self.settings.smtp_enabled:
            logger.warning("SMTP disabled; email not sent", extra={"email": mask_email(to_email), "subject": subject})
            return False
        msg = self._build_message(to_email, subject, text_body, html_body)
        try:
            await anyio.to_thread.run_sync(self._deliver, msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise EmailDeliveryError(f"Email send failed: {exc}") from exc
        logger.info("Email sent", extra={"email": mask_email(to_email), "subject": subject})
        return True

    async def send_welcome_code(self, to_email: str, code: str) -> bool:
        context = {
            "code": code,
            "store_name": self.settings.store_name,
            "store_url": self.settings.store_url,
        }
        text_body, html_body = render_template("welcome_code.txt.j2", context)
        return await self.send_email(to_email, WELCOME_CODE_SUBJECT, text_body, html_body)
