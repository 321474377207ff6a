"""Email service for delivering login verification codes."""
import asyncio
import logging
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
import httpx
from clinic.config import get_settings
from clinic.exceptions import EmailDeliveryError

logger = logging.getLogger(__name__)

settings = get_settings()

SUBJECT = "{clinic} - Login Verification Code"

TEXT_BODY = """
{clinic} - Login Verification

Hello Doctor,

Your verification code is: {code}

This code will expire in {minutes} minutes and can only be used once.

If you didn't request this code, please ignore this email.

Best regards,
{clinic} Team
""".strip()

HTML_BODY = """
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h1 style="color: #2c5282;">{clinic}</h1>
  <p>Hello Doctor,<br>Please use the verification code below to access your account.</p>
  <p style="font-size: 32px; letter-spacing: 8px; font-family: 'Courier New', monospace;"><strong>{code}</strong></p>
  <ul>
    <li>This code will expire in <strong>{minutes} minutes</strong></li>
    <li>Do not share this code with anyone</li>
    <li>For security, this code can only be used once</li>
  </ul>
  <p style="color: #999; font-size: 12px;">This is an automated message from {clinic}. Please do not reply.</p>
</div>
""".strip()


class EmailService:
    """Sends verification codes through SMTP, SendGrid, or the log (development)."""

    def __init__(self):
        self.provider = settings.email_provider.lower()
        self.smtp_server = settings.smtp_host
        self.smtp_port = settings.smtp_port
        self.smtp_username = settings.smtp_username
        self.smtp_password = settings.smtp_password
        self.sendgrid_api_key = settings.sendgrid_api_key
        self.sendgrid_api_url = settings.sendgrid_api_url
        self.from_email = settings.from_email
        self.from_name = settings.from_name

    def _render(self, code: str) -> dict:
        values = {
            "clinic": self.from_name,
            "code": code,
            "minutes": settings.otp_ttl_seconds // 60,
        }
        return {
            "subject": SUBJECT.format(**values),
            "text": TEXT_BODY.format(**values),
            "html": HTML_BODY.format(**values),
        }

    async def send_otp(self, to_email: str, code: str) -> None:
        """Deliver `code` to `to_email`. Raises EmailDeliveryError on any failure."""
        content = self._render(code)
        if self.provider == "console":
            logger.info("Verification code for %s: %s", to_email, code)
            return
        if self.provider == "sendgrid":
            await self._send_sendgrid(to_email, content)
        elif self.provider == "smtp":
            await asyncio.to_thread(self._send_smtp, to_email, content)
        else:
            raise EmailDeliveryError(f"unknown email provider '{self.provider}'")
        logger.info("Verification code sent to %s via %s", to_email, self.provider)

    def _send_smtp(self, to_email: str, content: dict) -> None:
        message = MIMEMultipart("alternative")
        message["From"] = f"{self.from_name} <{self.from_email}>"
        message["To"] = to_email
        message["Subject"] = content["subject"]
        message.attach(MIMEText(content["text"], "plain"))
        message.attach(MIMEText(content["html"], "html"))

        try:
            with smtplib.SMTP(self.smtp_server, self.smtp_port, timeout=30) as server:
                server.starttls()
                if self.smtp_username:
                    server.login(self.smtp_username, self.smtp_password)
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            raise EmailDeliveryError(str(e)) from e

    async def _send_sendgrid(self, to_email: str, content: dict) -> None:
        payload = {
            "personalizations": [{"to": [{"email": to_email}]}],
            "from": {"email": self.from_email, "name": self.from_name},
            "subject": content["subject"],
            "content": [
                {"type": "text/plain", "value": content["text"]},
                {"type": "text/html", "value": content["html"]},
            ],
        }
        try:
            async with httpx.AsyncClient(timeout=30.0) as client:
                response = await client.post(
                    self.sendgrid_api_url,
                    headers={
                        "Authorization": f"Bearer {self.sendgrid_api_key}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise EmailDeliveryError(
                f"SendGrid returned {e.response.status_code}",
                details={"body": e.response.text},
            ) from e
        except httpx.HTTPError as e:
            raise EmailDeliveryError(str(e)) from e


email_service = EmailService()


def get_email_service() -> EmailService:
    return email_service
