"""Outbound mail transports.

Two implementations of the MailTransport contract:
- SmtpMailTransport: plain SMTP with STARTTLS or implicit TLS
- HttpMailTransport: JSON POST to a mail relay API via httpx

Both report failures as SendResult(ok=False) instead of raising, and neither
retries: a failed send is recorded once and left alone.
"""

import asyncio
import smtplib
from email.message import EmailMessage
from typing import Optional

import httpx

from config import Settings, settings as default_settings
from exceptions import TransportUnconfigured
from logger_config import setup_logger
from schemas import SendResult

logger = setup_logger(__name__, 'mailer.log')


class SmtpMailTransport:
    """Send mail over SMTP. Configured only when both user and password are set."""

    name = "smtp"

    def __init__(
        self,
        host: str,
        port: int,
        user: Optional[str],
        password: Optional[str],
        secure: bool = False,
        from_email: Optional[str] = None,
        timeout: float = 30.0,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.secure = secure
        self.from_email = from_email or user
        self.timeout = timeout

    def is_configured(self) -> bool:
        return bool(self.user and self.password)

    def _connect(self) -> smtplib.SMTP:
        if self.secure:
            server = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
        else:
            server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
            server.starttls()
        server.login(self.user, self.password)
        return server

    def _send_sync(self, address: str, subject: str, html_body: str) -> None:
        message = EmailMessage()
        message['From'] = self.from_email
        message['To'] = address
        message['Subject'] = subject
        message.set_content("This reminder is best viewed in an HTML capable mail client.")
        message.add_alternative(html_body, subtype='html')

        with self._connect() as server:
            server.send_message(message)

    async def send(self, address: str, subject: str, html_body: str) -> SendResult:
        if not self.is_configured():
            raise TransportUnconfigured("SMTP_USER and SMTP_PASS are not set")

        try:
            await asyncio.to_thread(self._send_sync, address, subject, html_body)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"SMTP send to {address} failed: {str(e)}")
            return SendResult(ok=False, error=str(e) or type(e).__name__)

        return SendResult(ok=True)

    def _verify_sync(self) -> None:
        with self._connect() as server:
            server.noop()

    async def verify(self) -> bool:
        """Open and authenticate a connection without sending anything."""
        if not self.is_configured():
            return False
        try:
            await asyncio.to_thread(self._verify_sync)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"SMTP connection test failed: {str(e)}")
            return False
        return True


class HttpMailTransport:
    """Send mail through an HTTP relay API. Configured when the relay URL is set."""

    name = "http"

    def __init__(
        self,
        api_url: Optional[str],
        api_key: Optional[str] = None,
        from_email: Optional[str] = None,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_url = api_url.rstrip('/') if api_url else None
        self.api_key = api_key
        self.from_email = from_email
        self.timeout = timeout
        self._client = client

    def is_configured(self) -> bool:
        return bool(self.api_url)

    def _headers(self) -> dict:
        if self.api_key:
            return {"Authorization": f"Bearer {self.api_key}"}
        return {}

    async def _post(self, path: str, payload: Optional[dict] = None) -> httpx.Response:
        url = f"{self.api_url}{path}"
        if self._client is not None:
            return await self._client.post(url, json=payload, headers=self._headers())
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(url, json=payload, headers=self._headers())

    async def send(self, address: str, subject: str, html_body: str) -> SendResult:
        if not self.is_configured():
            raise TransportUnconfigured("MAIL_API_URL is not set")

        payload = {
            "from": self.from_email,
            "to": address,
            "subject": subject,
            "html": html_body,
        }

        try:
            response = await self._post("/send", payload)
        except httpx.TimeoutException:
            logger.error(f"Timeout while sending mail to {address}")
            return SendResult(ok=False, error="timeout")
        except httpx.RequestError as e:
            logger.error(f"Network error while sending mail to {address}: {str(e)}")
            return SendResult(ok=False, error=f"network error: {str(e)}")

        if response.is_success:
            return SendResult(ok=True)

        logger.error(
            f"Mail relay rejected message to {address}. "
            f"Status: {response.status_code}, Response: {response.text}"
        )
        return SendResult(ok=False, error=f"HTTP {response.status_code}: {response.text}")

    async def verify(self) -> bool:
        if not self.is_configured():
            return False
        try:
            response = await self._post("/verify")
        except httpx.HTTPError as e:
            logger.error(f"Mail relay connection test failed: {str(e)}")
            return False
        return response.is_success


def build_transport(config: Settings = default_settings):
    """Create the transport selected by MAIL_TRANSPORT."""
    transport = config.MAIL_TRANSPORT.lower()
    if transport == "smtp":
        return SmtpMailTransport(
            host=config.SMTP_HOST,
            port=config.SMTP_PORT,
            user=config.SMTP_USER,
            password=config.SMTP_PASS,
            secure=config.SMTP_SECURE,
            from_email=config.FROM_EMAIL,
            timeout=config.MAIL_TIMEOUT,
        )
    if transport == "http":
        return HttpMailTransport(
            api_url=config.MAIL_API_URL,
            api_key=config.MAIL_API_KEY,
            from_email=config.FROM_EMAIL or config.SMTP_USER,
            timeout=config.MAIL_TIMEOUT,
        )
    raise ValueError(f"Unknown MAIL_TRANSPORT: {config.MAIL_TRANSPORT!r} (expected 'smtp' or 'http')")
