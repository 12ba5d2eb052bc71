"""
Outbound e-mail transport.

`SmtpEmailSender` talks to an SMTP relay with aiosmtplib. When no SMTP
credentials are configured the message is logged instead, so development
setups work without a mail account.
"""

from abc import ABC, abstractmethod
from email.message import EmailMessage
from email.utils import formataddr

import aiosmtplib

from app.core.config import Settings
from app.core.logging import get_logger

logger = get_logger(__name__)


class EmailSender(ABC):
    @abstractmethod
    async def send(self, to: str, subject: str, html: str) -> None:
        ...


class SmtpEmailSender(EmailSender):
    def __init__(self, settings: Settings):
        self.host = settings.SMTP_HOST
        self.port = settings.SMTP_PORT
        self.username = settings.SMTP_USER.strip()
        # App passwords are often pasted with spaces
        self.password = "".join(settings.SMTP_PASSWORD.split())
        self.use_tls = settings.SMTP_USE_TLS
        self.timeout = settings.SMTP_TIMEOUT
        self.from_name = settings.EMAIL_FROM_NAME

    @property
    def configured(self) -> bool:
        return bool(self.username and self.password)

    def _build_message(self, to: str, subject: str, html: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = formataddr((self.from_name, self.username))
        message["To"] = to
        message["Subject"] = subject
        message.set_content("This message requires an HTML capable mail client.")
        message.add_alternative(html, subtype="html")
        return message

    async def send(self, to: str, subject: str, html: str) -> None:
        if not self.configured:
            logger.info("email_preview", to=to, subject=subject)
            return

        await aiosmtplib.send(
            self._build_message(to, subject, html),
            hostname=self.host,
            port=self.port,
            username=self.username,
            password=self.password,
            use_tls=self.use_tls,
            timeout=self.timeout,
        )
        logger.info("email_sent", to=to, subject=subject)
