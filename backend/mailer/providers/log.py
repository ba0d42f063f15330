import logging

from mailer.providers.base import EmailMessage, EmailProvider

logger = logging.getLogger(__name__)


class LogEmailProvider(EmailProvider):
    """Writes the message to the log instead of sending it."""

    name = "log"

    async def send(self, message: EmailMessage) -> None:
        logger.info(
            "EMAIL (log mode) to=%s subject=%r\n%s",
            message.to,
            message.subject,
            message.text,
        )
