import logging
from dataclasses import dataclass, field
from datetime import datetime

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from config import settings
from mailer import templates
from mailer.providers import EmailDeliveryError, EmailMessage, EmailProvider, LogEmailProvider, get_email_provider
from utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class EmailServiceStatus:
    mode: str
    failed_attempts: int = 0
    last_error: str | None = None
    last_attempt_at: datetime | None = field(default=None)

    def as_dict(self) -> dict:
        return {
            "mode": self.mode,
            "failedAttempts": self.failed_attempts,
            "lastError": self.last_error,
            "lastAttemptDate": self.last_attempt_at.isoformat() if self.last_attempt_at else None,
        }


class EmailService:
    """Sends transactional emails through one provider with a log fallback.

    Every public sender returns ``True`` when the message was delivered, or
    logged in fallback mode, and never raises.
    """

    def __init__(
        self,
        provider: EmailProvider,
        *,
        fallback: EmailProvider | None = None,
        retry_attempts: int | None = None,
        retry_base_seconds: float | None = None,
    ):
        self.provider = provider
        self.fallback = fallback or LogEmailProvider(provider.sender_name, provider.sender_address)
        self.retry_attempts = max(int(retry_attempts or settings.EMAIL_RETRY_ATTEMPTS), 1)
        self.retry_base_seconds = (
            settings.EMAIL_RETRY_BASE_SECONDS if retry_base_seconds is None else float(retry_base_seconds)
        )
        self.status = EmailServiceStatus(mode=provider.name)

    async def _deliver_with_retry(self, message: EmailMessage) -> None:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(multiplier=self.retry_base_seconds, max=30),
            retry=retry_if_exception_type(EmailDeliveryError),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.info(
                        "Retrying email to %s via %s (attempt %d/%d)",
                        message.to,
                        self.provider.name,
                        attempt.retry_state.attempt_number,
                        self.retry_attempts,
                    )
                await self.provider.send(message)

    async def _send(self, kind: str, message: EmailMessage, *, retry: bool = False) -> bool:
        try:
            if retry:
                await self._deliver_with_retry(message)
            else:
                await self.provider.send(message)
        except EmailDeliveryError as exc:
            self.status.failed_attempts += 1
            self.status.last_error = str(exc)
            self.status.last_attempt_at = utcnow()
            self.status.mode = "fallback-log"
            logger.error("%s email to %s failed via %s, falling back to log: %s", kind, message.to, self.provider.name, exc)
            return await self._send_fallback(kind, message)
        self.status.mode = self.provider.name
        logger.info("%s email sent to %s via %s", kind, message.to, self.provider.name)
        return True

    async def _send_fallback(self, kind: str, message: EmailMessage) -> bool:
        try:
            await self.fallback.send(message)
        except EmailDeliveryError:
            logger.exception("%s email fallback failed for %s", kind, message.to)
            return False
        return True

    async def send_welcome_email(self, email: str, username: str) -> bool:
        return await self._send("welcome", templates.welcome_email(email, username), retry=True)

    async def send_payment_confirmation_email(
        self, email: str, username: str, plan_name: str, amount: str, end_date: str
    ) -> bool:
        message = templates.payment_confirmation_email(email, username, plan_name, amount, end_date)
        return await self._send("payment", message)

    async def send_trial_expiring_email(self, email: str, username: str, days_left: int) -> bool:
        return await self._send("trial", templates.trial_expiring_email(email, username, days_left))

    async def send_subscription_ended_email(self, email: str, username: str) -> bool:
        return await self._send("subscription", templates.subscription_ended_email(email, username))


_email_service: EmailService | None = None


def get_email_service() -> EmailService:
    global _email_service
    if _email_service is None:
        _email_service = EmailService(get_email_provider())
        logger.info("Email service using provider %s", _email_service.provider.name)
    return _email_service
