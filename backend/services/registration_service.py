"""Registration bookkeeping: the abuse guard and the trial-start log."""
import logging
from datetime import datetime, timedelta

from config import settings
from db.schemas import RegistrationLog, User
from storage import Storage
from utils.datetime_utils import add_days, utcnow

logger = logging.getLogger(__name__)


def is_registration_blocked(
    storage: Storage,
    *,
    email: str,
    ip_address: str,
    now: datetime | None = None,
) -> bool:
    """True once the email or the IP already has the maximum number of recent registrations."""
    now = now or utcnow()
    since = now - timedelta(days=settings.REGISTRATION_WINDOW_DAYS)
    limit = settings.REGISTRATION_MAX_PER_WINDOW
    by_email = storage.get_registration_logs_by_email(email, since=since)
    by_ip = storage.get_registration_logs_by_ip_address(ip_address, since=since)
    if len(by_email) >= limit or len(by_ip) >= limit:
        logger.warning(
            "Registration blocked: %d recent by email, %d recent by ip %s",
            len(by_email),
            len(by_ip),
            ip_address,
        )
        return True
    return False


def record_registration(
    storage: Storage,
    user: User,
    *,
    ip_address: str,
    user_agent: str,
    now: datetime | None = None,
) -> RegistrationLog:
    now = now or utcnow()
    return storage.create_registration_log(
        {
            "ip_address": ip_address or "unknown",
            "user_agent": user_agent or "unknown",
            "email": user.email,
            "username": user.username,
            "registered_at": now,
            "trial_end_date": add_days(now, settings.TRIAL_PERIOD_DAYS),
        }
    )
