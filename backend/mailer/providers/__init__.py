from config import Settings, settings as default_settings
from mailer.providers.base import EmailDeliveryError, EmailMessage, EmailProvider
from mailer.providers.brevo import BrevoProvider
from mailer.providers.log import LogEmailProvider
from mailer.providers.mailtrap import MailtrapProvider
from mailer.providers.resend import ResendProvider
from mailer.providers.sendgrid import SendGridProvider
from mailer.providers.smtp import SMTPProvider

AUTO_ORDER = ("brevo", "sendgrid", "resend", "smtp", "mailtrap")


def _configured(name: str, cfg: Settings) -> bool:
    if name == "brevo":
        return bool(cfg.BREVO_API_KEY)
    if name == "sendgrid":
        return bool(cfg.SENDGRID_API_KEY)
    if name == "resend":
        return bool(cfg.RESEND_API_KEY)
    if name == "smtp":
        return bool(cfg.SMTP_HOST)
    if name == "mailtrap":
        return bool(cfg.MAILTRAP_API_TOKEN)
    return name == "log"


def _build(name: str, cfg: Settings) -> EmailProvider:
    sender = {"sender_name": cfg.EMAIL_SENDER_NAME, "sender_address": cfg.EMAIL_SENDER_ADDRESS}
    if name == "brevo":
        return BrevoProvider(api_key=cfg.BREVO_API_KEY or "", **sender)
    if name == "sendgrid":
        return SendGridProvider(api_key=cfg.SENDGRID_API_KEY or "", **sender)
    if name == "resend":
        return ResendProvider(api_key=cfg.RESEND_API_KEY or "", **sender)
    if name == "smtp":
        return SMTPProvider(
            host=cfg.SMTP_HOST or "",
            port=cfg.SMTP_PORT,
            username=cfg.SMTP_USER,
            password=cfg.SMTP_PASSWORD,
            use_tls=cfg.SMTP_USE_TLS,
            **sender,
        )
    if name == "mailtrap":
        return MailtrapProvider(api_token=cfg.MAILTRAP_API_TOKEN or "", **sender)
    return LogEmailProvider(**sender)


def get_email_provider(cfg: Settings | None = None) -> EmailProvider:
    """Resolve the single active provider from ``EMAIL_PROVIDER``."""
    cfg = cfg or default_settings
    name = (cfg.EMAIL_PROVIDER or "auto").strip().lower()
    if name == "auto":
        name = next((n for n in AUTO_ORDER if _configured(n, cfg)), "log")
    if name not in AUTO_ORDER and name != "log":
        raise ValueError(f"Unknown email provider: {name}")
    return _build(name, cfg)


__all__ = [
    "EmailDeliveryError",
    "EmailMessage",
    "EmailProvider",
    "LogEmailProvider",
    "get_email_provider",
]
