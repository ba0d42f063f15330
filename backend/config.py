from pydantic_settings import BaseSettings
from pathlib import Path


class Settings(BaseSettings):
    ENVIRONMENT: str = "development"  # development | test | staging | production
    APP_NAME: str = "NutriEasy"
    LOG_LEVEL: str = "INFO"
    SECRET_KEY: str = "nutritracker-secret-key"
    DATABASE_URL: str = "sqlite:///data/nutrieasy.db"
    DATA_DIR: Path = Path("data")
    STORAGE_BACKEND: str = "database"  # database | memory
    CORS_ORIGINS: list[str] = [
        "http://localhost:5000",
        "http://localhost:5173",
        "https://localhost:5000",
    ]
    PUBLIC_BASE_URL: str = "https://nutrieasy.replit.app"

    JWT_ALGORITHM: str = "HS256"
    SESSION_EXPIRY_HOURS: int = 24 * 7
    AUTH_COOKIE_NAME: str = "nutrieasy_session"
    AUTH_COOKIE_SECURE: bool = False
    AUTH_COOKIE_HTTPONLY: bool = True
    AUTH_COOKIE_SAMESITE: str = "lax"  # strict | lax | none
    AUTH_COOKIE_DOMAIN: str | None = None
    AUTH_COOKIE_PATH: str = "/"
    SECURITY_HEADERS_ENABLED: bool = True
    SECURITY_CSP: str = (
        "default-src 'self'; "
        "img-src 'self' data: blob:; "
        "style-src 'self' 'unsafe-inline'; "
        "script-src 'self' https://js.stripe.com; "
        "connect-src 'self' https:; "
        "frame-src https://js.stripe.com https://checkout.stripe.com; "
        "frame-ancestors 'none'; "
        "base-uri 'self';"
    )

    ADMIN_ACCESS_CODE: str = ""
    ADMIN_USER_ID: int = 999999
    ADMIN_USERNAME: str = "admin"
    ADMIN_EMAIL: str = "admin@nutrieasy.eu"

    RATE_LIMIT_AUTH_LOGIN_ATTEMPTS: int = 10
    RATE_LIMIT_AUTH_LOGIN_WINDOW_SECONDS: int = 300
    REGISTRATION_MAX_PER_WINDOW: int = 2
    REGISTRATION_WINDOW_DAYS: int = 30

    TRIAL_PERIOD_DAYS: int = 5
    TRIAL_EXPIRING_NOTICE_DAYS: int = 2
    GRACE_PERIOD_DAYS: int = 7
    TRIAL_FORCE_EXPIRED: bool = False

    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o"
    PERPLEXITY_API_KEY: str | None = None
    PERPLEXITY_MODEL: str = "llama-3.1-sonar-small-128k-online"
    AI_REQUEST_TIMEOUT_SECONDS: float = 60.0
    AI_RECOMMENDATION_TIMEOUT_SECONDS: float = 30.0
    AI_DEFAULT_LANGUAGE: str = "it"  # it | en

    STRIPE_SECRET_KEY: str | None = None
    STRIPE_PRICE_ID_MONTHLY: str | None = None
    STRIPE_PRICE_ID_YEARLY: str | None = None
    STRIPE_WEBHOOK_SECRET: str | None = None
    STRIPE_WEBHOOK_TOLERANCE_SECONDS: int = 300

    EMAIL_PROVIDER: str = "auto"  # auto | brevo | sendgrid | resend | smtp | mailtrap | log
    EMAIL_SENDER_NAME: str = "NutriEasy"
    EMAIL_SENDER_ADDRESS: str = "noreply@nutrieasy.eu"
    EMAIL_RETRY_ATTEMPTS: int = 3
    EMAIL_RETRY_BASE_SECONDS: float = 1.0
    BREVO_API_KEY: str | None = None
    SENDGRID_API_KEY: str | None = None
    RESEND_API_KEY: str | None = None
    SMTP_HOST: str | None = None
    SMTP_PORT: int = 587
    SMTP_USER: str | None = None
    SMTP_PASSWORD: str | None = None
    SMTP_USE_TLS: bool = True
    MAILTRAP_API_TOKEN: str | None = None

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @property
    def is_production_like(self) -> bool:
        return (self.ENVIRONMENT or "").strip().lower() in {"production", "prod", "staging"}

    def validate_security_configuration(self) -> None:
        if not self.is_production_like:
            return

        errors: list[str] = []
        if self.SECRET_KEY == "nutritracker-secret-key":
            errors.append("SECRET_KEY must be changed from the default value")
        if len((self.SECRET_KEY or "").strip()) < 16:
            errors.append("SECRET_KEY must be at least 16 characters")
        if self.ADMIN_ACCESS_CODE and len(self.ADMIN_ACCESS_CODE.strip()) < 12:
            errors.append("ADMIN_ACCESS_CODE must be at least 12 characters when set")
        if not self.AUTH_COOKIE_SECURE:
            errors.append("AUTH_COOKIE_SECURE must be true in production-like environments")
        if (self.AUTH_COOKIE_SAMESITE or "").strip().lower() == "none" and not self.AUTH_COOKIE_SECURE:
            errors.append("AUTH_COOKIE_SAMESITE=none requires AUTH_COOKIE_SECURE=true")
        if self.TRIAL_FORCE_EXPIRED:
            errors.append("TRIAL_FORCE_EXPIRED is a demo switch and must be off in production")
        if errors:
            joined = "; ".join(errors)
            raise RuntimeError(f"Insecure production configuration: {joined}")


settings = Settings()
settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
