import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_list(name: str, default: str = "") -> tuple[str, ...]:
    raw_value = os.getenv(name, default)
    return tuple(item.strip() for item in raw_value.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./crm.db")
    jwt_secret: str = os.getenv("JWT_SECRET", "")
    jwt_algorithm: str = os.getenv("JWT_ALGORITHM", "HS256")
    token_ttl_hours: int = int(os.getenv("TOKEN_TTL_HOURS", "48"))
    otp_length: int = int(os.getenv("OTP_LENGTH", "6"))
    otp_ttl_seconds: int = int(os.getenv("OTP_TTL_SECONDS", "600"))
    otp_debug: bool = _env_bool("OTP_DEBUG", False)
    otp_email_sender: str = (
        os.getenv("OTP_EMAIL_SENDER")
        or os.getenv("GMAIL_SENDER")
        or os.getenv("FROM_EMAIL", "")
    )
    otp_email_sender_name: str = os.getenv("OTP_EMAIL_SENDER_NAME", "Incial Security")
    otp_email_subject: str = os.getenv("OTP_EMAIL_SUBJECT", "Password Reset OTP")
    gmail_token_file: str = os.getenv("GMAIL_TOKEN_FILE", "")
    gmail_credentials_file: str = os.getenv("GMAIL_CREDENTIALS_FILE", "")
    otp_sweep_enabled: bool = _env_bool("OTP_SWEEP_ENABLED", True)
    # Saturdays at midnight UTC.
    otp_sweep_cron: str = os.getenv("OTP_SWEEP_CRON", "0 0 * * sat")
    cors_origins: tuple[str, ...] = field(
        default_factory=lambda: _env_list(
            "CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"
        )
    )
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()


settings = Settings()
