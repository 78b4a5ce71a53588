# solarcrm/config.py
import os
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).resolve().parents[1]
# load .env into process env vars (real env wins)
load_dotenv(ROOT / ".env")


def _as_bool(name: str, default: bool = False) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in ("1", "true", "yes", "y", "on")


def _as_int(name: str, default: int) -> int:
    try:
        return int(str(os.getenv(name, default)).strip())
    except Exception:
        return default


def _as_float(name: str, default: float) -> float:
    try:
        return float(str(os.getenv(name, default)).strip())
    except Exception:
        return default


INSECURE_JWT_SECRET = "dev-secret-do-not-use-in-prod"


class Settings:
    # App
    ENV: str = os.getenv("ENV", "dev")
    PORT: int = _as_int("PORT", 4000)
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///data/app.db")
    LOG_DIR: str = os.getenv("LOG_DIR", str(ROOT / "logs"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").strip() or "INFO"

    # Auth
    JWT_SECRET: str = (os.getenv("JWT_SECRET") or INSECURE_JWT_SECRET).strip()
    CUSTOMER_TOKEN_DAYS: int = _as_int("CUSTOMER_TOKEN_DAYS", 7)
    STAFF_TOKEN_DAYS: int = _as_int("STAFF_TOKEN_DAYS", 7)
    ADMIN_TOKEN_DAYS: int = _as_int("ADMIN_TOKEN_DAYS", 1)

    # OTP
    OTP_TTL_SECONDS: int = _as_int("OTP_TTL_SECONDS", 300)
    OTP_MAX_ATTEMPTS: int = _as_int("OTP_MAX_ATTEMPTS", 5)
    OTP_SMS_ENABLED: bool = _as_bool("OTP_SMS_ENABLED", False)
    PARTNER_REGION: str = os.getenv("PARTNER_REGION", "IN")

    # Twilio
    TWILIO_ACCOUNT_SID: str = os.getenv("TWILIO_ACCOUNT_SID", "").strip()
    TWILIO_AUTH_TOKEN: str = os.getenv("TWILIO_AUTH_TOKEN", "").strip()
    TWILIO_MESSAGING_SERVICE_SID: str = os.getenv("TWILIO_MESSAGING_SERVICE_SID", "").strip()
    TWILIO_FROM: str = os.getenv("TWILIO_FROM", "").strip()
    SMS_DRY_RUN: bool = _as_bool("SMS_DRY_RUN", False)
    BRAND_NAME: str = os.getenv("BRAND_NAME", "Klord")

    # Object storage
    AWS_REGION: str = os.getenv("AWS_REGION", "ap-south-1").strip()
    AWS_S3_BUCKET: str = os.getenv("AWS_S3_BUCKET", "").strip()
    SIGNED_URL_TTL_SECONDS: int = _as_int("SIGNED_URL_TTL_SECONDS", 3600)
    UPLOADS_DIR: str = os.getenv("UPLOADS_DIR", str(ROOT / "uploads"))

    # Certificates
    CERTIFICATE_BG_PATH: str = (os.getenv("CERTIFICATE_BG_PATH") or "").strip()
    CERTIFICATE_RENDER_TIMEOUT_SECONDS: int = _as_int("CERTIFICATE_RENDER_TIMEOUT_SECONDS", 60)

    # Lead finance defaults
    DEFAULT_GST_PCT: float = _as_float("DEFAULT_GST_PCT", 8.9)


settings = Settings()
