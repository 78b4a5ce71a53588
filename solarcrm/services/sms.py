# solarcrm/services/sms.py
import logging
import os

from twilio.rest import Client

from solarcrm.config import settings

logger = logging.getLogger(__name__)


def _truthy(val) -> bool:
    return str(val).strip().lower() in ("1", "true", "yes", "y", "on")


def is_dry_run() -> bool:
    # Prefer live env each call; fall back to settings
    env_val = os.getenv("SMS_DRY_RUN", None)
    if env_val is not None:
        return _truthy(env_val)
    return bool(settings.SMS_DRY_RUN)


def _client() -> Client:
    account = settings.TWILIO_ACCOUNT_SID
    token = settings.TWILIO_AUTH_TOKEN
    if not (account and token):
        raise RuntimeError("Missing TWILIO_ACCOUNT_SID / TWILIO_AUTH_TOKEN")
    return Client(account, token)


def send_sms(to: str, body: str) -> bool:
    """
    Sends an SMS using the Messaging Service if set, else TWILIO_FROM.
    Honors is_dry_run() at call time.
    Returns True if sent (or dry-run), False on error.
    """
    if not to:
        logger.error("[sms] missing destination")
        return False

    if is_dry_run():
        logger.info("[sms] dry-run to=%s body=%s", to, body)
        return True

    try:
        client = _client()
        svc = settings.TWILIO_MESSAGING_SERVICE_SID or None
        from_num = settings.TWILIO_FROM or None
        if not svc and not from_num:
            raise RuntimeError("Set TWILIO_MESSAGING_SERVICE_SID or TWILIO_FROM")

        kwargs = {"to": to, "body": body}
        if svc:
            kwargs["messaging_service_sid"] = svc
        else:
            kwargs["from_"] = from_num

        msg = client.messages.create(**kwargs)
        logger.info("[sms] sent sid=%s to=%s", msg.sid, to)
        return True
    except Exception:
        logger.exception("[sms] send failed to=%s", to)
        return False


def send_otp_sms(to: str, code: str, ttl_seconds: int) -> bool:
    minutes = max(1, ttl_seconds // 60)
    body = f"Your {settings.BRAND_NAME} login OTP is {code}. It will expire in {minutes} minutes."
    return send_sms(to, body)
