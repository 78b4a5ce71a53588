# solarcrm/security.py
import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from solarcrm.config import settings

ALGORITHM = "HS256"
PRINCIPAL_TYPES = ("customer", "partner", "admin", "staff")

_PBKDF2_ITERATIONS = 260_000


class TokenError(Exception):
    """Raised when a bearer token cannot be decoded or is missing claims."""


# ----------------- Passwords -----------------


def hash_password(password: str, *, salt: Optional[str] = None) -> str:
    """
    Salted PBKDF2-SHA256. Stored as pbkdf2_sha256$<iterations>$<salt>$<hex digest>.
    """
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), _PBKDF2_ITERATIONS)
    return f"pbkdf2_sha256${_PBKDF2_ITERATIONS}${salt}${digest.hex()}"


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    if not hashed_password:
        return False
    try:
        scheme, iterations, salt, expected = hashed_password.split("$", 3)
        rounds = int(iterations)
    except ValueError:
        return False
    if scheme != "pbkdf2_sha256" or rounds < 1:
        return False
    digest = hashlib.pbkdf2_hmac("sha256", plain_password.encode("utf-8"), salt.encode("utf-8"), rounds)
    return hmac.compare_digest(digest.hex(), expected)


# ----------------- Tokens -----------------


def create_access_token(data: Dict[str, Any], expires_delta: timedelta) -> str:
    now = datetime.now(timezone.utc)
    to_encode = {k: v for k, v in data.items() if v is not None}
    to_encode.update({"iat": now, "exp": now + expires_delta})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=ALGORITHM)


def parse_token(token: str) -> Dict[str, Any]:
    """
    Decodes the JWT and returns the payload dict. Raises TokenError when the
    signature/expiry check fails or the claims are not ours.
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[ALGORITHM])
    except JWTError as e:
        raise TokenError(str(e)) from e
    if not isinstance(payload, dict):
        raise TokenError("payload is not an object")
    if not payload.get("sub") or payload.get("type") not in PRINCIPAL_TYPES:
        raise TokenError("missing sub/type claims")
    return payload
