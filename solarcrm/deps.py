# solarcrm/deps.py
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request

from solarcrm.security import TokenError, parse_token
from solarcrm.services.otp import OtpStore

logger = logging.getLogger(__name__)


@dataclass
class Principal:
    sub: str
    type: str  # customer | partner | admin | staff
    mobile: Optional[str] = None
    email: Optional[str] = None


def _bearer(authorization: Optional[str]) -> str:
    auth = (authorization or "").strip()
    if not auth.lower().startswith("bearer "):
        return ""
    return auth[7:].strip()


def _principal_from_token(token: str) -> Principal:
    payload = parse_token(token)
    return Principal(
        sub=str(payload["sub"]),
        type=payload["type"],
        mobile=payload.get("mobile"),
        email=payload.get("email"),
    )


def get_current_user(authorization: Optional[str] = Header(None)) -> Principal:
    """
    Reads Authorization: Bearer <token>; 401 when missing or invalid.
    """
    token = _bearer(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Not authorized, no token")
    try:
        return _principal_from_token(token)
    except TokenError as e:
        logger.info("[auth] token verification failed: %s", e)
        raise HTTPException(status_code=401, detail="Not authorized, token failed")


def get_optional_user(authorization: Optional[str] = Header(None)) -> Optional[Principal]:
    """Like get_current_user but never fails; used by public routes."""
    token = _bearer(authorization)
    if not token:
        return None
    try:
        return _principal_from_token(token)
    except TokenError:
        return None


def require_type(*types: str):
    def _dep(user: Principal = Depends(get_current_user)) -> Principal:
        if user.type not in types:
            raise HTTPException(status_code=403, detail="Forbidden")
        return user
    return _dep


require_admin = require_type("admin")
require_customer = require_type("customer")
require_staff = require_type("staff")


def get_otp_store(request: Request) -> OtpStore:
    return request.app.state.otp_store
