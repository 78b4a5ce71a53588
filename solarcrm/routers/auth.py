# solarcrm/routers/auth.py
import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from solarcrm.config import settings
from solarcrm.db import get_session
from solarcrm.deps import Principal, get_current_user, get_otp_store
from solarcrm.models import Admin, Partner, Staff
from solarcrm.schemas import LoginIn, OtpRequestIn, OtpVerifyIn
from solarcrm.security import create_access_token, verify_password
from solarcrm.serializers import to_dict
from solarcrm.services import sms
from solarcrm.services.leads import get_or_create_customer
from solarcrm.services.otp import (
    OtpError,
    OtpExpired,
    OtpInvalidCode,
    OtpNotFound,
    OtpStore,
    OtpTooManyAttempts,
)
from solarcrm.utils.phone import (
    InvalidPhone,
    normalize_customer_mobile,
    normalize_partner_mobile,
    to_e164,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


# ----------------- Helpers -----------------


def _deliver_otp(phone: str, code: str, ttl_seconds: int, tag: str) -> str:
    """
    Returns "sms" when the code went out through Twilio, "dev" when SMS is off
    (code is then returned in the response body).
    """
    if not settings.OTP_SMS_ENABLED:
        logger.info("[%s][DEV] OTP for %s is %s", tag, phone, code)
        return "dev"
    dest = phone if phone.startswith("+") else to_e164(phone)
    if not dest or not sms.send_otp_sms(dest, code, ttl_seconds):
        raise HTTPException(status_code=502, detail="Failed to send OTP")
    return "sms"


def _token_days(days: int) -> timedelta:
    return timedelta(days=days)


# ----------------- Customer OTP -----------------


@router.post("/request-otp")
def request_otp(payload: OtpRequestIn, store: OtpStore = Depends(get_otp_store)):
    if not payload.mobile:
        raise HTTPException(status_code=400, detail="mobile is required")
    try:
        normalized = normalize_customer_mobile(payload.mobile)
    except InvalidPhone:
        raise HTTPException(status_code=400, detail="invalid mobile format")

    record = store.issue(normalized)
    via = _deliver_otp(normalized, record.code, store.ttl_seconds, "request-otp")

    out = {"success": True, "mobile": normalized, "ttlMs": store.ttl_seconds * 1000, "via": via}
    if via == "dev":
        out["otp"] = record.code
    return out


@router.post("/verify-otp")
def verify_otp(
    payload: OtpVerifyIn,
    store: OtpStore = Depends(get_otp_store),
    session: Session = Depends(get_session),
):
    if not payload.mobile or not payload.otp:
        raise HTTPException(status_code=400, detail="mobile and otp are required")

    normalized = "".join(payload.mobile.split())
    try:
        store.verify(normalized, payload.otp)
    except OtpNotFound:
        raise HTTPException(status_code=400, detail="OTP not requested or has expired")
    except OtpExpired:
        raise HTTPException(status_code=400, detail="OTP has expired. Please request a new one.")
    except OtpTooManyAttempts:
        raise HTTPException(status_code=403, detail="Too many attempts. Please request a new OTP.")
    except OtpInvalidCode:
        raise HTTPException(status_code=400, detail="Invalid OTP")

    customer = get_or_create_customer(session, normalized)
    token = create_access_token(
        {"sub": customer.id, "mobile": customer.mobile, "type": "customer"},
        _token_days(settings.CUSTOMER_TOKEN_DAYS),
    )
    logger.info("[verify-otp] customer %s authenticated", customer.id)
    return {"token": token, "user": to_dict(customer)}


# ----------------- Partner OTP -----------------


@router.post("/partner/request-otp")
def partner_request_otp(payload: OtpRequestIn, store: OtpStore = Depends(get_otp_store)):
    try:
        normalized = normalize_partner_mobile(payload.mobile or "")
    except InvalidPhone as e:
        raise HTTPException(status_code=400, detail=str(e))

    record = store.issue(normalized)
    via = _deliver_otp(normalized, record.code, store.ttl_seconds, "request-otp-partner")

    out = {"message": "OTP sent" if via == "sms" else "OTP sent (DEV)", "ttlMs": store.ttl_seconds * 1000}
    if via == "dev":
        out["otp"] = record.code
    return out


@router.post("/partner/verify-otp")
def partner_verify_otp(
    payload: OtpVerifyIn,
    store: OtpStore = Depends(get_otp_store),
    session: Session = Depends(get_session),
):
    if not payload.mobile or not payload.otp:
        raise HTTPException(status_code=400, detail="Mobile and OTP are required")
    try:
        normalized = normalize_partner_mobile(payload.mobile)
    except InvalidPhone:
        raise HTTPException(status_code=401, detail="OTP is invalid or has expired")

    try:
        store.verify(normalized, payload.otp)
    except OtpInvalidCode:
        raise HTTPException(status_code=401, detail="Incorrect OTP")
    except OtpError:
        raise HTTPException(status_code=401, detail="OTP is invalid or has expired")

    partner = session.exec(select(Partner).where(Partner.mobile == normalized)).first()
    if not partner:
        partner = Partner(mobile=normalized, name="New Partner")
        session.add(partner)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            partner = session.exec(select(Partner).where(Partner.mobile == normalized)).one()
        session.refresh(partner)

    token = create_access_token(
        {"sub": partner.id, "mobile": partner.mobile, "type": "partner"},
        _token_days(settings.CUSTOMER_TOKEN_DAYS),
    )
    return {"token": token, "user": to_dict(partner)}


# ----------------- Admin / Staff login -----------------


def _password_login(session: Session, model, payload: LoginIn, kind: str, days: int):
    if not payload.email or not payload.password:
        raise HTTPException(status_code=400, detail="Email and password are required")

    email = payload.email.strip().lower()
    row = session.exec(select(model).where(model.email == email)).first()
    # same message for unknown email and bad password
    if not row or not verify_password(payload.password, row.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    token = create_access_token({"sub": row.id, "email": row.email, "type": kind}, _token_days(days))
    return {"token": token, "user": {"id": row.id, "email": row.email, "name": row.name, "type": kind}}


@router.post("/admin/login")
def admin_login(payload: LoginIn, session: Session = Depends(get_session)):
    return _password_login(session, Admin, payload, "admin", settings.ADMIN_TOKEN_DAYS)


@router.post("/staff/login")
def staff_login(payload: LoginIn, session: Session = Depends(get_session)):
    return _password_login(session, Staff, payload, "staff", settings.STAFF_TOKEN_DAYS)


# ----------------- Me -----------------


@router.get("/me")
def me(user: Principal = Depends(get_current_user)):
    return {"sub": user.sub, "type": user.type, "mobile": user.mobile, "email": user.email}
