# solarcrm/routers/leads.py
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, status
from sqlmodel import Session, select

from solarcrm.db import get_session
from solarcrm.deps import Principal, get_optional_user, require_customer
from solarcrm.models import Lead
from solarcrm.schemas import LeadIn
from solarcrm.serializers import lead_to_dict, steps_to_list
from solarcrm.services.leads import (
    LeadPayloadError,
    build_lead,
    get_or_create_customer,
    parse_lead_body,
)
from solarcrm.services.steps import ensure_steps
from solarcrm.utils.phone import digits_for_association

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["leads"])


def _parse(body: Dict[str, Any]) -> LeadIn:
    try:
        return parse_lead_body(body)
    except LeadPayloadError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _create(session: Session, payload: LeadIn, customer_id: Optional[str]) -> Lead:
    lead = build_lead(payload, customer_id)
    session.add(lead)
    session.commit()
    session.refresh(lead)
    logger.info("[leads] created lead=%s customer=%s", lead.id, customer_id)
    return lead


@router.post("/leads", status_code=status.HTTP_201_CREATED)
def create_lead(
    body: Dict[str, Any] = Body(...),
    user: Principal = Depends(require_customer),
    session: Session = Depends(get_session),
):
    lead = _create(session, _parse(body), user.sub)
    return lead_to_dict(lead, sign=False)


@router.post("/leads/public", status_code=status.HTTP_201_CREATED)
def create_lead_public(
    body: Dict[str, Any] = Body(...),
    user: Optional[Principal] = Depends(get_optional_user),
    session: Session = Depends(get_session),
):
    """
    Anonymous submission from the mobile app. A valid customer token wins;
    otherwise the phone (or mobile) field is used to find or create the customer.
    """
    payload = _parse(body)
    customer_id = user.sub if user and user.type == "customer" else None

    if not customer_id:
        raw_phone = body.get("phone") if isinstance(body.get("phone"), str) else body.get("mobile")
        digits = digits_for_association(raw_phone)
        if digits:
            try:
                customer_id = get_or_create_customer(session, digits).id
            except Exception as e:
                # association is best-effort; the lead is still accepted
                session.rollback()
                logger.warning("[leads-public] customer association by phone skipped: %r", e)

    lead = _create(session, payload, customer_id)
    return lead_to_dict(lead, sign=False)


# ----------------- Customer-facing reads -----------------


def _own_lead(session: Session, lead_id: str, customer_id: str) -> Optional[Lead]:
    return session.exec(
        select(Lead).where(Lead.id == lead_id, Lead.customer_id == customer_id)
    ).first()


@router.get("/customer/leads")
def customer_leads(
    user: Principal = Depends(require_customer),
    session: Session = Depends(get_session),
):
    rows = session.exec(
        select(Lead).where(Lead.customer_id == user.sub).order_by(Lead.created_at.desc())
    ).all()
    return [lead_to_dict(r) for r in rows]


@router.get("/customer/leads/{lead_id}")
def customer_lead(
    lead_id: str,
    user: Principal = Depends(require_customer),
    session: Session = Depends(get_session),
):
    lead = _own_lead(session, lead_id, user.sub)
    if not lead:
        raise HTTPException(status_code=404, detail="Lead not found")
    return lead_to_dict(lead)


@router.get("/customer/leads/{lead_id}/steps")
def customer_lead_steps(
    lead_id: str,
    user: Principal = Depends(require_customer),
    session: Session = Depends(get_session),
):
    lead = _own_lead(session, lead_id, user.sub)
    if not lead:
        raise HTTPException(status_code=404, detail="Lead not found")
    return steps_to_list(ensure_steps(session, lead.id))
