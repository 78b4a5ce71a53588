# solarcrm/routers/amc.py
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlmodel import Session, select

from solarcrm.db import get_session
from solarcrm.deps import Principal, require_admin, require_customer
from solarcrm.models import AMC_STATUSES, AmcRequest, Customer, Lead
from solarcrm.schemas import AmcCreateIn, AmcStatusIn
from solarcrm.serializers import lead_to_dict, to_dict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["amc"])


def _own_lead(session: Session, lead_id: str, customer_id: str) -> Optional[Lead]:
    return session.exec(
        select(Lead).where(Lead.id == lead_id, Lead.customer_id == customer_id)
    ).first()


# ----------------- Customer -----------------


@router.post("/customer/amc-requests", status_code=status.HTTP_201_CREATED)
def create_amc_request(
    payload: AmcCreateIn,
    response: Response,
    user: Principal = Depends(require_customer),
    session: Session = Depends(get_session),
):
    """
    One open request per lead: if a non-resolved request exists its note is
    updated and it is returned with 200 instead of creating a second one.
    """
    if not payload.lead_id:
        raise HTTPException(status_code=400, detail="leadId is required")
    if not _own_lead(session, payload.lead_id, user.sub):
        raise HTTPException(status_code=404, detail="Lead not found")

    note = payload.note.strip() if payload.note and payload.note.strip() else None

    existing = session.exec(
        select(AmcRequest).where(
            AmcRequest.lead_id == payload.lead_id,
            AmcRequest.customer_id == user.sub,
            AmcRequest.status != "resolved",
        )
    ).first()
    if existing:
        if note:
            existing.note = note
            session.add(existing)
            session.commit()
            session.refresh(existing)
        response.status_code = status.HTTP_200_OK
        return to_dict(existing)

    req = AmcRequest(lead_id=payload.lead_id, customer_id=user.sub, status="pending", note=note)
    session.add(req)
    session.commit()
    session.refresh(req)
    logger.info("[amc] customer=%s opened request=%s for lead=%s", user.sub, req.id, req.lead_id)
    return to_dict(req)


@router.get("/customer/amc-requests")
def latest_amc_request(
    lead_id: Optional[str] = Query(None, alias="leadId"),
    user: Principal = Depends(require_customer),
    session: Session = Depends(get_session),
):
    if not lead_id:
        raise HTTPException(status_code=400, detail="leadId query is required")
    if not _own_lead(session, lead_id, user.sub):
        return None
    row = session.exec(
        select(AmcRequest)
        .where(AmcRequest.lead_id == lead_id, AmcRequest.customer_id == user.sub)
        .order_by(AmcRequest.created_at.desc())
    ).first()
    return to_dict(row)


@router.get("/customer/amc-requests/history")
def amc_request_history(
    lead_id: Optional[str] = Query(None, alias="leadId"),
    user: Principal = Depends(require_customer),
    session: Session = Depends(get_session),
):
    if not lead_id:
        raise HTTPException(status_code=400, detail="leadId query is required")
    if not _own_lead(session, lead_id, user.sub):
        return []
    rows = session.exec(
        select(AmcRequest)
        .where(AmcRequest.lead_id == lead_id, AmcRequest.customer_id == user.sub)
        .order_by(AmcRequest.created_at.desc())
    ).all()
    return [to_dict(r) for r in rows]


# ----------------- Admin -----------------


@router.get("/admin/amc-requests")
def admin_list_amc_requests(
    _admin: Principal = Depends(require_admin),
    session: Session = Depends(get_session),
):
    rows = session.exec(select(AmcRequest).order_by(AmcRequest.created_at.desc())).all()
    out = []
    for r in rows:
        lead = session.get(Lead, r.lead_id)
        item = to_dict(r)
        item["customer"] = to_dict(session.get(Customer, r.customer_id))
        item["lead"] = lead_to_dict(lead) if lead else None
        out.append(item)
    return out


@router.patch("/admin/amc-requests/{request_id}")
def admin_update_amc_request(
    request_id: str,
    payload: AmcStatusIn,
    _admin: Principal = Depends(require_admin),
    session: Session = Depends(get_session),
):
    if payload.status not in AMC_STATUSES:
        raise HTTPException(status_code=400, detail="Invalid status")
    req = session.get(AmcRequest, request_id)
    if not req:
        raise HTTPException(status_code=404, detail="AMC request not found")

    req.status = payload.status
    req.resolved_at = datetime.now(timezone.utc) if payload.status == "resolved" else None
    session.add(req)
    session.commit()
    session.refresh(req)
    logger.info("[amc] request=%s -> %s", req.id, req.status)
    return to_dict(req)
