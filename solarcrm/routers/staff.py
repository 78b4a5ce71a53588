# solarcrm/routers/staff.py
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from solarcrm.db import get_session
from solarcrm.deps import Principal, require_staff
from solarcrm.models import Customer, Lead
from solarcrm.schemas import StepCompleteIn
from solarcrm.serializers import steps_to_list, to_dict
from solarcrm.services import steps as step_tracker

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/staff", tags=["staff"])

# what a field technician needs on the list screen
_BRIEF_FIELDS = ("id", "projectType", "fullName", "city", "state", "country", "createdAt", "updatedAt")


@router.get("/my-leads")
def my_leads(
    user: Principal = Depends(require_staff),
    session: Session = Depends(get_session),
):
    rows = session.exec(
        select(Lead).where(Lead.assigned_staff_id == user.sub).order_by(Lead.updated_at.desc())
    ).all()
    out = []
    for lead in rows:
        data = to_dict(lead)
        item = {k: data[k] for k in _BRIEF_FIELDS}
        item["steps"] = steps_to_list(step_tracker.list_steps(session, lead.id))
        out.append(item)
    return out


@router.get("/my-leads/{lead_id}")
def my_lead(
    lead_id: str,
    user: Principal = Depends(require_staff),
    session: Session = Depends(get_session),
):
    lead = session.exec(
        select(Lead).where(Lead.id == lead_id, Lead.assigned_staff_id == user.sub)
    ).first()
    if not lead:
        raise HTTPException(status_code=404, detail="Lead not found or not assigned to you")
    customer = session.get(Customer, lead.customer_id) if lead.customer_id else None
    data = to_dict(lead)
    data["customer"] = to_dict(customer)
    data["steps"] = steps_to_list(step_tracker.list_steps(session, lead.id))
    return data


@router.post("/steps/{step_id}/complete")
def complete_step(
    step_id: str,
    payload: StepCompleteIn,
    user: Principal = Depends(require_staff),
    session: Session = Depends(get_session),
):
    try:
        step, progress = step_tracker.complete_step_as_staff(session, step_id, user.sub, payload.notes)
    except step_tracker.StepError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    logger.info("[staff] staff=%s completed step=%s (%s%%)", user.sub, step_id, progress["percent"])
    return {"success": True, "step": to_dict(step), "progress": progress}
