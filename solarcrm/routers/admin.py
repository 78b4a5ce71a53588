# solarcrm/routers/admin.py
import logging
import re

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from solarcrm.db import get_session
from solarcrm.deps import Principal, require_admin
from solarcrm.models import Customer, Lead, Staff
from solarcrm.schemas import AssignIn, StaffRegisterIn, StepPatchIn
from solarcrm.security import hash_password
from solarcrm.serializers import certificate_event_to_dict, lead_to_dict, staff_brief, steps_to_list, to_dict
from solarcrm.services import steps as step_tracker
from solarcrm.services.events import certificate_history
from solarcrm.storage import sign_if_bucket_url

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _get_lead(session: Session, lead_id: str) -> Lead:
    lead = session.get(Lead, lead_id)
    if not lead:
        raise HTTPException(status_code=404, detail="Lead not found")
    return lead


def _lead_detail(session: Session, lead: Lead, *, with_staff_phone: bool) -> dict:
    customer = session.get(Customer, lead.customer_id) if lead.customer_id else None
    staff = session.get(Staff, lead.assigned_staff_id) if lead.assigned_staff_id else None
    return lead_to_dict(
        lead,
        customer=to_dict(customer),
        steps=steps_to_list(step_tracker.list_steps(session, lead.id)),
        assignedStaff=staff_brief(staff, with_phone=with_staff_phone),
    )


# ----------------- Leads -----------------


@router.get("/leads")
def list_leads(
    _admin: Principal = Depends(require_admin),
    session: Session = Depends(get_session),
):
    rows = session.exec(select(Lead).order_by(Lead.created_at.desc())).all()
    return [_lead_detail(session, r, with_staff_phone=False) for r in rows]


@router.get("/leads/{lead_id}")
def get_lead(
    lead_id: str,
    _admin: Principal = Depends(require_admin),
    session: Session = Depends(get_session),
):
    lead = session.get(Lead, lead_id)
    if not lead:
        raise HTTPException(status_code=404, detail="Not found")
    return _lead_detail(session, lead, with_staff_phone=True)


@router.get("/leads/{lead_id}/steps")
def lead_steps(
    lead_id: str,
    _admin: Principal = Depends(require_admin),
    session: Session = Depends(get_session),
):
    lead = _get_lead(session, lead_id)
    return steps_to_list(step_tracker.ensure_steps(session, lead.id))


@router.patch("/leads/{lead_id}/steps/{step_id}")
def patch_lead_step(
    lead_id: str,
    step_id: str,
    payload: StepPatchIn,
    admin: Principal = Depends(require_admin),
    session: Session = Depends(get_session),
):
    """
    Mark a step complete (or undo it). Completing the last outstanding work
    step renders the certificate; a rendering failure does not fail this call.
    """
    try:
        step = step_tracker.set_step_completion(
            session, lead_id, step_id, payload.completed, notes=payload.notes, actor=admin.sub
        )
    except step_tracker.StepError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return to_dict(step)


@router.post("/leads/{lead_id}/assign")
def assign_staff(
    lead_id: str,
    payload: AssignIn,
    _admin: Principal = Depends(require_admin),
    session: Session = Depends(get_session),
):
    if not payload.staff_id:
        raise HTTPException(status_code=400, detail="Staff ID is required")
    staff = session.get(Staff, payload.staff_id)
    if not staff:
        raise HTTPException(status_code=404, detail="Staff member not found")
    lead = _get_lead(session, lead_id)

    lead.assigned_staff_id = staff.id
    lead.assigned = True
    session.add(lead)
    session.commit()
    logger.info("[admin] lead=%s assigned to staff=%s", lead_id, staff.id)
    return {"success": True, "assignedStaff": staff_brief(staff)}


@router.post("/leads/{lead_id}/unassign")
def unassign_staff(
    lead_id: str,
    _admin: Principal = Depends(require_admin),
    session: Session = Depends(get_session),
):
    lead = _get_lead(session, lead_id)
    lead.assigned_staff_id = None
    lead.assigned = False
    session.add(lead)
    session.commit()
    return {"success": True, "message": "Staff assignment removed successfully"}


@router.post("/leads/{lead_id}/certificate/regenerate")
def regenerate_certificate(
    lead_id: str,
    admin: Principal = Depends(require_admin),
    session: Session = Depends(get_session),
):
    lead = _get_lead(session, lead_id)
    try:
        url = step_tracker.regenerate_certificate(session, lead, actor=admin.sub)
    except Exception:
        logger.exception("[certificate] force regenerate failed for lead=%s", lead_id)
        raise HTTPException(status_code=500, detail="Internal Server Error")
    return {"ok": True, "certificateUrl": sign_if_bucket_url(url)}


@router.get("/leads/{lead_id}/certificate/events")
def certificate_events(
    lead_id: str,
    _admin: Principal = Depends(require_admin),
    session: Session = Depends(get_session),
):
    _get_lead(session, lead_id)
    return [certificate_event_to_dict(e) for e in certificate_history(session, lead_id)]


# ----------------- Customers -----------------


@router.get("/customers/phones")
def customer_phones(
    _admin: Principal = Depends(require_admin),
    session: Session = Depends(get_session),
):
    rows = session.exec(select(Customer).order_by(Customer.created_at.desc())).all()
    # no name column on customers; the UI shows the mobile as the name
    return [{"id": c.id, "mobile": c.mobile, "name": c.mobile} for c in rows]


# ----------------- Staff -----------------


@router.post("/staff/register", status_code=status.HTTP_201_CREATED)
def register_staff(
    payload: StaffRegisterIn,
    _admin: Principal = Depends(require_admin),
    session: Session = Depends(get_session),
):
    if not (payload.name and payload.email and payload.password and payload.phone):
        raise HTTPException(status_code=400, detail="Name, email, password, and phone are required")
    email = payload.email.strip().lower()
    if not _EMAIL_RE.match(email):
        raise HTTPException(status_code=400, detail="Invalid email format")
    if len(payload.password) < 6:
        raise HTTPException(status_code=400, detail="Password must be at least 6 characters long")

    if session.exec(select(Staff).where(Staff.email == email)).first():
        raise HTTPException(status_code=409, detail="Staff member with this email already exists")

    staff = Staff(
        name=payload.name.strip(),
        email=email,
        phone=payload.phone.strip(),
        password_hash=hash_password(payload.password),
    )
    session.add(staff)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise HTTPException(status_code=409, detail="Staff member with this email already exists")
    session.refresh(staff)
    logger.info("[admin] registered staff=%s", staff.id)
    return {
        "id": staff.id,
        "name": staff.name,
        "email": staff.email,
        "phone": staff.phone,
        "createdAt": staff.created_at,
    }


@router.get("/staff")
def list_staff(
    _admin: Principal = Depends(require_admin),
    session: Session = Depends(get_session),
):
    rows = session.exec(select(Staff).order_by(Staff.created_at.desc())).all()
    return [to_dict(s) for s in rows]
