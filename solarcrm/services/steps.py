# solarcrm/services/steps.py
"""
Per-lead installation checklist.

Steps are created lazily from DEFAULT_STEP_NAMES the first time a lead's
steps are read. Every completion change recomputes Lead.percent. When an
admin completes a step and every step except "certificate" is done, the
completion certificate is rendered and the "certificate" step is ticked
automatically; a rendering failure is logged and recorded but never undoes
the step change that triggered it.
"""
import logging
import time
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from sqlmodel import Session, select

from solarcrm.models import Lead, LeadStep, Customer
from solarcrm.services import certificate
from solarcrm.services.events import certificate_event

logger = logging.getLogger(__name__)

CERTIFICATE_STEP = "certificate"

DEFAULT_STEP_NAMES: Tuple[str, ...] = (
    "meeting",
    "survey",
    "staucher install",
    "civil work",
    "wiring",
    "panel installation",
    "net metering",
    "testing",
    "fully plant start",
    "subsidy process request",
    "subsidy disbursement",
    CERTIFICATE_STEP,
)


class StepError(Exception):
    status_code = 400


class StepNotFound(StepError):
    status_code = 404


class StepNotAssigned(StepError):
    status_code = 403


class StepAlreadyCompleted(StepError):
    status_code = 400


class StepNotesRequired(StepError):
    status_code = 400


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(dt: datetime) -> datetime:
    # SQLite hands datetimes back without tzinfo; they were stored as UTC
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def list_steps(session: Session, lead_id: str) -> List[LeadStep]:
    return list(
        session.exec(
            select(LeadStep).where(LeadStep.lead_id == lead_id).order_by(LeadStep.order)
        ).all()
    )


def ensure_steps(session: Session, lead_id: str) -> List[LeadStep]:
    """Create the 12 default steps if the lead has none. Idempotent."""
    existing = list_steps(session, lead_id)
    if existing:
        return existing
    for idx, name in enumerate(DEFAULT_STEP_NAMES, start=1):
        session.add(LeadStep(lead_id=lead_id, name=name, order=idx))
    session.commit()
    logger.info("[steps] initialized %d steps for lead=%s", len(DEFAULT_STEP_NAMES), lead_id)
    return list_steps(session, lead_id)


def compute_percent(completed: int, total: int) -> int:
    if total <= 0:
        return 0
    # half-up like JS Math.round, not banker's rounding
    return int(100 * completed / total + 0.5)


def recompute_percent(session: Session, lead: Lead) -> dict:
    steps = list_steps(session, lead.id)
    done = sum(1 for s in steps if s.completed)
    lead.percent = compute_percent(done, len(steps))
    session.add(lead)
    session.commit()
    session.refresh(lead)
    return {"completed": done, "total": len(steps), "percent": lead.percent}


# ---------------- transitions ----------------


def complete_step_as_staff(
    session: Session, step_id: str, staff_id: str, notes: Optional[str]
) -> Tuple[LeadStep, dict]:
    notes = (notes or "").strip() if isinstance(notes, str) else ""
    if not notes:
        raise StepNotesRequired("Completion notes are required")

    step = session.get(LeadStep, step_id)
    if not step:
        raise StepNotFound("Step not found")
    lead = session.get(Lead, step.lead_id)
    if not lead or lead.assigned_staff_id != staff_id:
        raise StepNotAssigned("You are not assigned to this lead")
    if step.completed:
        raise StepAlreadyCompleted("Step is already completed")

    step.completed = True
    step.completed_at = _utcnow()
    step.completion_notes = notes
    session.add(step)
    session.commit()

    progress = recompute_percent(session, lead)
    session.refresh(step)
    return step, progress


def set_step_completion(
    session: Session,
    lead_id: str,
    step_id: str,
    completed: bool,
    notes: Optional[str] = None,
    actor: Optional[str] = None,
) -> LeadStep:
    """
    Admin toggle (complete or undo). Completing may trigger the certificate.
    """
    step = session.exec(
        select(LeadStep).where(LeadStep.id == step_id, LeadStep.lead_id == lead_id)
    ).first()
    if not step:
        raise StepNotFound("Step not found")

    step.completed = bool(completed)
    step.completed_at = _utcnow() if completed else None
    if completed and isinstance(notes, str) and notes.strip():
        step.completion_notes = notes.strip()
    session.add(step)
    session.commit()
    session.refresh(step)

    lead = session.get(Lead, lead_id)
    if lead:
        recompute_percent(session, lead)
        if completed:
            maybe_issue_certificate(session, lead, actor=actor)
    # the commits above expire the step
    session.refresh(step)
    return step


# ---------------- certificate ----------------


def format_install_date(dt: datetime) -> str:
    # "5 March 2025"
    return f"{dt.day} {dt.strftime('%B %Y')}"


def build_location(lead: Lead) -> str:
    return ", ".join(p for p in (lead.city, lead.state, lead.country) if p)


def make_certificate_id(lead_id: str, now_ms: Optional[int] = None) -> str:
    stamp = str(now_ms if now_ms is not None else int(time.time() * 1000))
    return f"{lead_id[:6].upper()}-{stamp[-6:]}"


def certificate_data_for(session: Session, lead: Lead, steps: List[LeadStep]) -> certificate.CertificateData:
    completed_dates = [
        _as_utc(s.completed_at) for s in steps if s.name != CERTIFICATE_STEP and s.completed_at
    ]
    install_dt = max(completed_dates) if completed_dates else _utcnow()
    customer_name = lead.full_name
    if not customer_name and lead.customer_id:
        customer = session.get(Customer, lead.customer_id)
        customer_name = customer.mobile if customer else ""
    return certificate.CertificateData(
        lead_id=lead.id,
        customer_name=customer_name or "",
        project_type=lead.project_type,
        sized_kw=lead.sized_kw,
        install_date=format_install_date(install_dt),
        location=build_location(lead),
        certificate_id=make_certificate_id(lead.id),
    )


def ready_for_certificate(steps: List[LeadStep]) -> bool:
    work = [s for s in steps if s.name != CERTIFICATE_STEP]
    return bool(work) and all(s.completed for s in work)


def _store_certificate(session: Session, lead: Lead, steps: List[LeadStep], public_url: str) -> None:
    lead.certificate_url = public_url
    lead.certificate_generated_at = _utcnow()
    session.add(lead)

    cert_step = next((s for s in steps if s.name == CERTIFICATE_STEP), None)
    if cert_step and not cert_step.completed:
        cert_step.completed = True
        cert_step.completed_at = _utcnow()
        session.add(cert_step)
    session.commit()
    session.refresh(lead)
    recompute_percent(session, lead)


def maybe_issue_certificate(session: Session, lead: Lead, actor: Optional[str] = None) -> bool:
    """
    Returns True if a certificate was generated by this call. Never raises
    for generation failures.
    """
    if lead.certificate_url:
        return False
    steps = list_steps(session, lead.id)
    if not ready_for_certificate(steps):
        return False

    data = certificate_data_for(session, lead, steps)
    try:
        result = certificate.generate_certificate_pdf(data)
    except Exception as e:
        logger.exception("[certificate] generation failed for lead=%s", lead.id)
        certificate_event(
            session, lead.id, "auto_failed", certificate_id=data.certificate_id, actor=actor, error=repr(e)
        )
        return False

    _store_certificate(session, lead, steps, result.public_url)
    certificate_event(
        session, lead.id, "auto_generated", certificate_id=data.certificate_id, actor=actor, url=result.public_url
    )
    return True


def regenerate_certificate(session: Session, lead: Lead, actor: Optional[str] = None) -> str:
    """Force a fresh render regardless of existing URL. Failures propagate."""
    steps = list_steps(session, lead.id)
    data = certificate_data_for(session, lead, steps)
    result = certificate.generate_certificate_pdf(data)

    lead.certificate_url = result.public_url
    lead.certificate_generated_at = _utcnow()
    session.add(lead)
    session.commit()
    session.refresh(lead)
    certificate_event(
        session, lead.id, "regenerated", certificate_id=data.certificate_id, actor=actor, url=result.public_url
    )
    return result.public_url
