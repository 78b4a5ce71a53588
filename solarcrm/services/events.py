# solarcrm/services/events.py
"""
Certificate audit trail. Each render attempt for a lead leaves one
AuditEvent row (category "certificate") so a failed automatic render can
be found and retried from the admin side.
"""
import json
import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from solarcrm.models import AuditEvent

logger = logging.getLogger(__name__)

CERTIFICATE = "certificate"
CERTIFICATE_ACTIONS = ("auto_generated", "auto_failed", "regenerated")


def certificate_event(
    session: Session,
    lead_id: str,
    action: str,
    *,
    certificate_id: str,
    actor: Optional[str] = None,
    url: Optional[str] = None,
    error: Optional[str] = None,
) -> Optional[AuditEvent]:
    """
    Stores one certificate event. A database failure is logged and rolled
    back and None is returned, so the step change that triggered the render
    stays committed.
    """
    if action not in CERTIFICATE_ACTIONS:
        raise ValueError(f"unknown certificate action: {action}")
    payload = {"certificate_id": certificate_id}
    if url:
        payload["url"] = url
    row = AuditEvent(
        category=CERTIFICATE,
        action=action,
        lead_id=lead_id,
        actor=actor,
        payload_json=json.dumps(payload),
        ok=error is None,
        error=error,
    )
    try:
        session.add(row)
        session.commit()
        session.refresh(row)
    except SQLAlchemyError:
        logger.exception("[certificate] could not record %s for lead=%s", action, lead_id)
        session.rollback()
        return None
    return row


def certificate_history(session: Session, lead_id: str) -> List[AuditEvent]:
    """Oldest first."""
    rows = session.exec(
        select(AuditEvent)
        .where(AuditEvent.lead_id == lead_id, AuditEvent.category == CERTIFICATE)
        .order_by(AuditEvent.created_at)
    ).all()
    return list(rows)
