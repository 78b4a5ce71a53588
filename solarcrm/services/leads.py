# solarcrm/services/leads.py
import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from solarcrm.config import settings
from solarcrm.models import Customer, Lead
from solarcrm.schemas import LeadIn, missing_lead_field

logger = logging.getLogger(__name__)


class LeadPayloadError(ValueError):
    pass


def parse_lead_body(body: Dict[str, Any]) -> LeadIn:
    """
    Required-field check (first missing field is reported), then typed parse.
    Empty strings/nulls on optional fields mean "not provided".
    """
    if not isinstance(body, dict):
        raise LeadPayloadError("Request body must be a JSON object")
    missing = missing_lead_field(body)
    if missing:
        raise LeadPayloadError(f"Missing required field: {missing}")
    cleaned = {k: v for k, v in body.items() if v is not None and v != ""}
    try:
        return LeadIn.model_validate(cleaned)
    except ValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        field = ".".join(str(p) for p in first.get("loc", ())) or "body"
        raise LeadPayloadError(f"Invalid field {field}: {first.get('msg', 'invalid value')}") from e


def build_lead(payload: LeadIn, customer_id: Optional[str]) -> Lead:
    if payload.billing_cycle_months is not None:
        billing_cycle_months = payload.billing_cycle_months
    else:
        billing_cycle_months = 2 if payload.billing_cycle == "2m" else 1

    budget_inr = payload.budget if payload.budget is not None else payload.budget_inr

    gst_pct = payload.gst_pct if payload.gst_pct is not None else settings.DEFAULT_GST_PCT
    total_investment = (
        payload.total_investment if payload.total_investment is not None else payload.estimate_inr
    )
    if payload.gst_amount is not None:
        gst_amount = payload.gst_amount
    else:
        gst_amount = float(int((total_investment or 0) * (gst_pct / 100) + 0.5))

    return Lead(
        customer_id=customer_id,
        project_type=payload.project_type,
        sized_kw=payload.sized_kw,
        monthly_bill=payload.monthly_bill,
        pincode=payload.pincode,
        with_subsidy=True if payload.with_subsidy is None else payload.with_subsidy,
        estimate_inr=payload.estimate_inr,
        total_investment=total_investment,
        wp=payload.wp,
        plates=payload.plates,
        rate_per_kw=payload.rate_per_kw,
        network_charge_per_unit=payload.network_charge_per_unit,
        annual_gen_per_kw=payload.annual_gen_per_kw,
        module_degradation_pct=payload.module_degradation_pct,
        om_per_kw_year=payload.om_per_kw_year,
        om_escalation_pct=payload.om_escalation_pct,
        tariff_inr=payload.tariff_inr,
        tariff_escalation_pct=payload.tariff_escalation_pct,
        life_years=payload.life_years,
        gst_pct=gst_pct,
        gst_amount=gst_amount,
        full_name=payload.full_name,
        phone=payload.phone,
        email=payload.email or None,
        address=payload.address,
        street=payload.street,
        state=payload.state,
        city=payload.city,
        country=payload.country,
        zip=payload.zip,
        billing_cycle_months=billing_cycle_months,
        budget_inr=budget_inr,
        provider=payload.provider or None,
    )


def get_or_create_customer(session: Session, mobile: str) -> Customer:
    """Look up by normalized mobile, create on first sight. Safe to call repeatedly."""
    customer = session.exec(select(Customer).where(Customer.mobile == mobile)).first()
    if customer:
        return customer
    customer = Customer(mobile=mobile)
    session.add(customer)
    try:
        session.commit()
    except IntegrityError:
        # another request created it first
        session.rollback()
        return session.exec(select(Customer).where(Customer.mobile == mobile)).one()
    session.refresh(customer)
    logger.info("[customers] created customer=%s", customer.id)
    return customer
