# solarcrm/models.py
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


# ---------- Identity tables ----------


class Customer(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    mobile: str = Field(index=True, unique=True)
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow})


class Partner(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    mobile: str = Field(index=True, unique=True)  # +91XXXXXXXXXX
    name: str = Field(default="New Partner")
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow})


class Admin(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    email: str = Field(index=True, unique=True)
    name: str = Field(default="")
    password_hash: str
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow})


class Staff(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    email: str = Field(index=True, unique=True)
    name: str = Field(default="")
    phone: Optional[str] = Field(default=None, max_length=50)
    password_hash: str
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow})


# ---------- Leads ----------


class Lead(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow})

    # owner is optional: public submissions may be anonymous
    customer_id: Optional[str] = Field(default=None, foreign_key="customer.id", index=True)

    # inquiry
    project_type: str
    sized_kw: float
    monthly_bill: float
    pincode: str
    with_subsidy: bool = Field(default=True)
    estimate_inr: float
    total_investment: Optional[float] = None
    wp: Optional[float] = None
    plates: Optional[float] = None
    billing_cycle_months: int = Field(default=1)
    budget_inr: Optional[float] = None
    provider: Optional[str] = None

    # finance (receipt) inputs
    rate_per_kw: Optional[float] = None
    network_charge_per_unit: Optional[float] = None
    annual_gen_per_kw: Optional[float] = None
    module_degradation_pct: Optional[float] = None
    om_per_kw_year: Optional[float] = None
    om_escalation_pct: Optional[float] = None
    tariff_inr: Optional[float] = None
    tariff_escalation_pct: Optional[float] = None
    life_years: Optional[float] = None
    gst_pct: Optional[float] = None
    gst_amount: Optional[float] = None

    # contact / address
    full_name: str
    phone: str
    email: Optional[str] = None
    address: str
    street: str
    state: str
    city: str
    country: str
    zip: str

    # tracking
    percent: int = Field(default=0)
    assigned_staff_id: Optional[str] = Field(default=None, foreign_key="staff.id", index=True)
    assigned: bool = Field(default=False)
    certificate_url: Optional[str] = Field(default=None, max_length=1024)
    certificate_generated_at: Optional[datetime] = None


class LeadStep(SQLModel, table=True):
    __tablename__ = "lead_step"
    __table_args__ = (UniqueConstraint("lead_id", "order", name="uq_lead_step_order"),)

    id: str = Field(default_factory=new_id, primary_key=True)
    lead_id: str = Field(foreign_key="lead.id", index=True)
    name: str
    order: int  # 1-based
    completed: bool = Field(default=False)
    completed_at: Optional[datetime] = None
    completion_notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow})


AMC_STATUSES = ("pending", "in_progress", "resolved", "rejected")


class AmcRequest(SQLModel, table=True):
    __tablename__ = "amc_request"

    id: str = Field(default_factory=new_id, primary_key=True)
    lead_id: str = Field(foreign_key="lead.id", index=True)
    customer_id: str = Field(foreign_key="customer.id", index=True)
    status: str = Field(default="pending", max_length=20)  # see AMC_STATUSES
    note: Optional[str] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow})


# ---------- Feed ----------


class Post(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    author_id: str = Field(foreign_key="admin.id", index=True)
    caption: str
    image_url: Optional[str] = Field(default=None, max_length=1024)
    likes: int = Field(default=0)
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow})


# ---------- Best-effort event log ----------


class AuditEvent(SQLModel, table=True):
    __tablename__ = "audit_event"

    id: str = Field(default_factory=new_id, primary_key=True)
    created_at: datetime = Field(default_factory=utcnow, index=True)
    category: str = Field(index=True)   # e.g. "certificate"
    action: str = Field(index=True)     # e.g. "auto_failed"
    lead_id: Optional[str] = Field(default=None, index=True)
    actor: Optional[str] = None
    payload_json: str = Field(default="{}")
    ok: bool = Field(default=True)
    error: Optional[str] = None
