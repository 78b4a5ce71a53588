# solarcrm/schemas.py
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


# ----------------- Auth -----------------

class OtpRequestIn(BaseModel):
    mobile: Optional[str] = None


class OtpVerifyIn(BaseModel):
    mobile: Optional[str] = None
    otp: Optional[str] = None


class LoginIn(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class StaffRegisterIn(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    phone: Optional[str] = None


# ----------------- Leads -----------------

LEAD_REQUIRED_FIELDS = (
    "projectType", "sizedKW", "monthlyBill", "pincode", "estimateINR",
    "fullName", "phone", "address", "street", "state", "city", "country", "zip",
)


class LeadIn(BaseModel):
    """
    Body of POST /api/leads and /api/leads/public (mobile app 5/5 screen).
    Field names on the wire are camelCase; attributes match Lead columns.
    """
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True, extra="ignore")

    project_type: str = Field(alias="projectType")
    sized_kw: float = Field(alias="sizedKW")
    monthly_bill: float = Field(alias="monthlyBill")
    pincode: str
    estimate_inr: float = Field(alias="estimateINR")

    full_name: str = Field(alias="fullName")
    phone: str
    email: Optional[str] = None
    address: str
    street: str
    state: str
    city: str
    country: str
    zip: str

    with_subsidy: Optional[bool] = Field(default=None, alias="withSubsidy")
    total_investment: Optional[float] = Field(default=None, alias="totalInvestment")
    wp: Optional[float] = None
    plates: Optional[float] = None

    rate_per_kw: Optional[float] = Field(default=None, alias="ratePerKW")
    network_charge_per_unit: Optional[float] = Field(default=None, alias="networkChargePerUnit")
    annual_gen_per_kw: Optional[float] = Field(default=None, alias="annualGenPerKW")
    module_degradation_pct: Optional[float] = Field(default=None, alias="moduleDegradationPct")
    om_per_kw_year: Optional[float] = Field(default=None, alias="omPerKWYear")
    om_escalation_pct: Optional[float] = Field(default=None, alias="omEscalationPct")
    tariff_inr: Optional[float] = Field(default=None, alias="tariffINR")
    tariff_escalation_pct: Optional[float] = Field(default=None, alias="tariffEscalationPct")
    life_years: Optional[float] = Field(default=None, alias="lifeYears")
    gst_pct: Optional[float] = Field(default=None, alias="gstPct")
    gst_amount: Optional[float] = Field(default=None, alias="gstAmount")

    billing_cycle_months: Optional[int] = Field(default=None, alias="billingCycleMonths")
    billing_cycle: Optional[str] = Field(default=None, alias="billingCycle")
    budget: Optional[float] = None
    budget_inr: Optional[float] = Field(default=None, alias="budgetINR")
    provider: Optional[str] = None
    mobile: Optional[str] = None


def missing_lead_field(body: Dict[str, Any]) -> Optional[str]:
    for key in LEAD_REQUIRED_FIELDS:
        if body.get(key) is None or body.get(key) == "":
            return key
    return None


# ----------------- Steps / assignment -----------------

class StepPatchIn(BaseModel):
    completed: bool = False
    notes: Optional[str] = None


class StepCompleteIn(BaseModel):
    notes: Optional[str] = None


class AssignIn(BaseModel):
    staff_id: Optional[str] = Field(default=None, alias="staffId")


# ----------------- AMC -----------------

class AmcCreateIn(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    lead_id: Optional[str] = Field(default=None, alias="leadId")
    note: Optional[str] = None


class AmcStatusIn(BaseModel):
    status: Optional[str] = None
