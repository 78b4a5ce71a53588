import os
import tempfile
from datetime import timedelta
from pathlib import Path

# settings are read at import time, so point everything at a scratch dir first
_TMP = Path(tempfile.mkdtemp(prefix="solarcrm-tests-"))
os.environ["ENV"] = "dev"
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP / 'test.db'}"
os.environ["UPLOADS_DIR"] = str(_TMP / "uploads")
os.environ["LOG_DIR"] = str(_TMP / "logs")
os.environ["JWT_SECRET"] = "test-secret"
os.environ["OTP_SMS_ENABLED"] = "0"
os.environ["SMS_DRY_RUN"] = "1"
os.environ["AWS_S3_BUCKET"] = ""
os.environ["CERTIFICATE_BG_PATH"] = ""

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

from solarcrm.db import engine
from solarcrm.main import app
from solarcrm.models import Admin, Customer, Lead, Staff
from solarcrm.security import create_access_token, hash_password
from solarcrm.services import certificate
from solarcrm.services.otp import OtpStore

FAKE_PDF = b"%PDF-1.4\n% test certificate\n"

LEAD_BODY = {
    "projectType": "Residential",
    "sizedKW": 5,
    "monthlyBill": 2500,
    "pincode": "800001",
    "withSubsidy": True,
    "estimateINR": 300000,
    "fullName": "Asha Kumari",
    "phone": "9876543210",
    "email": "asha@example.com",
    "address": "12 MG Road",
    "street": "MG Road",
    "state": "Bihar",
    "city": "Patna",
    "country": "India",
    "zip": "800001",
}


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def reset_db():
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    yield


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(autouse=True)
def otp_store(clock):
    store = OtpStore(ttl_seconds=300, max_attempts=5, clock=clock)
    app.state.otp_store = store
    return store


@pytest.fixture(autouse=True)
def fake_pdf(monkeypatch):
    """Chromium is never launched in tests; the 'PDF' is a few bytes."""
    rendered = []

    def _render(page_html, out_path):
        Path(out_path).write_bytes(FAKE_PDF)
        rendered.append(page_html)

    monkeypatch.setattr(certificate, "render_pdf", _render)
    return rendered


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db():
    with Session(engine) as s:
        yield s


# ----------------- principals -----------------


def _bearer(sub: str, kind: str, **claims) -> dict:
    token = create_access_token({"sub": sub, "type": kind, **claims}, timedelta(days=1))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin(db):
    row = Admin(email="admin@example.com", name="Admin", password_hash=hash_password("admin-pass"))
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@pytest.fixture
def admin_headers(admin):
    return _bearer(admin.id, "admin", email=admin.email)


@pytest.fixture
def staff(db):
    row = Staff(
        email="tech@example.com",
        name="Ravi Tech",
        phone="9000000001",
        password_hash=hash_password("tech-pass"),
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@pytest.fixture
def staff_headers(staff):
    return _bearer(staff.id, "staff", email=staff.email)


@pytest.fixture
def customer(db):
    row = Customer(mobile="9876543210")
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@pytest.fixture
def customer_headers(customer):
    return _bearer(customer.id, "customer", mobile=customer.mobile)


@pytest.fixture
def make_headers():
    return _bearer


@pytest.fixture
def lead_body():
    return dict(LEAD_BODY)


@pytest.fixture
def make_lead(db):
    def _make(customer_id=None, **overrides) -> str:
        fields = dict(
            project_type="Residential",
            sized_kw=5.0,
            monthly_bill=2500.0,
            pincode="800001",
            estimate_inr=300000.0,
            full_name="Asha Kumari",
            phone="9876543210",
            address="12 MG Road",
            street="MG Road",
            state="Bihar",
            city="Patna",
            country="India",
            zip="800001",
            customer_id=customer_id,
        )
        fields.update(overrides)
        row = Lead(**fields)
        db.add(row)
        db.commit()
        db.refresh(row)
        return row.id

    return _make
