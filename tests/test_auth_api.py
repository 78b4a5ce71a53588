from sqlmodel import select

from solarcrm.config import settings
from solarcrm.models import Customer, Partner
from solarcrm.security import parse_token
from solarcrm.services import sms


def _request(client, mobile="9876543210"):
    r = client.post("/api/auth/request-otp", json={"mobile": mobile})
    assert r.status_code == 200, r.text
    return r.json()


def test_request_otp_dev_mode(client, otp_store):
    body = _request(client, " 98765 43210 ")
    assert body["success"] is True
    assert body["mobile"] == "9876543210"
    assert body["ttlMs"] == 300_000
    assert body["via"] == "dev"
    assert body["otp"] == otp_store.get("9876543210").code


def test_request_otp_validation(client):
    r = client.post("/api/auth/request-otp", json={})
    assert r.status_code == 400
    assert r.json() == {"error": "mobile is required"}

    r = client.post("/api/auth/request-otp", json={"mobile": "12ab"})
    assert r.status_code == 400
    assert r.json() == {"error": "invalid mobile format"}


def test_request_otp_over_sms(client, monkeypatch):
    sent = []
    monkeypatch.setattr(settings, "OTP_SMS_ENABLED", True)
    monkeypatch.setattr(sms, "send_otp_sms", lambda to, code, ttl: sent.append((to, code, ttl)) or True)

    body = _request(client)
    assert body["via"] == "sms"
    assert "otp" not in body
    assert sent[0][0] == "+919876543210"
    assert sent[0][2] == 300


def test_request_otp_sms_failure(client, monkeypatch):
    monkeypatch.setattr(settings, "OTP_SMS_ENABLED", True)
    monkeypatch.setattr(sms, "send_otp_sms", lambda to, code, ttl: False)
    r = client.post("/api/auth/request-otp", json={"mobile": "9876543210"})
    assert r.status_code == 502
    assert r.json() == {"error": "Failed to send OTP"}


def test_verify_creates_customer_once(client, db):
    code = _request(client)["otp"]
    r = client.post("/api/auth/verify-otp", json={"mobile": "9876543210", "otp": code})
    assert r.status_code == 200, r.text
    first = r.json()
    claims = parse_token(first["token"])
    assert claims["type"] == "customer"
    assert claims["sub"] == first["user"]["id"]
    assert claims["mobile"] == "9876543210"
    assert claims["exp"] - claims["iat"] == 7 * 24 * 3600

    code = _request(client)["otp"]
    second = client.post("/api/auth/verify-otp", json={"mobile": "9876543210", "otp": code}).json()
    assert second["user"]["id"] == first["user"]["id"]
    assert len(db.exec(select(Customer)).all()) == 1


def test_verify_error_mapping(client, clock):
    r = client.post("/api/auth/verify-otp", json={"mobile": "9876543210"})
    assert r.status_code == 400
    assert r.json()["error"] == "mobile and otp are required"

    r = client.post("/api/auth/verify-otp", json={"mobile": "9876543210", "otp": "123456"})
    assert r.status_code == 400
    assert r.json()["error"] == "OTP not requested or has expired"

    code = _request(client)["otp"]
    wrong = "000000" if code != "000000" else "111111"
    for _ in range(5):
        r = client.post("/api/auth/verify-otp", json={"mobile": "9876543210", "otp": wrong})
        assert r.status_code == 400
        assert r.json()["error"] == "Invalid OTP"
    r = client.post("/api/auth/verify-otp", json={"mobile": "9876543210", "otp": code})
    assert r.status_code == 403
    assert r.json()["error"] == "Too many attempts. Please request a new OTP."

    code = _request(client)["otp"]
    clock.advance(301)
    r = client.post("/api/auth/verify-otp", json={"mobile": "9876543210", "otp": code})
    assert r.status_code == 400
    assert r.json()["error"] == "OTP has expired. Please request a new one."


def test_partner_flow(client, db):
    r = client.post("/api/auth/partner/request-otp", json={"mobile": "9876543210"})
    assert r.status_code == 200
    body = r.json()
    assert body["message"] == "OTP sent (DEV)"
    assert body["ttlMs"] == 300_000

    r = client.post("/api/auth/partner/verify-otp", json={"mobile": "9876543210", "otp": body["otp"]})
    assert r.status_code == 200, r.text
    out = r.json()
    assert out["user"]["mobile"] == "+919876543210"
    assert out["user"]["name"] == "New Partner"
    assert parse_token(out["token"])["type"] == "partner"
    assert len(db.exec(select(Partner)).all()) == 1


def test_partner_errors(client):
    r = client.post("/api/auth/partner/request-otp", json={"mobile": "98765"})
    assert r.status_code == 400
    assert r.json()["error"] == "A valid 10-digit mobile number is required"

    code = client.post("/api/auth/partner/request-otp", json={"mobile": "9876543210"}).json()["otp"]
    wrong = "000000" if code != "000000" else "111111"
    r = client.post("/api/auth/partner/verify-otp", json={"mobile": "9876543210", "otp": wrong})
    assert r.status_code == 401
    assert r.json()["error"] == "Incorrect OTP"

    r = client.post("/api/auth/partner/verify-otp", json={"mobile": "9999999999", "otp": "123456"})
    assert r.status_code == 401
    assert r.json()["error"] == "OTP is invalid or has expired"


def test_admin_login(client, admin):
    r = client.post("/api/auth/admin/login", json={"email": "ADMIN@example.com ", "password": "admin-pass"})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["user"] == {"id": admin.id, "email": "admin@example.com", "name": "Admin", "type": "admin"}
    claims = parse_token(body["token"])
    assert claims["type"] == "admin"
    assert claims["exp"] - claims["iat"] == 24 * 3600


def test_login_does_not_reveal_accounts(client, admin):
    bad_pw = client.post("/api/auth/admin/login", json={"email": "admin@example.com", "password": "nope"})
    unknown = client.post("/api/auth/admin/login", json={"email": "ghost@example.com", "password": "nope"})
    assert bad_pw.status_code == unknown.status_code == 401
    assert bad_pw.json() == unknown.json() == {"error": "Invalid credentials"}

    r = client.post("/api/auth/admin/login", json={"email": "admin@example.com"})
    assert r.status_code == 400


def test_corrupt_stored_hash_is_rejected(client, admin, db):
    admin.password_hash = "pbkdf2_sha256$notanint$salt$abc"
    db.add(admin)
    db.commit()
    r = client.post("/api/auth/admin/login", json={"email": "admin@example.com", "password": "admin-pass"})
    assert r.status_code == 401
    assert r.json() == {"error": "Invalid credentials"}


def test_staff_login(client, staff):
    r = client.post("/api/auth/staff/login", json={"email": "tech@example.com", "password": "tech-pass"})
    assert r.status_code == 200
    assert parse_token(r.json()["token"])["type"] == "staff"

    # admin credentials are not staff credentials
    r = client.post("/api/auth/admin/login", json={"email": "tech@example.com", "password": "tech-pass"})
    assert r.status_code == 401


def test_me_and_token_errors(client, customer, customer_headers):
    r = client.get("/api/auth/me", headers=customer_headers)
    assert r.status_code == 200
    assert r.json()["sub"] == customer.id
    assert r.json()["type"] == "customer"

    r = client.get("/api/auth/me")
    assert r.status_code == 401
    assert r.json() == {"error": "Not authorized, no token"}

    r = client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})
    assert r.status_code == 401
    assert r.json() == {"error": "Not authorized, token failed"}
