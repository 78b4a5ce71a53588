from solarcrm.services import certificate


def test_health(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json() == {"ok": True}


def test_sample_certificate(client, fake_pdf):
    r = client.post("/api/sample/certificate")
    assert r.status_code == 200, r.text
    url = r.json()["certificateUrl"]
    assert url.startswith("/uploads/")
    assert "Sample Customer" in fake_pdf[0]
    assert "5.2 kW" in fake_pdf[0]
    assert client.get(url).status_code == 200


def test_sample_certificate_failure(client, monkeypatch):
    def _boom(data):
        raise RuntimeError("no chromium")

    monkeypatch.setattr(certificate, "generate_certificate_pdf", _boom)
    r = client.post("/api/sample/certificate")
    assert r.status_code == 500
    assert r.json() == {"error": "Failed to generate sample"}


def test_unknown_route_uses_error_shape(client):
    r = client.get("/api/nope")
    assert r.status_code == 404
    assert r.json() == {"error": "Not Found"}


def test_malformed_body_is_400(client):
    r = client.post("/api/auth/request-otp", content=b"not json", headers={"Content-Type": "application/json"})
    assert r.status_code == 400
    assert "error" in r.json()
