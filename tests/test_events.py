import json

import pytest
from sqlalchemy.exc import OperationalError

from solarcrm.services import events


def test_certificate_event_rows(db, make_lead):
    lead_id = make_lead()
    ok = events.certificate_event(
        db, lead_id, "regenerated", certificate_id="ABCDEF-000001", actor="admin-1", url="/uploads/a.pdf"
    )
    failed = events.certificate_event(db, lead_id, "auto_failed", certificate_id="ABCDEF-000002", error="boom")

    assert ok.ok is True and ok.error is None
    assert json.loads(ok.payload_json) == {"certificate_id": "ABCDEF-000001", "url": "/uploads/a.pdf"}
    assert failed.ok is False and failed.actor is None
    assert json.loads(failed.payload_json) == {"certificate_id": "ABCDEF-000002"}

    history = events.certificate_history(db, lead_id)
    assert [e.id for e in history] == [ok.id, failed.id]
    assert events.certificate_history(db, make_lead()) == []


def test_unknown_action_is_a_programming_error(db, make_lead):
    with pytest.raises(ValueError):
        events.certificate_event(db, make_lead(), "deleted", certificate_id="X")


def test_database_failure_is_logged_not_raised(db, make_lead, monkeypatch):
    lead_id = make_lead()

    def _fail():
        raise OperationalError("INSERT INTO audit_event", {}, Exception("database is locked"))

    monkeypatch.setattr(db, "commit", _fail)
    assert events.certificate_event(db, lead_id, "auto_generated", certificate_id="X") is None

    monkeypatch.undo()
    assert events.certificate_history(db, lead_id) == []
