from datetime import datetime, timezone

import pytest
from sqlmodel import select

from solarcrm.models import AuditEvent, Lead, LeadStep
from solarcrm.serializers import to_dict
from solarcrm.services import certificate
from solarcrm.services import steps as st


def _work_steps(steps):
    return [s for s in steps if s.name != st.CERTIFICATE_STEP]


@pytest.mark.parametrize(
    "done,total,expected",
    [(0, 12, 0), (1, 12, 8), (6, 12, 50), (11, 12, 92), (12, 12, 100), (1, 8, 13), (0, 0, 0)],
)
def test_compute_percent_rounds_half_up(done, total, expected):
    assert st.compute_percent(done, total) == expected


def test_ensure_steps_is_idempotent(db, make_lead):
    lead_id = make_lead()
    first = st.ensure_steps(db, lead_id)
    second = st.ensure_steps(db, lead_id)
    assert [s.id for s in first] == [s.id for s in second]
    assert [s.name for s in second] == list(st.DEFAULT_STEP_NAMES)
    assert [s.order for s in second] == list(range(1, 13))
    assert not any(s.completed for s in second)


def test_percent_tracks_every_completion(db, make_lead):
    lead_id = make_lead()
    steps = st.ensure_steps(db, lead_id)
    for i, step in enumerate(steps[:5], start=1):
        st.set_step_completion(db, lead_id, step.id, True)
        assert db.get(Lead, lead_id).percent == st.compute_percent(i, 12)

    st.set_step_completion(db, lead_id, steps[0].id, False)
    lead = db.get(Lead, lead_id)
    assert lead.percent == st.compute_percent(4, 12)
    undone = db.get(type(steps[0]), steps[0].id)
    assert undone.completed is False and undone.completed_at is None


def test_step_of_other_lead_is_not_found(db, make_lead):
    a, b = make_lead(), make_lead()
    step_b = st.ensure_steps(db, b)[0]
    st.ensure_steps(db, a)
    with pytest.raises(st.StepNotFound):
        st.set_step_completion(db, a, step_b.id, True)


def test_last_work_step_issues_certificate(db, make_lead, fake_pdf):
    lead_id = make_lead(full_name="Asha <Kumari>")
    steps = st.ensure_steps(db, lead_id)
    for step in _work_steps(steps):
        st.set_step_completion(db, lead_id, step.id, True, actor="admin-1")

    lead = db.get(Lead, lead_id)
    assert lead.certificate_url and lead.certificate_url.startswith("/uploads/")
    assert lead.certificate_generated_at is not None
    assert lead.percent == 100
    cert_step = st.list_steps(db, lead_id)[-1]
    assert cert_step.name == st.CERTIFICATE_STEP and cert_step.completed

    assert len(fake_pdf) == 1
    assert "Asha &lt;Kumari&gt;" in fake_pdf[0]

    events = db.exec(select(AuditEvent).where(AuditEvent.lead_id == lead_id)).all()
    assert [e.action for e in events] == ["auto_generated"]


def test_certificate_not_regenerated_once_issued(db, make_lead, fake_pdf):
    lead_id = make_lead()
    steps = st.ensure_steps(db, lead_id)
    for step in _work_steps(steps):
        st.set_step_completion(db, lead_id, step.id, True)
    url = db.get(Lead, lead_id).certificate_url

    st.set_step_completion(db, lead_id, steps[3].id, False)
    st.set_step_completion(db, lead_id, steps[3].id, True)
    assert db.get(Lead, lead_id).certificate_url == url
    assert len(fake_pdf) == 1


def test_failed_render_keeps_step_change(db, make_lead, monkeypatch):
    def _boom(data):
        raise RuntimeError("chromium missing")

    monkeypatch.setattr(certificate, "generate_certificate_pdf", _boom)
    lead_id = make_lead()
    steps = st.ensure_steps(db, lead_id)
    work = _work_steps(steps)
    for step in work[:-1]:
        st.set_step_completion(db, lead_id, step.id, True)

    step = st.set_step_completion(db, lead_id, work[-1].id, True, actor="admin-1")
    assert step.completed

    lead = db.get(Lead, lead_id)
    assert lead.certificate_url is None
    assert lead.percent == st.compute_percent(11, 12)
    failed = db.exec(select(AuditEvent).where(AuditEvent.action == "auto_failed")).one()
    assert failed.ok is False
    assert "chromium missing" in failed.error
    assert failed.actor == "admin-1"


def test_staff_completion_rules(db, make_lead, staff):
    lead_id = make_lead(assigned_staff_id=staff.id, assigned=True)
    other_lead = make_lead()
    step = st.ensure_steps(db, lead_id)[0]
    foreign = st.ensure_steps(db, other_lead)[0]

    with pytest.raises(st.StepNotesRequired):
        st.complete_step_as_staff(db, step.id, staff.id, "   ")
    with pytest.raises(st.StepNotFound):
        st.complete_step_as_staff(db, "nope", staff.id, "done")
    with pytest.raises(st.StepNotAssigned):
        st.complete_step_as_staff(db, foreign.id, staff.id, "done")

    done, progress = st.complete_step_as_staff(db, step.id, staff.id, "  site visit done  ")
    assert done.completion_notes == "site visit done"
    assert done.completed is True and done.completed_at is not None
    assert progress == {"completed": 1, "total": 12, "percent": 8}

    with pytest.raises(st.StepAlreadyCompleted):
        st.complete_step_as_staff(db, step.id, staff.id, "again")


def test_certificate_helpers(db, make_lead):
    assert st.format_install_date(datetime(2025, 3, 5)) == "5 March 2025"
    assert st.make_certificate_id("abcdef0123", now_ms=1700000123456) == "ABCDEF-123456"

    lead_id = make_lead(state="", country="India")
    lead = db.get(Lead, lead_id)
    assert st.build_location(lead) == "Patna, India"


def test_install_date_is_latest_work_completion(db, make_lead):
    lead_id = make_lead()
    steps = st.ensure_steps(db, lead_id)
    steps[0].completed, steps[0].completed_at = True, datetime(2025, 1, 2, tzinfo=timezone.utc)
    steps[1].completed, steps[1].completed_at = True, datetime(2025, 3, 5, tzinfo=timezone.utc)
    steps[-1].completed, steps[-1].completed_at = True, datetime(2026, 1, 1, tzinfo=timezone.utc)  # certificate step ignored
    for s in (steps[0], steps[1], steps[-1]):
        db.add(s)
    db.commit()

    lead = db.get(Lead, lead_id)
    data = st.certificate_data_for(db, lead, st.list_steps(db, lead_id))
    assert data.install_date == "5 March 2025"
    assert data.location == "Patna, Bihar, India"
    assert data.certificate_id.startswith(lead_id[:6].upper() + "-")


def test_install_date_accepts_naive_and_aware_completions(db, make_lead):
    lead_id = make_lead()
    lead = db.get(Lead, lead_id)
    steps = [
        LeadStep(lead_id=lead_id, name="meeting", order=1, completed=True,
                 completed_at=datetime(2025, 1, 2, tzinfo=timezone.utc)),
        LeadStep(lead_id=lead_id, name="survey", order=2, completed=True,
                 completed_at=datetime(2025, 3, 5)),
    ]
    data = st.certificate_data_for(db, lead, steps)
    assert data.install_date == "5 March 2025"


def test_returned_step_is_loaded_after_toggle(db, make_lead):
    lead_id = make_lead()
    step = st.ensure_steps(db, lead_id)[0]

    done = st.set_step_completion(db, lead_id, step.id, True, notes="ok")
    body = to_dict(done)
    assert body["completed"] is True and body["completedAt"] is not None
    assert body["completionNotes"] == "ok"

    undone = st.set_step_completion(db, lead_id, step.id, False)
    body = to_dict(undone)
    assert body["id"] == step.id
    assert body["completed"] is False and body["completedAt"] is None
