import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from buildtrack.core.config import settings
from buildtrack.crud import costs as costs_crud
from buildtrack.crud.costs import create_record
from buildtrack.db.models.costs import Material, ProfessionalService, ProfessionalFee
from buildtrack.schemas.costs import MaterialIn, ProfessionalFeeIn
from buildtrack.services.financials import sync as sync_module
from buildtrack.services.financials.errors import ConcurrencyConflict, ValidationError
from buildtrack.services.financials.sync import (
    get_cached_financials,
    recalculate_and_persist,
    recalculate_project,
    sync_phase_financials_safe,
)


def test_recalculate_writes_snapshot(db, project, phase):
    db.add(Material(project_id=project.id, phase_id=phase.id, name="Steel", total_cost=2_500.0, status="approved"))
    db.commit()
    p = recalculate_and_persist(db, phase.id)
    assert p.actual_materials == 2_500.0
    assert p.actual_total == 2_500.0
    assert p.financial_states == {
        "budgeted": 100_000.0,
        "estimated": 0.0,
        "committed": 0.0,
        "actual": 2_500.0,
        "remaining": 97_500.0,
    }
    assert p.financials_synced_at is not None
    assert p.category_breakdown["categories"][0] == {"category": "materials", "total": 2_500.0, "count": 1}


def test_recalculate_is_idempotent(db, project, phase):
    db.add(Material(project_id=project.id, phase_id=phase.id, name="Steel", total_cost=10.0, status="approved"))
    db.commit()
    first = dict(recalculate_and_persist(db, phase.id).financial_states)
    second = dict(recalculate_and_persist(db, phase.id).financial_states)
    assert first == second


def test_professional_services_snapshot_matches_actual(db, project, phase):
    svc = ProfessionalService(
        project_id=project.id, phase_id=phase.id, name="Arch", service_type="architect", contract_value=5_000.0
    )
    db.add(svc)
    db.commit()
    db.add(ProfessionalFee(project_id=project.id, phase_id=phase.id, professional_service_id=svc.id, amount=800.0, status="PAID"))
    db.commit()
    p = recalculate_and_persist(db, phase.id)
    assert p.professional_services["total_fees"] == p.actual_spending["professional_services"] == 800.0
    assert p.professional_services["architect_fees"] == 800.0


def test_cached_read_lags_until_sync(db, project, phase):
    recalculate_and_persist(db, phase.id)
    db.add(Material(project_id=project.id, phase_id=phase.id, name="Late", total_cost=100.0, status="approved"))
    db.commit()
    assert get_cached_financials(db, phase.id)["summary"]["actual_total"] == 0.0
    recalculate_and_persist(db, phase.id)
    assert get_cached_financials(db, phase.id)["summary"]["actual_total"] == 100.0


def test_cached_read_of_never_synced_phase(db, phase):
    r = get_cached_financials(db, phase.id)
    assert r["never_synced"] is True
    assert r["summary"]["actual_total"] == 0.0


def _bump_version_once(monkeypatch, times):
    real = sync_module.compute_phase_financials
    calls = {"n": 0}

    def racing(db, phase):
        result = real(db, phase)
        if calls["n"] < times:
            # another writer commits between our read and our write
            db.execute(text("UPDATE phase SET version_id = version_id + 1 WHERE id = :id"), {"id": phase.id})
        calls["n"] += 1
        return result

    monkeypatch.setattr(sync_module, "compute_phase_financials", racing)
    return calls


def test_stale_write_is_retried(db, phase, monkeypatch):
    calls = _bump_version_once(monkeypatch, times=1)
    p = recalculate_and_persist(db, phase.id)
    assert calls["n"] == 2
    assert p.financials_synced_at is not None


def test_persistent_conflict_raises(db, phase, monkeypatch):
    monkeypatch.setattr(settings, "SYNC_MAX_ATTEMPTS", 2)
    _bump_version_once(monkeypatch, times=10)
    with pytest.raises(ConcurrencyConflict):
        recalculate_and_persist(db, phase.id)


def test_safe_sync_swallows_and_logs(db, phase, monkeypatch):
    def broken(db, phase_id):
        raise RuntimeError("cache write failed")

    monkeypatch.setattr(sync_module, "recalculate_and_persist", broken)
    assert sync_phase_financials_safe(db, phase.id) is None
    assert sync_phase_financials_safe(db, None) is None


def test_cost_event_survives_failed_sync(db, project, phase, monkeypatch):
    def broken(db, phase_id):
        raise RuntimeError("cache write failed")

    monkeypatch.setattr(sync_module, "recalculate_and_persist", broken)
    m = create_record(
        db, "materials", MaterialIn(project_id=project.id, phase_id=phase.id, name="Pipe", total_cost=75.0, status="approved")
    )
    assert m.id is not None
    assert db.query(Material).filter_by(id=m.id).one().total_cost == 75.0


def test_background_sync_enqueues(db, phase, monkeypatch):
    sent = []
    monkeypatch.setattr(settings, "SYNC_IN_BACKGROUND", True)
    monkeypatch.setattr(sync_module, "_enqueue", lambda phase_id: sent.append(phase_id))
    assert sync_phase_financials_safe(db, phase.id) is None
    assert sent == [phase.id]


def test_recalculate_project(db, project, phase):
    phases = recalculate_project(db, project.id)
    assert [p.id for p in phases] == [phase.id]
    assert phases[0].financials_synced_at is not None


def test_fee_total_conflict_is_rejected_cleanly(db, project, phase, monkeypatch):
    svc = ProfessionalService(project_id=project.id, phase_id=phase.id, name="Arch", service_type="architect")
    db.add(svc)
    db.commit()

    def conflicting(db, service_id):
        raise IntegrityError("UPDATE professional_service", {}, Exception("constraint failed"))

    monkeypatch.setattr(costs_crud, "_refresh_service_fees", conflicting)
    with pytest.raises(ValidationError):
        create_record(
            db,
            "professional-fees",
            ProfessionalFeeIn(project_id=project.id, professional_service_id=svc.id, amount=500.0, status="APPROVED"),
        )
    assert db.query(ProfessionalFee).count() == 0
