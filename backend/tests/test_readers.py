import datetime as dt

import pytest
from sqlalchemy.exc import OperationalError

from buildtrack.db.models.costs import (
    Material,
    Expense,
    LabourEntry,
    Equipment,
    Subcontractor,
    ProfessionalService,
    ProfessionalFee,
)
from buildtrack.db.models.phase import Phase
from buildtrack.db.models.statuses import CostCategory
from buildtrack.services.financials import readers
from buildtrack.services.financials.errors import AggregationFailure, NotFound, ValidationError


def _add(db, *rows):
    db.add_all(rows)
    db.commit()


def test_empty_phase_sums_to_zero(db, phase):
    costs = readers.collect_phase_costs(db, phase.id)
    assert costs.total == 0.0
    for c in costs.categories():
        assert c.total == 0.0
        assert c.count == 0


def test_materials_only_approved_and_not_deleted(db, project, phase):
    _add(
        db,
        Material(project_id=project.id, phase_id=phase.id, name="Rebar", total_cost=1000.0, status="approved"),
        Material(project_id=project.id, phase_id=phase.id, name="Cement", total_cost=500.0, status="received"),
        Material(project_id=project.id, phase_id=phase.id, name="Sand", total_cost=250.0, status="used"),
        Material(project_id=project.id, phase_id=phase.id, name="Tiles", total_cost=900.0, status="pending_approval"),
        Material(project_id=project.id, phase_id=phase.id, name="Glass", total_cost=700.0, status="rejected"),
        Material(
            project_id=project.id,
            phase_id=phase.id,
            name="Old",
            total_cost=400.0,
            status="approved",
            deleted_at=dt.datetime(2026, 1, 1, tzinfo=dt.timezone.utc),
        ),
    )
    m = readers.materials_spending(db, phase.id)
    assert m.total == 1750.0
    assert m.count == 3


def test_materials_scoped_to_phase(db, project, phase):
    other = Phase(project_id=project.id, code="FIN", name="Finishes", budget_total=1.0)
    db.add(other)
    db.commit()
    _add(
        db,
        Material(project_id=project.id, phase_id=phase.id, name="A", total_cost=10.0, status="approved"),
        Material(project_id=project.id, phase_id=other.id, name="B", total_cost=99.0, status="approved"),
    )
    assert readers.sum_approved_cost(db, phase.id, CostCategory.materials) == 10.0
    assert readers.sum_approved_cost(db, other.id, "materials") == 99.0


def test_expenses_exclude_indirect_and_unapproved(db, project, phase):
    _add(
        db,
        Expense(project_id=project.id, phase_id=phase.id, description="Permit", amount=300.0, status="APPROVED"),
        Expense(
            project_id=project.id,
            phase_id=phase.id,
            description="Site office",
            amount=800.0,
            status="APPROVED",
            is_indirect_cost=True,
        ),
        Expense(project_id=project.id, phase_id=phase.id, description="Fuel", amount=50.0, status="PENDING"),
    )
    assert readers.expenses_spending(db, phase.id).total == 300.0


def test_labour_breakdown(db, project, phase):
    _add(
        db,
        LabourEntry(
            project_id=project.id, phase_id=phase.id, worker_name="A", skill="mason",
            total_hours=10, hourly_rate=20, total_cost=200.0, status="approved",
        ),
        LabourEntry(
            project_id=project.id, phase_id=phase.id, worker_name="B", skill="mason",
            total_hours=5, hourly_rate=20, total_cost=100.0, status="paid",
        ),
        LabourEntry(
            project_id=project.id, phase_id=phase.id, worker_name="C", skill="welder",
            total_hours=8, hourly_rate=30, total_cost=240.0, status="approved",
        ),
        LabourEntry(
            project_id=project.id, phase_id=phase.id, worker_name="D", skill="welder",
            total_hours=8, hourly_rate=30, total_cost=240.0, status="submitted",
        ),
    )
    lab = readers.labour_spending(db, phase.id)
    assert lab.total == 540.0
    assert lab.count == 3
    assert lab.hours == 23.0
    assert lab.by_skill == {"mason": 300.0, "welder": 240.0}


def test_equipment_and_subcontractors(db, project, phase):
    _add(
        db,
        Equipment(project_id=project.id, phase_id=phase.id, name="Crane", total_cost=5000.0, status="in_use"),
        Equipment(project_id=project.id, phase_id=phase.id, name="Pump", total_cost=800.0, status="returned"),
        Equipment(project_id=project.id, phase_id=phase.id, name="Lift", total_cost=1200.0, status="assigned"),
        Subcontractor(
            project_id=project.id, phase_id=phase.id, name="Electro", contract_value=10000.0,
            paid_amount=4000.0, status="active",
        ),
        Subcontractor(
            project_id=project.id, phase_id=phase.id, name="Pending", contract_value=7000.0,
            paid_amount=0.0, status="pending",
        ),
    )
    assert readers.equipment_spending(db, phase.id).total == 5800.0
    assert readers.subcontractor_spending(db, phase.id).total == 4000.0


def test_professional_services_breakdown(db, project, phase):
    arch = ProfessionalService(
        project_id=project.id, phase_id=phase.id, name="Studio", service_type="architect", contract_value=20000.0
    )
    eng = ProfessionalService(
        project_id=project.id, phase_id=phase.id, name="Statics", service_type="engineer", contract_value=9000.0
    )
    _add(db, arch, eng)
    _add(
        db,
        ProfessionalFee(project_id=project.id, phase_id=phase.id, professional_service_id=arch.id, amount=3000.0, status="APPROVED"),
        ProfessionalFee(project_id=project.id, phase_id=phase.id, professional_service_id=arch.id, amount=1000.0, status="PAID"),
        ProfessionalFee(project_id=project.id, phase_id=phase.id, professional_service_id=eng.id, amount=1500.0, status="PAID"),
        ProfessionalFee(project_id=project.id, phase_id=phase.id, professional_service_id=eng.id, amount=999.0, status="PENDING"),
    )
    ps = readers.professional_services_spending(db, phase.id)
    assert ps.total == 5500.0
    assert ps.count == 3
    assert ps.architect_fees == 4000.0
    assert ps.engineer_fees == 1500.0


def test_unknown_category_is_validation_error(db, phase):
    with pytest.raises(ValidationError):
        readers.sum_approved_cost(db, phase.id, "snacks")


def test_get_phase_not_found(db):
    with pytest.raises(NotFound):
        readers.get_phase(db, 404)


def test_storage_failure_is_not_zero(db, phase, monkeypatch):
    def boom(*a, **kw):
        raise OperationalError("SELECT", {}, Exception("database is gone"))

    monkeypatch.setattr(db, "query", boom)
    with pytest.raises(AggregationFailure):
        readers.materials_spending(db, phase.id)
