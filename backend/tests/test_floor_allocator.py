import pytest
from sqlalchemy import text

from buildtrack.crud.phases import update_phase_budget
from buildtrack.db.models.costs import Material, LabourEntry
from buildtrack.db.models.floor import Floor, FloorAllocation
from buildtrack.db.models.procurement import MaterialRequest, PurchaseOrder
from buildtrack.db.models.project import Project
from buildtrack.schemas.phase import BudgetAllocationIn
from buildtrack.services.financials import floors as floors_module
from buildtrack.services.financials.errors import ConcurrencyConflict, NotFound, ValidationError
from buildtrack.services.financials.floors import (
    _even_split,
    _largest_remainder,
    _weighted_split,
    apply_floor_allocations,
    check_floor_budget,
    floor_financials,
    floor_type,
    split_categories,
    suggest_floor_allocations,
)


@pytest.mark.parametrize("budget,n", [(100_000.0, 3), (10.0, 4), (999_999.0, 7), (5.0, 1)])
def test_even_split_sums_to_budget(budget, n):
    parts = _even_split(budget, n)
    assert len(parts) == n
    assert sum(parts) == pytest.approx(budget)
    for p in parts:
        assert abs(p - budget / n) <= n - 1 + 1e-9


def test_weighted_split_exact_total():
    parts = _weighted_split(100_000.0, [1.2, 1.0, 1.0, 1.3])
    assert sum(parts) == pytest.approx(100_000.0)
    assert parts[0] == round(1.2 * 100_000 / 4.5)


def test_weighted_split_rejects_zero_weights():
    with pytest.raises(ValidationError):
        _weighted_split(100.0, [0.0, 0.0])


def test_floor_type():
    assert floor_type(-2).value == "basement"
    assert floor_type(0).value == "typical"
    assert floor_type(9).value == "typical"
    assert floor_type(10).value == "penthouse"


def test_split_categories_default_ratios():
    assert split_categories(1000.0) == {"materials": 650.0, "labour": 250.0, "equipment": 50.0, "subcontractors": 30.0}


def test_suggest_even(db, phase, floors):
    rows = suggest_floor_allocations(db, phase.id, "even")
    assert [r["floor_number"] for r in rows] == [-1, 0, 1, 2]
    assert sum(r["suggested_budget"] for r in rows) == pytest.approx(100_000.0)
    assert rows[0]["suggested_budget"] == 25_000.0


def test_suggest_weighted_basement_heavier(db, phase, floors):
    rows = suggest_floor_allocations(db, phase.id, "weighted")
    by_number = {r["floor_number"]: r["suggested_budget"] for r in rows}
    assert by_number[-1] > by_number[0]
    assert sum(by_number.values()) == pytest.approx(100_000.0)


def test_suggest_weighted_by_area(db, phase, floors):
    for f, area in zip(floors, (100.0, 100.0, 200.0, 100.0)):
        f.area_m2 = area
    db.commit()
    rows = suggest_floor_allocations(db, phase.id, "weighted", by_area=True)
    assert [r["suggested_budget"] for r in rows] == [20_000.0, 20_000.0, 40_000.0, 20_000.0]


def test_suggest_manual_returns_stored(db, phase, floors):
    db.add(FloorAllocation(phase_id=phase.id, floor_id=floors[1].id, total=1234.0))
    db.commit()
    rows = suggest_floor_allocations(db, phase.id, "manual")
    assert [r["suggested_budget"] for r in rows] == [0.0, 1234.0, 0.0, 0.0]


def test_invalid_strategy(db, phase, floors):
    with pytest.raises(ValidationError):
        suggest_floor_allocations(db, phase.id, "random")


def test_apply_persists_with_default_split(db, phase, floors):
    out = apply_floor_allocations(
        db,
        phase.id,
        [{"floor_id": floors[0].id, "total": 40_000.0}, {"floor_id": floors[1].id, "total": 60_000.0}],
        strategy="manual",
    )
    assert out["total_allocated"] == 100_000.0
    assert out["unallocated"] == 0.0
    row = db.query(FloorAllocation).filter_by(phase_id=phase.id, floor_id=floors[0].id).one()
    assert row.total == 40_000.0
    assert row.materials == 26_000.0
    assert row.labour == 10_000.0


def test_apply_over_budget_writes_nothing(db, phase, floors):
    apply_floor_allocations(db, phase.id, [{"floor_id": floors[0].id, "total": 10_000.0}])
    with pytest.raises(ValidationError):
        apply_floor_allocations(
            db,
            phase.id,
            [{"floor_id": floors[0].id, "total": 50_000.0}, {"floor_id": floors[1].id, "total": 50_000.01}],
        )
    rows = db.query(FloorAllocation).filter_by(phase_id=phase.id).all()
    assert [(r.floor_id, r.total) for r in rows] == [(floors[0].id, 10_000.0)]


def test_apply_counts_untouched_floors(db, phase, floors):
    apply_floor_allocations(db, phase.id, [{"floor_id": floors[0].id, "total": 70_000.0}])
    with pytest.raises(ValidationError):
        apply_floor_allocations(db, phase.id, [{"floor_id": floors[1].id, "total": 30_000.5}])


def test_apply_explicit_split_over_total(db, phase, floors):
    with pytest.raises(ValidationError):
        apply_floor_allocations(
            db, phase.id, [{"floor_id": floors[0].id, "total": 100.0, "materials": 80.0, "labour": 30.0}]
        )


def test_apply_rejects_foreign_floor(db, phase, floors):
    other = Project(code="P-2", name="Other")
    db.add(other)
    db.commit()
    foreign = Floor(project_id=other.id, floor_number=1)
    db.add(foreign)
    db.commit()
    with pytest.raises(NotFound):
        apply_floor_allocations(db, phase.id, [{"floor_id": foreign.id, "total": 1.0}])


def test_apply_rejects_duplicate_floor(db, phase, floors):
    with pytest.raises(ValidationError):
        apply_floor_allocations(
            db, phase.id, [{"floor_id": floors[0].id, "total": 1.0}, {"floor_id": floors[0].id, "total": 2.0}]
        )


def test_budget_change_rescales_allocations(db, phase, floors):
    apply_floor_allocations(
        db, phase.id, [{"floor_id": floors[0].id, "total": 30_000.0}, {"floor_id": floors[1].id, "total": 20_000.0}]
    )
    update_phase_budget(db, phase.id, BudgetAllocationIn(total=200_000.0))
    rows = {r.floor_id: r for r in db.query(FloorAllocation).filter_by(phase_id=phase.id).all()}
    assert rows[floors[0].id].total == 60_000.0
    assert rows[floors[1].id].total == 40_000.0
    assert rows[floors[0].id].materials == 39_000.0


def test_floor_financials(db, project, phase, floors):
    f = floors[1]
    apply_floor_allocations(db, phase.id, [{"floor_id": f.id, "total": 10_000.0}])
    req = MaterialRequest(
        project_id=project.id, phase_id=phase.id, floor_id=f.id, name="Tiles", estimated_cost=700.0, status="requested"
    )
    db.add_all(
        [
            Material(project_id=project.id, phase_id=phase.id, floor_id=f.id, name="Brick", total_cost=2_000.0, status="approved"),
            Material(project_id=project.id, phase_id=phase.id, floor_id=floors[0].id, name="Other", total_cost=999.0, status="approved"),
            LabourEntry(project_id=project.id, phase_id=phase.id, floor_id=f.id, worker_name="A", total_cost=1_000.0, status="paid"),
            PurchaseOrder(project_id=project.id, phase_id=phase.id, floor_id=f.id, number="PO-F", total_cost=3_000.0, status="order_accepted"),
            req,
        ]
    )
    db.commit()
    r = floor_financials(db, f.id, phase_id=phase.id)
    assert r["allocated"] == 10_000.0
    assert r["actual"] == {"materials": 2_000.0, "labour": 1_000.0, "total": 3_000.0}
    assert r["committed"] == 3_000.0
    assert r["estimated"] == 700.0
    assert r["remaining"] == 4_000.0


def test_largest_remainder_hands_leftover_to_largest_fractions():
    assert _largest_remainder(10, [1, 1, 1]) == [4, 3, 3]
    assert _largest_remainder(7, [2, 1]) == [5, 2]
    assert _largest_remainder(5, [1, 0, 1]) == [3, 0, 2]


@pytest.mark.parametrize(
    "budget,weights",
    [(4.5, [1, 1, 1, 0]), (100.0, [1, 2, 3]), (99_999.99, [0.3, 0.3, 0.4]), (7.0, [5, 0, 0, 1])],
)
def test_weighted_split_never_negative(budget, weights):
    parts = _weighted_split(budget, weights)
    assert round(sum(parts), 2) == budget
    assert all(p >= 0 for p in parts)
    for p, w in zip(parts, weights):
        if w == 0:
            assert p == 0.0


def test_weighted_split_uneven_weights():
    assert _weighted_split(100.0, [1, 2, 3]) == [17.0, 33.0, 50.0]


def test_suggest_weighted_with_zero_weight_floor(db, phase, floors):
    phase.budget_total = 4.5
    db.commit()
    weights = {str(f.id): 1 for f in floors[:3]}
    weights[str(floors[3].id)] = 0
    rows = suggest_floor_allocations(db, phase.id, "weighted", weights=weights)
    amounts = [r["suggested_budget"] for r in rows]
    assert amounts[3] == 0.0
    assert all(a >= 0 for a in amounts)
    assert sum(amounts) == pytest.approx(4.5)


def test_apply_rejects_sub_cent_overshoot(db, phase, floors):
    with pytest.raises(ValidationError):
        apply_floor_allocations(db, phase.id, [{"floor_id": floors[0].id, "total": 100_000.004}])
    assert db.query(FloorAllocation).filter_by(phase_id=phase.id).count() == 0


def test_apply_rejects_one_cent_overshoot(db, phase, floors):
    with pytest.raises(ValidationError):
        apply_floor_allocations(
            db, phase.id, [{"floor_id": floors[0].id, "total": 99_999.99}, {"floor_id": floors[1].id, "total": 0.02}]
        )


def test_apply_accepts_exact_budget_in_cents(db, phase, floors):
    out = apply_floor_allocations(
        db, phase.id, [{"floor_id": floors[0].id, "total": 99_999.99}, {"floor_id": floors[1].id, "total": 0.01}]
    )
    assert out["total_allocated"] == 100_000.0
    assert out["unallocated"] == 0.0


def test_apply_rejects_sub_cent_split(db, phase, floors):
    with pytest.raises(ValidationError):
        apply_floor_allocations(db, phase.id, [{"floor_id": floors[0].id, "total": 10.0, "materials": 5.001}])


def test_apply_conflicts_with_concurrent_writer(db, phase, floors, monkeypatch):
    read_allocations = floors_module._allocations_by_floor

    def _allocations_then_bump(session, phase_id):
        rows = read_allocations(session, phase_id)
        session.execute(text("UPDATE phase SET version_id = version_id + 1 WHERE id = :id"), {"id": phase_id})
        return rows

    monkeypatch.setattr(floors_module, "_allocations_by_floor", _allocations_then_bump)
    with pytest.raises(ConcurrencyConflict):
        apply_floor_allocations(db, phase.id, [{"floor_id": floors[0].id, "total": 10_000.0}])
    monkeypatch.undo()
    assert db.query(FloorAllocation).filter_by(phase_id=phase.id).count() == 0


def test_budget_cut_rescale_stays_within_budget(db, phase, floors):
    phase.budget_total = 3.0
    db.commit()
    apply_floor_allocations(db, phase.id, [{"floor_id": f.id, "total": 1.0} for f in floors[:3]])
    update_phase_budget(db, phase.id, BudgetAllocationIn(total=2.0))
    rows = db.query(FloorAllocation).filter_by(phase_id=phase.id).all()
    assert sum(round(r.total * 100) for r in rows) == 200
    for r in rows:
        split = sum(round(getattr(r, k) * 100) for k in ("materials", "labour", "equipment", "subcontractors"))
        assert split <= round(r.total * 100)
        assert r.total >= 0


def test_budget_cut_rescale_uneven(db, phase, floors):
    apply_floor_allocations(
        db,
        phase.id,
        [
            {"floor_id": floors[0].id, "total": 33_333.33},
            {"floor_id": floors[1].id, "total": 33_333.33},
            {"floor_id": floors[2].id, "total": 33_333.34},
        ],
    )
    update_phase_budget(db, phase.id, BudgetAllocationIn(total=99_999.99))
    rows = db.query(FloorAllocation).filter_by(phase_id=phase.id).all()
    assert sum(round(r.total * 100) for r in rows) <= 9_999_999


def _floor_spend(db, project, phase, f):
    apply_floor_allocations(db, phase.id, [{"floor_id": f.id, "total": 10_000.0}])
    req, entry = (
        MaterialRequest(
            project_id=project.id, phase_id=phase.id, floor_id=f.id, name="Tiles", estimated_cost=700.0, status="requested"
        ),
        LabourEntry(project_id=project.id, phase_id=phase.id, floor_id=f.id, worker_name="A", total_cost=1_000.0, status="paid"),
    )
    db.add_all(
        [
            Material(project_id=project.id, phase_id=phase.id, floor_id=f.id, name="Brick", total_cost=2_000.0, status="approved"),
            req,
            entry,
        ]
    )
    db.commit()
    return req, entry


def test_floor_budget_check_materials(db, project, phase, floors):
    req, _ = _floor_spend(db, project, phase, floors[1])
    ok = check_floor_budget(db, floors[1].id, 3_800.0, phase_id=phase.id)
    assert ok["budget"] == 6_500.0
    assert ok["used"] == 2_700.0
    assert ok["is_valid"] is True

    short = check_floor_budget(db, floors[1].id, 4_000.0, phase_id=phase.id)
    assert short["is_valid"] is False
    assert short["shortfall"] == 200.0

    edited = check_floor_budget(db, floors[1].id, 4_000.0, phase_id=phase.id, exclude_id=req.id)
    assert edited["used"] == 2_000.0
    assert edited["is_valid"] is True


def test_floor_budget_check_labour(db, project, phase, floors):
    _, entry = _floor_spend(db, project, phase, floors[1])
    r = check_floor_budget(db, floors[1].id, 1_600.0, category="labour", phase_id=phase.id)
    assert r["budget"] == 2_500.0
    assert r["available"] == 1_500.0
    assert r["is_valid"] is False
    r = check_floor_budget(db, floors[1].id, 1_600.0, category="labour", phase_id=phase.id, exclude_id=entry.id)
    assert r["is_valid"] is True


def test_floor_budget_check_falls_back_to_floor_total(db, phase, floors):
    apply_floor_allocations(
        db, phase.id, [{"floor_id": floors[0].id, "total": 1_000.0, "materials": 800.0, "equipment": 0.0}]
    )
    r = check_floor_budget(db, floors[0].id, 900.0, category="equipment", phase_id=phase.id)
    assert r["budget"] == 1_000.0
    assert r["used"] == 0.0
    assert r["is_valid"] is True


def test_floor_budget_check_without_allocation(db, phase, floors):
    r = check_floor_budget(db, floors[2].id, 50_000.0, phase_id=phase.id)
    assert r["budget_not_set"] is True
    assert r["is_valid"] is True


def test_floor_budget_check_unknown_category(db, phase, floors):
    with pytest.raises(ValidationError):
        check_floor_budget(db, floors[0].id, 1.0, category="catering")


def test_floor_budget_check_foreign_phase(db, phase, floors):
    other = Project(code="P-3", name="Other")
    db.add(other)
    db.commit()
    foreign = Floor(project_id=other.id, floor_number=1)
    db.add(foreign)
    db.commit()
    with pytest.raises(ValidationError):
        check_floor_budget(db, foreign.id, 1.0, phase_id=phase.id)
