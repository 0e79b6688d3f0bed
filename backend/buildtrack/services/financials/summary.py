"""Financial summary for a phase and the project roll-up.

Everything here is computed from the cost tables on each call; nothing is
written. The cached copy on the phase row is maintained by ``sync``.
"""
from __future__ import annotations

import datetime as dt
from collections import defaultdict
from dataclasses import dataclass

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from buildtrack.core.config import settings
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
from buildtrack.db.models.procurement import MaterialRequest
from buildtrack.db.models.project import Project
from buildtrack.db.models.statuses import (
    MATERIAL_APPROVED,
    EXPENSE_APPROVED,
    LABOUR_APPROVED,
    EQUIPMENT_APPROVED,
    SUBCONTRACTOR_APPROVED,
    FEE_APPROVED,
    MATERIAL_REQUEST_ESTIMATED,
    values,
)
from buildtrack.services.financials.commitments import (
    CommittedCost,
    committed_cost,
    estimated_cost,
    material_request_estimate,
    purchase_order_committed,
)
from buildtrack.services.financials.errors import NotFound, AggregationFailure
from buildtrack.services.financials.readers import (
    PhaseCosts,
    collect_phase_costs,
    direct_expense_filter,
    get_phase,
    materials_spending,
)


BUDGET_STATUS_NO_BUDGET = "no_budget"
BUDGET_STATUS_ON_BUDGET = "on_budget"
BUDGET_STATUS_AT_RISK = "at_risk"
BUDGET_STATUS_OVER_BUDGET = "over_budget"


def safe_percentage(part: float, whole: float) -> float | None:
    """``part / whole * 100`` rounded to 2 places.

    With ``whole == 0`` the result is 0 when ``part`` is 0 too and ``None``
    (unbounded) otherwise.
    """
    if not whole:
        return 0.0 if not part else None
    return round(part / whole * 100.0, 2)


def budget_status(budget_total: float, actual_total: float) -> str:
    if not budget_total:
        return BUDGET_STATUS_OVER_BUDGET if actual_total > 0 else BUDGET_STATUS_NO_BUDGET
    utilization = actual_total / budget_total * 100.0
    if utilization > 100.0:
        return BUDGET_STATUS_OVER_BUDGET
    if utilization >= settings.AT_RISK_UTILIZATION_PCT:
        return BUDGET_STATUS_AT_RISK
    return BUDGET_STATUS_ON_BUDGET


def assemble_summary(
    budget_total: float,
    actual_total: float,
    committed_total: float,
    estimated_total: float,
) -> dict:
    budget_total = round(float(budget_total or 0.0), 2)
    actual_total = round(float(actual_total or 0.0), 2)
    committed_total = round(float(committed_total or 0.0), 2)
    estimated_total = round(float(estimated_total or 0.0), 2)

    utilization = safe_percentage(actual_total, budget_total)
    variance = round(actual_total - budget_total, 2)
    if budget_total:
        variance_pct = round(variance / budget_total * 100.0, 2)
    else:
        variance_pct = 0.0 if not actual_total else None

    return {
        "budget_total": budget_total,
        "actual_total": actual_total,
        "committed_total": committed_total,
        "estimated_total": estimated_total,
        # clamped for display; overspend shows in variance
        "remaining": round(max(0.0, budget_total - actual_total - committed_total), 2),
        "variance": variance,
        "variance_percentage": variance_pct,
        "utilization_percentage": utilization,
        "utilization_unbounded": utilization is None,
        "budget_status": budget_status(budget_total, actual_total),
    }


def category_breakdown(costs: PhaseCosts) -> list[dict]:
    rows = [{"category": c.category, "total": c.total, "count": c.count} for c in costs.categories()]
    return sorted(rows, key=lambda r: (-r["total"], r["category"]))


def _grouped(db: Session, what: str, phase_id: int, key_col, amount_col, *criteria, join=None, fallback: str):
    """``(key, total, count)`` rows grouped by ``key_col``, largest total first."""
    q = db.query(key_col, func.coalesce(func.sum(amount_col), 0.0), func.count())
    if join is not None:
        q = q.select_from(join[0]).join(*join[1:])
    try:
        rows = q.filter(*criteria).group_by(key_col).all()
    except SQLAlchemyError as e:
        raise AggregationFailure(what, phase_id) from e
    out = [(key or fallback, round(float(total), 2), int(cnt)) for key, total, cnt in rows]
    return sorted(out, key=lambda r: (-r[1], r[0]))


def _category_rows(rows) -> list[dict]:
    return [{"category": key, "total": total, "count": count} for key, total, count in rows]


def _type_rows(rows, actual_total: float) -> list[dict]:
    return [
        {"type": key, "total": total, "count": count, "percentage": safe_percentage(total, actual_total)}
        for key, total, count in rows
    ]


def material_categories(db: Session, phase_id: int) -> list[dict]:
    rows = _grouped(
        db,
        "material categories",
        phase_id,
        Material.category,
        Material.total_cost,
        Material.phase_id == phase_id,
        Material.deleted_at.is_(None),
        Material.status.in_(values(MATERIAL_APPROVED)),
        fallback="uncategorized",
    )
    return _category_rows(rows)


def expense_categories(db: Session, phase_id: int) -> list[dict]:
    rows = _grouped(
        db,
        "expense categories",
        phase_id,
        Expense.category,
        Expense.amount,
        Expense.phase_id == phase_id,
        Expense.deleted_at.is_(None),
        Expense.status.in_(values(EXPENSE_APPROVED)),
        direct_expense_filter(),
        fallback="uncategorized",
    )
    return _category_rows(rows)


def equipment_types(db: Session, phase_id: int, actual_total: float = 0.0) -> list[dict]:
    rows = _grouped(
        db,
        "equipment types",
        phase_id,
        Equipment.equipment_type,
        Equipment.total_cost,
        Equipment.phase_id == phase_id,
        Equipment.deleted_at.is_(None),
        Equipment.status.in_(values(EQUIPMENT_APPROVED)),
        fallback="unknown",
    )
    return _type_rows(rows, actual_total)


def subcontractor_types(db: Session, phase_id: int, actual_total: float = 0.0) -> list[dict]:
    # paid amounts, matching the subcontractor actual spend
    rows = _grouped(
        db,
        "subcontractor types",
        phase_id,
        Subcontractor.subcontractor_type,
        Subcontractor.paid_amount,
        Subcontractor.phase_id == phase_id,
        Subcontractor.deleted_at.is_(None),
        Subcontractor.status.in_(values(SUBCONTRACTOR_APPROVED)),
        fallback="unknown",
    )
    return _type_rows(rows, actual_total)


def professional_service_types(db: Session, phase_id: int, actual_total: float = 0.0) -> list[dict]:
    rows = _grouped(
        db,
        "professional service types",
        phase_id,
        ProfessionalService.service_type,
        ProfessionalFee.amount,
        ProfessionalFee.phase_id == phase_id,
        ProfessionalFee.deleted_at.is_(None),
        ProfessionalFee.status.in_(values(FEE_APPROVED)),
        join=(ProfessionalFee, ProfessionalService, ProfessionalService.id == ProfessionalFee.professional_service_id),
        fallback="unknown",
    )
    return _type_rows(rows, actual_total)


VARIANCE_CATEGORIES = ("materials", "labour", "equipment", "subcontractors")


def category_variance(budget_allocation: dict, actual_spending: dict) -> dict[str, dict]:
    """Budgeted vs actual for each category the budget split covers."""
    out = {}
    for cat in VARIANCE_CATEGORIES:
        budgeted = round(float(budget_allocation.get(cat) or 0.0), 2)
        actual = round(float(actual_spending.get(cat) or 0.0), 2)
        variance = round(actual - budgeted, 2)
        out[cat] = {
            "budgeted": budgeted,
            "actual": actual,
            "variance": variance,
            "variance_percentage": safe_percentage(variance, budgeted),
            "budget_status": budget_status(budgeted, actual),
        }
    return out


def _month_key(ts: dt.datetime | None) -> str | None:
    if ts is None:
        return None
    return f"{ts.year:04d}-{ts.month:02d}"


TREND_CATEGORIES = (
    "materials",
    "expenses",
    "labour",
    "equipment",
    "subcontractors",
    "professional_services",
)


def monthly_trends(db: Session, phase_id: int) -> list[dict]:
    """Actual spend bucketed by the month each record was created.

    Uses the same filters as the readers, so the monthly totals add up to the
    phase's actual total.
    """
    sources = (
        (
            "materials",
            Material,
            Material.total_cost,
            [Material.status.in_(values(MATERIAL_APPROVED))],
        ),
        (
            "expenses",
            Expense,
            Expense.amount,
            [Expense.status.in_(values(EXPENSE_APPROVED)), direct_expense_filter()],
        ),
        (
            "labour",
            LabourEntry,
            LabourEntry.total_cost,
            [LabourEntry.status.in_(values(LABOUR_APPROVED))],
        ),
        (
            "equipment",
            Equipment,
            Equipment.total_cost,
            [Equipment.status.in_(values(EQUIPMENT_APPROVED))],
        ),
        (
            "subcontractors",
            Subcontractor,
            Subcontractor.paid_amount,
            [Subcontractor.status.in_(values(SUBCONTRACTOR_APPROVED))],
        ),
        (
            "professional_services",
            ProfessionalFee,
            ProfessionalFee.amount,
            [ProfessionalFee.status.in_(values(FEE_APPROVED))],
        ),
    )
    buckets: dict[str, dict[str, float]] = defaultdict(lambda: {name: 0.0 for name in TREND_CATEGORIES})
    for name, model, amount_col, criteria in sources:
        try:
            rows = (
                db.query(model.created_at, amount_col)
                .filter(model.phase_id == phase_id, model.deleted_at.is_(None), *criteria)
                .all()
            )
        except SQLAlchemyError as e:
            raise AggregationFailure(f"{name} trend", phase_id) from e
        for created_at, amount in rows:
            key = _month_key(created_at)
            if key is None:
                continue
            buckets[key][name] += float(amount or 0.0)

    out = []
    for month in sorted(buckets):
        row = {name: round(v, 2) for name, v in buckets[month].items()}
        row["total"] = round(sum(row.values()), 2)
        out.append({"month": month, **row})
    return out


def open_request_estimate(db: Session, phase_id: int | None, *criteria) -> float:
    try:
        requests = (
            db.query(MaterialRequest)
            .filter(
                MaterialRequest.deleted_at.is_(None),
                MaterialRequest.status.in_(values(MATERIAL_REQUEST_ESTIMATED)),
                *criteria,
            )
            .all()
        )
    except SQLAlchemyError as e:
        raise AggregationFailure("material request estimates", phase_id) from e
    return round(sum(material_request_estimate(r) for r in requests), 2)


def budget_check(budget: float, used: float, amount: float, **detail) -> dict:
    """Whether ``amount`` still fits into ``budget`` after ``used``.

    A budget of 0 counts as not set: the spend is allowed and only tracked.
    """
    budget = round(float(budget or 0.0), 2)
    used = round(float(used or 0.0), 2)
    required = round(float(amount or 0.0), 2)
    if not budget:
        return {
            "is_valid": True,
            "budget_not_set": True,
            "budget": 0.0,
            "used": used,
            "available": 0.0,
            "required": required,
            "shortfall": 0.0,
            "message": "No budget set, spending is tracked without a limit",
            **detail,
        }
    available = round(max(0.0, budget - used), 2)
    shortfall = round(max(0.0, required - available), 2)
    is_valid = required <= available
    if is_valid:
        message = f"Budget check passed: available {available:.2f}, required {required:.2f}"
    else:
        message = f"Insufficient budget: available {available:.2f}, required {required:.2f}, shortfall {shortfall:.2f}"
    return {
        "is_valid": is_valid,
        "budget_not_set": False,
        "budget": budget,
        "used": used,
        "available": available,
        "required": required,
        "shortfall": shortfall,
        "message": message,
        **detail,
    }


def check_phase_material_budget(
    db: Session, phase_id: int, amount: float, exclude_request_id: int | None = None
) -> dict:
    """Would a new material spend of ``amount`` fit the phase's material budget?

    Already used: approved materials, in-flight purchase orders and open
    material requests (``exclude_request_id`` leaves out the request being
    edited).
    """
    phase = get_phase(db, phase_id)
    actual = materials_spending(db, phase.id).total
    committed = purchase_order_committed(db, phase.id)
    criteria = [MaterialRequest.phase_id == phase.id]
    if exclude_request_id is not None:
        criteria.append(MaterialRequest.id != exclude_request_id)
    estimated = open_request_estimate(db, phase.id, *criteria)
    return budget_check(
        phase.budget_materials,
        actual + committed + estimated,
        amount,
        phase_id=phase.id,
        category="materials",
        actual=actual,
        committed=committed,
        estimated=estimated,
    )


@dataclass
class PhaseFinancials:
    phase: Phase
    costs: PhaseCosts
    committed: CommittedCost
    estimated: float
    summary: dict

    @property
    def category_breakdown(self) -> list[dict]:
        return category_breakdown(self.costs)


def compute_phase_financials(db: Session, phase: Phase) -> PhaseFinancials:
    """Run readers and calculators for a loaded phase and assemble the summary."""
    costs = collect_phase_costs(db, phase.id)
    committed = committed_cost(db, phase.id)
    estimated = estimated_cost(db, phase.id)
    summary = assemble_summary(phase.budget_total, costs.total, committed.total, estimated)
    return PhaseFinancials(phase=phase, costs=costs, committed=committed, estimated=estimated, summary=summary)


def get_phase_financial_summary(db: Session, phase_id: int) -> dict:
    phase = get_phase(db, phase_id)
    pf = compute_phase_financials(db, phase)
    actual_spending = pf.costs.as_actual_spending()
    actual_total = pf.summary["actual_total"]
    return {
        "phase_id": phase.id,
        "project_id": phase.project_id,
        "phase_code": phase.code,
        "phase_name": phase.name,
        "budget_allocation": phase.budget_allocation,
        "summary": pf.summary,
        "actual_spending": actual_spending,
        "committed_breakdown": pf.committed.as_dict(),
        "category_breakdown": pf.category_breakdown,
        "labour": {
            "total": pf.costs.labour.total,
            "entry_count": pf.costs.labour.count,
            "hours": pf.costs.labour.hours,
            "by_skill": pf.costs.labour.by_skill,
        },
        "professional_services": {
            "total_fees": pf.costs.professional_services.total,
            "fee_count": pf.costs.professional_services.count,
            "architect_fees": pf.costs.professional_services.architect_fees,
            "engineer_fees": pf.costs.professional_services.engineer_fees,
        },
        "material_categories": material_categories(db, phase.id),
        "expense_categories": expense_categories(db, phase.id),
        "equipment_types": equipment_types(db, phase.id, actual_total),
        "subcontractor_types": subcontractor_types(db, phase.id, actual_total),
        "professional_service_types": professional_service_types(db, phase.id, actual_total),
        "variance_by_category": category_variance(phase.budget_allocation, actual_spending),
        "trends": monthly_trends(db, phase.id),
        "synced_at": phase.financials_synced_at,
    }


def get_project(db: Session, project_id: int) -> Project:
    project = db.query(Project).filter(Project.id == project_id, Project.deleted_at.is_(None)).one_or_none()
    if project is None:
        raise NotFound("Project", project_id)
    return project


def list_project_phases(db: Session, project_id: int) -> list[Phase]:
    return (
        db.query(Phase)
        .filter(Phase.project_id == project_id, Phase.deleted_at.is_(None))
        .order_by(Phase.sequence, Phase.id)
        .all()
    )


def indirect_costs(db: Session, project_id: int) -> float:
    """Approved expenses flagged as indirect, charged to the project as a whole."""
    try:
        value = (
            db.query(func.coalesce(func.sum(Expense.amount), 0.0))
            .filter(
                Expense.project_id == project_id,
                Expense.deleted_at.is_(None),
                Expense.status.in_(values(EXPENSE_APPROVED)),
                Expense.is_indirect_cost.is_(True),
            )
            .scalar()
        )
    except SQLAlchemyError as e:
        raise AggregationFailure("indirect costs") from e
    return round(float(value or 0.0), 2)


def get_project_financial_summary(db: Session, project_id: int) -> dict:
    project = get_project(db, project_id)
    rows = []
    budget = actual = committed = estimated = 0.0
    for phase in list_project_phases(db, project.id):
        pf = compute_phase_financials(db, phase)
        s = pf.summary
        budget += s["budget_total"]
        actual += s["actual_total"]
        committed += s["committed_total"]
        estimated += s["estimated_total"]
        rows.append({"phase_id": phase.id, "code": phase.code, "name": phase.name, "sequence": phase.sequence, **s})

    return {
        "project_id": project.id,
        "project_code": project.code,
        "summary": assemble_summary(budget, actual, committed, estimated),
        "indirect_costs": indirect_costs(db, project.id),
        "phases": rows,
    }
