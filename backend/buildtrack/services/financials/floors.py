"""Distribution of a phase budget across the project's floors."""
from __future__ import annotations

import math
from decimal import Decimal, InvalidOperation
from enum import Enum

from sqlalchemy import func, or_, and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from buildtrack.core.config import settings
from buildtrack.core.logging import logger
from buildtrack.db.models._mixins import utcnow
from buildtrack.db.models.costs import Material, LabourEntry
from buildtrack.db.models.floor import Floor, FloorAllocation
from buildtrack.db.models.phase import Phase
from buildtrack.db.models.procurement import MaterialRequest, PurchaseOrder
from buildtrack.db.models.statuses import (
    MATERIAL_APPROVED,
    LABOUR_APPROVED,
    PURCHASE_ORDER_IN_FLIGHT,
    MATERIAL_REQUEST_ESTIMATED,
    values,
)
from buildtrack.services.financials.commitments import material_request_estimate
from buildtrack.services.financials.errors import (
    NotFound,
    ValidationError,
    AggregationFailure,
    ConcurrencyConflict,
)
from buildtrack.services.financials.readers import get_phase
from buildtrack.services.financials.summary import budget_check, open_request_estimate

SPLIT_KEYS = ("materials", "labour", "equipment", "subcontractors")


class Strategy(str, Enum):
    even = "even"
    weighted = "weighted"
    manual = "manual"


class FloorType(str, Enum):
    basement = "basement"
    typical = "typical"
    penthouse = "penthouse"


def parse_strategy(name) -> Strategy:
    try:
        return Strategy(name)
    except ValueError:
        allowed = ", ".join(s.value for s in Strategy)
        raise ValidationError(f"Invalid allocation strategy '{name}', expected one of: {allowed}")


def floor_type(floor_number: int) -> FloorType:
    if floor_number < 0:
        return FloorType.basement
    if floor_number >= settings.PENTHOUSE_FROM_FLOOR:
        return FloorType.penthouse
    return FloorType.typical


def default_type_weights() -> dict[FloorType, float]:
    return {
        FloorType.basement: settings.FLOOR_WEIGHT_BASEMENT,
        FloorType.typical: settings.FLOOR_WEIGHT_TYPICAL,
        FloorType.penthouse: settings.FLOOR_WEIGHT_PENTHOUSE,
    }


def _even_split(budget: float, n: int) -> list[float]:
    # whole currency units; the remainder goes to the last floor
    if n <= 0:
        return []
    per_floor = math.floor(budget / n)
    out = [float(per_floor)] * n
    out[-1] = round(budget - per_floor * (n - 1), 2)
    return out


def _cents(value) -> int:
    return int(round(float(value or 0.0) * 100))


def _largest_remainder(units: int, weights: list[float]) -> list[int]:
    """Apportion whole ``units`` by weight.

    Each share is floored; the leftover units go one each to the shares with
    the largest fractional parts. A zero weight always gets 0.
    """
    total_weight = sum(weights)
    quotas = [units * w / total_weight for w in weights]
    out = [math.floor(q) for q in quotas]
    ranked = sorted((i for i, w in enumerate(weights) if w > 0), key=lambda i: (out[i] - quotas[i], i))
    for i in ranked[: max(0, units - sum(out))]:
        out[i] += 1
    return out


def _weighted_split(budget: float, weights: list[float]) -> list[float]:
    if not weights:
        return []
    if sum(weights) <= 0:
        raise ValidationError("Floor weights must sum to a positive number")
    whole = math.floor(budget)
    out = [float(u) for u in _largest_remainder(whole, weights)]
    fraction = round(budget - whole, 2)
    if fraction > 0:
        # sub-unit cents go to the heaviest floor
        heaviest = max(range(len(weights)), key=lambda i: (weights[i], -i))
        out[heaviest] = round(out[heaviest] + fraction, 2)
    return out


def split_categories(total: float) -> dict[str, float]:
    """Default materials/labour/equipment/subcontractors split of a floor total."""
    ratios = {
        "materials": settings.SPLIT_MATERIALS,
        "labour": settings.SPLIT_LABOUR,
        "equipment": settings.SPLIT_EQUIPMENT,
        "subcontractors": settings.SPLIT_SUBCONTRACTORS,
    }
    return {k: round(total * r, 2) for k, r in ratios.items()}


def list_project_floors(db: Session, project_id: int) -> list[Floor]:
    return (
        db.query(Floor)
        .filter(Floor.project_id == project_id, Floor.deleted_at.is_(None))
        .order_by(Floor.floor_number)
        .all()
    )


def _allocations_by_floor(db: Session, phase_id: int) -> dict[int, FloorAllocation]:
    rows = db.query(FloorAllocation).filter(FloorAllocation.phase_id == phase_id).all()
    return {a.floor_id: a for a in rows}


def suggest_floor_allocations(
    db: Session,
    phase_id: int,
    strategy,
    weights: dict | None = None,
    by_area: bool = False,
) -> list[dict]:
    """Suggested budget per floor; nothing is written.

    ``weights`` may override the type multipliers (keys ``basement``,
    ``typical``, ``penthouse``) or set a weight per floor id. With
    ``by_area`` the floor area is used as the weight.
    """
    strategy = parse_strategy(strategy)
    phase = get_phase(db, phase_id)
    floors = list_project_floors(db, phase.project_id)
    if not floors:
        return []

    budget = phase.budget_total or 0.0
    if strategy == Strategy.even:
        amounts = _even_split(budget, len(floors))
    elif strategy == Strategy.weighted:
        amounts = _weighted_split(budget, _floor_weights(floors, weights or {}, by_area))
    else:
        current = _allocations_by_floor(db, phase.id)
        amounts = [current[f.id].total if f.id in current else 0.0 for f in floors]

    return [
        {
            "floor_id": f.id,
            "floor_number": f.floor_number,
            "floor_name": f.display_name,
            "floor_type": floor_type(f.floor_number).value,
            "suggested_budget": amount,
            "split": split_categories(amount),
        }
        for f, amount in zip(floors, amounts)
    ]


def _floor_weights(floors: list[Floor], weights: dict, by_area: bool) -> list[float]:
    if by_area:
        missing = [f.display_name for f in floors if not f.area_m2]
        if missing:
            raise ValidationError(f"Floor area is missing for: {', '.join(missing)}")
        return [float(f.area_m2) for f in floors]

    type_weights = default_type_weights()
    for key, value in weights.items():
        if key in FloorType.__members__:
            type_weights[FloorType(key)] = float(value)

    out = []
    for f in floors:
        w = weights.get(f.id, weights.get(str(f.id)))
        out.append(float(w) if w is not None else type_weights[floor_type(f.floor_number)])
    if any(w < 0 for w in out):
        raise ValidationError("Floor weights must not be negative")
    return out


def _money(value, what: str) -> Decimal:
    """Exact decimal amount in whole cents; finer amounts are rejected, not rounded."""
    try:
        amount = Decimal(str(float(value)))
    except (TypeError, ValueError, InvalidOperation):
        raise ValidationError(f"{what} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{what} must be a finite number")
    if amount < 0:
        raise ValidationError(f"{what} is negative")
    if amount != amount.quantize(Decimal("0.01")):
        raise ValidationError(f"{what} must be in whole cents, got {amount}")
    return amount


def _normalize_allocation(item: dict) -> dict:
    try:
        floor_id = int(item["floor_id"])
        raw_total = item["total"]
    except (KeyError, TypeError, ValueError):
        raise ValidationError("Each allocation needs a floor_id and a numeric total")
    total = _money(raw_total, f"Allocation for floor {floor_id}")

    explicit = {k: item.get(k) for k in SPLIT_KEYS if item.get(k) is not None}
    if explicit:
        split = {k: _money(explicit.get(k, 0), f"Allocation {k} for floor {floor_id}") for k in SPLIT_KEYS}
        if sum(split.values()) > total:
            raise ValidationError(f"Allocation split for floor {floor_id} exceeds its total {total:.2f}")
        split = {k: float(v) for k, v in split.items()}
    else:
        split = split_categories(float(total))
    return {"floor_id": floor_id, "total": total, **split}


def apply_floor_allocations(db: Session, phase_id: int, allocations: list[dict], strategy=None) -> dict:
    """Validate every submitted allocation, then write them in one transaction.

    The resulting phase-wide total (submitted floors plus floors already
    allocated and not resubmitted) must not exceed the phase budget. Any
    validation failure leaves every floor unchanged.
    """
    strategy = parse_strategy(strategy).value if strategy is not None else Strategy.manual.value
    phase = get_phase(db, phase_id)
    if not allocations:
        raise ValidationError("No floor allocations submitted")

    items = [_normalize_allocation(a) for a in allocations]
    floor_ids = [i["floor_id"] for i in items]
    if len(set(floor_ids)) != len(floor_ids):
        raise ValidationError("A floor appears more than once in the allocation")

    floors = {
        f.id: f
        for f in db.query(Floor)
        .filter(Floor.id.in_(floor_ids), Floor.project_id == phase.project_id, Floor.deleted_at.is_(None))
        .all()
    }
    for fid in floor_ids:
        if fid not in floors:
            raise NotFound("Floor", fid)

    existing = _allocations_by_floor(db, phase.id)
    untouched = sum(Decimal(str(a.total or 0.0)) for fid, a in existing.items() if fid not in floors)
    requested = sum(i["total"] for i in items) + untouched
    budget = Decimal(str(phase.budget_total or 0.0))
    if requested > budget:
        raise ValidationError(
            f"Total floor allocation {requested:.2f} exceeds phase budget {budget:.2f} by {requested - budget}"
        )

    for item in items:
        row = existing.get(item["floor_id"])
        if row is None:
            row = FloorAllocation(phase_id=phase.id, floor_id=item["floor_id"])
            db.add(row)
        row.total = float(item["total"])
        for k in SPLIT_KEYS:
            setattr(row, k, item[k])
        row.strategy = strategy

    # bumps the phase version so concurrent allocators conflict
    phase.updated_at = utcnow()
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        raise ConcurrencyConflict(f"Phase {phase_id} allocations changed concurrently, reload and retry")
    except SQLAlchemyError as e:
        db.rollback()
        raise AggregationFailure("write floor allocations", phase_id) from e

    logger.info("floor_allocations_applied", phase_id=phase_id, floors=len(items), total=float(requested), strategy=strategy)
    return floor_allocation_report(db, phase_id)


def floor_allocation_report(db: Session, phase_id: int) -> dict:
    phase = get_phase(db, phase_id)
    floors = list_project_floors(db, phase.project_id)
    current = _allocations_by_floor(db, phase.id)
    rows = []
    for f in floors:
        a = current.get(f.id)
        rows.append(
            {
                "floor_id": f.id,
                "floor_number": f.floor_number,
                "floor_name": f.display_name,
                "total": a.total if a else 0.0,
                "materials": a.materials if a else 0.0,
                "labour": a.labour if a else 0.0,
                "equipment": a.equipment if a else 0.0,
                "subcontractors": a.subcontractors if a else 0.0,
                "strategy": a.strategy if a else None,
            }
        )
    allocated = round(sum(r["total"] for r in rows), 2)
    budget = round(phase.budget_total or 0.0, 2)
    return {
        "phase_id": phase.id,
        "phase_budget": budget,
        "total_allocated": allocated,
        "unallocated": round(budget - allocated, 2),
        "floors": rows,
    }


def rescale_floor_allocations(db: Session, phase: Phase, old_total: float, new_total: float) -> int:
    """Scale existing allocations by ``new_total / old_total``. The caller commits.

    Amounts are apportioned in cents, so the rescaled floors never add up to
    more than ``new_total`` and no split exceeds its floor total.
    """
    if not old_total or old_total <= 0 or new_total == old_total:
        return 0
    factor = new_total / old_total
    rows = (
        db.query(FloorAllocation)
        .filter(FloorAllocation.phase_id == phase.id)
        .order_by(FloorAllocation.floor_id)
        .all()
    )
    current = [_cents(r.total) for r in rows]
    if not any(current):
        return 0

    budget_cents = _cents(new_total)
    totals = _largest_remainder(min(round(sum(current) * factor), budget_cents), current)
    for row, cents in zip(rows, totals):
        split = [_cents(getattr(row, k)) for k in SPLIT_KEYS]
        if any(split):
            split = _largest_remainder(min(round(sum(split) * factor), cents), split)
        row.total = cents / 100
        for k, v in zip(SPLIT_KEYS, split):
            setattr(row, k, v / 100)

    if sum(totals) > budget_cents:
        raise ValidationError(
            f"Rescaled floor allocations {sum(totals) / 100:.2f} exceed phase budget {new_total:.2f}"
        )
    return len(rows)


def _scoped(q, model, phase_id: int | None):
    q = q.filter(model.deleted_at.is_(None))
    return q.filter(model.phase_id == phase_id) if phase_id is not None else q


def get_floor(db: Session, floor_id: int) -> Floor:
    floor = db.query(Floor).filter(Floor.id == floor_id, Floor.deleted_at.is_(None)).one_or_none()
    if floor is None:
        raise NotFound("Floor", floor_id)
    return floor


def floor_financials(db: Session, floor_id: int, phase_id: int | None = None) -> dict:
    floor = get_floor(db, floor_id)
    if phase_id is not None:
        phase = get_phase(db, phase_id)
        if phase.project_id != floor.project_id:
            raise ValidationError(f"Floor {floor_id} is not part of phase {phase_id}'s project")

    try:
        materials = _scoped(
            db.query(func.coalesce(func.sum(Material.total_cost), 0.0)).filter(
                Material.floor_id == floor.id, Material.status.in_(values(MATERIAL_APPROVED))
            ),
            Material,
            phase_id,
        ).scalar()
        labour = _scoped(
            db.query(func.coalesce(func.sum(LabourEntry.total_cost), 0.0)).filter(
                LabourEntry.floor_id == floor.id, LabourEntry.status.in_(values(LABOUR_APPROVED))
            ),
            LabourEntry,
            phase_id,
        ).scalar()
        committed = _scoped(
            db.query(func.coalesce(func.sum(PurchaseOrder.total_cost), 0.0))
            .select_from(PurchaseOrder)
            .outerjoin(MaterialRequest, MaterialRequest.id == PurchaseOrder.material_request_id)
            .filter(
                or_(
                    PurchaseOrder.floor_id == floor.id,
                    and_(PurchaseOrder.floor_id.is_(None), MaterialRequest.floor_id == floor.id),
                ),
                PurchaseOrder.status.in_(values(PURCHASE_ORDER_IN_FLIGHT)),
            ),
            PurchaseOrder,
            phase_id,
        ).scalar()
        requests = _scoped(
            db.query(MaterialRequest).filter(
                MaterialRequest.floor_id == floor.id,
                MaterialRequest.status.in_(values(MATERIAL_REQUEST_ESTIMATED)),
            ),
            MaterialRequest,
            phase_id,
        ).all()
        alloc_q = db.query(func.coalesce(func.sum(FloorAllocation.total), 0.0)).filter(
            FloorAllocation.floor_id == floor.id
        )
        if phase_id is not None:
            alloc_q = alloc_q.filter(FloorAllocation.phase_id == phase_id)
        allocated = alloc_q.scalar()
    except SQLAlchemyError as e:
        raise AggregationFailure(f"floor {floor_id} financials", phase_id) from e

    materials = round(float(materials or 0.0), 2)
    labour = round(float(labour or 0.0), 2)
    actual = round(materials + labour, 2)
    committed = round(float(committed or 0.0), 2)
    allocated = round(float(allocated or 0.0), 2)
    return {
        "floor_id": floor.id,
        "floor_number": floor.floor_number,
        "floor_name": floor.display_name,
        "phase_id": phase_id,
        "allocated": allocated,
        "actual": {"materials": materials, "labour": labour, "total": actual},
        "committed": committed,
        "estimated": round(sum(material_request_estimate(r) for r in requests), 2),
        "remaining": round(max(0.0, allocated - actual - committed), 2),
    }


def check_floor_budget(
    db: Session,
    floor_id: int,
    amount: float,
    category: str = "materials",
    phase_id: int | None = None,
    exclude_id: int | None = None,
) -> dict:
    """Would a new ``category`` spend of ``amount`` fit the floor's allocation?

    The category allocation falls back to the floor total when it is 0.
    Materials count approved materials plus open requests on the floor, labour
    counts approved entries; other categories are not tracked per floor.
    ``exclude_id`` leaves out the request or labour entry being edited.
    """
    if category not in SPLIT_KEYS:
        raise ValidationError(f"Unknown floor budget category '{category}', expected one of: {', '.join(SPLIT_KEYS)}")
    floor = get_floor(db, floor_id)
    if phase_id is not None:
        phase = get_phase(db, phase_id)
        if phase.project_id != floor.project_id:
            raise ValidationError(f"Floor {floor_id} is not part of phase {phase_id}'s project")

    try:
        alloc_q = db.query(
            func.coalesce(func.sum(getattr(FloorAllocation, category)), 0.0),
            func.coalesce(func.sum(FloorAllocation.total), 0.0),
        ).filter(FloorAllocation.floor_id == floor.id)
        if phase_id is not None:
            alloc_q = alloc_q.filter(FloorAllocation.phase_id == phase_id)
        category_budget, floor_total = alloc_q.one()

        used = 0.0
        if category == "materials":
            used = _scoped(
                db.query(func.coalesce(func.sum(Material.total_cost), 0.0)).filter(
                    Material.floor_id == floor.id, Material.status.in_(values(MATERIAL_APPROVED))
                ),
                Material,
                phase_id,
            ).scalar()
            criteria = [MaterialRequest.floor_id == floor.id]
            if phase_id is not None:
                criteria.append(MaterialRequest.phase_id == phase_id)
            if exclude_id is not None:
                criteria.append(MaterialRequest.id != exclude_id)
        elif category == "labour":
            q = db.query(func.coalesce(func.sum(LabourEntry.total_cost), 0.0)).filter(
                LabourEntry.floor_id == floor.id, LabourEntry.status.in_(values(LABOUR_APPROVED))
            )
            if exclude_id is not None:
                q = q.filter(LabourEntry.id != exclude_id)
            used = _scoped(q, LabourEntry, phase_id).scalar()
    except SQLAlchemyError as e:
        raise AggregationFailure(f"floor {floor_id} budget check", phase_id) from e

    used = float(used or 0.0)
    if category == "materials":
        used += open_request_estimate(db, phase_id, *criteria)
    return budget_check(
        category_budget or floor_total,
        used,
        amount,
        floor_id=floor.id,
        phase_id=phase_id,
        category=category,
    )
