from sqlalchemy import ForeignKey, Float, Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from buildtrack.db.base import Base
from buildtrack.db.models._mixins import TimestampMixin, SoftDeleteMixin
from buildtrack.db.models.statuses import (
    MaterialStatus,
    ExpenseStatus,
    LabourStatus,
    EquipmentStatus,
    SubcontractorStatus,
    ProfessionalServiceStatus,
    ProfessionalServiceType,
    FeeStatus,
)


class Material(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "material"

    id: Mapped[int] = mapped_column(primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("project.id", ondelete="CASCADE"), index=True)
    phase_id: Mapped[int | None] = mapped_column(ForeignKey("phase.id", ondelete="SET NULL"), nullable=True, index=True)
    floor_id: Mapped[int | None] = mapped_column(ForeignKey("floor.id", ondelete="SET NULL"), nullable=True, index=True)
    material_request_id: Mapped[int | None] = mapped_column(
        ForeignKey("material_request.id", ondelete="SET NULL"), nullable=True
    )
    purchase_order_id: Mapped[int | None] = mapped_column(
        ForeignKey("purchase_order.id", ondelete="SET NULL"), nullable=True, index=True
    )

    name: Mapped[str] = mapped_column(String(256))
    category: Mapped[str | None] = mapped_column(String(128), nullable=True)
    unit: Mapped[str | None] = mapped_column(String(32), nullable=True)
    quantity: Mapped[float] = mapped_column(Float, default=0.0)
    unit_cost: Mapped[float] = mapped_column(Float, default=0.0)
    total_cost: Mapped[float] = mapped_column(Float, default=0.0)
    status: Mapped[str] = mapped_column(String(32), default=MaterialStatus.pending_approval.value, index=True)


class Expense(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "expense"

    id: Mapped[int] = mapped_column(primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("project.id", ondelete="CASCADE"), index=True)
    phase_id: Mapped[int | None] = mapped_column(ForeignKey("phase.id", ondelete="SET NULL"), nullable=True, index=True)

    description: Mapped[str] = mapped_column(String(512))
    category: Mapped[str | None] = mapped_column(String(128), nullable=True)
    amount: Mapped[float] = mapped_column(Float, default=0.0)
    is_indirect_cost: Mapped[bool] = mapped_column(Boolean, default=False)  # charged at project level
    status: Mapped[str] = mapped_column(String(32), default=ExpenseStatus.pending.value, index=True)


class LabourEntry(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "labour_entry"

    id: Mapped[int] = mapped_column(primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("project.id", ondelete="CASCADE"), index=True)
    phase_id: Mapped[int | None] = mapped_column(ForeignKey("phase.id", ondelete="SET NULL"), nullable=True, index=True)
    floor_id: Mapped[int | None] = mapped_column(ForeignKey("floor.id", ondelete="SET NULL"), nullable=True, index=True)

    worker_name: Mapped[str] = mapped_column(String(256))
    skill: Mapped[str | None] = mapped_column(String(64), nullable=True)
    total_hours: Mapped[float] = mapped_column(Float, default=0.0)
    hourly_rate: Mapped[float] = mapped_column(Float, default=0.0)
    total_cost: Mapped[float] = mapped_column(Float, default=0.0)
    status: Mapped[str] = mapped_column(String(32), default=LabourStatus.draft.value, index=True)


class Equipment(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "equipment"

    id: Mapped[int] = mapped_column(primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("project.id", ondelete="CASCADE"), index=True)
    phase_id: Mapped[int | None] = mapped_column(ForeignKey("phase.id", ondelete="SET NULL"), nullable=True, index=True)

    name: Mapped[str] = mapped_column(String(256))
    equipment_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    daily_rate: Mapped[float] = mapped_column(Float, default=0.0)
    days: Mapped[float] = mapped_column(Float, default=0.0)
    total_cost: Mapped[float] = mapped_column(Float, default=0.0)
    status: Mapped[str] = mapped_column(String(32), default=EquipmentStatus.assigned.value, index=True)


class Subcontractor(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "subcontractor"

    id: Mapped[int] = mapped_column(primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("project.id", ondelete="CASCADE"), index=True)
    phase_id: Mapped[int | None] = mapped_column(ForeignKey("phase.id", ondelete="SET NULL"), nullable=True, index=True)

    name: Mapped[str] = mapped_column(String(256))
    subcontractor_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    contract_value: Mapped[float] = mapped_column(Float, default=0.0)
    paid_amount: Mapped[float] = mapped_column(Float, default=0.0)
    status: Mapped[str] = mapped_column(String(32), default=SubcontractorStatus.pending.value, index=True)


class ProfessionalService(Base, TimestampMixin, SoftDeleteMixin):
    """Assignment of an architect/engineer/... to a project phase."""
    __tablename__ = "professional_service"

    id: Mapped[int] = mapped_column(primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("project.id", ondelete="CASCADE"), index=True)
    phase_id: Mapped[int | None] = mapped_column(ForeignKey("phase.id", ondelete="SET NULL"), nullable=True, index=True)

    name: Mapped[str] = mapped_column(String(256))
    service_type: Mapped[str] = mapped_column(String(32), default=ProfessionalServiceType.other.value)
    contract_value: Mapped[float] = mapped_column(Float, default=0.0)
    total_fees: Mapped[float] = mapped_column(Float, default=0.0)
    status: Mapped[str] = mapped_column(String(32), default=ProfessionalServiceStatus.active.value, index=True)


class ProfessionalFee(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "professional_fee"

    id: Mapped[int] = mapped_column(primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("project.id", ondelete="CASCADE"), index=True)
    phase_id: Mapped[int | None] = mapped_column(ForeignKey("phase.id", ondelete="SET NULL"), nullable=True, index=True)
    professional_service_id: Mapped[int | None] = mapped_column(
        ForeignKey("professional_service.id", ondelete="SET NULL"), nullable=True, index=True
    )

    description: Mapped[str | None] = mapped_column(String(512), nullable=True)
    amount: Mapped[float] = mapped_column(Float, default=0.0)
    status: Mapped[str] = mapped_column(String(32), default=FeeStatus.pending.value, index=True)
