from sqlalchemy import ForeignKey, Float, String
from sqlalchemy.orm import Mapped, mapped_column

from buildtrack.db.base import Base
from buildtrack.db.models._mixins import TimestampMixin, SoftDeleteMixin
from buildtrack.db.models.statuses import MaterialRequestStatus, PurchaseOrderStatus


class MaterialRequest(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "material_request"

    id: Mapped[int] = mapped_column(primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("project.id", ondelete="CASCADE"), index=True)
    phase_id: Mapped[int | None] = mapped_column(ForeignKey("phase.id", ondelete="SET NULL"), nullable=True, index=True)
    floor_id: Mapped[int | None] = mapped_column(ForeignKey("floor.id", ondelete="SET NULL"), nullable=True, index=True)

    name: Mapped[str] = mapped_column(String(256))
    category: Mapped[str | None] = mapped_column(String(128), nullable=True)
    unit: Mapped[str | None] = mapped_column(String(32), nullable=True)
    quantity_needed: Mapped[float] = mapped_column(Float, default=0.0)
    estimated_unit_cost: Mapped[float | None] = mapped_column(Float, nullable=True)
    estimated_cost: Mapped[float | None] = mapped_column(Float, nullable=True)
    status: Mapped[str] = mapped_column(String(32), default=MaterialRequestStatus.requested.value, index=True)


class PurchaseOrder(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "purchase_order"

    id: Mapped[int] = mapped_column(primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("project.id", ondelete="CASCADE"), index=True)
    phase_id: Mapped[int | None] = mapped_column(ForeignKey("phase.id", ondelete="SET NULL"), nullable=True, index=True)
    floor_id: Mapped[int | None] = mapped_column(ForeignKey("floor.id", ondelete="SET NULL"), nullable=True, index=True)
    material_request_id: Mapped[int | None] = mapped_column(
        ForeignKey("material_request.id", ondelete="SET NULL"), nullable=True, index=True
    )

    number: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    supplier_name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    material_name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    category: Mapped[str | None] = mapped_column(String(128), nullable=True)
    quantity: Mapped[float] = mapped_column(Float, default=0.0)
    unit_cost: Mapped[float] = mapped_column(Float, default=0.0)
    total_cost: Mapped[float] = mapped_column(Float, default=0.0)
    status: Mapped[str] = mapped_column(String(32), default=PurchaseOrderStatus.order_sent.value, index=True)
