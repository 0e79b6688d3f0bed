from sqlalchemy import ForeignKey, Float, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from buildtrack.db.base import Base
from buildtrack.db.models._mixins import TimestampMixin, SoftDeleteMixin


class Floor(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "floor"
    __table_args__ = (UniqueConstraint("project_id", "floor_number", name="uq_floor_project_number"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("project.id", ondelete="CASCADE"), index=True)
    floor_number: Mapped[int] = mapped_column(Integer)  # negative = basement
    name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    area_m2: Mapped[float | None] = mapped_column(Float, nullable=True)

    project = relationship("Project", back_populates="floors")
    allocations = relationship("FloorAllocation", back_populates="floor")

    @property
    def display_name(self) -> str:
        return self.name or f"Floor {self.floor_number}"


class FloorAllocation(Base, TimestampMixin):
    """Share of one phase's budget assigned to one floor."""
    __tablename__ = "floor_allocation"
    __table_args__ = (UniqueConstraint("phase_id", "floor_id", name="uq_floor_allocation_phase_floor"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    phase_id: Mapped[int] = mapped_column(ForeignKey("phase.id", ondelete="CASCADE"), index=True)
    floor_id: Mapped[int] = mapped_column(ForeignKey("floor.id", ondelete="CASCADE"), index=True)

    total: Mapped[float] = mapped_column(Float, default=0.0)
    materials: Mapped[float] = mapped_column(Float, default=0.0)
    labour: Mapped[float] = mapped_column(Float, default=0.0)
    equipment: Mapped[float] = mapped_column(Float, default=0.0)
    subcontractors: Mapped[float] = mapped_column(Float, default=0.0)
    strategy: Mapped[str | None] = mapped_column(String(16), nullable=True)

    version_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    floor = relationship("Floor", back_populates="allocations")
