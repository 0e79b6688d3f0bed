import datetime as dt
from sqlalchemy import ForeignKey, Float, Integer, String, DateTime, JSON, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from buildtrack.db.base import Base
from buildtrack.db.models._mixins import TimestampMixin, SoftDeleteMixin
from buildtrack.db.models.statuses import PhaseStatus


class Phase(Base, TimestampMixin, SoftDeleteMixin):
    """Project subdivision with its own budget.

    ``actual_*``, ``fs_*`` and ``ps_*`` columns are a cached snapshot written by
    the phase sync. They can lag behind the cost tables; read the assembled
    summary when exact numbers are needed.
    """
    __tablename__ = "phase"
    __table_args__ = (UniqueConstraint("project_id", "code", name="uq_phase_project_code"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("project.id", ondelete="CASCADE"), index=True)
    code: Mapped[str] = mapped_column(String(32))
    name: Mapped[str] = mapped_column(String(256))
    sequence: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(String(32), default=PhaseStatus.not_started.value)

    # planned
    budget_total: Mapped[float] = mapped_column(Float, default=0.0)
    budget_materials: Mapped[float] = mapped_column(Float, default=0.0)
    budget_labour: Mapped[float] = mapped_column(Float, default=0.0)
    budget_equipment: Mapped[float] = mapped_column(Float, default=0.0)
    budget_subcontractors: Mapped[float] = mapped_column(Float, default=0.0)
    budget_contingency: Mapped[float] = mapped_column(Float, default=0.0)

    # cached actual spending
    actual_materials: Mapped[float] = mapped_column(Float, default=0.0)
    actual_expenses: Mapped[float] = mapped_column(Float, default=0.0)
    actual_labour: Mapped[float] = mapped_column(Float, default=0.0)
    actual_equipment: Mapped[float] = mapped_column(Float, default=0.0)
    actual_subcontractors: Mapped[float] = mapped_column(Float, default=0.0)
    actual_professional_services: Mapped[float] = mapped_column(Float, default=0.0)
    actual_total: Mapped[float] = mapped_column(Float, default=0.0)

    # cached financial states
    fs_budgeted: Mapped[float] = mapped_column(Float, default=0.0)
    fs_estimated: Mapped[float] = mapped_column(Float, default=0.0)
    fs_committed: Mapped[float] = mapped_column(Float, default=0.0)
    fs_actual: Mapped[float] = mapped_column(Float, default=0.0)
    fs_remaining: Mapped[float] = mapped_column(Float, default=0.0)

    # cached professional services breakdown
    ps_total_fees: Mapped[float] = mapped_column(Float, default=0.0)
    ps_fee_count: Mapped[int] = mapped_column(Integer, default=0)
    ps_architect_fees: Mapped[float] = mapped_column(Float, default=0.0)
    ps_engineer_fees: Mapped[float] = mapped_column(Float, default=0.0)

    category_breakdown: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    financials_synced_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    version_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    project = relationship("Project", back_populates="phases")

    @property
    def budget_allocation(self) -> dict:
        return {
            "total": self.budget_total or 0.0,
            "materials": self.budget_materials or 0.0,
            "labour": self.budget_labour or 0.0,
            "equipment": self.budget_equipment or 0.0,
            "subcontractors": self.budget_subcontractors or 0.0,
            "contingency": self.budget_contingency or 0.0,
        }

    @property
    def actual_spending(self) -> dict:
        return {
            "materials": self.actual_materials or 0.0,
            "expenses": self.actual_expenses or 0.0,
            "labour": self.actual_labour or 0.0,
            "equipment": self.actual_equipment or 0.0,
            "subcontractors": self.actual_subcontractors or 0.0,
            "professional_services": self.actual_professional_services or 0.0,
            "total": self.actual_total or 0.0,
        }

    @property
    def financial_states(self) -> dict:
        return {
            "budgeted": self.fs_budgeted or 0.0,
            "estimated": self.fs_estimated or 0.0,
            "committed": self.fs_committed or 0.0,
            "actual": self.fs_actual or 0.0,
            "remaining": self.fs_remaining or 0.0,
        }

    @property
    def professional_services(self) -> dict:
        return {
            "total_fees": self.ps_total_fees or 0.0,
            "fee_count": self.ps_fee_count or 0,
            "architect_fees": self.ps_architect_fees or 0.0,
            "engineer_fees": self.ps_engineer_fees or 0.0,
        }
