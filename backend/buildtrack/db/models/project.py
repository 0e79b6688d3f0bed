from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from buildtrack.db.base import Base
from buildtrack.db.models._mixins import TimestampMixin, SoftDeleteMixin

class Project(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "project"

    id: Mapped[int] = mapped_column(primary_key=True)
    code: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(256))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    phases = relationship("Phase", back_populates="project", order_by="Phase.sequence")
    floors = relationship("Floor", back_populates="project", order_by="Floor.floor_number")
