"""init

Revision ID: 0001_init
Revises:
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
    ]


def _soft_delete():
    return sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True)


def _scope(with_floor: bool = False):
    cols = [
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("project.id", ondelete="CASCADE"), nullable=False),
        sa.Column("phase_id", sa.Integer(), sa.ForeignKey("phase.id", ondelete="SET NULL"), nullable=True),
    ]
    if with_floor:
        cols.append(sa.Column("floor_id", sa.Integer(), sa.ForeignKey("floor.id", ondelete="SET NULL"), nullable=True))
    return cols


def _scope_indexes(table: str, with_floor: bool = False):
    op.create_index(f"ix_{table}_project_id", table, ["project_id"])
    op.create_index(f"ix_{table}_phase_id", table, ["phase_id"])
    op.create_index(f"ix_{table}_status", table, ["status"])
    op.create_index(f"ix_{table}_deleted_at", table, ["deleted_at"])
    if with_floor:
        op.create_index(f"ix_{table}_floor_id", table, ["floor_id"])


def upgrade():
    op.create_table(
        "project",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=256), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _soft_delete(),
        *_timestamps(),
    )
    op.create_index("ix_project_code", "project", ["code"], unique=True)
    op.create_index("ix_project_deleted_at", "project", ["deleted_at"])

    op.create_table(
        "phase",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("project.id", ondelete="CASCADE"), nullable=False),
        sa.Column("code", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=256), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="not_started"),
        *[
            sa.Column(name, sa.Float(), nullable=False, server_default="0")
            for name in (
                "budget_total", "budget_materials", "budget_labour", "budget_equipment",
                "budget_subcontractors", "budget_contingency",
                "actual_materials", "actual_expenses", "actual_labour", "actual_equipment",
                "actual_subcontractors", "actual_professional_services", "actual_total",
                "fs_budgeted", "fs_estimated", "fs_committed", "fs_actual", "fs_remaining",
                "ps_total_fees", "ps_architect_fees", "ps_engineer_fees",
            )
        ],
        sa.Column("ps_fee_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("category_breakdown", sa.JSON(), nullable=True),
        sa.Column("financials_synced_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        _soft_delete(),
        *_timestamps(),
        sa.UniqueConstraint("project_id", "code", name="uq_phase_project_code"),
    )
    op.create_index("ix_phase_project_id", "phase", ["project_id"])
    op.create_index("ix_phase_deleted_at", "phase", ["deleted_at"])

    op.create_table(
        "floor",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("project.id", ondelete="CASCADE"), nullable=False),
        sa.Column("floor_number", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=True),
        sa.Column("area_m2", sa.Float(), nullable=True),
        _soft_delete(),
        *_timestamps(),
        sa.UniqueConstraint("project_id", "floor_number", name="uq_floor_project_number"),
    )
    op.create_index("ix_floor_project_id", "floor", ["project_id"])
    op.create_index("ix_floor_deleted_at", "floor", ["deleted_at"])

    op.create_table(
        "floor_allocation",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("phase_id", sa.Integer(), sa.ForeignKey("phase.id", ondelete="CASCADE"), nullable=False),
        sa.Column("floor_id", sa.Integer(), sa.ForeignKey("floor.id", ondelete="CASCADE"), nullable=False),
        sa.Column("total", sa.Float(), nullable=False, server_default="0"),
        sa.Column("materials", sa.Float(), nullable=False, server_default="0"),
        sa.Column("labour", sa.Float(), nullable=False, server_default="0"),
        sa.Column("equipment", sa.Float(), nullable=False, server_default="0"),
        sa.Column("subcontractors", sa.Float(), nullable=False, server_default="0"),
        sa.Column("strategy", sa.String(length=16), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.UniqueConstraint("phase_id", "floor_id", name="uq_floor_allocation_phase_floor"),
    )
    op.create_index("ix_floor_allocation_phase_id", "floor_allocation", ["phase_id"])
    op.create_index("ix_floor_allocation_floor_id", "floor_allocation", ["floor_id"])

    op.create_table(
        "material_request",
        *_scope(with_floor=True),
        sa.Column("name", sa.String(length=256), nullable=False),
        sa.Column("category", sa.String(length=128), nullable=True),
        sa.Column("unit", sa.String(length=32), nullable=True),
        sa.Column("quantity_needed", sa.Float(), nullable=False, server_default="0"),
        sa.Column("estimated_unit_cost", sa.Float(), nullable=True),
        sa.Column("estimated_cost", sa.Float(), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False),
        _soft_delete(),
        *_timestamps(),
    )
    _scope_indexes("material_request", with_floor=True)

    op.create_table(
        "purchase_order",
        *_scope(with_floor=True),
        sa.Column(
            "material_request_id",
            sa.Integer(),
            sa.ForeignKey("material_request.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("number", sa.String(length=64), nullable=False),
        sa.Column("supplier_name", sa.String(length=256), nullable=True),
        sa.Column("material_name", sa.String(length=256), nullable=True),
        sa.Column("category", sa.String(length=128), nullable=True),
        sa.Column("quantity", sa.Float(), nullable=False, server_default="0"),
        sa.Column("unit_cost", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total_cost", sa.Float(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=32), nullable=False),
        _soft_delete(),
        *_timestamps(),
    )
    _scope_indexes("purchase_order", with_floor=True)
    op.create_index("ix_purchase_order_number", "purchase_order", ["number"], unique=True)
    op.create_index("ix_purchase_order_material_request_id", "purchase_order", ["material_request_id"])

    op.create_table(
        "material",
        *_scope(with_floor=True),
        sa.Column(
            "material_request_id",
            sa.Integer(),
            sa.ForeignKey("material_request.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "purchase_order_id",
            sa.Integer(),
            sa.ForeignKey("purchase_order.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("name", sa.String(length=256), nullable=False),
        sa.Column("category", sa.String(length=128), nullable=True),
        sa.Column("unit", sa.String(length=32), nullable=True),
        sa.Column("quantity", sa.Float(), nullable=False, server_default="0"),
        sa.Column("unit_cost", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total_cost", sa.Float(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=32), nullable=False),
        _soft_delete(),
        *_timestamps(),
    )
    _scope_indexes("material", with_floor=True)
    op.create_index("ix_material_purchase_order_id", "material", ["purchase_order_id"])

    op.create_table(
        "expense",
        *_scope(),
        sa.Column("description", sa.String(length=512), nullable=False),
        sa.Column("category", sa.String(length=128), nullable=True),
        sa.Column("amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("is_indirect_cost", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("status", sa.String(length=32), nullable=False),
        _soft_delete(),
        *_timestamps(),
    )
    _scope_indexes("expense")

    op.create_table(
        "labour_entry",
        *_scope(with_floor=True),
        sa.Column("worker_name", sa.String(length=256), nullable=False),
        sa.Column("skill", sa.String(length=64), nullable=True),
        sa.Column("total_hours", sa.Float(), nullable=False, server_default="0"),
        sa.Column("hourly_rate", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total_cost", sa.Float(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=32), nullable=False),
        _soft_delete(),
        *_timestamps(),
    )
    _scope_indexes("labour_entry", with_floor=True)

    op.create_table(
        "equipment",
        *_scope(),
        sa.Column("name", sa.String(length=256), nullable=False),
        sa.Column("equipment_type", sa.String(length=64), nullable=True),
        sa.Column("daily_rate", sa.Float(), nullable=False, server_default="0"),
        sa.Column("days", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total_cost", sa.Float(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=32), nullable=False),
        _soft_delete(),
        *_timestamps(),
    )
    _scope_indexes("equipment")

    op.create_table(
        "subcontractor",
        *_scope(),
        sa.Column("name", sa.String(length=256), nullable=False),
        sa.Column("subcontractor_type", sa.String(length=64), nullable=True),
        sa.Column("contract_value", sa.Float(), nullable=False, server_default="0"),
        sa.Column("paid_amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=32), nullable=False),
        _soft_delete(),
        *_timestamps(),
    )
    _scope_indexes("subcontractor")

    op.create_table(
        "professional_service",
        *_scope(),
        sa.Column("name", sa.String(length=256), nullable=False),
        sa.Column("service_type", sa.String(length=32), nullable=False, server_default="other"),
        sa.Column("contract_value", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total_fees", sa.Float(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=32), nullable=False),
        _soft_delete(),
        *_timestamps(),
    )
    _scope_indexes("professional_service")

    op.create_table(
        "professional_fee",
        *_scope(),
        sa.Column(
            "professional_service_id",
            sa.Integer(),
            sa.ForeignKey("professional_service.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("description", sa.String(length=512), nullable=True),
        sa.Column("amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=32), nullable=False),
        _soft_delete(),
        *_timestamps(),
    )
    _scope_indexes("professional_fee")
    op.create_index("ix_professional_fee_professional_service_id", "professional_fee", ["professional_service_id"])


def downgrade():
    for table in (
        "professional_fee",
        "professional_service",
        "subcontractor",
        "equipment",
        "labour_entry",
        "expense",
        "material",
        "purchase_order",
        "material_request",
        "floor_allocation",
        "floor",
        "phase",
        "project",
    ):
        op.drop_table(table)
