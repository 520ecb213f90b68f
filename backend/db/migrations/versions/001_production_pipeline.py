"""
Production pipeline: orders, subcontract shipments, payables, stock entries.

Revision ID: 001
Revises:
Create Date: 2026-10-19

Tables:
  - production_orders: OP header, planned grid, revision/packing details, audit events
  - subcontract_orders: OSF shipments with sent/received grids and split chain
  - payment_records: partner ledger rows generated from returns
  - stock_entries: packed goods handed to inventory
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# Revision identifiers
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ─── Production Orders ─────────────────────────────────────────────────
    op.create_table(
        "production_orders",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("lot_number", sa.String(50), nullable=False),
        sa.Column("product_id", sa.String(100), nullable=False),
        sa.Column("quantity_total", sa.Integer, nullable=False),
        sa.Column("items", postgresql.JSONB, nullable=False),  # [{color, size, quantity}]
        sa.Column("status", sa.String(20), nullable=False, server_default="cutting"),
        sa.Column("subcontractor", sa.String(255), nullable=True),
        sa.Column("is_internal", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("revision_details", postgresql.JSONB, nullable=True),
        sa.Column("packing_details", postgresql.JSONB, nullable=True),
        sa.Column("events", postgresql.JSONB, nullable=False, server_default="[]"),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime, server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("quantity_total >= 0", name="ck_op_quantity_nonnegative"),
        sa.CheckConstraint(
            "status IN ('cutting', 'subcontracting', 'quality_control', 'packing', 'completed')",
            name="ck_op_status",
        ),
    )
    op.create_index("ix_production_orders_status", "production_orders", ["status"])
    op.create_index("ix_production_orders_lot", "production_orders", ["lot_number"])

    # ─── Subcontract Orders (OSF) ──────────────────────────────────────────
    op.create_table(
        "subcontract_orders",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("op_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("parent_id", postgresql.UUID(as_uuid=True), nullable=True),  # balance shipment of a partial
        sa.Column("subcontractor_name", sa.String(255), nullable=False),
        sa.Column("sent_quantity", sa.Integer, nullable=False),
        sa.Column("sent_date", sa.DateTime, nullable=False),
        sa.Column("items_sent", postgresql.JSONB, nullable=False),
        sa.Column("received_quantity", sa.Integer, nullable=False, server_default="0"),
        sa.Column("items_received", postgresql.JSONB, nullable=False, server_default="[]"),
        sa.Column("status", sa.String(20), nullable=False, server_default="sent"),  # sent, partial, done
        sa.Column("return_date", sa.DateTime, nullable=True),
        sa.Column("external_token", sa.String(64), nullable=True),
        sa.Column("is_internal", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("rate_per_piece", sa.Float, nullable=False, server_default="0"),
        sa.Column("conferente", sa.String(255), nullable=True),
        sa.Column("return_history", postgresql.JSONB, nullable=False, server_default="[]"),
        sa.Column("observations", sa.Text, nullable=True),
        sa.ForeignKeyConstraint(["op_id"], ["production_orders.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["parent_id"], ["subcontract_orders.id"]),
        sa.CheckConstraint("received_quantity >= 0", name="ck_osf_received_nonnegative"),
        sa.CheckConstraint("status IN ('sent', 'partial', 'done')", name="ck_osf_status"),
    )
    op.create_index("ix_subcontract_orders_op", "subcontract_orders", ["op_id"])
    op.create_index("ix_subcontract_orders_status", "subcontract_orders", ["status"])

    # ─── Payment Records ───────────────────────────────────────────────────
    op.create_table(
        "payment_records",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("op_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("partner_name", sa.String(255), nullable=False),
        sa.Column("partner_type", sa.String(30), nullable=False, server_default="subcontractor"),
        sa.Column("stage", sa.String(30), nullable=False),  # 'sewing'
        sa.Column("total_amount", sa.Float, nullable=False),
        sa.Column("amount_paid", sa.Float, nullable=False, server_default="0"),
        sa.Column("quantity_delivered", sa.Integer, nullable=False),
        sa.Column("quantity_defect", sa.Integer, nullable=False, server_default="0"),
        sa.Column("rate_per_piece", sa.Float, nullable=False),
        sa.Column("date", sa.Date, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("bank_account_name", sa.String(255), nullable=True),
        sa.ForeignKeyConstraint(["op_id"], ["production_orders.id"], ondelete="CASCADE"),
        sa.CheckConstraint("amount_paid >= 0", name="ck_payment_paid_nonnegative"),
        sa.CheckConstraint("status IN ('pending', 'partial', 'paid')", name="ck_payment_status"),
    )
    op.create_index("ix_payment_records_status_date", "payment_records", ["status", "date"])

    # ─── Stock Entries ─────────────────────────────────────────────────────
    op.create_table(
        "stock_entries",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("op_id", postgresql.UUID(as_uuid=True), nullable=False, unique=True),
        sa.Column("product_id", sa.String(100), nullable=False),
        sa.Column("lot_number", sa.String(50), nullable=False),
        sa.Column("warehouse", sa.String(100), nullable=False),
        sa.Column("quantity", sa.Integer, nullable=False),
        sa.Column("items", postgresql.JSONB, nullable=False),
        sa.Column("entry_date", sa.DateTime, server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["op_id"], ["production_orders.id"], ondelete="CASCADE"),
    )


def downgrade() -> None:
    op.drop_table("stock_entries")
    op.drop_index("ix_payment_records_status_date", table_name="payment_records")
    op.drop_table("payment_records")
    op.drop_index("ix_subcontract_orders_status", table_name="subcontract_orders")
    op.drop_index("ix_subcontract_orders_op", table_name="subcontract_orders")
    op.drop_table("subcontract_orders")
    op.drop_index("ix_production_orders_lot", table_name="production_orders")
    op.drop_index("ix_production_orders_status", table_name="production_orders")
    op.drop_table("production_orders")
