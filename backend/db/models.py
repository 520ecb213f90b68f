"""
StitchOps Database Models

Tables:
  1. production_orders    - Production orders (OP) with planned grid and stage details
  2. subcontract_orders   - Shipments to sewing partners (OSF), split chain via parent_id
  3. payment_records      - Amounts owed to partners per service event
  4. stock_entries        - Packed goods handed to inventory, one per completed order

Grids, embedded stage details, audit events and return history are JSON
columns; the domain layer owns their shape (production.models).
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    TypeDecorator,
    types,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID

from db.session import Base


class GUID(TypeDecorator):
    """Platform-independent UUID type.

    Uses PostgreSQL UUID when available, stores as CHAR(36) on SQLite.
    """

    impl = types.String(36)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PG_UUID(as_uuid=True))
        return dialect.type_descriptor(types.String(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if dialect.name == "postgresql":
            return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
        return str(value) if isinstance(value, uuid.UUID) else value

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(str(value))


# ─── 1. Production Orders ──────────────────────────────────────────────────


class ProductionOrderRow(Base):
    __tablename__ = "production_orders"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    lot_number = Column(String(50), nullable=False)
    product_id = Column(String(100), nullable=False)
    quantity_total = Column(Integer, nullable=False)
    items = Column(JSON, nullable=False, default=list)
    status = Column(String(20), nullable=False, default="cutting")
    subcontractor = Column(String(255))
    is_internal = Column(Boolean, nullable=False, default=False)
    revision_details = Column(JSON)
    packing_details = Column(JSON)
    events = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_production_orders_status", "status"),
        Index("ix_production_orders_lot", "lot_number"),
        CheckConstraint("quantity_total >= 0", name="ck_op_quantity_nonnegative"),
        CheckConstraint(
            "status IN ('cutting', 'subcontracting', 'quality_control', 'packing', 'completed')",
            name="ck_op_status",
        ),
    )


# ─── 2. Subcontract Orders ─────────────────────────────────────────────────


class SubcontractOrderRow(Base):
    __tablename__ = "subcontract_orders"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    op_id = Column(GUID(), ForeignKey("production_orders.id"), nullable=False)
    parent_id = Column(GUID(), ForeignKey("subcontract_orders.id"))
    subcontractor_name = Column(String(255), nullable=False)
    sent_quantity = Column(Integer, nullable=False)
    sent_date = Column(DateTime, nullable=False)
    items_sent = Column(JSON, nullable=False, default=list)
    received_quantity = Column(Integer, nullable=False, default=0)
    items_received = Column(JSON, nullable=False, default=list)
    status = Column(String(20), nullable=False, default="sent")
    return_date = Column(DateTime)
    external_token = Column(String(64))
    is_internal = Column(Boolean, nullable=False, default=False)
    rate_per_piece = Column(Float, nullable=False, default=0.0)
    conferente = Column(String(255))
    return_history = Column(JSON, nullable=False, default=list)
    observations = Column(Text)

    __table_args__ = (
        Index("ix_subcontract_orders_op", "op_id"),
        Index("ix_subcontract_orders_status", "status"),
        CheckConstraint("received_quantity >= 0", name="ck_osf_received_nonnegative"),
        CheckConstraint("status IN ('sent', 'partial', 'done')", name="ck_osf_status"),
    )


# ─── 3. Payment Records ────────────────────────────────────────────────────


class PaymentRecordRow(Base):
    __tablename__ = "payment_records"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    op_id = Column(GUID(), ForeignKey("production_orders.id"), nullable=False)
    partner_name = Column(String(255), nullable=False)
    partner_type = Column(String(30), nullable=False, default="subcontractor")
    stage = Column(String(30), nullable=False)
    total_amount = Column(Float, nullable=False)
    amount_paid = Column(Float, nullable=False, default=0.0)
    quantity_delivered = Column(Integer, nullable=False)
    quantity_defect = Column(Integer, nullable=False, default=0)
    rate_per_piece = Column(Float, nullable=False)
    date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    bank_account_name = Column(String(255))

    __table_args__ = (
        Index("ix_payment_records_status_date", "status", "date"),
        CheckConstraint("amount_paid >= 0", name="ck_payment_paid_nonnegative"),
        CheckConstraint("status IN ('pending', 'partial', 'paid')", name="ck_payment_status"),
    )


# ─── 4. Stock Entries ──────────────────────────────────────────────────────


class StockEntryRow(Base):
    __tablename__ = "stock_entries"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    op_id = Column(GUID(), ForeignKey("production_orders.id"), nullable=False, unique=True)
    product_id = Column(String(100), nullable=False)
    lot_number = Column(String(50), nullable=False)
    warehouse = Column(String(100), nullable=False)
    quantity = Column(Integer, nullable=False)
    items = Column(JSON, nullable=False, default=list)
    entry_date = Column(DateTime, nullable=False, default=datetime.utcnow)
