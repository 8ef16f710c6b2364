import uuid

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    text,
)

from gst_invoicing.infrastructure.db.base import Base


def _uuid_str() -> str:
    return str(uuid.uuid4())


class InvoiceSeriesSettings(Base):
    """Per-owner numbering config. Owner is a merchant id or "platform"."""

    __tablename__ = "invoice_series_settings"
    owner = Column(String(64), primary_key=True)
    prefix = Column(String(16), nullable=True)
    padding = Column(Integer, nullable=True)
    series_format = Column(String(64), nullable=True)
    # First sequence of a new series (e.g. continuing a legacy numbering)
    start_number = Column(BigInteger, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"))


class InvoiceCounter(Base):
    """Next sequence per (owner, series). Series is "", "2026" or "2025-26"."""

    __tablename__ = "invoice_counters"
    id = Column(String(36), primary_key=True, default=_uuid_str)
    owner = Column(String(64), nullable=False)
    series = Column(String(16), nullable=False, default="")
    next_number = Column(BigInteger, nullable=False, default=1)
    updated_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"))

    __table_args__ = (
        UniqueConstraint("owner", "series", name="uq_invoice_counter_owner_series"),
    )


class InvoiceNumberRecord(Base):
    """Issued invoice number. Written once, never updated or deleted."""

    __tablename__ = "invoice_number_records"
    id = Column(String(36), primary_key=True, default=_uuid_str)
    scope = Column(String(20), nullable=False)  # ORDER | PLATFORM_BILLING
    reference_id = Column(String(128), nullable=False)
    owner = Column(String(64), nullable=False)
    merchant_id = Column(String(64), nullable=False, index=True)
    series = Column(String(16), nullable=False, default="")
    sequence = Column(BigInteger, nullable=False)
    invoice_number = Column(String(64), nullable=False)
    issued_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("scope", "owner", "reference_id", name="uq_invoice_number_reference"),
        UniqueConstraint("owner", "invoice_number", name="uq_invoice_number_owner_number"),
    )


class LedgerEntryRecord(Base):
    __tablename__ = "ledger_entries"
    id = Column(String(36), primary_key=True, default=_uuid_str)
    merchant_id = Column(String(64), nullable=False)
    type = Column(String(30), nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    status = Column(String(20), nullable=False, default="SUCCESS")
    order_id = Column(String(64), nullable=True)
    order_number = Column(String(64), nullable=True)
    occurred_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_ledger_entries_merchant_type_time", "merchant_id", "type", "occurred_at"),
    )
