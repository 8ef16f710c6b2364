# gst_invoicing/domain/models/ledger.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class LedgerEntryType(str, Enum):
    ORDER_PAYMENT = "ORDER_PAYMENT"
    PLATFORM_FEE = "PLATFORM_FEE"
    PAYOUT = "PAYOUT"
    REFUND = "REFUND"
    ADJUSTMENT = "ADJUSTMENT"


class LedgerEntryStatus(str, Enum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class LedgerEntry(BaseModel):
    """An append-only financial fact. Aggregation only ever reads these."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: Optional[str] = None
    merchant_id: str
    type: str
    amount: Decimal
    status: str = LedgerEntryStatus.SUCCESS.value
    order_id: Optional[str] = None
    order_number: Optional[str] = None
    occurred_at: datetime
