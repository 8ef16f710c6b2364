# gst_invoicing/domain/models/order.py
"""
Typed order snapshot consumed by the invoice builder.

Orders reach us from the storefront with a mix of current and legacy field
names (``postalCode`` vs ``postal_code``, ``state`` vs ``state_code``,
``hsnOrSac`` vs ``hsn``). Every accepted spelling is declared here once, so
the builder never has to null-coalesce ad hoc.

Defaulting rules:
- ``price`` is the unit price in minor units (paise) as stored on the item.
- ``gst_rate`` missing -> the configured default rate (18); an explicit 0
  means the item is untaxed.
- ``shipping_fee`` / ``discount`` missing -> 0.
- ``total_amount`` is the order's authoritative payable amount.
- ``is_cancelled`` is True when either the flag is set or ``stage`` is
  ``CANCELLED``.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class ShippingAddress(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    line1: Optional[str] = Field(default=None, validation_alias=AliasChoices("line1", "address_line1", "addressLine1"))
    line2: Optional[str] = Field(default=None, validation_alias=AliasChoices("line2", "address_line2", "addressLine2"))
    city: Optional[str] = None
    state: Optional[str] = Field(default=None, validation_alias=AliasChoices("state", "state_code", "stateCode"))
    postal_code: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("postal_code", "postalCode", "pincode"),
    )


class OrderItemInput(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    product_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("product_name", "productName", "name"))
    price: int = Field(ge=0, description="Unit price in minor units (paise)")
    quantity: int = Field(ge=0)
    gst_rate: Optional[Decimal] = Field(default=None, ge=0, le=100, validation_alias=AliasChoices("gst_rate", "gstRate"))
    hsn_or_sac: Optional[str] = Field(default=None, validation_alias=AliasChoices("hsn_or_sac", "hsnOrSac", "hsn"))


class OrderInput(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    order_number: str = Field(validation_alias=AliasChoices("order_number", "orderNumber"))
    merchant_display_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("merchant_display_name", "merchantDisplayName"),
    )
    created_at: datetime = Field(validation_alias=AliasChoices("created_at", "createdAt"))
    invoice_issued_at: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices("invoice_issued_at", "invoiceIssuedAt"),
    )

    customer_name: str = Field(validation_alias=AliasChoices("customer_name", "customerName"))
    customer_phone: Optional[str] = Field(default=None, validation_alias=AliasChoices("customer_phone", "customerPhone"))
    customer_email: Optional[str] = Field(default=None, validation_alias=AliasChoices("customer_email", "customerEmail"))
    customer_address: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("customer_address", "customerAddress"),
    )
    shipping_address: Optional[ShippingAddress] = Field(
        default=None,
        validation_alias=AliasChoices("shipping_address", "shippingAddress"),
    )

    items: list[OrderItemInput] = Field(default_factory=list)

    shipping_fee: Decimal = Field(default=Decimal("0"), ge=0, validation_alias=AliasChoices("shipping_fee", "shippingFee"))
    discount: Decimal = Field(default=Decimal("0"), ge=0)
    total_amount: Decimal = Field(ge=0, validation_alias=AliasChoices("total_amount", "totalAmount"))

    stage: Optional[str] = None
    cancelled: bool = Field(default=False, validation_alias=AliasChoices("cancelled", "is_cancelled", "isCancelled"))
    payment_status: Optional[str] = Field(default=None, validation_alias=AliasChoices("payment_status", "paymentStatus"))
    payment_method: Optional[str] = Field(default=None, validation_alias=AliasChoices("payment_method", "paymentMethod"))

    @property
    def is_cancelled(self) -> bool:
        return self.cancelled or (self.stage or "").upper() == "CANCELLED"
