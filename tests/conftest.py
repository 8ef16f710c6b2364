"""Shared test fixtures for the invoicing test suite."""

import asyncio
from datetime import datetime, timezone

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from gst_invoicing.domain.models.invoice import TaxProfile
from gst_invoicing.domain.models.order import OrderInput
from gst_invoicing.infrastructure.db import models  # noqa: F401
from gst_invoicing.infrastructure.db.base import Base


@pytest.fixture(scope="session")
def event_loop():
    """Use a single event loop for the entire test session."""
    loop = asyncio.new_event_loop()
    yield loop
    loop.close()


@pytest.fixture
def session_factory(event_loop, tmp_path):
    """Fresh SQLite database file per test, schema created from the models."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'invoicing.db'}",
        poolclass=NullPool,
    )

    async def _create():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    event_loop.run_until_complete(_create())
    yield async_sessionmaker(bind=engine, expire_on_commit=False)
    event_loop.run_until_complete(engine.dispose())


@pytest.fixture
def seller_profile() -> TaxProfile:
    """GST-registered merchant in Maharashtra."""
    return TaxProfile(
        is_gst_registered=True,
        gstin="27AAPFU0939F1ZV",
        legal_name="Kala Handlooms LLP",
        trade_name="Kala Handlooms",
        address_line1="12 Linking Road",
        address_line2="Bandra West",
        city="Mumbai",
        state="Maharashtra",
        state_code="27",
        pincode="400050",
        email="accounts@kala.example",
        phone="+91 98200 00000",
    )


@pytest.fixture
def platform_profile() -> TaxProfile:
    """The platform itself, registered in Telangana."""
    return TaxProfile(
        is_gst_registered=True,
        gstin="36AABCU9603R1ZM",
        legal_name="Storekit Commerce Pvt Ltd",
        address_line1="Plot 7, HITEC City",
        city="Hyderabad",
        state="Telangana",
        pincode="500081",
    )


@pytest.fixture
def order_payload() -> dict:
    """Storefront order as it arrives, with legacy camelCase keys."""
    return {
        "id": "ord_7f3c2a91",
        "orderNumber": "1042",
        "merchantDisplayName": "Kala Handlooms",
        "createdAt": "2026-01-15T08:30:00+00:00",
        "customerName": "Asha Rao",
        "customerPhone": "9876543210",
        "customerEmail": "asha@example.com",
        "customerAddress": "4 MG Road, Pune, Maharashtra, 411001",
        "shippingAddress": {
            "line1": "4 MG Road",
            "city": "Pune",
            "state": "Maharashtra",
            "postalCode": "411001",
        },
        "items": [
            {"id": "item_01", "productName": "Cotton Saree", "price": 100000, "quantity": 1, "gstRate": 18, "hsnOrSac": "5208"},
        ],
        "shippingFee": "0",
        "discount": "0",
        "totalAmount": "1180.00",
        "stage": "CONFIRMED",
        "paymentStatus": "PAID",
    }


@pytest.fixture
def order(order_payload) -> OrderInput:
    return OrderInput.model_validate(order_payload)


@pytest.fixture
def fixed_clock():
    """Allocator clock pinned to 15 Jan 2026, 12:00 IST."""
    return lambda: datetime(2026, 1, 15, 6, 30, tzinfo=timezone.utc)
