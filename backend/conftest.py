"""Shared fixtures: an isolated in-memory database per test, seeded through the ORM."""
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.tenant import TenantContext
from app.db.base import Base
from app.db.session import enable_sqlite_foreign_keys
from app.models import Medicine, Pharmacy, Staff


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


def seed_tenants(db):
    """Two pharmacies, one clerk each, one admin."""
    main = Pharmacy(id=1, name="Central Pharmacy")
    other = Pharmacy(id=2, name="Riverside Pharmacy")
    db.add_all([main, other])
    db.flush()
    clerk = Staff(id=1, email="clerk@central.test", full_name="Clerk", role="staff", pharmacy_id=1)
    other_clerk = Staff(id=2, email="clerk@riverside.test", full_name="Other Clerk", role="staff", pharmacy_id=2)
    admin = Staff(id=3, email="admin@pharmacy.test", full_name="Admin", role="admin", pharmacy_id=None)
    db.add_all([clerk, other_clerk, admin])
    db.commit()
    return SimpleNamespace(
        pharmacy=main,
        other_pharmacy=other,
        clerk=clerk,
        other_clerk=other_clerk,
        admin=admin,
        ctx=TenantContext(pharmacy_id=1, staff_id=1, role="staff"),
        other_ctx=TenantContext(pharmacy_id=2, staff_id=2, role="staff"),
        admin_ctx=TenantContext(pharmacy_id=None, staff_id=3, role="admin"),
    )


def add_medicine(db, pharmacy_id=1, name="Paracetamol 500mg", stock=5, buying="6.00", selling="10.00",
                 threshold=2, expiry: date | None = None, category="Analgesic") -> Medicine:
    medicine = Medicine(
        pharmacy_id=pharmacy_id,
        name=name,
        category=category,
        buying_price=Decimal(buying),
        selling_price=Decimal(selling),
        stock_quantity=stock,
        low_stock_threshold=threshold,
        expiry_date=expiry,
    )
    db.add(medicine)
    db.commit()
    db.refresh(medicine)
    return medicine


def stock_of(session_factory, medicine_id) -> int:
    """Read stock through a fresh session so nothing cached is returned."""
    s = session_factory()
    try:
        return s.get(Medicine, medicine_id).stock_quantity
    finally:
        s.close()


@pytest.fixture
def tenants(db):
    return seed_tenants(db)
