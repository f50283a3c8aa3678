"""Pytest configuration and fixtures for service layer tests."""

from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, scoped_session

import src.models  # noqa: F401  (registers every table on Base.metadata)
from src.models.base import Base
from src.utils.config import reset_config

BUSINESS_ID = 1


@pytest.fixture(autouse=True)
def fresh_config():
    """Re-read GP_INVENTORY_* settings for every test."""
    reset_config()
    yield
    reset_config()


@pytest.fixture(scope="function")
def test_db():
    """Provide a clean test database for each test function.

    This fixture:
    1. Creates an in-memory SQLite database
    2. Creates all tables
    3. Provides the database to the test
    4. Drops all tables after the test completes
    """
    # Create in-memory SQLite database for testing
    engine = create_engine("sqlite:///:memory:", echo=False)

    # Create all tables
    Base.metadata.create_all(engine)

    # Create session factory
    session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    Session = scoped_session(session_factory)

    # Monkey-patch the global session factory for tests
    import src.services.database as db_module

    original_get_session = db_module.get_session_factory
    db_module.get_session_factory = lambda: Session

    # Provide database to test
    yield Session

    # Cleanup
    Session.remove()
    Base.metadata.drop_all(engine)
    engine.dispose()

    # Restore original session factory
    db_module.get_session_factory = original_get_session


@pytest.fixture(scope="function")
def flour(test_db):
    """Provide a Flour supply (kg, minimum 20) with no ledger entries."""
    from src.services import supply_service

    return supply_service.create_supply(
        {"name": "Flour", "unit": "kg", "minimum_stock": 20, "business_id": BUSINESS_ID}
    )


@pytest.fixture(scope="function")
def stocked_flour(flour):
    """Flour with two additions of 100 and 50 at 2.0 per unit (stock 150)."""
    from src.services import ledger_service

    ledger_service.record_addition(flour.id, Decimal("100"), Decimal("2.0"), provider_id=7)
    ledger_service.record_addition(flour.id, Decimal("50"), Decimal("2.0"), provider_id=7)
    return flour


@pytest.fixture(scope="function")
def sugar(test_db):
    """Provide a Sugar supply with 40 kg at 3.0 per unit."""
    from src.services import ledger_service, supply_service

    supply = supply_service.create_supply(
        {"name": "Sugar", "unit": "kg", "business_id": BUSINESS_ID}
    )
    ledger_service.record_addition(supply.id, Decimal("40"), Decimal("3.0"))
    return supply


@pytest.fixture(scope="function")
def bread(stocked_flour):
    """Bread component: 1.0 x Flour per yield of 1."""
    from src.services import bom_service, component_service

    component = component_service.create_component(
        {"name": "Bread", "yield_amount": 1, "business_id": BUSINESS_ID}
    )
    bom_service.set_recipe(
        component.id,
        [{"item_type": "supply", "item_id": stocked_flour.id, "quantity": Decimal("1.0")}],
    )
    return component


@pytest.fixture(scope="function")
def make_component(test_db):
    """Factory for components: make_component("Dough", yield_amount=2)."""
    from src.services import component_service

    def _make(name, yield_amount=1, **fields):
        data = {"name": name, "yield_amount": yield_amount, "business_id": BUSINESS_ID}
        data.update(fields)
        return component_service.create_component(data)

    return _make


@pytest.fixture(scope="function")
def make_supply(test_db):
    """Factory for supplies, optionally stocked: make_supply("Salt", stock=10, cost=1)."""
    from src.services import ledger_service, supply_service

    def _make(name, stock=None, cost=Decimal("0"), **fields):
        data = {"name": name, "business_id": BUSINESS_ID}
        data.update(fields)
        supply = supply_service.create_supply(data)
        if stock is not None:
            ledger_service.record_addition(supply.id, Decimal(str(stock)), Decimal(str(cost)))
        return supply

    return _make


@pytest.fixture(scope="function")
def file_db(tmp_path):
    """File-backed SQLite database for tests that write from several threads.

    Each thread gets its own session from the scoped session factory and
    its own pooled connection, as in the running application.
    """
    import src.services.database as db_module

    engine = db_module.create_database_engine(f"sqlite:///{tmp_path / 'gp_inventory.db'}")
    Base.metadata.create_all(engine)
    Session = scoped_session(sessionmaker(bind=engine, expire_on_commit=False))

    original_get_session = db_module.get_session_factory
    db_module.get_session_factory = lambda: Session

    yield Session

    Session.remove()
    engine.dispose()
    db_module.get_session_factory = original_get_session
