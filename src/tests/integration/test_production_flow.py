"""
Integration test for the purchase -> recipe -> production -> draw-down flow.

Exercises the services together the way an outer layer would: catalog
setup, ledger purchases, a two-level recipe, production runs inside one
caller-owned transaction, and the stock and expiry views afterwards.
"""

from datetime import date
from decimal import Decimal

import pytest

from src.models import StockStatus
from src.services import (
    bom_service,
    component_service,
    cost_service,
    ledger_service,
    production_service,
    supply_service,
)
from src.services.database import session_scope
from src.services.exceptions import InsufficientStock, ReferentialConflict

BUSINESS_ID = 1


@pytest.fixture
def pizzeria(test_db):
    """Flour, yeast and cheese; Dough (yield 2) and Pizza recipes."""
    category = supply_service.create_category("Pantry", BUSINESS_ID)
    supplies = {}
    for name, amount, cost in (("Flour", 10, "1.5"), ("Yeast", 1, 20), ("Cheese", 2, 10)):
        supply = supply_service.create_supply(
            {
                "name": name,
                "unit": "kg",
                "minimum_stock": 1,
                "business_id": BUSINESS_ID,
                "category_id": category.id,
            }
        )
        ledger_service.record_addition(
            supply.id, Decimal(str(amount)), Decimal(str(cost)), tag="opening stock"
        )
        supplies[name.lower()] = supply

    dough = component_service.create_component(
        {"name": "Dough", "unit": "kg", "yield_amount": 2, "business_id": BUSINESS_ID}
    )
    pizza = component_service.create_component(
        {"name": "Pizza", "yield_amount": 1, "business_id": BUSINESS_ID}
    )
    bom_service.set_recipe(
        dough.id,
        [
            {"item_type": "supply", "item_id": supplies["flour"].id, "quantity": 1},
            {"item_type": "supply", "item_id": supplies["yeast"].id, "quantity": "0.02"},
        ],
    )
    bom_service.set_recipe(
        pizza.id,
        [
            {"item_type": "component", "item_id": dough.id, "quantity": 1},
            {"item_type": "supply", "item_id": supplies["cheese"].id, "quantity": "0.2"},
        ],
    )
    return {"dough": dough, "pizza": pizza, **supplies}


def test_full_production_flow(pizzeria):
    dough, pizza = pizzeria["dough"], pizzeria["pizza"]

    assert cost_service.calculate_unit_cost(dough.id) == Decimal("0.95")
    assert cost_service.calculate_unit_cost(pizza.id) == Decimal("2.95")

    with session_scope() as session:
        production_service.produce(dough.id, 4, session=session)
        pizza_batch = production_service.produce(
            pizza.id, 3, expiration_date=date(2099, 3, 10), session=session
        )

    assert pizza_batch.cost == Decimal("2.95")
    assert ledger_service.get_current_stock(pizzeria["flour"].id) == Decimal("8")
    assert ledger_service.get_current_stock(pizzeria["yeast"].id) == Decimal("0.96")
    assert ledger_service.get_current_stock(pizzeria["cheese"].id) == Decimal("1.4")
    assert production_service.get_available_quantity(dough.id) == Decimal("1")
    assert production_service.get_available_quantity(pizza.id) == Decimal("3")

    production_service.consume(pizza_batch.id, 2, notes="Dinner service")

    stock = production_service.get_component_stock(pizza.id)
    assert stock["available"] == Decimal("1")
    assert stock["status"] is StockStatus.IN_STOCK

    expiring = production_service.get_expiring_productions(
        BUSINESS_ID, days_ahead=7, today=date(2099, 3, 5)
    )
    assert [batch.id for batch in expiring] == [pizza_batch.id]

    summaries = {row["name"]: row for row in ledger_service.get_all_supply_stocks(BUSINESS_ID)}
    assert summaries["Yeast"]["status"] is StockStatus.LOW_STOCK
    assert summaries["Flour"]["total_outgoing"] == Decimal("2")


def test_caller_owned_transaction_rolls_back_as_a_unit(pizzeria):
    dough, pizza = pizzeria["dough"], pizzeria["pizza"]

    with pytest.raises(InsufficientStock):
        with session_scope() as session:
            production_service.produce(dough.id, 2, session=session)
            production_service.produce(pizza.id, 50, session=session)

    assert production_service.get_productions_by_component(dough.id) == []
    assert ledger_service.get_current_stock(pizzeria["flour"].id) == Decimal("10")


def test_catalog_deletes_respect_usage_and_history(pizzeria):
    dough, pizza = pizzeria["dough"], pizzeria["pizza"]
    production_service.produce(dough.id, 2)

    with pytest.raises(ReferentialConflict):
        component_service.delete_component(dough.id)
    with pytest.raises(ReferentialConflict):
        supply_service.delete_supply(pizzeria["cheese"].id)

    assert component_service.delete_component(pizza.id) is True
    assert component_service.delete_component(dough.id) is False
    assert supply_service.delete_supply(pizzeria["cheese"].id) is False
    assert [s.name for s in supply_service.get_supplies(BUSINESS_ID)] == ["Flour", "Yeast"]
