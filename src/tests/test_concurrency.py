"""
Tests for concurrent writers on a file-backed database.

Each test starts two threads on a barrier and widens the window between
the read-check and the write with a short sleep, so unserialized writers
would interleave.
"""

import threading
import time
from decimal import Decimal

import pytest

from src.models import ComponentProduction, ComponentSupply, ItemType
from src.services import (
    bom_service,
    component_service,
    ledger_service,
    production_service,
    supply_service,
)

BUSINESS_ID = 1
PAUSE_SECONDS = 0.2


def run_together(*calls):
    """Run each call in its own thread; returns outcome names in call order."""
    barrier = threading.Barrier(len(calls))
    outcomes = [None] * len(calls)

    def worker(index, call):
        barrier.wait()
        try:
            call()
            outcomes[index] = "ok"
        except Exception as e:
            outcomes[index] = type(e).__name__

    threads = [threading.Thread(target=worker, args=(i, c)) for i, c in enumerate(calls)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return outcomes


def slowed(original):
    def _slow(*args, **kwargs):
        result = original(*args, **kwargs)
        time.sleep(PAUSE_SECONDS)
        return result

    return _slow


def _component(name):
    return component_service.create_component(
        {"name": name, "yield_amount": 1, "business_id": BUSINESS_ID}
    )


def _supply(name, stock):
    supply = supply_service.create_supply({"name": name, "business_id": BUSINESS_ID})
    ledger_service.record_addition(supply.id, Decimal(str(stock)), Decimal("1"))
    return supply


def _component_line(component):
    return {"item_type": "component", "item_id": component.id, "quantity": Decimal("1")}


class TestConcurrentRecipeEdits:
    """Recipe edits that would close a cycle between them."""

    def test_opposing_edits_cannot_both_commit(self, file_db, monkeypatch):
        a = _component("A")
        b = _component("B")
        monkeypatch.setattr(bom_service, "_reaches", slowed(bom_service._reaches))

        outcomes = run_together(
            lambda: bom_service.set_recipe(a.id, [_component_line(b)]),
            lambda: bom_service.set_recipe(b.id, [_component_line(a)]),
        )

        assert sorted(outcomes) == ["CircularReferenceError", "ok"]
        session = file_db()
        edges = (
            session.query(ComponentSupply)
            .filter(ComponentSupply.item_type == ItemType.COMPONENT.value)
            .all()
        )
        assert len(edges) == 1

    def test_opposing_line_additions_cannot_both_commit(self, file_db, monkeypatch):
        a = _component("A")
        b = _component("B")
        monkeypatch.setattr(bom_service, "_reaches", slowed(bom_service._reaches))

        outcomes = run_together(
            lambda: bom_service.add_recipe_line(a.id, _component_line(b)),
            lambda: bom_service.add_recipe_line(b.id, _component_line(a)),
        )

        assert sorted(outcomes) == ["CircularReferenceError", "ok"]
        assert len(bom_service.get_edges(a.id)) + len(bom_service.get_edges(b.id)) == 1


class TestConcurrentProduction:
    """Production runs contending for one supply's stock."""

    @pytest.fixture
    def dough(self, file_db, monkeypatch):
        """Dough = 1 salt; the stock read before each write is slowed."""
        monkeypatch.setattr(
            ledger_service, "_stock_in_session", slowed(ledger_service._stock_in_session)
        )

        def _make(salt_stock):
            salt = _supply("Salt", salt_stock)
            dough = _component("Dough")
            bom_service.set_recipe(
                dough.id,
                [{"item_type": "supply", "item_id": salt.id, "quantity": Decimal("1")}],
            )
            return salt, dough

        return _make

    def test_stock_never_goes_negative(self, file_db, dough):
        salt, component = dough(1)

        outcomes = run_together(
            lambda: production_service.produce(component.id, 1),
            lambda: production_service.produce(component.id, 1),
        )

        assert sorted(outcomes) == ["InsufficientStock", "ok"]
        assert ledger_service.get_current_stock(salt.id) == Decimal("0")
        session = file_db()
        assert session.query(ComponentProduction).count() == 1

    def test_both_runs_fit(self, file_db, dough):
        salt, component = dough(2)

        outcomes = run_together(
            lambda: production_service.produce(component.id, 1),
            lambda: production_service.produce(component.id, 1),
        )

        assert outcomes == ["ok", "ok"]
        assert ledger_service.get_current_stock(salt.id) == Decimal("0")
        batches = production_service.get_productions_by_component(component.id)
        assert len({b.batch_number for b in batches}) == 2


class TestConcurrentLedgerWrites:
    """Direct consumptions against one supply."""

    def test_second_consumption_sees_the_first(self, file_db, monkeypatch):
        salt = _supply("Salt", 1)
        monkeypatch.setattr(
            ledger_service, "_stock_in_session", slowed(ledger_service._stock_in_session)
        )

        outcomes = run_together(
            lambda: ledger_service.record_consumption(salt.id, 1),
            lambda: ledger_service.record_consumption(salt.id, 1),
        )

        assert sorted(outcomes) == ["InsufficientStock", "ok"]
        assert ledger_service.get_current_stock(salt.id) == Decimal("0")
