"""Tests for recipe graph maintenance (bom_service)."""

from decimal import Decimal

import pytest

from src.models import ComponentSupply, ItemType
from src.services import bom_service, process_service
from src.services.exceptions import (
    CircularReferenceError,
    ComponentNotFound,
    ReferentialConflict,
    ValidationError,
)

BUSINESS_ID = 1


def supply_line(supply, quantity="1", **extra):
    line = {"item_type": "supply", "item_id": supply.id, "quantity": Decimal(quantity)}
    line.update(extra)
    return line


def component_line(component, quantity="1", **extra):
    line = {"item_type": "component", "item_id": component.id, "quantity": Decimal(quantity)}
    line.update(extra)
    return line


def _store_edge(test_db, parent_id, child_id):
    """Insert a component edge without any validation."""
    session = test_db()
    session.add(
        ComponentSupply(
            component_id=parent_id,
            item_type=ItemType.COMPONENT.value,
            sub_component_id=child_id,
            quantity=Decimal("1"),
        )
    )
    session.commit()


class TestCoerceItemType:
    def test_accepts_strings_and_members(self):
        assert bom_service.coerce_item_type("supply") is ItemType.SUPPLY
        assert bom_service.coerce_item_type(ItemType.COMPONENT) is ItemType.COMPONENT

    def test_rejects_unknown(self):
        with pytest.raises(ValidationError):
            bom_service.coerce_item_type("process")


class TestSetRecipe:
    """Tests for whole-recipe replacement."""

    def test_edges_follow_sort_order(self, make_component, make_supply):
        cake = make_component("Cake")
        flour = make_supply("Flour")
        sugar = make_supply("Sugar")
        butter = make_supply("Butter")

        bom_service.set_recipe(
            cake.id,
            [
                supply_line(flour, "2", sort_order=2),
                supply_line(sugar, "1", sort_order=0),
                supply_line(butter, "0.5", sort_order=1),
            ],
        )

        edges = bom_service.get_edges(cake.id)
        assert [e.supply_id for e in edges] == [sugar.id, butter.id, flour.id]
        assert [e.item_name for e in edges] == ["Sugar", "Butter", "Flour"]
        assert edges[2].quantity == Decimal("2")

    def test_default_sort_order_is_line_position(self, make_component, make_supply):
        cake = make_component("Cake")
        flour = make_supply("Flour")
        sugar = make_supply("Sugar")

        lines = bom_service.set_recipe(cake.id, [supply_line(flour), supply_line(sugar)])

        assert [line.sort_order for line in lines] == [0, 1]

    def test_replaces_previous_recipe(self, make_component, make_supply):
        cake = make_component("Cake")
        flour = make_supply("Flour")
        sugar = make_supply("Sugar")
        bom_service.set_recipe(cake.id, [supply_line(flour, "2"), supply_line(sugar)])

        bom_service.set_recipe(cake.id, [supply_line(flour, "3")])

        edges = bom_service.get_edges(cake.id)
        assert len(edges) == 1
        assert edges[0].quantity == Decimal("3")

    def test_empty_list_clears_recipe(self, bread):
        bom_service.set_recipe(bread.id, [])
        assert bom_service.get_edges(bread.id) == []

    def test_mixed_supply_and_component_lines(self, make_component, make_supply):
        dough = make_component("Dough")
        pizza = make_component("Pizza")
        cheese = make_supply("Cheese")

        bom_service.set_recipe(
            pizza.id, [component_line(dough, "1"), supply_line(cheese, "0.2", is_optional=True)]
        )

        edges = bom_service.get_edges(pizza.id)
        assert [e.item_ref for e in edges] == [
            (ItemType.COMPONENT, dough.id),
            (ItemType.SUPPLY, cheese.id),
        ]
        assert edges[1].is_optional is True

    def test_unknown_component(self, test_db):
        with pytest.raises(ComponentNotFound):
            bom_service.set_recipe(404, [])

    @pytest.mark.parametrize(
        "bad_line",
        [
            {"item_type": "gadget", "item_id": 1, "quantity": 1},
            {"item_type": "supply", "item_id": 1, "quantity": 0},
            {"item_type": "supply", "item_id": 1, "quantity": -2},
            {"item_type": "supply", "item_id": None, "quantity": 1},
            {"item_type": "supply", "item_id": 1, "quantity": 1, "sort_order": -1},
        ],
    )
    def test_malformed_line_is_rejected(self, bread, bad_line):
        with pytest.raises(ValidationError):
            bom_service.set_recipe(bread.id, [bad_line])

        assert len(bom_service.get_edges(bread.id)) == 1

    def test_missing_item_is_rejected(self, bread):
        with pytest.raises(ValidationError) as exc_info:
            bom_service.set_recipe(
                bread.id, [{"item_type": "supply", "item_id": 999, "quantity": 1}]
            )
        assert "Line 1: Supply 999 not found" in exc_info.value.errors

    def test_duplicate_item_is_rejected(self, make_component, make_supply):
        cake = make_component("Cake")
        flour = make_supply("Flour")

        with pytest.raises(ValidationError):
            bom_service.set_recipe(cake.id, [supply_line(flour), supply_line(flour, "2")])

    def test_item_of_another_business_is_rejected(self, make_component, make_supply):
        cake = make_component("Cake")
        foreign = make_supply("Foreign Flour", business_id=BUSINESS_ID + 1)

        with pytest.raises(ValidationError) as exc_info:
            bom_service.set_recipe(cake.id, [supply_line(foreign)])
        assert "another business" in exc_info.value.errors[0]


class TestCycleDetection:
    """A recipe may never make a component reachable from itself."""

    def test_self_reference(self, make_component):
        dough = make_component("Dough")

        assert bom_service.would_create_cycle(dough.id, dough.id)
        with pytest.raises(CircularReferenceError) as exc_info:
            bom_service.set_recipe(dough.id, [component_line(dough)])

        assert exc_info.value.component_id == dough.id
        assert exc_info.value.child_id == dough.id

    def test_transitive_cycle_keeps_previous_recipe(self, make_component, make_supply):
        a = make_component("A")
        b = make_component("B")
        c = make_component("C")
        salt = make_supply("Salt")
        bom_service.set_recipe(a.id, [component_line(b)])
        bom_service.set_recipe(b.id, [component_line(c)])
        bom_service.set_recipe(c.id, [supply_line(salt)])

        assert bom_service.would_create_cycle(c.id, a.id)
        with pytest.raises(CircularReferenceError):
            bom_service.set_recipe(c.id, [supply_line(salt), component_line(a)])

        edges = bom_service.get_edges(c.id)
        assert [e.item_ref for e in edges] == [(ItemType.SUPPLY, salt.id)]

    def test_unrelated_components(self, make_component):
        a = make_component("A")
        b = make_component("B")
        c = make_component("C")
        bom_service.set_recipe(a.id, [component_line(b)])

        assert not bom_service.would_create_cycle(a.id, c.id)
        assert not bom_service.would_create_cycle(c.id, a.id)
        assert bom_service.would_create_cycle(b.id, a.id)

    def test_diamond_is_not_a_cycle(self, make_component):
        top = make_component("Top")
        left = make_component("Left")
        right = make_component("Right")
        base = make_component("Base")
        bom_service.set_recipe(left.id, [component_line(base)])
        bom_service.set_recipe(right.id, [component_line(base)])

        bom_service.set_recipe(top.id, [component_line(left), component_line(right)])

        assert len(bom_service.get_edges(top.id)) == 2

    def test_traversal_terminates_on_stored_cycle(self, test_db, make_component):
        a = make_component("A")
        b = make_component("B")
        c = make_component("C")
        _store_edge(test_db, a.id, b.id)
        _store_edge(test_db, b.id, a.id)

        assert not bom_service.would_create_cycle(c.id, a.id)
        assert bom_service.would_create_cycle(b.id, a.id)


class TestIncrementalRecipeEdits:
    """Tests for adding and removing single recipe lines."""

    def test_added_lines_follow_existing_ones(self, bread, make_supply):
        salt = make_supply("Salt")
        yeast = make_supply("Yeast")

        added = bom_service.add_recipe_lines(
            bread.id, [supply_line(salt, "0.02"), supply_line(yeast, "0.01")]
        )

        assert [e.sort_order for e in added] == [1, 2]
        edges = bom_service.get_edges(bread.id)
        assert [e.item_id for e in edges][1:] == [salt.id, yeast.id]

    def test_add_single_line(self, make_component):
        pizza = make_component("Pizza")
        dough = make_component("Dough")

        edge = bom_service.add_recipe_line(pizza.id, component_line(dough, "2"))

        assert edge.item_ref == (ItemType.COMPONENT, dough.id)
        assert edge.quantity == Decimal("2")

    def test_item_already_in_recipe_is_rejected(self, bread, stocked_flour):
        with pytest.raises(ValidationError) as exc_info:
            bom_service.add_recipe_line(bread.id, supply_line(stocked_flour, "3"))

        assert "Duplicate" in exc_info.value.errors[0]
        assert len(bom_service.get_edges(bread.id)) == 1

    def test_cycle_is_rejected_and_nothing_added(self, make_component, make_supply):
        a = make_component("A")
        b = make_component("B")
        salt = make_supply("Salt")
        bom_service.set_recipe(a.id, [component_line(b)])

        with pytest.raises(CircularReferenceError):
            bom_service.add_recipe_lines(b.id, [supply_line(salt), component_line(a)])

        assert bom_service.get_edges(b.id) == []

    def test_remove_line(self, bread, make_supply):
        salt = make_supply("Salt")
        edge = bom_service.add_recipe_line(bread.id, supply_line(salt))

        assert bom_service.remove_recipe_line(bread.id, edge.id) is True

        remaining = bom_service.get_edges(bread.id)
        assert [e.id for e in remaining] != [edge.id]
        assert len(remaining) == 1
        assert bom_service.get_usage_count(salt.id, "supply").total == 0

    def test_remove_line_of_another_component(self, bread, make_component):
        other = make_component("Other")
        edge = bom_service.get_edges(bread.id)[0]

        assert bom_service.remove_recipe_line(other.id, edge.id) is False
        assert bom_service.remove_recipe_line(bread.id, 9999) is False
        assert len(bom_service.get_edges(bread.id)) == 1

    def test_remove_from_unknown_component(self, test_db):
        with pytest.raises(ComponentNotFound):
            bom_service.remove_recipe_line(999, 1)


class TestSupplyTypeInRecipes:
    """Final-only supplies never become recipe inputs."""

    def test_final_supply_is_rejected(self, make_component, make_supply):
        cake = make_component("Cake")
        box = make_supply("Cake Box", supply_type="final")

        with pytest.raises(ValidationError) as exc_info:
            bom_service.set_recipe(cake.id, [supply_line(box)])

        assert exc_info.value.errors == [f"Line 1: Supply {box.id} is for final products only"]

    @pytest.mark.parametrize("supply_type", ["intermediate", "both"])
    def test_recipe_supplies_are_accepted(self, make_component, make_supply, supply_type):
        cake = make_component("Cake")
        butter = make_supply("Butter", supply_type=supply_type)

        edges = bom_service.set_recipe(cake.id, [supply_line(butter)])

        assert len(edges) == 1


class TestUsage:
    """Usage counts gate deletion."""

    def test_usage_counts_recipes_and_processes(self, bread, stocked_flour, make_component):
        roll = make_component("Roll")
        bom_service.set_recipe(roll.id, [supply_line(stocked_flour, "0.1")])
        process_service.create_process(
            {"name": "Baking", "business_id": BUSINESS_ID}, supply_ids=[stocked_flour.id]
        )

        usage = bom_service.get_usage_count(stocked_flour.id, "supply")

        assert usage.component_usage == 2
        assert usage.process_usage == 1
        assert usage.total == 3
        assert usage.as_dict() == {"components": 2, "processes": 1}

    def test_component_usage(self, make_component):
        dough = make_component("Dough")
        pizza = make_component("Pizza")
        bom_service.set_recipe(pizza.id, [component_line(dough)])
        process_service.create_process(
            {"name": "Topping", "business_id": BUSINESS_ID}, component_ids=[dough.id]
        )

        usage = bom_service.get_usage_count(dough.id, ItemType.COMPONENT)

        assert usage == (1, 1)

    def test_unused_item(self, flour):
        assert bom_service.get_usage_count(flour.id, "supply").total == 0
        bom_service.ensure_not_in_use(flour.id, "supply")

    def test_ensure_not_in_use_raises_with_counts(self, bread, stocked_flour):
        with pytest.raises(ReferentialConflict) as exc_info:
            bom_service.ensure_not_in_use(stocked_flour.id, ItemType.SUPPLY)

        error = exc_info.value
        assert error.item_type == "supply"
        assert error.item_id == stocked_flour.id
        assert error.usage == {"components": 1, "processes": 0}

    def test_parent_components(self, bread, stocked_flour, make_component):
        bagel = make_component("Bagel")
        bom_service.set_recipe(bagel.id, [supply_line(stocked_flour)])

        parents = bom_service.get_parent_components(stocked_flour.id, "supply")

        assert [p.name for p in parents] == ["Bagel", "Bread"]


class TestClosure:
    """Closure collection for lock planning."""

    def test_collects_nested_items(self, make_component, make_supply):
        flour = make_supply("Flour")
        salt = make_supply("Salt")
        dough = make_component("Dough")
        pizza = make_component("Pizza")
        bom_service.set_recipe(dough.id, [supply_line(flour), supply_line(salt)])
        bom_service.set_recipe(pizza.id, [component_line(dough), supply_line(salt)])

        closure = bom_service.collect_closure(pizza.id)

        assert closure.root_id == pizza.id
        assert closure.component_ids == {pizza.id, dough.id}
        assert closure.supply_ids == {flour.id, salt.id}
        assert closure.lock_keys() == sorted(
            [
                ("component", pizza.id),
                ("component", dough.id),
                ("supply", flour.id),
                ("supply", salt.id),
            ]
        )

    def test_closure_of_stored_cycle_terminates(self, test_db, make_component):
        a = make_component("A")
        b = make_component("B")
        _store_edge(test_db, a.id, b.id)
        _store_edge(test_db, b.id, a.id)

        closure = bom_service.collect_closure(a.id)

        assert closure.component_ids == {a.id, b.id}
        assert closure.supply_ids == frozenset()

    def test_unknown_root(self, test_db):
        with pytest.raises(ComponentNotFound):
            bom_service.collect_closure(12)
