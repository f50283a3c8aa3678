"""Tests for the component catalog (component_service)."""

from decimal import Decimal

import pytest

from src.services import bom_service, component_service, process_service, production_service
from src.services.exceptions import ComponentNotFound, ReferentialConflict, ValidationError

BUSINESS_ID = 1


class TestCreateComponent:
    """Test component creation."""

    def test_create_component_success(self, test_db):
        component = component_service.create_component(
            {
                "name": "Pizza Dough",
                "yield_amount": "2.5",
                "unit": "kg",
                "preparation_time_minutes": 45,
                "minimum_stock": 1,
                "business_id": BUSINESS_ID,
            }
        )

        assert component.id is not None
        assert component.yield_amount == Decimal("2.5")
        assert component.preparation_time_minutes == 45
        assert component.unit == "kg"
        assert component.active is True
        assert bom_service.get_edges(component.id) == []

    @pytest.mark.parametrize("yield_amount", [0, -1, None, "x"])
    def test_yield_must_be_positive(self, test_db, yield_amount):
        with pytest.raises(ValidationError):
            component_service.create_component(
                {"name": "Dough", "yield_amount": yield_amount, "business_id": BUSINESS_ID}
            )

    def test_name_required(self, test_db):
        with pytest.raises(ValidationError):
            component_service.create_component({"yield_amount": 1, "business_id": BUSINESS_ID})


class TestQueryComponents:
    """Test component lookups."""

    def test_get_component_not_found(self, test_db):
        with pytest.raises(ComponentNotFound):
            component_service.get_component(1)

    def test_list_scoped_and_sorted(self, make_component):
        make_component("Sauce", store_id=2)
        make_component("Dough", store_id=1)
        make_component("Elsewhere", business_id=BUSINESS_ID + 1)
        retired = make_component("Crust")
        component_service.deactivate_component(retired.id)

        assert [c.name for c in component_service.get_components(BUSINESS_ID)] == [
            "Dough",
            "Sauce",
        ]
        assert [c.name for c in component_service.get_components(BUSINESS_ID, store_id=2)] == [
            "Sauce"
        ]
        assert len(component_service.get_components(BUSINESS_ID, include_inactive=True)) == 3

    def test_reactivate(self, make_component):
        dough = make_component("Dough")
        component_service.deactivate_component(dough.id)

        reactivated = component_service.reactivate_component(dough.id)

        assert reactivated.active is True

    def test_session_is_keyword_only(self, test_db, make_component):
        dough = make_component("Dough")

        with pytest.raises(TypeError):
            component_service.get_component(dough.id, test_db())

        assert component_service.get_component(dough.id, session=test_db()).name == "Dough"


class TestUpdateComponent:
    """Test component updates."""

    def test_yield_change_affects_future_cost_only(self, bread):
        batch = production_service.produce(bread.id, 1)

        component_service.update_component(bread.id, {"yield_amount": 2})

        assert production_service.check_can_produce(bread.id, 1)["unit_cost"] == Decimal("1")
        assert production_service.get_production(batch.id).cost == Decimal("2")

    @pytest.mark.parametrize("data", [{"yield_amount": 0}, {"business_id": 5}, {"id": 3}])
    def test_rejected_updates(self, bread, data):
        with pytest.raises(ValidationError):
            component_service.update_component(bread.id, data)

        assert component_service.get_component(bread.id).yield_amount == Decimal("1")


class TestDeleteComponent:
    """Test delete, which deactivates when batches exist."""

    def test_delete_removes_component_and_recipe(self, bread, stocked_flour):
        assert component_service.delete_component(bread.id) is True

        with pytest.raises(ComponentNotFound):
            component_service.get_component(bread.id)
        assert bom_service.get_usage_count(stocked_flour.id, "supply").total == 0

    def test_delete_with_batches_deactivates(self, bread):
        production_service.produce(bread.id, 1)

        assert component_service.delete_component(bread.id) is False
        assert component_service.get_component(bread.id).active is False

    def test_delete_used_in_recipe_conflicts(self, bread, make_component):
        sandwich = make_component("Sandwich")
        bom_service.set_recipe(
            sandwich.id, [{"item_type": "component", "item_id": bread.id, "quantity": 2}]
        )

        with pytest.raises(ReferentialConflict) as exc_info:
            component_service.delete_component(bread.id)

        assert exc_info.value.usage == {"components": 1, "processes": 0}

    def test_delete_used_in_process_conflicts(self, bread):
        process_service.create_process(
            {"name": "Packing", "business_id": BUSINESS_ID}, component_ids=[bread.id]
        )

        with pytest.raises(ReferentialConflict):
            component_service.delete_component(bread.id)
