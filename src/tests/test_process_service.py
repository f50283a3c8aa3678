"""Tests for processes (process_service)."""

import pytest

from src.services import bom_service, process_service, supply_service
from src.services.exceptions import ProcessNotFound, ReferentialConflict, ValidationError

BUSINESS_ID = 1


class TestProcesses:
    def test_create_with_lines(self, flour, sugar, make_component):
        glaze = make_component("Glaze")

        process = process_service.create_process(
            {"name": "Decorating", "business_id": BUSINESS_ID, "production_time_minutes": 20},
            supply_ids=[sugar.id, flour.id],
            component_ids=[glaze.id],
        )

        assert process.id is not None
        assert [line.supply_id for line in process.process_supplies] == [sugar.id, flour.id]
        assert [line.component_id for line in process.process_components] == [glaze.id]
        assert bom_service.get_usage_count(glaze.id, "component").process_usage == 1

    @pytest.mark.parametrize(
        "data", [{"business_id": BUSINESS_ID}, {"name": "Packing"}, {"name": "", "business_id": 1}]
    )
    def test_invalid_data(self, test_db, data):
        with pytest.raises(ValidationError):
            process_service.create_process(data)

    def test_lines_are_validated(self, flour, make_supply):
        foreign = make_supply("Foreign", business_id=BUSINESS_ID + 1)
        data = {"name": "Packing", "business_id": BUSINESS_ID}

        with pytest.raises(ValidationError):
            process_service.create_process(data, supply_ids=[flour.id, flour.id])
        with pytest.raises(ValidationError):
            process_service.create_process(data, supply_ids=[foreign.id])
        with pytest.raises(ValidationError):
            process_service.create_process(data, component_ids=[123])

        assert process_service.get_processes(BUSINESS_ID) == []

    def test_replace_lines(self, flour, sugar):
        process = process_service.create_process(
            {"name": "Mixing", "business_id": BUSINESS_ID}, supply_ids=[flour.id]
        )

        process_service.set_process_lines(process.id, [sugar.id], [])

        assert bom_service.get_usage_count(flour.id, "supply").process_usage == 0
        assert bom_service.get_usage_count(sugar.id, "supply").process_usage == 1

    def test_process_blocks_supply_delete_until_removed(self, flour):
        process = process_service.create_process(
            {"name": "Mixing", "business_id": BUSINESS_ID}, supply_ids=[flour.id]
        )

        with pytest.raises(ReferentialConflict):
            supply_service.delete_supply(flour.id)

        process_service.delete_process(process.id)

        assert supply_service.delete_supply(flour.id) is True

    def test_get_and_list(self, test_db):
        process_service.create_process({"name": "Proofing", "business_id": BUSINESS_ID})
        mixing = process_service.create_process({"name": "Mixing", "business_id": BUSINESS_ID})

        assert process_service.get_process(mixing.id).name == "Mixing"
        assert [p.name for p in process_service.get_processes(BUSINESS_ID)] == [
            "Mixing",
            "Proofing",
        ]

    def test_missing_process(self, test_db):
        with pytest.raises(ProcessNotFound):
            process_service.get_process(1)
        with pytest.raises(ProcessNotFound):
            process_service.delete_process(1)
        with pytest.raises(ProcessNotFound):
            process_service.set_process_lines(1, [], [])

    def test_session_is_keyword_only(self, test_db):
        with pytest.raises(TypeError):
            process_service.get_processes(BUSINESS_ID, test_db())

        assert process_service.get_processes(BUSINESS_ID, session=test_db()) == []
