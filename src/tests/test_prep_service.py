"""Tests for prep tasks, batch recipes and production."""

import logging

import pytest

from src.models import Ingredient, PrepTask
from src.services import audit_service, prep_service
from src.services.database import session_scope
from src.services.exceptions import PrepTaskNotFound, UnitConversionError, ValidationError


class TestPrepTasks:
    def test_create_caches_unit_cost(self, kitchen):
        with session_scope() as session:
            sauce = prep_service.get_prep_task(kitchen.sauce, session=session)
            # 3 kg flour = 30000 per 1000 gram batch
            assert sauce.cost_per_unit == 30
            assert [line.unit for line in sauce.recipe_lines] == ["kg"]

    def test_create_rejects_nested_prep(self, kitchen):
        with pytest.raises(ValidationError) as exc_info:
            prep_service.create_prep_task(
                {
                    "name": "Sauce Base",
                    "unit": "gram",
                    "recipe": [
                        {"ingredient_id": kitchen.sauce, "amount": 1, "unit": "gram", "source": "prep"}
                    ],
                }
            )
        assert "prep items cannot be used in a prep recipe" in str(exc_info.value)

    def test_create_without_recipe(self, test_db):
        with session_scope() as session:
            task = prep_service.create_prep_task({"name": "Diced Onion", "unit": "gram"}, session=session)
            assert task.cost_per_unit == 0
            assert task.batch_size is None

    def test_get_missing_raises(self, test_db):
        with pytest.raises(PrepTaskNotFound):
            prep_service.get_prep_task(42)

    def test_list_reports_production_need(self, kitchen):
        tasks = prep_service.list_prep_tasks(station="Sauce")

        assert len(tasks) == 1
        assert tasks[0]["name"] == "Special Sauce"
        assert tasks[0]["needs_production"] is True

    def test_snapshot(self, kitchen):
        with session_scope() as session:
            snapshot = prep_service.get_prep_snapshots(session)[kitchen.sauce]

        assert snapshot.unit == "gram"
        assert snapshot.batch_size == 1000
        assert snapshot.recipe[0].ingredient_id == kitchen.flour


class TestUpdatePrepRecipe:
    def test_recomputes_cost(self, kitchen):
        result = prep_service.update_prep_recipe(
            kitchen.sauce, [{"ingredient_id": kitchen.flour, "amount": 2, "unit": "kg"}], 500
        )

        # 20000 / 500
        assert result["cost_per_unit"] == 40
        assert result["diagnostics"] == []

        logs = audit_service.list_audit_logs(entity="PREP", entity_id=kitchen.sauce, action="UPDATE")
        assert logs[0]["before"]["cost_per_unit"] == 30
        assert logs[0]["after"]["cost_per_unit"] == 40

    def test_unconvertible_line_costs_zero_with_diagnostic(self, kitchen):
        result = prep_service.update_prep_recipe(
            kitchen.sauce, [{"ingredient_id": kitchen.flour, "amount": 2, "unit": "liter"}], 500
        )

        assert result["cost_per_unit"] == 0
        assert [d.code for d in result["diagnostics"]] == ["incompatible_unit"]

    def test_rejects_bad_batch_size(self, kitchen):
        with pytest.raises(ValidationError):
            prep_service.update_prep_recipe(
                kitchen.sauce, [{"ingredient_id": kitchen.flour, "amount": 2, "unit": "kg"}], 0
            )

    def test_rejects_nested_prep(self, kitchen):
        with pytest.raises(ValidationError):
            prep_service.update_prep_recipe(
                kitchen.sauce,
                [{"ingredient_id": kitchen.sauce, "amount": 2, "unit": "gram", "source": "prep"}],
                500,
            )


class TestRecordProduction:
    def test_production_moves_stock(self, kitchen):
        result = prep_service.record_production(kitchen.sauce, 1)

        assert result["produced_amount"] == 1000
        assert result["on_hand"] == 1500
        assert result["deductions"] == {kitchen.flour: 3000}

        with session_scope() as session:
            assert session.get(Ingredient, kitchen.flour).current_stock == 2000
            assert session.get(PrepTask, kitchen.sauce).on_hand == 1500

        logs = audit_service.list_audit_logs(action="PRODUCTION")
        assert {log["entity"] for log in logs} == {"INVENTORY", "PREP"}

    def test_production_clamps_stock_at_zero(self, kitchen, caplog):
        with caplog.at_level(logging.WARNING, logger="restaurant_pos.services"):
            prep_service.record_production(kitchen.sauce, 2)

        with session_scope() as session:
            assert session.get(Ingredient, kitchen.flour).current_stock == 0
            assert session.get(PrepTask, kitchen.sauce).on_hand == 2500
        assert "record_production: stock_clamped" in caplog.text

    def test_negative_stock_is_not_raised_to_zero(self, kitchen, caplog):
        with session_scope() as session:
            session.get(Ingredient, kitchen.flour).current_stock = -100

        with caplog.at_level(logging.WARNING, logger="restaurant_pos.services"):
            prep_service.record_production(kitchen.sauce, 1)

        with session_scope() as session:
            assert session.get(Ingredient, kitchen.flour).current_stock == -3100
            assert session.get(PrepTask, kitchen.sauce).on_hand == 1500
        assert "record_production: stock_clamped" not in caplog.text

    def test_missing_batch_size_produces_one_per_batch(self, test_db):
        with session_scope() as session:
            task = prep_service.create_prep_task({"name": "Dough Ball", "unit": "number"}, session=session)
            result = prep_service.record_production(task.id, 3, session=session)

        assert result["produced_amount"] == 3
        assert result["deductions"] == {}

    def test_unconvertible_unit_aborts(self, kitchen):
        prep_service.update_prep_recipe(
            kitchen.sauce, [{"ingredient_id": kitchen.flour, "amount": 2, "unit": "liter"}], 500
        )

        with pytest.raises(UnitConversionError):
            prep_service.record_production(kitchen.sauce, 1)

        with session_scope() as session:
            assert session.get(Ingredient, kitchen.flour).current_stock == 5000
            assert session.get(PrepTask, kitchen.sauce).on_hand == 500

    def test_rejects_non_positive_batches(self, kitchen):
        with pytest.raises(ValidationError):
            prep_service.record_production(kitchen.sauce, 0)
