"""
Tests for recipe, batch and prep unit cost calculation.

Soft failures (missing references, unconvertible units, bad amounts,
nested prep) contribute zero and are reported as diagnostics; they never
raise.
"""

import logging
from dataclasses import replace

import pytest

from src.services.dto import RecipeLine
from src.services.recipe_cost_service import (
    calculate_batch_cost,
    calculate_margin,
    calculate_prep_unit_cost,
    calculate_recipe_cost,
)


class TestCalculateRecipeCost:
    """Tests for menu item recipe cost."""

    def test_burger_cost(self, burger, ingredients, prep_tasks):
        # beef 150 * 400 + bun 1 * 5000 + sauce 20 * 30
        result = calculate_recipe_cost(burger.recipe, ingredients, prep_tasks)
        assert result.amount == 65600
        assert result.diagnostics == []

    def test_empty_recipe_costs_zero(self, ingredients, prep_tasks):
        assert calculate_recipe_cost([], ingredients, prep_tasks).amount == 0
        assert calculate_recipe_cost(None, ingredients, prep_tasks).amount == 0

    def test_recipe_unit_is_converted(self, flour, ingredients, prep_tasks):
        recipe = [RecipeLine(ingredient_id=flour.id, amount=0.25, unit="kg")]
        assert calculate_recipe_cost(recipe, ingredients, prep_tasks).amount == 2500

    def test_custom_conversion_applies(self, beef, ingredients, prep_tasks):
        recipe = [RecipeLine(ingredient_id=beef.id, amount=0.5, unit="carton")]
        # 6 kg = 6000 gram at 400
        assert calculate_recipe_cost(recipe, ingredients, prep_tasks).amount == 2400000

    def test_missing_ingredient_contributes_zero(self, flour, ingredients, prep_tasks):
        recipe = [
            RecipeLine(ingredient_id=flour.id, amount=100, unit="gram"),
            RecipeLine(ingredient_id=999, amount=100, unit="gram"),
        ]
        result = calculate_recipe_cost(recipe, ingredients, prep_tasks)

        assert result.amount == 1000
        assert [d.code for d in result.diagnostics] == ["missing_reference"]
        assert result.diagnostics[0].entity_id == 999

    def test_missing_prep_item_contributes_zero(self, ingredients, prep_tasks):
        recipe = [RecipeLine(ingredient_id=999, amount=1, unit="gram", source="prep")]
        result = calculate_recipe_cost(recipe, ingredients, prep_tasks)

        assert result.amount == 0
        assert result.diagnostics[0].code == "missing_reference"

    def test_incompatible_unit_contributes_zero_and_logs(
        self, flour, beef, ingredients, prep_tasks, caplog
    ):
        recipe = [
            RecipeLine(ingredient_id=flour.id, amount=1, unit="liter"),
            RecipeLine(ingredient_id=beef.id, amount=10, unit="gram"),
        ]
        with caplog.at_level(logging.WARNING, logger="restaurant_pos.services"):
            result = calculate_recipe_cost(recipe, ingredients, prep_tasks)

        assert result.amount == 4000
        assert result.diagnostics[0].code == "incompatible_unit"
        assert result.diagnostics[0].entity_name == "Flour"
        assert "calculate_recipe_cost: incompatible_unit" in caplog.text

    def test_incompatible_prep_unit(self, special_sauce, ingredients, prep_tasks):
        recipe = [RecipeLine(ingredient_id=special_sauce.id, amount=1, unit="number", source="prep")]
        result = calculate_recipe_cost(recipe, ingredients, prep_tasks)

        assert result.amount == 0
        assert result.diagnostics[0].code == "incompatible_unit"

    def test_prep_without_cached_cost(self, special_sauce, ingredients):
        prep_tasks = {special_sauce.id: replace(special_sauce, cost_per_unit=None)}
        recipe = [RecipeLine(ingredient_id=special_sauce.id, amount=50, unit="gram", source="prep")]

        result = calculate_recipe_cost(recipe, ingredients, prep_tasks)
        assert result.amount == 0
        assert result.diagnostics == []

    def test_non_positive_amount_is_skipped(self, flour, ingredients, prep_tasks):
        recipe = [RecipeLine(ingredient_id=flour.id, amount=0, unit="gram")]
        result = calculate_recipe_cost(recipe, ingredients, prep_tasks)

        assert result.amount == 0
        assert result.diagnostics[0].code == "invalid_amount"

    def test_invalid_conversion_rate_still_costs(self, flour, prep_tasks):
        ingredients = {flour.id: replace(flour, conversion_rate=-5)}
        recipe = [RecipeLine(ingredient_id=flour.id, amount=1, unit="gram")]

        result = calculate_recipe_cost(recipe, ingredients, prep_tasks)
        # Rate treated as 1: cost per gram is the full purchase-unit cost
        assert result.amount == 10000
        assert result.diagnostics[0].code == "invalid_conversion_rate"

    def test_deleted_ingredient_still_costs(self, flour, prep_tasks):
        ingredients = {flour.id: replace(flour, is_deleted=True)}
        recipe = [RecipeLine(ingredient_id=flour.id, amount=100, unit="gram")]

        assert calculate_recipe_cost(recipe, ingredients, prep_tasks).amount == 1000

    def test_each_line_is_rounded_half_up(self, flour, ingredients, prep_tasks):
        # 0.25 gram * 10 = 2.5 per line -> 3 + 3
        recipe = [
            RecipeLine(ingredient_id=flour.id, amount=0.25, unit="gram"),
            RecipeLine(ingredient_id=flour.id, amount=0.25, unit="gram"),
        ]
        assert calculate_recipe_cost(recipe, ingredients, prep_tasks).amount == 6

    def test_cost_is_additive_over_lines(self, flour, beef, ingredients, prep_tasks):
        cheap_flour = replace(flour, cost_per_unit=1000)
        cheap_beef = replace(beef, cost_per_unit=1000)
        pool = {cheap_flour.id: cheap_flour, cheap_beef.id: cheap_beef}
        # 1 per gram; half a gram costs 0.5 on each line
        first = RecipeLine(ingredient_id=cheap_flour.id, amount=0.5, unit="gram")
        second = RecipeLine(ingredient_id=cheap_beef.id, amount=0.5, unit="gram")

        combined = calculate_recipe_cost([first, second], pool, prep_tasks).amount
        separate = (
            calculate_recipe_cost([first], pool, prep_tasks).amount
            + calculate_recipe_cost([second], pool, prep_tasks).amount
        )

        assert combined == separate == 2

    def test_burger_cost_is_sum_of_lines(self, burger, ingredients, prep_tasks):
        total = calculate_recipe_cost(burger.recipe, ingredients, prep_tasks).amount
        by_line = sum(
            calculate_recipe_cost([line], ingredients, prep_tasks).amount for line in burger.recipe
        )
        assert total == by_line


class TestBatchAndPrepUnitCost:
    """Tests for production batch cost and prep cost per unit."""

    def test_batch_cost(self, special_sauce, ingredients):
        # 1 kg flour = 1000 gram at 10
        assert calculate_batch_cost(special_sauce.recipe, ingredients).amount == 10000

    def test_nested_prep_is_ignored(self, flour, special_sauce, ingredients):
        recipe = [
            RecipeLine(ingredient_id=flour.id, amount=100, unit="gram"),
            RecipeLine(ingredient_id=special_sauce.id, amount=10, unit="gram", source="prep"),
        ]
        result = calculate_batch_cost(recipe, ingredients)

        assert result.amount == 1000
        assert [d.code for d in result.diagnostics] == ["nested_prep"]

    def test_prep_unit_cost(self, special_sauce, ingredients):
        result = calculate_prep_unit_cost(special_sauce.recipe, 1000, ingredients)
        assert result.amount == 10

    def test_prep_unit_cost_rounds(self, special_sauce, ingredients):
        # 10000 / 3000 = 3.33
        assert calculate_prep_unit_cost(special_sauce.recipe, 3000, ingredients).amount == 3

    @pytest.mark.parametrize("batch_size", [None, 0, -1])
    def test_prep_unit_cost_without_batch_size(self, special_sauce, ingredients, batch_size):
        assert calculate_prep_unit_cost(special_sauce.recipe, batch_size, ingredients).amount == 0


class TestCalculateMargin:
    def test_margin(self):
        assert calculate_margin(2500, 10000) == 75

    def test_burger_margin(self):
        # (250000 - 65600) / 250000 = 73.76%
        assert calculate_margin(65600, 250000) == 74

    def test_negative_margin(self):
        assert calculate_margin(15000, 10000) == -50

    def test_zero_price(self):
        assert calculate_margin(100, 0) == 0
