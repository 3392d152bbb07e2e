"""
Tests for the stock deduction engine.

Tests cover:
- Aggregating deductions across cart lines and recipe lines
- Unit conversion into each entity's base unit (hard failure on mismatch)
- Availability checks and the stock deduction policy state machine
- Raw ingredient deductions for prep production
"""

import logging
from dataclasses import replace

import pytest

from src.models import StockCheckStatus, StockDeductionPolicy
from src.services.dto import CartLine, MenuItemSnapshot, RecipeLine
from src.services.exceptions import UnitConversionError
from src.services.stock_deduction_service import (
    calculate_deductions,
    calculate_production_deductions,
    check_stock_availability,
    evaluate_stock_for_sale,
    round_quantity,
)


@pytest.fixture
def bread(flour):
    return MenuItemSnapshot(
        id=101,
        name="Bread",
        price=50000,
        recipe=[RecipeLine(ingredient_id=flour.id, amount=0.2, unit="kg")],
    )


class TestCalculateDeductions:
    """Tests for the per-entity deduction plan."""

    def test_burger_deductions(self, burger_cart, beef, bun, special_sauce, ingredients, prep_tasks):
        plan = calculate_deductions(burger_cart, ingredients, prep_tasks)

        assert plan.inventory_deductions == {beef.id: 300, bun.id: 2}
        assert plan.prep_deductions == {special_sauce.id: 40}

    def test_converts_to_usage_unit(self, bread, flour, ingredients, prep_tasks):
        plan = calculate_deductions([CartLine(item=bread, quantity=3)], ingredients, prep_tasks)
        assert plan.inventory_deductions[flour.id] == pytest.approx(600)

    def test_aggregates_across_cart_lines(self, burger, bread, beef, flour, ingredients, prep_tasks):
        cart = [
            CartLine(item=burger, quantity=1),
            CartLine(item=bread, quantity=1),
            CartLine(item=burger, quantity=1),
        ]
        plan = calculate_deductions(cart, ingredients, prep_tasks)

        assert plan.inventory_deductions[beef.id] == 300
        assert plan.inventory_deductions[flour.id] == pytest.approx(200)

    def test_custom_unit_in_recipe(self, beef, ingredients, prep_tasks):
        item = MenuItemSnapshot(
            id=102,
            name="Party Tray",
            price=1,
            recipe=[RecipeLine(ingredient_id=beef.id, amount=0.25, unit="carton")],
        )
        plan = calculate_deductions([CartLine(item=item, quantity=1)], ingredients, prep_tasks)
        assert plan.inventory_deductions[beef.id] == 3000

    def test_empty_cart(self, ingredients, prep_tasks):
        assert calculate_deductions([], ingredients, prep_tasks).is_empty

    def test_missing_reference_is_skipped(self, ingredients, prep_tasks, caplog):
        item = MenuItemSnapshot(
            id=103,
            name="Ghost",
            price=1,
            recipe=[RecipeLine(ingredient_id=999, amount=1, unit="gram")],
        )
        with caplog.at_level(logging.WARNING, logger="restaurant_pos.services"):
            plan = calculate_deductions([CartLine(item=item, quantity=1)], ingredients, prep_tasks)

        assert plan.is_empty
        assert "calculate_deductions: missing_reference" in caplog.text

    def test_incompatible_inventory_unit_raises(self, flour, ingredients, prep_tasks, caplog):
        item = MenuItemSnapshot(
            id=104,
            name="Soup",
            price=1,
            recipe=[RecipeLine(ingredient_id=flour.id, amount=1, unit="liter")],
        )
        with caplog.at_level(logging.ERROR, logger="restaurant_pos.services"):
            with pytest.raises(UnitConversionError) as exc_info:
                calculate_deductions([CartLine(item=item, quantity=1)], ingredients, prep_tasks)

        assert exc_info.value.entity_name == "Flour"
        assert exc_info.value.source == "inventory"
        assert "Flour" in str(exc_info.value)
        assert "calculate_deductions: incompatible_unit" in caplog.text

    def test_incompatible_prep_unit_raises(self, special_sauce, ingredients, prep_tasks):
        item = MenuItemSnapshot(
            id=105,
            name="Dip",
            price=1,
            recipe=[
                RecipeLine(ingredient_id=special_sauce.id, amount=1, unit="number", source="prep")
            ],
        )
        with pytest.raises(UnitConversionError) as exc_info:
            calculate_deductions([CartLine(item=item, quantity=1)], ingredients, prep_tasks)

        assert exc_info.value.entity_name == "Special Sauce"
        assert "prep item" in str(exc_info.value)


class TestCheckStockAvailability:
    def test_nothing_insufficient(self, ingredients, prep_tasks, beef):
        assert check_stock_availability(ingredients, prep_tasks, {beef.id: 2000}, {}) == []

    def test_reports_shortages(self, ingredients, prep_tasks, beef, special_sauce):
        insufficient = check_stock_availability(
            ingredients, prep_tasks, {beef.id: 2500}, {special_sauce.id: 600}
        )

        assert [(i.name, i.required, i.available, i.unit, i.source) for i in insufficient] == [
            ("Beef", 2500, 2000, "gram", "inventory"),
            ("Special Sauce", 600, 500, "gram", "prep"),
        ]


class TestEvaluateStockForSale:
    """Tests for the policy state machine."""

    @pytest.fixture
    def big_cart(self, burger):
        # 30 burgers need 4500 gram beef, 30 buns and 600 gram sauce
        return [CartLine(item=burger, quantity=30)]

    def test_allow_negative_is_always_ok(self, big_cart, ingredients, prep_tasks):
        result = evaluate_stock_for_sale(
            big_cart, ingredients, prep_tasks, StockDeductionPolicy.ALLOW_NEGATIVE
        )
        assert result.status == StockCheckStatus.OK
        assert result.can_proceed

    def test_block_policy(self, big_cart, ingredients, prep_tasks):
        result = evaluate_stock_for_sale(
            big_cart, ingredients, prep_tasks, StockDeductionPolicy.BLOCK_SALE_IF_INSUFFICIENT
        )
        assert result.status == StockCheckStatus.BLOCKED
        assert {i.name for i in result.insufficient_items} == {"Beef", "Bun", "Special Sauce"}

    def test_confirmation_policy(self, big_cart, ingredients, prep_tasks, caplog):
        with caplog.at_level(logging.WARNING, logger="restaurant_pos.services"):
            result = evaluate_stock_for_sale(
                big_cart,
                ingredients,
                prep_tasks,
                StockDeductionPolicy.ALLOW_BUT_REQUIRE_CONFIRMATION,
            )

        assert result.status == StockCheckStatus.NEEDS_CONFIRMATION
        assert not result.can_proceed
        assert "evaluate_stock_for_sale: NEEDS_CONFIRMATION" in caplog.text

    def test_sufficient_stock_is_ok_under_strict_policy(self, burger_cart, ingredients, prep_tasks):
        result = evaluate_stock_for_sale(
            burger_cart, ingredients, prep_tasks, "BLOCK_SALE_IF_INSUFFICIENT"
        )
        assert result.status == StockCheckStatus.OK
        assert result.insufficient_items == []

    def test_strict_policy_propagates_conversion_error(self, flour, ingredients, prep_tasks):
        item = MenuItemSnapshot(
            id=106,
            name="Soup",
            price=1,
            recipe=[RecipeLine(ingredient_id=flour.id, amount=1, unit="liter")],
        )
        with pytest.raises(UnitConversionError):
            evaluate_stock_for_sale(
                [CartLine(item=item, quantity=1)],
                ingredients,
                prep_tasks,
                StockDeductionPolicy.BLOCK_SALE_IF_INSUFFICIENT,
            )


class TestProductionDeductions:
    def test_scales_by_batches(self, special_sauce, flour, ingredients):
        assert calculate_production_deductions(special_sauce, 2, ingredients) == {flour.id: 2000}

    def test_nested_prep_lines_are_skipped(self, special_sauce, flour, ingredients):
        task = replace(
            special_sauce,
            recipe=special_sauce.recipe
            + [RecipeLine(ingredient_id=special_sauce.id, amount=5, unit="gram", source="prep")],
        )
        assert calculate_production_deductions(task, 1, ingredients) == {flour.id: 1000}

    def test_incompatible_unit_raises(self, special_sauce, flour, ingredients):
        task = replace(special_sauce, recipe=[RecipeLine(ingredient_id=flour.id, amount=1, unit="ml")])
        with pytest.raises(UnitConversionError):
            calculate_production_deductions(task, 1, ingredients)

    def test_non_positive_amount_is_skipped(self, special_sauce, flour, ingredients, caplog):
        task = replace(
            special_sauce,
            recipe=special_sauce.recipe
            + [RecipeLine(ingredient_id=flour.id, amount=-500, unit="gram")],
        )

        with caplog.at_level(logging.WARNING, logger="restaurant_pos.services"):
            deductions = calculate_production_deductions(task, 1, ingredients)

        assert deductions == {flour.id: 1000}
        assert "calculate_production_deductions: invalid_amount" in caplog.text


class TestExactStockQuantities:
    """Deductions that use up exactly the available stock."""

    @pytest.fixture
    def slider(self, beef):
        return MenuItemSnapshot(
            id=107,
            name="Slider",
            price=90000,
            recipe=[RecipeLine(ingredient_id=beef.id, amount=0.1, unit="kg")],
        )

    def test_deduction_is_exact(self, slider, beef, ingredients, prep_tasks):
        plan = calculate_deductions([CartLine(item=slider, quantity=3)], ingredients, prep_tasks)
        assert plan.inventory_deductions == {beef.id: 300}

    def test_exact_stock_is_not_short(self, slider, beef, ingredients, prep_tasks):
        pool = {**ingredients, beef.id: replace(beef, current_stock=300)}

        result = evaluate_stock_for_sale(
            [CartLine(item=slider, quantity=3)],
            pool,
            prep_tasks,
            StockDeductionPolicy.BLOCK_SALE_IF_INSUFFICIENT,
        )

        assert result.status == StockCheckStatus.OK
        assert result.insufficient_items == []

    def test_accumulated_lines_stay_exact(self, slider, beef, ingredients, prep_tasks):
        cart = [CartLine(item=slider, quantity=1) for _ in range(3)]
        plan = calculate_deductions(cart, ingredients, prep_tasks)
        assert plan.inventory_deductions == {beef.id: 300}

    def test_round_quantity(self):
        assert round_quantity(0.1 * 3) == 0.3
        assert round_quantity(300.00000000000006) == 300


class TestInvalidRecipeAmounts:
    def test_non_positive_amount_is_not_deducted(self, beef, bun, ingredients, prep_tasks, caplog):
        item = MenuItemSnapshot(
            id=108,
            name="Broken Burger",
            price=1,
            recipe=[
                RecipeLine(ingredient_id=beef.id, amount=-150, unit="gram"),
                RecipeLine(ingredient_id=bun.id, amount=0, unit="number"),
                RecipeLine(ingredient_id=bun.id, amount=1, unit="number"),
            ],
        )

        with caplog.at_level(logging.WARNING, logger="restaurant_pos.services"):
            plan = calculate_deductions([CartLine(item=item, quantity=2)], ingredients, prep_tasks)

        assert plan.inventory_deductions == {bun.id: 2}
        assert "calculate_deductions: invalid_amount" in caplog.text
