"""
Tests for checkout: stock checks, policies and sale transactions.

Kitchen stock (see conftest.kitchen): Beef 2000 gram, Bun 20, Special
Sauce 500 gram. One burger uses 150 gram beef, 1 bun and 20 gram sauce.
"""

import logging

import pytest

from src.models import Ingredient, PrepTask, Sale, StockCheckStatus, StockDeductionPolicy
from src.services import audit_service, checkout_service, ingredient_service, menu_service
from src.services.database import session_scope
from src.services.exceptions import (
    ConfirmationRequiredError,
    MenuItemNotFound,
    SaleBlockedError,
    UnitConversionError,
    ValidationError,
)
from src.utils.config import reset_config
from src.utils.datetime_utils import utc_now


def burgers(kitchen, quantity):
    return [{"menu_item_id": kitchen.burger, "quantity": quantity}]


def stock_levels(kitchen):
    with session_scope() as session:
        return (
            session.get(Ingredient, kitchen.beef).current_stock,
            session.get(Ingredient, kitchen.bun).current_stock,
            session.get(PrepTask, kitchen.sauce).on_hand,
        )


class TestProcessTransaction:
    def test_sale_records_totals_and_deducts(self, kitchen):
        result = checkout_service.process_transaction(
            burgers(kitchen, 2), payment_method="cash", tax_percent=9, discount=5000
        )

        assert result["subtotal"] == 500000
        assert result["tax_amount"] == 45000
        assert result["discount"] == 5000
        assert result["total"] == 540000
        assert result["total_cost"] == 131200
        assert result["inventory_shortage"] is False
        assert result["prep_shortage"] is False
        assert result["items"] == [
            {
                "menu_item_id": kitchen.burger,
                "name": "Burger",
                "quantity": 2,
                "price_at_sale": 250000,
                "cost_at_sale": 65600,
            }
        ]
        assert stock_levels(kitchen) == (1700, 18, 460)

    def test_invoice_numbers_are_sequential(self, kitchen):
        first = checkout_service.process_transaction(burgers(kitchen, 1), payment_method="card")
        second = checkout_service.process_transaction(burgers(kitchen, 1), payment_method="card")

        year = utc_now().year
        assert first["invoice_number"] == f"FYR-{year}-00001"
        assert second["invoice_number"] == f"FYR-{year}-00002"

    def test_sale_writes_audit_entries(self, kitchen):
        checkout_service.process_transaction(burgers(kitchen, 1), payment_method="cash")

        logs = audit_service.list_audit_logs(action="TRANSACTION")
        entities = sorted(log["entity"] for log in logs)
        assert entities == ["INVENTORY", "INVENTORY", "PREP", "SALE"]

    def test_cost_at_sale_is_a_snapshot(self, kitchen):
        result = checkout_service.process_transaction(burgers(kitchen, 1), payment_method="cash")
        ingredient_service.update_ingredient(kitchen.beef, {"cost_per_unit": 800000})

        with session_scope() as session:
            sale = session.get(Sale, result["sale_id"])
            assert sale.items[0].cost_at_sale == 65600
            assert sale.total_cost == 65600

    def test_allow_negative_flags_shortages(self, kitchen, caplog):
        with caplog.at_level(logging.WARNING, logger="restaurant_pos.services"):
            result = checkout_service.process_transaction(
                burgers(kitchen, 30),
                payment_method="cash",
                policy=StockDeductionPolicy.ALLOW_NEGATIVE,
            )

        assert result["inventory_shortage"] is True
        assert result["prep_shortage"] is True
        assert stock_levels(kitchen) == (-2500, -10, -100)
        assert "process_transaction: negative_stock" in caplog.text

    def test_inventory_shortage_without_prep_shortage(self, kitchen):
        result = checkout_service.process_transaction(
            burgers(kitchen, 20), payment_method="cash", policy="ALLOW_NEGATIVE"
        )

        assert result["inventory_shortage"] is True
        assert result["prep_shortage"] is False

    def test_block_policy_deducts_nothing(self, kitchen):
        with pytest.raises(SaleBlockedError) as exc_info:
            checkout_service.process_transaction(
                burgers(kitchen, 30),
                payment_method="cash",
                policy=StockDeductionPolicy.BLOCK_SALE_IF_INSUFFICIENT,
            )

        assert {item.name for item in exc_info.value.insufficient_items} == {
            "Beef",
            "Bun",
            "Special Sauce",
        }
        assert stock_levels(kitchen) == (2000, 20, 500)
        with session_scope() as session:
            assert session.query(Sale).count() == 0

    def test_confirmation_policy(self, kitchen):
        policy = StockDeductionPolicy.ALLOW_BUT_REQUIRE_CONFIRMATION

        with pytest.raises(ConfirmationRequiredError):
            checkout_service.process_transaction(
                burgers(kitchen, 20), payment_method="cash", policy=policy
            )
        assert stock_levels(kitchen) == (2000, 20, 500)

        result = checkout_service.process_transaction(
            burgers(kitchen, 20), payment_method="cash", policy=policy, confirmed=True
        )
        assert result["inventory_shortage"] is True

    def test_strict_policy_allows_covered_sale(self, kitchen):
        result = checkout_service.process_transaction(
            burgers(kitchen, 1),
            payment_method="cash",
            policy=StockDeductionPolicy.BLOCK_SALE_IF_INSUFFICIENT,
        )
        assert result["sale_id"] is not None

    def test_configured_policy_is_default(self, kitchen, monkeypatch):
        monkeypatch.setenv("RESTAURANT_POS_STOCK_POLICY", "block_sale_if_insufficient")
        reset_config()

        with pytest.raises(SaleBlockedError):
            checkout_service.process_transaction(burgers(kitchen, 30), payment_method="cash")

    def test_unconvertible_recipe_unit_aborts(self, kitchen):
        menu_service.update_menu_item(
            kitchen.burger,
            {
                "recipe": [
                    {"ingredient_id": kitchen.beef, "amount": 150, "unit": "gram"},
                    {"ingredient_id": kitchen.flour, "amount": 1, "unit": "liter"},
                ]
            },
        )

        with pytest.raises(UnitConversionError) as exc_info:
            checkout_service.process_transaction(
                burgers(kitchen, 1), payment_method="cash", policy="ALLOW_NEGATIVE"
            )

        assert exc_info.value.entity_name == "Flour"
        assert stock_levels(kitchen) == (2000, 20, 500)


class TestTransactionValidation:
    def test_unknown_payment_method(self, kitchen):
        with pytest.raises(ValidationError) as exc_info:
            checkout_service.process_transaction(burgers(kitchen, 1), payment_method="barter")
        assert "Payment method" in str(exc_info.value)

    def test_negative_discount(self, kitchen):
        with pytest.raises(ValidationError):
            checkout_service.process_transaction(
                burgers(kitchen, 1), payment_method="cash", discount=-1
            )

    def test_empty_cart(self, kitchen):
        with pytest.raises(ValidationError):
            checkout_service.process_transaction([], payment_method="cash")

    def test_non_positive_quantity(self, kitchen):
        with pytest.raises(ValidationError):
            checkout_service.process_transaction(burgers(kitchen, 0), payment_method="cash")

    def test_unknown_menu_item(self, kitchen):
        with pytest.raises(MenuItemNotFound):
            checkout_service.process_transaction(
                [{"menu_item_id": 999, "quantity": 1}], payment_method="cash"
            )

    def test_deleted_menu_item(self, kitchen):
        menu_service.delete_menu_item(kitchen.burger)

        with pytest.raises(ValidationError):
            checkout_service.process_transaction(burgers(kitchen, 1), payment_method="cash")


class TestCheckStockForSale:
    def test_reports_without_changing_stock(self, kitchen):
        result = checkout_service.check_stock_for_sale(
            burgers(kitchen, 20), policy=StockDeductionPolicy.ALLOW_BUT_REQUIRE_CONFIRMATION
        )

        assert result.status == StockCheckStatus.NEEDS_CONFIRMATION
        assert [item.name for item in result.insufficient_items] == ["Beef"]
        assert stock_levels(kitchen) == (2000, 20, 500)

    def test_default_policy_allows(self, kitchen):
        result = checkout_service.check_stock_for_sale(burgers(kitchen, 30))
        assert result.status == StockCheckStatus.OK


class TestInvoiceNumbers:
    def test_counter_is_per_year_and_prefix(self, test_db):
        with session_scope() as session:
            session.add(Sale(invoice_number="FYR-2025-00007", payment_method="cash"))
            session.add(Sale(invoice_number="ABC-2025-00099", payment_method="cash"))
            session.flush()

            assert checkout_service.next_invoice_number(session, "FYR", 2025) == "FYR-2025-00008"
            assert checkout_service.next_invoice_number(session, "FYR", 2024) == "FYR-2024-00001"
            assert checkout_service.next_invoice_number(session, "ABC", 2025) == "ABC-2025-00100"

    def test_configured_prefix(self, test_db, monkeypatch):
        monkeypatch.setenv("RESTAURANT_POS_INVOICE_PREFIX", "POS")
        reset_config()

        with session_scope() as session:
            assert checkout_service.next_invoice_number(session, year=2026) == "POS-2026-00001"


class TestListSales:
    def test_newest_first(self, kitchen):
        checkout_service.process_transaction(burgers(kitchen, 1), payment_method="cash")
        checkout_service.process_transaction(burgers(kitchen, 1), payment_method="card")

        sales = checkout_service.list_sales()
        assert [sale["payment_method"] for sale in sales] == ["card", "cash"]


class TestExactStockSale:
    def test_sale_using_all_stock_is_not_short(self, kitchen):
        with session_scope() as session:
            session.get(Ingredient, kitchen.beef).current_stock = 300
        slider = menu_service.create_menu_item(
            {
                "name": "Slider",
                "price": 90000,
                "recipe": [{"ingredient_id": kitchen.beef, "amount": 0.1, "unit": "kg"}],
            }
        )

        result = checkout_service.process_transaction(
            [{"menu_item_id": slider.id, "quantity": 3}],
            payment_method="cash",
            policy=StockDeductionPolicy.BLOCK_SALE_IF_INSUFFICIENT,
        )

        assert result["inventory_shortage"] is False
        with session_scope() as session:
            assert session.get(Ingredient, kitchen.beef).current_stock == 0
