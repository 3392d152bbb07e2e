"""Pytest configuration and fixtures for service layer tests."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, scoped_session

from src.models.base import Base
from src.services.dto import (
    CartLine,
    CustomConversion,
    IngredientSnapshot,
    MenuItemSnapshot,
    PrepTaskSnapshot,
    RecipeLine,
    index_by_id,
)
from src.utils.config import reset_config


@pytest.fixture(autouse=True)
def testing_config(monkeypatch):
    """Run every test against the in-memory 'testing' configuration."""
    monkeypatch.setenv("RESTAURANT_POS_ENV", "testing")
    monkeypatch.delenv("RESTAURANT_POS_STOCK_POLICY", raising=False)
    monkeypatch.delenv("RESTAURANT_POS_INVOICE_PREFIX", raising=False)
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

    # Restore original session factory
    db_module.get_session_factory = original_get_session


# ============================================================================
# Snapshot fixtures for the pure costing core
# ============================================================================


@pytest.fixture
def flour():
    """Flour bought by the kg at 10000, used by the gram (10 per gram)."""
    return IngredientSnapshot(
        id=1,
        name="Flour",
        usage_unit="gram",
        current_stock=5000,
        cost_per_unit=10000,
        purchase_unit="kg",
        conversion_rate=1000,
    )


@pytest.fixture
def beef():
    """Beef bought by the kg at 400000, used by the gram (400 per gram)."""
    return IngredientSnapshot(
        id=2,
        name="Beef",
        usage_unit="gram",
        current_stock=2000,
        cost_per_unit=400000,
        purchase_unit="kg",
        conversion_rate=1000,
        custom_unit_conversions={"carton": CustomConversion("kg", 12)},
    )


@pytest.fixture
def bun():
    """Buns bought by the pack of 10 at 50000 (5000 per bun)."""
    return IngredientSnapshot(
        id=3,
        name="Bun",
        usage_unit="number",
        current_stock=20,
        cost_per_unit=50000,
        purchase_unit="pack",
        conversion_rate=10,
        custom_unit_conversions={"pack": CustomConversion("number", 10)},
    )


@pytest.fixture
def ingredients(flour, beef, bun):
    return index_by_id([flour, beef, bun])


@pytest.fixture
def special_sauce(flour):
    """Prep item made 1000 gram per batch from raw ingredients."""
    return PrepTaskSnapshot(
        id=10,
        name="Special Sauce",
        unit="gram",
        on_hand=500,
        par_level=1000,
        station="Sauce",
        recipe=[RecipeLine(ingredient_id=flour.id, amount=1, unit="kg")],
        batch_size=1000,
        cost_per_unit=30,
    )


@pytest.fixture
def prep_tasks(special_sauce):
    return index_by_id([special_sauce])


@pytest.fixture
def burger(beef, bun, special_sauce):
    """Burger: 150 gram beef + 1 bun + 20 gram sauce, cost 65600."""
    return MenuItemSnapshot(
        id=100,
        name="Burger",
        price=250000,
        recipe=[
            RecipeLine(ingredient_id=beef.id, amount=150, unit="gram"),
            RecipeLine(ingredient_id=bun.id, amount=1, unit="number"),
            RecipeLine(ingredient_id=special_sauce.id, amount=20, unit="gram", source="prep"),
        ],
        category="Burgers",
    )


@pytest.fixture
def burger_cart(burger):
    return [CartLine(item=burger, quantity=2)]


# ============================================================================
# Database fixtures
# ============================================================================


@pytest.fixture(scope="function")
def kitchen(test_db):
    """Seed the database with the burger kitchen and return entity ids.

    Same numbers as the snapshot fixtures: Flour, Beef and Bun stock, a
    Special Sauce prep item and a Burger costing 65600.
    """
    from src.services import ingredient_service, menu_service, prep_service
    from src.services.database import session_scope

    with session_scope() as session:
        flour = ingredient_service.create_ingredient(
            {
                "name": "Flour",
                "usage_unit": "gram",
                "purchase_unit": "kg",
                "conversion_rate": 1000,
                "cost_per_unit": 10000,
                "current_stock": 5000,
            },
            session=session,
        )
        beef = ingredient_service.create_ingredient(
            {
                "name": "Beef",
                "usage_unit": "gram",
                "purchase_unit": "kg",
                "conversion_rate": 1000,
                "cost_per_unit": 400000,
                "current_stock": 2000,
                "min_threshold": 2500,
                "custom_unit_conversions": {"carton": {"to_unit": "kg", "factor": 12}},
            },
            session=session,
        )
        bun = ingredient_service.create_ingredient(
            {
                "name": "Bun",
                "usage_unit": "number",
                "purchase_unit": "pack",
                "conversion_rate": 10,
                "cost_per_unit": 50000,
                "current_stock": 20,
                "custom_unit_conversions": {"pack": {"to_unit": "number", "factor": 10}},
            },
            session=session,
        )
        sauce = prep_service.create_prep_task(
            {
                "name": "Special Sauce",
                "unit": "gram",
                "station": "Sauce",
                "on_hand": 500,
                "par_level": 1000,
                "batch_size": 1000,
                "recipe": [{"ingredient_id": flour.id, "amount": 3, "unit": "kg"}],
            },
            session=session,
        )
        burger = menu_service.create_menu_item(
            {
                "name": "Burger",
                "category": "Burgers",
                "price": 250000,
                "recipe": [
                    {"ingredient_id": beef.id, "amount": 150, "unit": "gram"},
                    {"ingredient_id": bun.id, "amount": 1, "unit": "number"},
                    {"ingredient_id": sauce.id, "amount": 20, "unit": "gram", "source": "prep"},
                ],
            },
            session=session,
        )

        class KitchenIds:
            def __init__(self):
                self.flour = flour.id
                self.beef = beef.id
                self.bun = bun.id
                self.sauce = sauce.id
                self.burger = burger.id

        return KitchenIds()
