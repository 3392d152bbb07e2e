"""
MenuItem model for sellable dishes.

The cost of a menu item is never stored; it is recomputed from the live
recipe every time it is needed.
"""

from sqlalchemy import Column, Float, String
from sqlalchemy.orm import relationship

from .base import BaseModel, SoftDeleteMixin


class MenuItem(SoftDeleteMixin, BaseModel):
    """
    MenuItem model.

    Attributes:
        name: Display name (e.g., "Burger")
        category: Menu section (e.g., "Mains")
        price: Selling price in whole currency units

    Relationships:
        recipe_lines: Ingredients and prep items consumed per unit sold
    """

    __tablename__ = "menu_items"

    name = Column(String(200), nullable=False, index=True)
    category = Column(String(100), nullable=True)
    price = Column(Float, nullable=False, default=0.0)

    recipe_lines = relationship(
        "RecipeLine",
        back_populates="menu_item",
        cascade="all, delete-orphan",
        order_by="RecipeLine.position",
        lazy="select",
    )
