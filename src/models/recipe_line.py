"""
RecipeLine model shared by menu item and prep task recipes.

A line belongs to exactly one owner (a menu item or a prep task).
``ingredient_id`` resolves against ingredients or prep tasks depending on
``source``; it is deliberately not a foreign key, so a deleted target
leaves a dangling line that the data health scan reports.
"""

from sqlalchemy import CheckConstraint, Column, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from src.utils.constants import SOURCE_INVENTORY

from .base import BaseModel


class RecipeLine(BaseModel):
    """
    One recipe line.

    Attributes:
        menu_item_id: Owning menu item (XOR prep_task_id)
        prep_task_id: Owning prep task (XOR menu_item_id)
        ingredient_id: Referenced ingredient or prep task id
        source: "inventory" or "prep"
        amount: Quantity per one unit of the owner (per batch for prep tasks)
        unit: Unit of ``amount``
        position: Display order within the recipe
    """

    __tablename__ = "recipe_lines"

    menu_item_id = Column(
        Integer, ForeignKey("menu_items.id", ondelete="CASCADE"), nullable=True, index=True
    )
    prep_task_id = Column(
        Integer, ForeignKey("prep_tasks.id", ondelete="CASCADE"), nullable=True, index=True
    )

    ingredient_id = Column(Integer, nullable=False, index=True)
    source = Column(String(20), nullable=False, default=SOURCE_INVENTORY)
    amount = Column(Float, nullable=False)
    unit = Column(String(50), nullable=False)
    position = Column(Integer, nullable=False, default=0)

    menu_item = relationship("MenuItem", back_populates="recipe_lines")
    prep_task = relationship("PrepTask", back_populates="recipe_lines")

    __table_args__ = (
        CheckConstraint(
            "(menu_item_id IS NULL) != (prep_task_id IS NULL)",
            name="ck_recipe_line_single_owner",
        ),
        CheckConstraint("source IN ('inventory', 'prep')", name="ck_recipe_line_source"),
    )
