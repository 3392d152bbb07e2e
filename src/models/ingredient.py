"""
Ingredient model for raw inventory items.

An ingredient is bought in a purchase unit (e.g. "kg" or "carton") and
consumed in its usage unit (e.g. "gram"). Stock is always tracked in the
usage unit; cost_per_unit is the price of ONE purchase unit.

Example: Flour bought per kg at 10000, used in grams with
         conversion_rate=1000 -> 10 per gram.
"""

from sqlalchemy import Column, Float, Index, JSON, String
from sqlalchemy.orm import relationship

from .base import BaseModel, SoftDeleteMixin


class Ingredient(SoftDeleteMixin, BaseModel):
    """
    Ingredient model representing raw inventory.

    Attributes:
        name: Display name (e.g., "Flour", "Beef")
        category: Optional grouping (e.g., "Dry goods", "Meat")
        usage_unit: Canonical unit stock is tracked in (e.g., "gram")
        purchase_unit: Unit the item is bought in (e.g., "kg")
        current_stock: Stock in usage units; may go negative after lenient sales
        cost_per_unit: Cost of one purchase unit (moving average)
        conversion_rate: Usage units per purchase unit (None means 1)
        min_threshold: Low stock alert level, in usage units
        custom_unit_conversions: JSON mapping of custom unit ->
            {"to_unit": str, "factor": float}, e.g. {"carton": {"to_unit": "kg", "factor": 12}}
        is_deleted / deleted_at: Soft-delete state

    Relationships:
        purchase_records: Append-only purchase history, oldest first
    """

    __tablename__ = "ingredients"

    name = Column(String(200), nullable=False, index=True)
    category = Column(String(100), nullable=True)

    # Units
    usage_unit = Column(String(50), nullable=False)
    purchase_unit = Column(String(50), nullable=True)
    conversion_rate = Column(Float, nullable=True)
    custom_unit_conversions = Column(JSON, nullable=True)

    # Stock and cost
    current_stock = Column(Float, nullable=False, default=0.0)
    cost_per_unit = Column(Float, nullable=False, default=0.0)
    min_threshold = Column(Float, nullable=False, default=0.0)

    purchase_records = relationship(
        "PurchaseRecord",
        back_populates="ingredient",
        cascade="all, delete-orphan",
        order_by="PurchaseRecord.purchased_at",
        lazy="select",
    )

    __table_args__ = (Index("idx_ingredient_live_name", "is_deleted", "name"),)

    @property
    def is_low_stock(self) -> bool:
        """True when stock has fallen to or below the alert threshold."""
        return self.current_stock <= (self.min_threshold or 0.0)
