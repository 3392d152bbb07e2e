"""
PrepTask model for semi-finished (mise en place) items.

A prep task is produced in batches from raw ingredients and consumed by
menu item recipes. Its cost_per_unit is cached whenever its recipe or
batch size changes.
"""

from sqlalchemy import Column, Float, String
from sqlalchemy.orm import relationship

from .base import BaseModel


class PrepTask(BaseModel):
    """
    PrepTask model.

    Attributes:
        name: Display name (e.g., "Special Sauce")
        unit: Base unit on_hand is tracked in (e.g., "ml")
        on_hand: Quantity available, in ``unit``
        par_level: Target quantity to keep on hand
        station: Kitchen station responsible for production
        batch_size: Quantity one production batch yields, in ``unit``
        cost_per_unit: Cached batch cost / batch size

    Relationships:
        recipe_lines: Raw ingredients consumed by one batch
    """

    __tablename__ = "prep_tasks"

    name = Column(String(200), nullable=False, index=True)
    unit = Column(String(50), nullable=False)
    station = Column(String(100), nullable=True)

    on_hand = Column(Float, nullable=False, default=0.0)
    par_level = Column(Float, nullable=False, default=0.0)
    batch_size = Column(Float, nullable=True)
    cost_per_unit = Column(Float, nullable=True)

    recipe_lines = relationship(
        "RecipeLine",
        back_populates="prep_task",
        cascade="all, delete-orphan",
        order_by="RecipeLine.position",
        lazy="select",
    )

    @property
    def needs_production(self) -> bool:
        return self.on_hand < (self.par_level or 0.0)
