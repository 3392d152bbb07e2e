"""
WasteRecord model for spoiled or discarded stock.
"""

from sqlalchemy import CheckConstraint, Column, DateTime, Float, ForeignKey, Integer, String, Text

from src.utils.datetime_utils import utc_now

from .base import BaseModel


class WasteRecord(BaseModel):
    """
    One waste event against an ingredient or a prep item.

    Attributes:
        source: "inventory" or "prep"
        ingredient_id: Wasted ingredient (source "inventory")
        prep_task_id: Wasted prep item (source "prep")
        item_name: Name at the time of waste
        amount: Quantity wasted, in ``unit``
        unit: Unit of ``amount``
        cost_loss: Financial loss in whole currency
        reason: Free-text reason
        recorded_at: When the waste was recorded
    """

    __tablename__ = "waste_records"

    updated_at = None

    source = Column(String(20), nullable=False)
    ingredient_id = Column(Integer, ForeignKey("ingredients.id"), nullable=True, index=True)
    prep_task_id = Column(Integer, ForeignKey("prep_tasks.id"), nullable=True, index=True)
    item_name = Column(String(200), nullable=False)
    amount = Column(Float, nullable=False)
    unit = Column(String(50), nullable=False)
    cost_loss = Column(Integer, nullable=False, default=0)
    reason = Column(Text, nullable=True)
    recorded_at = Column(DateTime, nullable=False, default=utc_now, index=True)

    __table_args__ = (CheckConstraint("amount > 0", name="ck_waste_record_amount_positive"),)
