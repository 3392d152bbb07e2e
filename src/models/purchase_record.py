"""
PurchaseRecord model for an ingredient's purchase history.

Each confirmed invoice line appends one record. Records are immutable
after creation and feed weighted-average cost reporting.
"""

from sqlalchemy import CheckConstraint, Column, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from src.utils.datetime_utils import utc_now

from .base import BaseModel


class PurchaseRecord(BaseModel):
    """
    One purchase of an ingredient.

    Attributes:
        ingredient_id: Foreign key to Ingredient
        purchased_at: When the goods were received
        quantity: Quantity bought, in ``unit``
        unit: Unit of the invoice line (usually the purchase unit)
        cost_per_unit: Price paid per ``unit``
        supplier: Optional supplier name
    """

    __tablename__ = "purchase_records"

    # Purchase records are immutable
    updated_at = None

    ingredient_id = Column(
        Integer, ForeignKey("ingredients.id", ondelete="CASCADE"), nullable=False, index=True
    )
    purchased_at = Column(DateTime, nullable=False, default=utc_now, index=True)
    quantity = Column(Float, nullable=False)
    unit = Column(String(50), nullable=False)
    cost_per_unit = Column(Float, nullable=False)
    supplier = Column(String(200), nullable=True)

    ingredient = relationship("Ingredient", back_populates="purchase_records")

    __table_args__ = (CheckConstraint("quantity > 0", name="ck_purchase_record_quantity_positive"),)
