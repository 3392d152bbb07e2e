"""
Sale and SaleItem models for completed checkout transactions.

A sale captures prices and costs as they were at the moment of sale, so
later price or recipe changes never rewrite history.
"""

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from src.utils.datetime_utils import utc_now

from .base import BaseModel


class Sale(BaseModel):
    """
    Sale model (one invoice).

    Attributes:
        invoice_number: Sequential number, e.g. "FYR-2026-00001"
        sold_at: Transaction timestamp
        payment_method: One of PAYMENT_METHODS
        subtotal: Sum of price_at_sale * quantity
        discount: Discount amount applied before tax
        tax_percent: Tax rate applied
        tax_amount: Tax charged
        total: Amount paid
        total_cost: Sum of cost_at_sale * quantity
        inventory_shortage: True if any ingredient went below zero
        prep_shortage: True if any prep item went below zero
    """

    __tablename__ = "sales"

    updated_at = None

    invoice_number = Column(String(50), nullable=False, unique=True, index=True)
    sold_at = Column(DateTime, nullable=False, default=utc_now, index=True)
    payment_method = Column(String(20), nullable=False)

    subtotal = Column(Integer, nullable=False, default=0)
    discount = Column(Integer, nullable=False, default=0)
    tax_percent = Column(Float, nullable=False, default=0.0)
    tax_amount = Column(Integer, nullable=False, default=0)
    total = Column(Integer, nullable=False, default=0)
    total_cost = Column(Integer, nullable=False, default=0)

    inventory_shortage = Column(Boolean, nullable=False, default=False)
    prep_shortage = Column(Boolean, nullable=False, default=False)

    items = relationship(
        "SaleItem", back_populates="sale", cascade="all, delete-orphan", lazy="select"
    )


class SaleItem(BaseModel):
    """
    One line of a sale.

    Attributes:
        sale_id: Owning sale
        menu_item_id: Menu item sold (kept even if later soft-deleted)
        name: Menu item name at the time of sale
        quantity: Units sold
        price_at_sale: Unit price at the time of sale
        cost_at_sale: Unit recipe cost at the time of sale
    """

    __tablename__ = "sale_items"

    updated_at = None

    sale_id = Column(Integer, ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    menu_item_id = Column(Integer, ForeignKey("menu_items.id"), nullable=True, index=True)
    name = Column(String(200), nullable=False)
    quantity = Column(Float, nullable=False)
    price_at_sale = Column(Float, nullable=False)
    cost_at_sale = Column(Integer, nullable=False, default=0)

    sale = relationship("Sale", back_populates="items")
    menu_item = relationship("MenuItem")
