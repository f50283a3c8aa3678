"""
Supply models for raw, purchasable items.

This module contains:
- SupplyCategory: Business-scoped grouping for supplies and components
- Supply: A raw item whose stock is derived from its ledger entries
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from .enums import SupplyType


class SupplyCategory(BaseModel):
    """
    Grouping for supplies and components within a business.

    Attributes:
        name: Category name (required)
        description: Optional description
        business_id: Owning business
        active: Soft-delete flag
    """

    __tablename__ = "supply_categories"

    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    business_id = Column(Integer, nullable=False, index=True)
    active = Column(Boolean, nullable=False, default=True)

    supplies = relationship("Supply", back_populates="category")
    components = relationship("Component", back_populates="category")


class Supply(BaseModel):
    """
    Supply model representing a raw/purchasable item.

    A supply never stores its current stock: stock is always the sum of the
    active SupplyEntry amounts for it. Supplies are soft-deactivated rather
    than deleted once ledger entries reference them.

    Attributes:
        name: Supply name (required)
        description: Optional description
        unit: Unit of measure for ledger amounts (e.g., "kg", "unit")
        minimum_stock: Threshold below which stock is reported as low
        business_id: Owning business
        store_id: Optional owning store
        category_id: Optional SupplyCategory
        supply_type: SupplyType value; "final" supplies are kept out of
            component recipes
        active: Soft-delete flag
    """

    __tablename__ = "supplies"

    name = Column(String(255), nullable=False, index=True)
    description = Column(String(500), nullable=True)
    unit = Column(String(20), nullable=False, default="unit")
    minimum_stock = Column(Numeric(14, 4), nullable=False, default=0)
    supply_type = Column(String(20), nullable=False, default=SupplyType.BOTH.value)

    business_id = Column(Integer, nullable=False, index=True)
    store_id = Column(Integer, nullable=True, index=True)
    category_id = Column(
        Integer, ForeignKey("supply_categories.id", ondelete="SET NULL"), nullable=True
    )

    active = Column(Boolean, nullable=False, default=True, index=True)

    category = relationship("SupplyCategory", back_populates="supplies")
    entries = relationship(
        "SupplyEntry",
        back_populates="supply",
        order_by="SupplyEntry.id",
        lazy="select",
    )

    __table_args__ = (
        Index("idx_supply_business_active", "business_id", "active"),
        CheckConstraint("minimum_stock >= 0", name="ck_supply_minimum_stock_non_negative"),
        CheckConstraint(
            "supply_type IN ('final', 'intermediate', 'both')", name="ck_supply_type_valid"
        ),
    )

    @property
    def kind(self) -> SupplyType:
        """The supply_type column as a SupplyType member."""
        return SupplyType(self.supply_type)

    def __repr__(self) -> str:
        return f"Supply(id={self.id}, name='{self.name}', unit='{self.unit}')"
