"""
Component models for producible items and their recipes.

This module contains:
- Component: A producible item made from supplies and/or other components
- ComponentSupply: One BOM line of a component's recipe, pointing at exactly
  one supply or one sub-component
"""

from typing import Optional, Tuple

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from .enums import ItemType


class Component(BaseModel):
    """
    Component model representing a producible item.

    A component owns its recipe lines (``recipe_lines``). Lines of other
    components that point at this one (``used_in``) are a lookup relation
    only and are never cascaded.

    Attributes:
        name: Component name (required)
        description: Optional description
        unit: Unit of measure for produced amounts
        yield_amount: Quantity produced per execution of the recipe (> 0)
        preparation_time_minutes: Optional preparation time
        minimum_stock: Threshold below which availability is reported as low
        business_id: Owning business
        store_id: Optional owning store
        category_id: Optional SupplyCategory
        active: Soft-delete flag
    """

    __tablename__ = "components"

    name = Column(String(255), nullable=False, index=True)
    description = Column(String(500), nullable=True)
    unit = Column(String(20), nullable=False, default="unit")
    yield_amount = Column(Numeric(14, 4), nullable=False, default=1)
    preparation_time_minutes = Column(Integer, nullable=True)
    minimum_stock = Column(Numeric(14, 4), nullable=False, default=0)

    business_id = Column(Integer, nullable=False, index=True)
    store_id = Column(Integer, nullable=True, index=True)
    category_id = Column(
        Integer, ForeignKey("supply_categories.id", ondelete="SET NULL"), nullable=True
    )

    active = Column(Boolean, nullable=False, default=True, index=True)

    category = relationship("SupplyCategory", back_populates="components")

    recipe_lines = relationship(
        "ComponentSupply",
        foreign_keys="ComponentSupply.component_id",
        back_populates="component",
        cascade="all, delete-orphan",
        order_by="ComponentSupply.sort_order",
    )
    used_in = relationship(
        "ComponentSupply",
        foreign_keys="ComponentSupply.sub_component_id",
        back_populates="sub_component",
        lazy="select",
        viewonly=True,
    )
    productions = relationship(
        "ComponentProduction",
        back_populates="component",
        order_by="ComponentProduction.id",
        lazy="select",
    )

    __table_args__ = (
        Index("idx_component_business_active", "business_id", "active"),
        CheckConstraint("yield_amount > 0", name="ck_component_yield_positive"),
        CheckConstraint("minimum_stock >= 0", name="ck_component_minimum_stock_non_negative"),
    )

    def __repr__(self) -> str:
        return f"Component(id={self.id}, name='{self.name}', yield_amount={self.yield_amount})"


class ComponentSupply(BaseModel):
    """
    One line of a component's bill of materials.

    The line is a tagged reference: ``item_type`` says which of
    ``supply_id`` / ``sub_component_id`` is set, and a check constraint
    enforces that exactly that one is set.

    Attributes:
        component_id: Parent component (owner of the line)
        item_type: "supply" or "component"
        supply_id: Referenced supply when item_type == "supply"
        sub_component_id: Referenced component when item_type == "component"
        quantity: Amount of the child consumed by one execution of the parent's
            recipe (one execution yields the parent's yield_amount)
        sort_order: Display order within the recipe
        is_optional: Optional lines are skipped when unavailable at production
        notes: Optional notes
    """

    __tablename__ = "component_supplies"

    component_id = Column(
        Integer, ForeignKey("components.id", ondelete="CASCADE"), nullable=False
    )
    item_type = Column(String(20), nullable=False, default=ItemType.SUPPLY.value)
    supply_id = Column(Integer, ForeignKey("supplies.id", ondelete="RESTRICT"), nullable=True)
    sub_component_id = Column(
        Integer, ForeignKey("components.id", ondelete="RESTRICT"), nullable=True
    )

    quantity = Column(Numeric(14, 4), nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)
    is_optional = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)

    component = relationship(
        "Component", foreign_keys=[component_id], back_populates="recipe_lines"
    )
    supply = relationship("Supply", foreign_keys=[supply_id], lazy="joined")
    sub_component = relationship(
        "Component", foreign_keys=[sub_component_id], back_populates="used_in", lazy="joined"
    )

    __table_args__ = (
        Index("idx_component_supply_component", "component_id"),
        Index("idx_component_supply_supply", "supply_id"),
        Index("idx_component_supply_sub_component", "sub_component_id"),
        Index("idx_component_supply_sort", "component_id", "sort_order"),
        CheckConstraint("quantity > 0", name="ck_component_supply_quantity_positive"),
        CheckConstraint(
            "(item_type = 'supply' AND supply_id IS NOT NULL AND sub_component_id IS NULL) OR "
            "(item_type = 'component' AND sub_component_id IS NOT NULL AND supply_id IS NULL)",
            name="ck_component_supply_exactly_one_item",
        ),
        CheckConstraint(
            "sub_component_id IS NULL OR sub_component_id != component_id",
            name="ck_component_supply_no_self_reference",
        ),
        UniqueConstraint("component_id", "supply_id", name="uq_component_supply_supply"),
        UniqueConstraint(
            "component_id", "sub_component_id", name="uq_component_supply_sub_component"
        ),
    )

    @property
    def kind(self) -> ItemType:
        """The line's item type as an ItemType member."""
        return ItemType(self.item_type)

    @property
    def item_id(self) -> Optional[int]:
        """ID of the referenced supply or sub-component."""
        if self.kind is ItemType.SUPPLY:
            return self.supply_id
        return self.sub_component_id

    @property
    def item_ref(self) -> Tuple[ItemType, Optional[int]]:
        """Tagged reference ``(ItemType, id)`` to the line's child."""
        return self.kind, self.item_id

    @property
    def item_name(self) -> Optional[str]:
        item = self.supply if self.kind is ItemType.SUPPLY else self.sub_component
        return item.name if item is not None else None

    def __repr__(self) -> str:
        return (
            f"ComponentSupply(component_id={self.component_id}, "
            f"item={self.item_type}:{self.item_id}, quantity={self.quantity})"
        )
