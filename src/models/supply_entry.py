"""
SupplyEntry model: the append-only ledger of supply stock movements.

Each row is one immutable event for a supply. Positive amounts are stock
received (purchases, corrections), negative amounts are stock removed
(production consumption, manual usage). Current stock is always the sum of
the active amounts; nothing else is stored.
"""

from decimal import Decimal

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
)
from sqlalchemy.orm import relationship

from .base import BaseModel


class SupplyEntry(BaseModel):
    """
    One ledger event for a supply.

    Entries are never updated after creation except for ``is_active`` and are
    never deleted in normal operation.

    Attributes:
        supply_id: Supply this entry moves
        amount: Signed amount (> 0 addition, < 0 consumption)
        unit_cost: Cost per unit at the time of the movement
        provider_id: External provider reference (additions)
        component_production_id: Production batch whose run caused the entry
        reference_entry_id: Weak back-reference to the addition a consumption
            drew from. Informational only: never used to derive stock or cost.
        tag: Optional free-form label
        notes: Optional notes
        is_active: Inactive entries are excluded from every aggregate
    """

    __tablename__ = "supply_entries"

    supply_id = Column(
        Integer, ForeignKey("supplies.id", ondelete="RESTRICT"), nullable=False
    )
    amount = Column(Numeric(14, 4), nullable=False)
    unit_cost = Column(Numeric(14, 4), nullable=False, default=0)

    provider_id = Column(Integer, nullable=True, index=True)
    component_production_id = Column(
        Integer, ForeignKey("component_productions.id", ondelete="SET NULL"), nullable=True
    )
    reference_entry_id = Column(
        Integer, ForeignKey("supply_entries.id", ondelete="SET NULL"), nullable=True
    )

    tag = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    supply = relationship("Supply", back_populates="entries")
    component_production = relationship(
        "ComponentProduction", back_populates="supply_entries"
    )

    __table_args__ = (
        Index("idx_supply_entry_supply", "supply_id", "is_active"),
        Index("idx_supply_entry_production", "component_production_id"),
        Index("idx_supply_entry_reference", "reference_entry_id"),
        CheckConstraint("amount != 0", name="ck_supply_entry_amount_non_zero"),
        CheckConstraint("unit_cost >= 0", name="ck_supply_entry_unit_cost_non_negative"),
    )

    @property
    def is_addition(self) -> bool:
        return self.amount is not None and Decimal(str(self.amount)) > 0

    @property
    def is_consumption(self) -> bool:
        return self.amount is not None and Decimal(str(self.amount)) < 0

    @property
    def total_cost(self) -> Decimal:
        """Absolute value of amount x unit cost."""
        return abs(Decimal(str(self.amount))) * Decimal(str(self.unit_cost or 0))

    def __repr__(self) -> str:
        return (
            f"SupplyEntry(id={self.id}, supply_id={self.supply_id}, "
            f"amount={self.amount}, unit_cost={self.unit_cost})"
        )
