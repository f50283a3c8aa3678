"""
Production batch models for components.

This module contains:
- ComponentProduction: One produced batch with frozen unit cost and a running
  consumed counter
- ComponentConsumption: Traceability ledger of draw-downs from a batch
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from src.utils.datetime_utils import utc_now, utc_today


class ComponentProduction(BaseModel):
    """
    One produced batch of a component.

    ``cost`` is the unit cost computed by the cost roll-up when the batch was
    produced and is never recomputed. ``amount_consumed`` only grows through
    consumption (or administrative correction) and never exceeds
    ``produced_amount``.

    Attributes:
        component_id: Component produced
        business_id: Owning business
        store_id: Optional owning store
        produced_amount: Quantity produced
        amount_consumed: Quantity drawn down so far
        production_date: When the batch was produced
        expiration_date: Optional calendar date after which the batch is unusable
        batch_number: Human-readable batch identifier
        cost: Frozen unit cost
        notes: Optional notes
        is_active: Deactivated batches are excluded from availability
    """

    __tablename__ = "component_productions"

    component_id = Column(
        Integer, ForeignKey("components.id", ondelete="RESTRICT"), nullable=False
    )
    business_id = Column(Integer, nullable=False, index=True)
    store_id = Column(Integer, nullable=True)

    produced_amount = Column(Numeric(14, 4), nullable=False)
    amount_consumed = Column(Numeric(14, 4), nullable=False, default=0)

    production_date = Column(DateTime, nullable=False, default=utc_now, index=True)
    expiration_date = Column(Date, nullable=True, index=True)
    batch_number = Column(String(100), nullable=True, index=True)

    cost = Column(Numeric(14, 4), nullable=False, default=0)
    notes = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    component = relationship("Component", back_populates="productions")
    supply_entries = relationship(
        "SupplyEntry", back_populates="component_production", order_by="SupplyEntry.id"
    )
    consumptions = relationship(
        "ComponentConsumption",
        foreign_keys="ComponentConsumption.production_id",
        back_populates="production",
        order_by="ComponentConsumption.id",
    )

    __table_args__ = (
        Index("idx_component_production_component", "component_id", "is_active"),
        CheckConstraint("produced_amount > 0", name="ck_component_production_amount_positive"),
        CheckConstraint(
            "amount_consumed >= 0 AND amount_consumed <= produced_amount",
            name="ck_component_production_consumed_within_produced",
        ),
        CheckConstraint("cost >= 0", name="ck_component_production_cost_non_negative"),
    )

    @property
    def remaining_amount(self) -> Decimal:
        """Quantity still available in this batch."""
        return Decimal(str(self.produced_amount)) - Decimal(str(self.amount_consumed or 0))

    @property
    def is_exhausted(self) -> bool:
        return self.remaining_amount <= 0

    def is_expired(self, today: Optional[date] = None) -> bool:
        """
        Check if the batch is past its expiration date.

        A batch expiring today is still usable today.
        """
        if self.expiration_date is None:
            return False
        return self.expiration_date < (today or utc_today())

    def is_available(self, today: Optional[date] = None) -> bool:
        """Active, not expired and not exhausted."""
        return bool(self.is_active) and not self.is_expired(today) and not self.is_exhausted

    def to_dict(self, include_relationships: bool = False) -> dict:
        result = super().to_dict(include_relationships)
        result["remaining_amount"] = str(self.remaining_amount)
        result["is_expired"] = self.is_expired()
        return result

    def __repr__(self) -> str:
        return (
            f"ComponentProduction(id={self.id}, component_id={self.component_id}, "
            f"produced={self.produced_amount}, consumed={self.amount_consumed})"
        )


class ComponentConsumption(BaseModel):
    """
    A draw-down from a production batch.

    Mirrors SupplyEntry consumption rows for component batches: the batch's
    ``amount_consumed`` is the running total, and these rows record who took
    what.

    Attributes:
        production_id: Batch drawn down
        consumer_production_id: Production run that used the batch as input
        amount: Quantity drawn (> 0)
        notes: Optional notes
    """

    __tablename__ = "component_consumptions"

    production_id = Column(
        Integer, ForeignKey("component_productions.id", ondelete="RESTRICT"), nullable=False
    )
    consumer_production_id = Column(
        Integer, ForeignKey("component_productions.id", ondelete="SET NULL"), nullable=True
    )
    amount = Column(Numeric(14, 4), nullable=False)
    notes = Column(Text, nullable=True)

    production = relationship(
        "ComponentProduction", foreign_keys=[production_id], back_populates="consumptions"
    )
    consumer_production = relationship(
        "ComponentProduction", foreign_keys=[consumer_production_id]
    )

    __table_args__ = (
        Index("idx_component_consumption_production", "production_id"),
        Index("idx_component_consumption_consumer", "consumer_production_id"),
        CheckConstraint("amount > 0", name="ck_component_consumption_amount_positive"),
    )
