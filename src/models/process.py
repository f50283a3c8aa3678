"""
Process models: production processes that use supplies and components.

Processes are only modelled as far as the BOM core needs them: their lines
count as usages of a supply or component, which blocks deletion.
"""

from sqlalchemy import Column, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import BaseModel


class Process(BaseModel):
    """
    A production process (e.g., the final assembly of a sellable product).

    Attributes:
        name: Process name
        description: Optional description
        production_time_minutes: Optional duration
        business_id: Owning business
        store_id: Optional owning store
    """

    __tablename__ = "processes"

    name = Column(String(255), nullable=False)
    description = Column(String(500), nullable=True)
    production_time_minutes = Column(Integer, nullable=True)
    business_id = Column(Integer, nullable=False, index=True)
    store_id = Column(Integer, nullable=True)

    process_supplies = relationship(
        "ProcessSupply",
        back_populates="process",
        cascade="all, delete-orphan",
        order_by="ProcessSupply.sort_order",
    )
    process_components = relationship(
        "ProcessComponent",
        back_populates="process",
        cascade="all, delete-orphan",
        order_by="ProcessComponent.sort_order",
    )


class ProcessSupply(BaseModel):
    """A supply used by a process."""

    __tablename__ = "process_supplies"

    process_id = Column(Integer, ForeignKey("processes.id", ondelete="CASCADE"), nullable=False)
    supply_id = Column(Integer, ForeignKey("supplies.id", ondelete="RESTRICT"), nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)

    process = relationship("Process", back_populates="process_supplies")
    supply = relationship("Supply")

    __table_args__ = (
        Index("idx_process_supply_supply", "supply_id"),
        UniqueConstraint("process_id", "supply_id", name="uq_process_supply"),
    )


class ProcessComponent(BaseModel):
    """A component used by a process."""

    __tablename__ = "process_components"

    process_id = Column(Integer, ForeignKey("processes.id", ondelete="CASCADE"), nullable=False)
    component_id = Column(
        Integer, ForeignKey("components.id", ondelete="RESTRICT"), nullable=False
    )
    sort_order = Column(Integer, nullable=False, default=0)

    process = relationship("Process", back_populates="process_components")
    component = relationship("Component")

    __table_args__ = (
        Index("idx_process_component_component", "component_id"),
        UniqueConstraint("process_id", "component_id", name="uq_process_component"),
    )
