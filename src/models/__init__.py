"""
Database models package.

This package contains all SQLAlchemy ORM models for the production core.
"""

from .base import Base, BaseModel
from .enums import (
    ItemType,
    StockStatus,
    ProductionStage,
    SupplyConsumptionPolicy,
    BatchConsumptionOrder,
    SupplyType,
)
from .supply import Supply, SupplyCategory
from .component import Component, ComponentSupply
from .supply_entry import SupplyEntry
from .component_production import ComponentProduction, ComponentConsumption
from .process import Process, ProcessSupply, ProcessComponent

__all__ = [
    "Base",
    "BaseModel",
    # Enums
    "ItemType",
    "StockStatus",
    "ProductionStage",
    "SupplyConsumptionPolicy",
    "BatchConsumptionOrder",
    "SupplyType",
    # Catalog
    "Supply",
    "SupplyCategory",
    "Component",
    "ComponentSupply",
    # Ledger
    "SupplyEntry",
    # Production
    "ComponentProduction",
    "ComponentConsumption",
    # Processes
    "Process",
    "ProcessSupply",
    "ProcessComponent",
]
