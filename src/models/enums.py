"""
Enumerations for the BOM, ledger and production models.

This module contains enums used across the production core:
- ItemType: Discriminant for what a BOM line points at
- StockStatus: Stock classification against a minimum threshold
- ProductionStage: Lifecycle of a production run
- SupplyConsumptionPolicy: How supply lots are drawn down
- BatchConsumptionOrder: Which component batches are drawn first
- SupplyType: What a supply is bought for
"""

from enum import Enum


class ItemType(str, Enum):
    """
    Kind of item referenced by a BOM line or a usage query.

    Values:
        SUPPLY: A raw/purchasable supply tracked in the ledger
        COMPONENT: A producible component tracked in production batches
    """

    SUPPLY = "supply"
    COMPONENT = "component"


class StockStatus(str, Enum):
    """
    Stock classification used by notifiers and stock summaries.

    Values:
        OUT_OF_STOCK: Nothing on hand
        LOW_STOCK: Something on hand but below the minimum threshold
        IN_STOCK: At or above the minimum threshold
    """

    OUT_OF_STOCK = "out_of_stock"
    LOW_STOCK = "low_stock"
    IN_STOCK = "in_stock"

    @property
    def label(self) -> str:
        return {
            StockStatus.OUT_OF_STOCK: "Out of stock",
            StockStatus.LOW_STOCK: "Low stock",
            StockStatus.IN_STOCK: "In stock",
        }[self]


class ProductionStage(str, Enum):
    """
    Stages of a production run.

    A run moves REQUESTED -> PRICED -> CONSUMING -> COMMITTED, or ends in
    FAILED from any stage. Only COMMITTED runs leave rows behind.
    """

    REQUESTED = "requested"
    PRICED = "priced"
    CONSUMING = "consuming"
    COMMITTED = "committed"
    FAILED = "failed"


class SupplyConsumptionPolicy(str, Enum):
    """
    How a consumption is split across a supply's addition lots.

    Values:
        FIFO: Oldest lots first; one entry per lot slice at that lot's cost
        AVERAGE: One entry at the weighted-average unit cost
    """

    FIFO = "fifo"
    AVERAGE = "average"


class BatchConsumptionOrder(str, Enum):
    """
    Order in which component batches are drawn down during production.

    Values:
        OLDEST_FIRST: By production date, then id
        EARLIEST_EXPIRING: By expiration date (batches without one last)
    """

    OLDEST_FIRST = "oldest_first"
    EARLIEST_EXPIRING = "earliest_expiring"


class SupplyType(str, Enum):
    """
    What a supply is bought for.

    Values:
        FINAL: Only packed or sold with final products; never a recipe input
        INTERMEDIATE: Only used in component recipes
        BOTH: Either use (default)
    """

    FINAL = "final"
    INTERMEDIATE = "intermediate"
    BOTH = "both"

    @property
    def usable_in_recipes(self) -> bool:
        return self is not SupplyType.FINAL
