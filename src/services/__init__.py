"""Services package - Business logic layer for the GP Inventory core.

This package contains all service modules that provide business logic
and database operations for the production core.

Architecture:
- Services: Stateless functions organized by domain (ledger, BOM, cost, production)
- Transactions: Managed via session_scope() context manager
- Concurrency: Per-item re-entrant locks (locking.hold)
- Exceptions: Consistent error handling via ServiceError hierarchy
- Validation: Input validation before database operations

Service Modules:
- ledger_service: Append-only supply ledger, stock and unit cost
- bom_service: Component recipes, cycle detection, usage counts
- cost_service: Recursive unit-cost roll-up and BOM trees
- production_service: Production runs and batch tracking
- supply_service: Supply and supply category catalog
- component_service: Component catalog
- process_service: Processes (recipe users that block deletes)

Infrastructure:
- exceptions: Custom exception classes for service layer errors
- database: Session management and database utilities
- locking: Keyed lock registry
- logging_utils: Structured operation logging
"""

# Service modules
from . import (
    database,
    ledger_service,
    bom_service,
    cost_service,
    production_service,
    supply_service,
    component_service,
    process_service,
)

# Ledger
from .ledger_service import (
    get_current_stock,
    get_current_unit_cost,
    stock_status,
    record_addition,
    record_consumption,
    consume_fifo,
    get_history,
    get_supply_stock,
    get_all_supply_stocks,
)

# BOM graph
from .bom_service import (
    UsageCount,
    get_edges,
    would_create_cycle,
    set_recipe,
    get_usage_count,
    ensure_not_in_use,
)

# Cost roll-up
from .cost_service import (
    BOMTreeNode,
    CostCalculator,
    calculate_unit_cost,
    get_bom_tree,
)

# Production
from .production_service import (
    produce,
    check_can_produce,
    consume,
    get_available_quantity,
    get_expiring_batches,
    get_expiring_productions,
)

# Exceptions
from .exceptions import (
    ServiceError,
    ValidationError,
    CircularReferenceError,
    InsufficientStock,
    OverConsumption,
    ReferentialConflict,
    SupplyNotFound,
    SupplyCategoryNotFound,
    ComponentNotFound,
    SupplyEntryNotFound,
    ProductionNotFound,
    ProcessNotFound,
    LockTimeoutError,
    DatabaseError,
)

__all__ = [
    # Modules
    "database",
    "ledger_service",
    "bom_service",
    "cost_service",
    "production_service",
    "supply_service",
    "component_service",
    "process_service",
    # Ledger
    "get_current_stock",
    "get_current_unit_cost",
    "stock_status",
    "record_addition",
    "record_consumption",
    "consume_fifo",
    "get_history",
    "get_supply_stock",
    "get_all_supply_stocks",
    # BOM graph
    "UsageCount",
    "get_edges",
    "would_create_cycle",
    "set_recipe",
    "get_usage_count",
    "ensure_not_in_use",
    # Cost roll-up
    "BOMTreeNode",
    "CostCalculator",
    "calculate_unit_cost",
    "get_bom_tree",
    # Production
    "produce",
    "check_can_produce",
    "consume",
    "get_available_quantity",
    "get_expiring_batches",
    "get_expiring_productions",
    # Exceptions
    "ServiceError",
    "ValidationError",
    "CircularReferenceError",
    "InsufficientStock",
    "OverConsumption",
    "ReferentialConflict",
    "SupplyNotFound",
    "SupplyCategoryNotFound",
    "ComponentNotFound",
    "SupplyEntryNotFound",
    "ProductionNotFound",
    "ProcessNotFound",
    "LockTimeoutError",
    "DatabaseError",
]
