"""Service layer exception classes for the GP Inventory production core.

This module defines all custom exceptions used by the service layer to provide
consistent error handling across the ledger, BOM, cost and production
services. Every business error carries the identifiers a caller needs to
render an actionable message.

Exception Hierarchy:
    ServiceError (base)
    ├── ValidationError
    ├── CircularReferenceError
    ├── InsufficientStock
    ├── OverConsumption
    ├── ReferentialConflict
    ├── SupplyNotFound
    ├── SupplyCategoryNotFound
    ├── ComponentNotFound
    ├── SupplyEntryNotFound
    ├── ProductionNotFound
    ├── ProcessNotFound
    ├── LockTimeoutError
    └── DatabaseError

``http_status_code`` is a hint for whatever outer surface maps these errors
onto responses; the core itself never speaks HTTP.
"""

from decimal import Decimal
from typing import Iterable, List, Optional, Sequence


class ServiceError(Exception):
    """Base exception for all service layer errors.

    All service-specific exceptions inherit from this class.
    """

    http_status_code = 500


class ValidationError(ServiceError):
    """Raised when input validation fails (before any write).

    Args:
        errors: List of human-readable error messages

    Example:
        >>> raise ValidationError(["Amount: Must be greater than zero"])
        ValidationError: Validation failed: Amount: Must be greater than zero
    """

    http_status_code = 400

    def __init__(self, errors):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__(f"Validation failed: {'; '.join(self.errors)}")


class CircularReferenceError(ServiceError):
    """Raised when a BOM line would create, or the stored graph already has, a cycle.

    Args:
        component_id: Component whose recipe is being edited or evaluated
        child_id: Offending sub-component
        path: Optional list of component IDs forming the cycle
    """

    http_status_code = 409

    def __init__(self, component_id: int, child_id: int, path: Optional[Sequence[int]] = None):
        self.component_id = component_id
        self.child_id = child_id
        self.path = list(path) if path else []
        if self.path:
            chain = " -> ".join(str(node) for node in self.path)
            message = f"Circular reference detected in BOM: {chain}"
        else:
            message = (
                f"Adding component {child_id} to component {component_id} "
                f"would create a circular reference"
            )
        super().__init__(message)


class InsufficientStock(ServiceError):
    """Raised when a consumption would exceed available quantity.

    Args:
        item_type: "supply" or "component"
        item_id: ID of the supply or component
        item_name: Display name
        required: Quantity requested
        available: Quantity available
    """

    http_status_code = 409

    def __init__(
        self,
        item_type: str,
        item_id: int,
        item_name: Optional[str],
        required: Decimal,
        available: Decimal,
    ):
        self.item_type = item_type
        self.item_id = item_id
        self.item_name = item_name
        self.required = required
        self.available = available
        label = item_name or f"{item_type} {item_id}"
        super().__init__(
            f"Insufficient stock for {label}: required {required}, available {available}"
        )


class OverConsumption(ServiceError):
    """Raised when consuming more from a production batch than it has left.

    Args:
        production_id: Batch ID
        requested: Quantity requested
        remaining: Quantity left in the batch
    """

    http_status_code = 409

    def __init__(self, production_id: int, requested: Decimal, remaining: Decimal):
        self.production_id = production_id
        self.requested = requested
        self.remaining = remaining
        super().__init__(
            f"Cannot consume {requested} from production {production_id}: "
            f"only {remaining} remaining"
        )


class ReferentialConflict(ServiceError):
    """Raised when deleting an item that recipes or processes still reference.

    Args:
        item_type: "supply" or "component"
        item_id: ID of the item being deleted
        usage: Dictionary of usage counts {usage_kind: count}

    Example:
        >>> raise ReferentialConflict("supply", 3, {"components": 2, "processes": 1})
        ReferentialConflict: Cannot delete supply 3: used in 2 components, 1 processes
    """

    http_status_code = 409

    def __init__(self, item_type: str, item_id: int, usage: dict):
        self.item_type = item_type
        self.item_id = item_id
        self.usage = usage
        details = ", ".join(f"{count} {kind}" for kind, count in usage.items() if count > 0)
        super().__init__(f"Cannot delete {item_type} {item_id}: used in {details}")


class _NotFound(ServiceError):
    http_status_code = 404
    entity_label = "Entity"

    def __init__(self, entity_id: int):
        self.entity_id = entity_id
        super().__init__(f"{self.entity_label} with ID {entity_id} not found")


class SupplyNotFound(_NotFound):
    """Raised when a supply cannot be found by ID."""

    entity_label = "Supply"

    @property
    def supply_id(self) -> int:
        return self.entity_id


class SupplyCategoryNotFound(_NotFound):
    """Raised when a supply category cannot be found by ID."""

    entity_label = "Supply category"


class ComponentNotFound(_NotFound):
    """Raised when a component cannot be found by ID."""

    entity_label = "Component"

    @property
    def component_id(self) -> int:
        return self.entity_id


class SupplyEntryNotFound(_NotFound):
    """Raised when a ledger entry cannot be found by ID."""

    entity_label = "Supply entry"


class ProductionNotFound(_NotFound):
    """Raised when a production batch cannot be found by ID."""

    entity_label = "Production"

    @property
    def production_id(self) -> int:
        return self.entity_id


class ProcessNotFound(_NotFound):
    """Raised when a process cannot be found by ID."""

    entity_label = "Process"


class LockTimeoutError(ServiceError):
    """Raised when per-item locks cannot be acquired in time.

    This is an infrastructure condition (contention), not a business rule
    violation; callers may retry.
    """

    http_status_code = 503

    def __init__(self, keys: Iterable, timeout: float):
        self.keys: List = list(keys)
        self.timeout = timeout
        super().__init__(f"Timed out after {timeout}s waiting for locks on {self.keys}")


class DatabaseError(ServiceError):
    """Raised when a database operation fails.

    The original SQLAlchemy error is kept on ``original_error``.
    """

    http_status_code = 500

    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(f"Database error: {message}")
