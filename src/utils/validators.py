"""
Input validation functions for the GP Inventory production core.

This module provides validation functions for all user inputs including:
- Numeric validation (positive, non-negative) on Decimal values
- String validation (length, required fields)
- Unit validation
- Entity payload validation (supplies, components, recipe lines)

Validators never raise; they return ``(is_valid, error)`` or
``(is_valid, errors)`` tuples and the services turn failures into
``ValidationError``.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional, Tuple

from .constants import (
    ALL_UNITS,
    ERROR_INVALID_ITEM_TYPE,
    ERROR_INVALID_NON_NEGATIVE,
    ERROR_INVALID_NUMBER,
    ERROR_INVALID_POSITIVE,
    ERROR_INVALID_SUPPLY_TYPE,
    ERROR_INVALID_UNIT,
    ERROR_REQUIRED_FIELD,
    MAX_DESCRIPTION_LENGTH,
    MAX_NAME_LENGTH,
    MAX_NOTES_LENGTH,
    MAX_QUANTITY,
)

VALID_ITEM_TYPES = ("supply", "component")
VALID_SUPPLY_TYPES = ("final", "intermediate", "both")


def parse_decimal(value: Any, default: Optional[Decimal] = None) -> Optional[Decimal]:
    """
    Convert a user-supplied number to Decimal.

    Floats go through ``str()`` so 0.1 becomes Decimal("0.1"), not its
    binary expansion.

    Args:
        value: Value to convert
        default: Returned when value is None, empty or not numeric

    Returns:
        Decimal value or default
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, Decimal):
        return value if value.is_finite() else default
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return default
    return result if result.is_finite() else default


def sanitize_string(value: Optional[str]) -> Optional[str]:
    """Strip whitespace; empty strings become None."""
    if value is None:
        return None
    stripped = str(value).strip()
    return stripped or None


def validate_required_string(value: Optional[str], field_name: str = "Field") -> Tuple[bool, str]:
    """
    Validate that a string field is not empty.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if value is None or (isinstance(value, str) and value.strip() == ""):
        return False, f"{field_name}: {ERROR_REQUIRED_FIELD}"
    return True, ""


def validate_string_length(
    value: Optional[str], max_length: int, field_name: str = "Field"
) -> Tuple[bool, str]:
    """Validate that a string doesn't exceed maximum length."""
    if value and len(value) > max_length:
        return False, f"{field_name}: Must be {max_length} characters or less"
    return True, ""


def validate_positive_number(value: Any, field_name: str = "Field") -> Tuple[bool, str]:
    """
    Validate that a value is a positive number (> 0).

    Returns:
        Tuple of (is_valid, error_message)
    """
    number = parse_decimal(value)
    if number is None:
        return False, f"{field_name}: {ERROR_INVALID_NUMBER}"
    if number <= 0:
        return False, f"{field_name}: {ERROR_INVALID_POSITIVE}"
    if number > MAX_QUANTITY:
        return False, f"{field_name}: Must be {MAX_QUANTITY} or less"
    return True, ""


def validate_non_negative_number(value: Any, field_name: str = "Field") -> Tuple[bool, str]:
    """Validate that a value is a non-negative number (>= 0)."""
    number = parse_decimal(value)
    if number is None:
        return False, f"{field_name}: {ERROR_INVALID_NUMBER}"
    if number < 0:
        return False, f"{field_name}: {ERROR_INVALID_NON_NEGATIVE}"
    return True, ""


def validate_unit(unit: Optional[str], field_name: str = "Unit") -> Tuple[bool, str]:
    """Validate that a unit is one of the known units of measure."""
    is_valid, error = validate_required_string(unit, field_name)
    if not is_valid:
        return False, error
    if unit.strip().lower() not in ALL_UNITS:
        return False, f"{field_name}: {ERROR_INVALID_UNIT} '{unit}'"
    return True, ""


def validate_supply_type(value: Any, field_name: str = "Supply Type") -> Tuple[bool, str]:
    """Validate a supply type given as its string value (case-insensitive)."""
    if not isinstance(value, str) or value.strip().lower() not in VALID_SUPPLY_TYPES:
        return False, f"{field_name}: {ERROR_INVALID_SUPPLY_TYPE}"
    return True, ""


def validate_identity(value: Any, field_name: str = "ID") -> Tuple[bool, str]:
    """Validate an integer identity (positive int, bools rejected)."""
    if isinstance(value, bool) or not isinstance(value, int):
        return False, f"{field_name}: Must be an integer identifier"
    if value <= 0:
        return False, f"{field_name}: {ERROR_INVALID_POSITIVE}"
    return True, ""


def _collect(errors: List[str], result: Tuple[bool, str]) -> None:
    is_valid, error = result
    if not is_valid:
        errors.append(error)


def _validate_catalog_common(data: dict, label: str, partial: bool) -> List[str]:
    errors: List[str] = []

    if not partial or "name" in data:
        is_valid, error = validate_required_string(data.get("name"), f"{label} Name")
        if not is_valid:
            errors.append(error)
        else:
            _collect(errors, validate_string_length(data["name"], MAX_NAME_LENGTH, f"{label} Name"))

    if not partial or "business_id" in data:
        _collect(errors, validate_identity(data.get("business_id"), "Business ID"))

    if data.get("store_id") is not None:
        _collect(errors, validate_identity(data.get("store_id"), "Store ID"))

    if data.get("unit") is not None:
        _collect(errors, validate_unit(data.get("unit")))

    if data.get("minimum_stock") is not None:
        _collect(errors, validate_non_negative_number(data["minimum_stock"], "Minimum Stock"))

    if data.get("description"):
        _collect(
            errors,
            validate_string_length(data["description"], MAX_DESCRIPTION_LENGTH, "Description"),
        )

    return errors


def validate_supply_data(data: dict, partial: bool = False) -> Tuple[bool, list]:
    """
    Validate all fields for a supply.

    Args:
        data: Dictionary containing supply fields
        partial: If True, only validate fields present (update payloads)

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors = _validate_catalog_common(data, "Supply", partial)
    if data.get("supply_type") is not None:
        _collect(errors, validate_supply_type(data["supply_type"]))
    return len(errors) == 0, errors


def validate_component_data(data: dict, partial: bool = False) -> Tuple[bool, list]:
    """
    Validate all fields for a component.

    Yield amount is required on create and must be positive: unit costs
    are normalized by it.

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors = _validate_catalog_common(data, "Component", partial)

    if not partial or "yield_amount" in data:
        _collect(errors, validate_positive_number(data.get("yield_amount"), "Yield Amount"))

    if data.get("preparation_time_minutes") is not None:
        _collect(
            errors,
            validate_non_negative_number(data["preparation_time_minutes"], "Preparation Time"),
        )

    return len(errors) == 0, errors


def validate_recipe_line(line: dict, position: int) -> List[str]:
    """
    Validate one proposed BOM line.

    Args:
        line: Dict with item_type, item_id, quantity and optional sort_order,
              is_optional, notes
        position: 1-based position used in error messages

    Returns:
        List of error messages (empty when valid)
    """
    label = f"Line {position}"
    errors: List[str] = []

    item_type = line.get("item_type")
    if item_type not in VALID_ITEM_TYPES:
        errors.append(f"{label}: {ERROR_INVALID_ITEM_TYPE}")

    _collect(errors, validate_identity(line.get("item_id"), f"{label} Item ID"))
    _collect(errors, validate_positive_number(line.get("quantity"), f"{label} Quantity"))

    if line.get("sort_order") is not None:
        sort_order = line["sort_order"]
        if isinstance(sort_order, bool) or not isinstance(sort_order, int) or sort_order < 0:
            errors.append(f"{label} Sort Order: Must be a non-negative integer")

    if line.get("notes"):
        _collect(errors, validate_string_length(line["notes"], MAX_NOTES_LENGTH, f"{label} Notes"))

    return errors
