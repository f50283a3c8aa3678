"""Supply Service - catalog operations for raw supplies and their categories.

This module provides business logic for managing supplies, including
CRUD operations, soft delete (deactivate/reactivate) and supply categories.
Stock itself is never edited here; see ledger_service.

Key Features:
- Create/Read/Update supplies with validation, scoped by business/store
- Soft delete via deactivate/reactivate (preserves ledger history)
- Delete refused while any recipe or process uses the supply
- Hard delete only when the supply has no ledger entries

Example Usage:
    >>> from src.services.supply_service import create_supply
    >>> flour = create_supply({"name": "Flour", "unit": "kg", "business_id": 1})
    >>> flour.name
    'Flour'
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.models import ItemType, Supply, SupplyCategory, SupplyEntry, SupplyType
from src.services import bom_service
from src.services.database import session_scope
from src.services.exceptions import (
    DatabaseError,
    SupplyCategoryNotFound,
    SupplyNotFound,
    ValidationError,
)
from src.services.logging_utils import get_service_logger, log_operation
from src.utils.constants import DEFAULT_UNIT, MAX_DESCRIPTION_LENGTH, MAX_NAME_LENGTH
from src.utils.validators import (
    parse_decimal,
    sanitize_string,
    validate_identity,
    validate_required_string,
    validate_string_length,
    validate_supply_data,
    validate_supply_type,
)

logger = get_service_logger(__name__)

SUPPLY_UPDATABLE_FIELDS = (
    "name",
    "description",
    "unit",
    "minimum_stock",
    "store_id",
    "category_id",
    "supply_type",
)


def validate_category_reference(
    session: Session, category_id: Optional[int], business_id: int
) -> None:
    """Raise unless category_id is None or an active category of the business."""
    if category_id is None:
        return
    category = session.get(SupplyCategory, category_id)
    if category is None:
        raise SupplyCategoryNotFound(category_id)
    if category.business_id != business_id:
        raise ValidationError([f"Category: Category {category_id} belongs to another business"])


def _normalize(data: Dict[str, Any]) -> Dict[str, Any]:
    normalized = dict(data)
    for key in ("name", "description"):
        if key in normalized:
            normalized[key] = sanitize_string(normalized[key])
    if normalized.get("unit") is not None:
        normalized["unit"] = normalized["unit"].strip().lower()
    if normalized.get("minimum_stock") is not None:
        normalized["minimum_stock"] = parse_decimal(normalized["minimum_stock"])
    if normalized.get("supply_type") is not None:
        normalized["supply_type"] = SupplyType(normalized["supply_type"].strip().lower()).value
    return normalized


# =============================================================================
# Supplies
# =============================================================================


def create_supply(data: Dict[str, Any], *, session: Optional[Session] = None) -> Supply:
    """Create a new supply.

    Args:
        data: Dictionary with name, business_id and optional description,
              unit, minimum_stock, store_id, category_id, supply_type
        session: Optional database session

    Returns:
        Created Supply

    Raises:
        ValidationError: If data is invalid
        SupplyCategoryNotFound: If category_id does not exist
    """
    is_valid, errors = validate_supply_data(data)
    if not is_valid:
        log_operation(
            logger, "create_supply", "validation_failed", level=logging.WARNING, errors=errors
        )
        raise ValidationError(errors)

    try:
        if session is not None:
            return _create_supply_impl(data, session)
        with session_scope() as session:
            return _create_supply_impl(data, session)
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to create supply", e)


def _create_supply_impl(data: Dict[str, Any], session: Session) -> Supply:
    """Implementation of create_supply."""
    data = _normalize(data)
    validate_category_reference(session, data.get("category_id"), data["business_id"])

    supply = Supply(
        name=data["name"],
        description=data.get("description"),
        unit=data.get("unit") or DEFAULT_UNIT,
        minimum_stock=data.get("minimum_stock") or 0,
        business_id=data["business_id"],
        store_id=data.get("store_id"),
        category_id=data.get("category_id"),
        supply_type=data.get("supply_type") or SupplyType.BOTH.value,
        active=True,
    )
    session.add(supply)
    session.flush()

    log_operation(logger, "create_supply", "success", supply_id=supply.id, supply_name=supply.name)
    return supply


def get_supply(supply_id: int, *, session: Optional[Session] = None) -> Supply:
    """Get a supply by ID.

    Raises:
        SupplyNotFound: If the supply does not exist
    """
    if session is not None:
        return _get_supply_impl(supply_id, session)
    with session_scope() as session:
        return _get_supply_impl(supply_id, session)


def _get_supply_impl(supply_id: int, session: Session) -> Supply:
    supply = session.get(Supply, supply_id)
    if supply is None:
        raise SupplyNotFound(supply_id)
    return supply


def get_supplies(
    business_id: int,
    store_id: Optional[int] = None,
    category_id: Optional[int] = None,
    name_search: Optional[str] = None,
    include_inactive: bool = False,
    supply_type: Optional[str] = None,
    *,
    session: Optional[Session] = None,
) -> List[Supply]:
    """List a business's supplies, ordered by name.

    Args:
        business_id: Owning business (required scope)
        store_id: Optional store filter
        category_id: Optional category filter
        name_search: Optional case-insensitive substring of the name
        include_inactive: Include deactivated supplies
        supply_type: Optional use filter; "final" or "intermediate" also
            match supplies of type "both"
    """
    if supply_type is not None:
        is_valid, error = validate_supply_type(supply_type)
        if not is_valid:
            raise ValidationError([error])
        supply_type = supply_type.strip().lower()

    filters = (store_id, category_id, name_search, include_inactive, supply_type)
    if session is not None:
        return _get_supplies_impl(business_id, *filters, session)
    with session_scope() as session:
        return _get_supplies_impl(business_id, *filters, session)


def _get_supplies_impl(
    business_id, store_id, category_id, name_search, include_inactive, supply_type, session
):
    query = session.query(Supply).filter(Supply.business_id == business_id)
    if supply_type is not None:
        kind = SupplyType(supply_type)
        accepted = {kind.value, SupplyType.BOTH.value}
        query = query.filter(Supply.supply_type.in_(sorted(accepted)))
    if store_id is not None:
        query = query.filter(Supply.store_id == store_id)
    if category_id is not None:
        query = query.filter(Supply.category_id == category_id)
    if name_search:
        query = query.filter(Supply.name.ilike(f"%{name_search.strip()}%"))
    if not include_inactive:
        query = query.filter(Supply.active.is_(True))
    return query.order_by(Supply.name).all()


def update_supply(
    supply_id: int, data: Dict[str, Any], *, session: Optional[Session] = None
) -> Supply:
    """Update a supply's catalog fields.

    Only name, description, unit, minimum_stock, store_id, category_id and
    supply_type can be changed; ownership and the ledger are untouched.

    Raises:
        ValidationError: Unknown fields or invalid values
        SupplyNotFound: If the supply does not exist
    """
    errors = [
        f"{key}: Field cannot be updated" for key in data if key not in SUPPLY_UPDATABLE_FIELDS
    ]
    _, field_errors = validate_supply_data(data, partial=True)
    errors.extend(field_errors)
    if errors:
        log_operation(
            logger,
            "update_supply",
            "validation_failed",
            level=logging.WARNING,
            supply_id=supply_id,
            errors=errors,
        )
        raise ValidationError(errors)

    try:
        if session is not None:
            return _update_supply_impl(supply_id, data, session)
        with session_scope() as session:
            return _update_supply_impl(supply_id, data, session)
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to update supply {supply_id}", e)


def _update_supply_impl(supply_id: int, data: Dict[str, Any], session: Session) -> Supply:
    supply = _get_supply_impl(supply_id, session)
    data = _normalize(data)
    if "category_id" in data:
        validate_category_reference(session, data["category_id"], supply.business_id)
    new_type = data.get("supply_type")
    if new_type is not None and not SupplyType(new_type).usable_in_recipes:
        usage = bom_service.get_usage_count(supply_id, ItemType.SUPPLY, session=session)
        if usage.component_usage > 0:
            raise ValidationError(
                [
                    f"Supply Type: Supply {supply_id} is used in {usage.component_usage} "
                    f"component recipe(s) and cannot be final-only"
                ]
            )

    supply.update_from_dict(data)
    session.flush()
    log_operation(logger, "update_supply", "success", supply_id=supply_id, fields=sorted(data))
    return supply


def _set_active(supply_id: int, active: bool, session: Optional[Session]) -> Supply:
    def _do(sess):
        supply = _get_supply_impl(supply_id, sess)
        supply.active = active
        sess.flush()
        outcome = "reactivated" if active else "deactivated"
        log_operation(logger, "set_supply_active", outcome, supply_id=supply_id)
        return supply

    try:
        if session is not None:
            return _do(session)
        with session_scope() as sess:
            return _do(sess)
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to change active flag of supply {supply_id}", e)


def deactivate_supply(supply_id: int, *, session: Optional[Session] = None) -> Supply:
    """Soft-delete a supply (ledger history is preserved)."""
    return _set_active(supply_id, False, session)


def reactivate_supply(supply_id: int, *, session: Optional[Session] = None) -> Supply:
    """Undo deactivate_supply."""
    return _set_active(supply_id, True, session)


def delete_supply(supply_id: int, *, session: Optional[Session] = None) -> bool:
    """Delete a supply.

    A supply used by any recipe or process cannot be deleted. A supply with
    ledger entries is soft-deactivated instead of removed.

    Returns:
        True if the row was deleted, False if it was deactivated

    Raises:
        SupplyNotFound: If the supply does not exist
        ReferentialConflict: If recipes or processes still use the supply
    """

    def _do(sess):
        supply = _get_supply_impl(supply_id, sess)
        bom_service.ensure_not_in_use(supply_id, ItemType.SUPPLY, session=sess)

        has_entries = (
            sess.query(SupplyEntry.id).filter(SupplyEntry.supply_id == supply_id).first()
            is not None
        )
        if has_entries:
            supply.active = False
            sess.flush()
            log_operation(logger, "delete_supply", "deactivated", supply_id=supply_id)
            return False

        sess.delete(supply)
        sess.flush()
        log_operation(logger, "delete_supply", "deleted", supply_id=supply_id)
        return True

    try:
        if session is not None:
            return _do(session)
        with session_scope() as sess:
            return _do(sess)
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to delete supply {supply_id}", e)


# =============================================================================
# Categories
# =============================================================================


def create_category(
    name: str,
    business_id: int,
    description: Optional[str] = None,
    *,
    session: Optional[Session] = None,
) -> SupplyCategory:
    """Create a supply category for a business.

    Raises:
        ValidationError: If name or business_id is invalid
    """
    errors = []
    for is_valid, error in (
        validate_required_string(name, "Category Name"),
        validate_string_length(name, MAX_NAME_LENGTH, "Category Name"),
        validate_identity(business_id, "Business ID"),
        validate_string_length(description, MAX_DESCRIPTION_LENGTH, "Description"),
    ):
        if not is_valid:
            errors.append(error)
    if errors:
        raise ValidationError(errors)

    def _do(sess):
        category = SupplyCategory(
            name=sanitize_string(name),
            description=sanitize_string(description),
            business_id=business_id,
            active=True,
        )
        sess.add(category)
        sess.flush()
        log_operation(logger, "create_category", "success", category_id=category.id)
        return category

    try:
        if session is not None:
            return _do(session)
        with session_scope() as sess:
            return _do(sess)
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to create supply category", e)


def get_category(category_id: int, *, session: Optional[Session] = None) -> SupplyCategory:
    """Get a category by ID (SupplyCategoryNotFound if missing)."""

    def _do(sess):
        category = sess.get(SupplyCategory, category_id)
        if category is None:
            raise SupplyCategoryNotFound(category_id)
        return category

    if session is not None:
        return _do(session)
    with session_scope() as sess:
        return _do(sess)


def get_categories(
    business_id: int, include_inactive: bool = False, *, session: Optional[Session] = None
) -> List[SupplyCategory]:
    """List a business's categories, ordered by name."""

    def _do(sess):
        query = sess.query(SupplyCategory).filter(SupplyCategory.business_id == business_id)
        if not include_inactive:
            query = query.filter(SupplyCategory.active.is_(True))
        return query.order_by(SupplyCategory.name).all()

    if session is not None:
        return _do(session)
    with session_scope() as sess:
        return _do(sess)
