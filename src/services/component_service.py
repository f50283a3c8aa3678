"""Component Service - catalog operations for producible components.

Recipes are edited through bom_service.set_recipe and batches through
production_service; this module covers the component rows themselves.

Key Features:
- Create/Read/Update components with validation (yield must be positive)
- Soft delete via deactivate/reactivate (preserves production history)
- Delete refused while any recipe or process uses the component
- Hard delete (recipe lines included) only when no batches exist
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.models import Component, ComponentProduction, ItemType
from src.services import bom_service
from src.services.database import session_scope
from src.services.exceptions import ComponentNotFound, DatabaseError, ValidationError
from src.services.logging_utils import get_service_logger, log_operation
from src.services.supply_service import validate_category_reference
from src.utils.constants import DEFAULT_UNIT
from src.utils.validators import parse_decimal, sanitize_string, validate_component_data

logger = get_service_logger(__name__)

COMPONENT_UPDATABLE_FIELDS = (
    "name",
    "description",
    "unit",
    "yield_amount",
    "preparation_time_minutes",
    "minimum_stock",
    "store_id",
    "category_id",
)


def _normalize(data: Dict[str, Any]) -> Dict[str, Any]:
    normalized = dict(data)
    for key in ("name", "description"):
        if key in normalized:
            normalized[key] = sanitize_string(normalized[key])
    if normalized.get("unit") is not None:
        normalized["unit"] = normalized["unit"].strip().lower()
    for key in ("yield_amount", "minimum_stock"):
        if normalized.get(key) is not None:
            normalized[key] = parse_decimal(normalized[key])
    if normalized.get("preparation_time_minutes") is not None:
        normalized["preparation_time_minutes"] = int(
            parse_decimal(normalized["preparation_time_minutes"])
        )
    return normalized


def _get_component_impl(component_id: int, session: Session) -> Component:
    component = session.get(Component, component_id)
    if component is None:
        raise ComponentNotFound(component_id)
    return component


def create_component(data: Dict[str, Any], *, session: Optional[Session] = None) -> Component:
    """Create a new component (with an empty recipe).

    Args:
        data: Dictionary with name, business_id, yield_amount and optional
              description, unit, preparation_time_minutes, minimum_stock,
              store_id, category_id

    Raises:
        ValidationError: If data is invalid
        SupplyCategoryNotFound: If category_id does not exist
    """
    is_valid, errors = validate_component_data(data)
    if not is_valid:
        log_operation(
            logger, "create_component", "validation_failed", level=logging.WARNING, errors=errors
        )
        raise ValidationError(errors)

    def _do(sess):
        fields = _normalize(data)
        validate_category_reference(sess, fields.get("category_id"), fields["business_id"])
        component = Component(
            name=fields["name"],
            description=fields.get("description"),
            unit=fields.get("unit") or DEFAULT_UNIT,
            yield_amount=fields["yield_amount"],
            preparation_time_minutes=fields.get("preparation_time_minutes"),
            minimum_stock=fields.get("minimum_stock") or 0,
            business_id=fields["business_id"],
            store_id=fields.get("store_id"),
            category_id=fields.get("category_id"),
            active=True,
        )
        sess.add(component)
        sess.flush()
        log_operation(
            logger,
            "create_component",
            "success",
            component_id=component.id,
            component_name=component.name,
        )
        return component

    try:
        if session is not None:
            return _do(session)
        with session_scope() as sess:
            return _do(sess)
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to create component", e)


def get_component(component_id: int, *, session: Optional[Session] = None) -> Component:
    """Get a component by ID (ComponentNotFound if missing)."""
    if session is not None:
        return _get_component_impl(component_id, session)
    with session_scope() as session:
        return _get_component_impl(component_id, session)


def get_components(
    business_id: int,
    store_id: Optional[int] = None,
    category_id: Optional[int] = None,
    include_inactive: bool = False,
    *,
    session: Optional[Session] = None,
) -> List[Component]:
    """List a business's components, ordered by name."""

    def _do(sess):
        query = sess.query(Component).filter(Component.business_id == business_id)
        if store_id is not None:
            query = query.filter(Component.store_id == store_id)
        if category_id is not None:
            query = query.filter(Component.category_id == category_id)
        if not include_inactive:
            query = query.filter(Component.active.is_(True))
        return query.order_by(Component.name).all()

    if session is not None:
        return _do(session)
    with session_scope() as sess:
        return _do(sess)


def update_component(
    component_id: int, data: Dict[str, Any], *, session: Optional[Session] = None
) -> Component:
    """Update a component's catalog fields.

    Changing yield_amount changes future unit costs; batches already
    produced keep their frozen cost.

    Raises:
        ValidationError: Unknown fields or invalid values
        ComponentNotFound: If the component does not exist
    """
    errors = [
        f"{key}: Field cannot be updated"
        for key in data
        if key not in COMPONENT_UPDATABLE_FIELDS
    ]
    _, field_errors = validate_component_data(data, partial=True)
    errors.extend(field_errors)
    if errors:
        log_operation(
            logger,
            "update_component",
            "validation_failed",
            level=logging.WARNING,
            component_id=component_id,
            errors=errors,
        )
        raise ValidationError(errors)

    def _do(sess):
        component = _get_component_impl(component_id, sess)
        fields = _normalize(data)
        if "category_id" in fields:
            validate_category_reference(sess, fields["category_id"], component.business_id)
        component.update_from_dict(fields)
        sess.flush()
        log_operation(
            logger, "update_component", "success", component_id=component_id, fields=sorted(fields)
        )
        return component

    try:
        if session is not None:
            return _do(session)
        with session_scope() as sess:
            return _do(sess)
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to update component {component_id}", e)


def _set_active(component_id: int, active: bool, session: Optional[Session]) -> Component:
    def _do(sess):
        component = _get_component_impl(component_id, sess)
        component.active = active
        sess.flush()
        outcome = "reactivated" if active else "deactivated"
        log_operation(logger, "set_component_active", outcome, component_id=component_id)
        return component

    try:
        if session is not None:
            return _do(session)
        with session_scope() as sess:
            return _do(sess)
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to change active flag of component {component_id}", e)


def deactivate_component(component_id: int, *, session: Optional[Session] = None) -> Component:
    """Soft-delete a component; inactive components cannot be produced."""
    return _set_active(component_id, False, session)


def reactivate_component(component_id: int, *, session: Optional[Session] = None) -> Component:
    return _set_active(component_id, True, session)


def delete_component(component_id: int, *, session: Optional[Session] = None) -> bool:
    """Delete a component.

    A component used by another recipe or a process cannot be deleted. A
    component with production batches is soft-deactivated instead.

    Returns:
        True if the row (and its recipe) was deleted, False if deactivated

    Raises:
        ComponentNotFound: If the component does not exist
        ReferentialConflict: If recipes or processes still use it
    """

    def _do(sess):
        component = _get_component_impl(component_id, sess)
        bom_service.ensure_not_in_use(component_id, ItemType.COMPONENT, session=sess)

        has_batches = (
            sess.query(ComponentProduction.id)
            .filter(ComponentProduction.component_id == component_id)
            .first()
            is not None
        )
        if has_batches:
            component.active = False
            sess.flush()
            log_operation(logger, "delete_component", "deactivated", component_id=component_id)
            return False

        sess.delete(component)
        sess.flush()
        log_operation(logger, "delete_component", "deleted", component_id=component_id)
        return True

    try:
        if session is not None:
            return _do(session)
        with session_scope() as sess:
            return _do(sess)
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to delete component {component_id}", e)
