"""Process Service - production processes that use supplies and components.

Processes matter to the core only as users of supplies and components:
their lines count toward bom_service.get_usage_count and so block deletes.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.models import Component, Process, ProcessComponent, ProcessSupply, Supply
from src.services.database import session_scope
from src.services.exceptions import DatabaseError, ProcessNotFound, ValidationError
from src.services.logging_utils import get_service_logger, log_operation
from src.utils.constants import MAX_DESCRIPTION_LENGTH, MAX_NAME_LENGTH
from src.utils.validators import (
    sanitize_string,
    validate_identity,
    validate_non_negative_number,
    validate_required_string,
    validate_string_length,
)

logger = get_service_logger(__name__)


def _validate_process_data(data: Dict[str, Any]) -> List[str]:
    errors = []
    checks = [
        validate_required_string(data.get("name"), "Process Name"),
        validate_string_length(data.get("name"), MAX_NAME_LENGTH, "Process Name"),
        validate_identity(data.get("business_id"), "Business ID"),
        validate_string_length(data.get("description"), MAX_DESCRIPTION_LENGTH, "Description"),
    ]
    if data.get("production_time_minutes") is not None:
        checks.append(
            validate_non_negative_number(data["production_time_minutes"], "Production Time")
        )
    for is_valid, error in checks:
        if not is_valid:
            errors.append(error)
    return errors


def _replace_lines(
    session: Session,
    process: Process,
    supply_ids: Sequence[int],
    component_ids: Sequence[int],
) -> None:
    errors = []
    for label, model, ids in (
        ("Supply", Supply, supply_ids),
        ("Component", Component, component_ids),
    ):
        if len(set(ids)) != len(ids):
            errors.append(f"{label} IDs: Duplicates are not allowed")
        for item_id in ids:
            item = session.get(model, item_id)
            if item is None:
                errors.append(f"{label} {item_id} not found")
            elif item.business_id != process.business_id:
                errors.append(f"{label} {item_id} belongs to another business")
    if errors:
        raise ValidationError(errors)

    process.process_supplies.clear()
    process.process_components.clear()
    session.flush()

    for position, supply_id in enumerate(supply_ids):
        process.process_supplies.append(ProcessSupply(supply_id=supply_id, sort_order=position))
    for position, component_id in enumerate(component_ids):
        process.process_components.append(
            ProcessComponent(component_id=component_id, sort_order=position)
        )
    session.flush()


def create_process(
    data: Dict[str, Any],
    supply_ids: Sequence[int] = (),
    component_ids: Sequence[int] = (),
    *,
    session: Optional[Session] = None,
) -> Process:
    """Create a process with its supply and component lines.

    Raises:
        ValidationError: Invalid data, unknown or foreign items, duplicates
    """
    errors = _validate_process_data(data)
    if errors:
        log_operation(
            logger, "create_process", "validation_failed", level=logging.WARNING, errors=errors
        )
        raise ValidationError(errors)

    def _do(sess):
        process = Process(
            name=sanitize_string(data["name"]),
            description=sanitize_string(data.get("description")),
            production_time_minutes=data.get("production_time_minutes"),
            business_id=data["business_id"],
            store_id=data.get("store_id"),
        )
        sess.add(process)
        sess.flush()
        _replace_lines(sess, process, list(supply_ids), list(component_ids))
        log_operation(logger, "create_process", "success", process_id=process.id)
        return process

    try:
        if session is not None:
            return _do(session)
        with session_scope() as sess:
            return _do(sess)
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to create process", e)


def get_process(process_id: int, *, session: Optional[Session] = None) -> Process:
    """Get a process by ID (ProcessNotFound if missing)."""

    def _do(sess):
        process = sess.get(Process, process_id)
        if process is None:
            raise ProcessNotFound(process_id)
        return process

    if session is not None:
        return _do(session)
    with session_scope() as sess:
        return _do(sess)


def get_processes(business_id: int, *, session: Optional[Session] = None) -> List[Process]:
    def _do(sess):
        return (
            sess.query(Process)
            .filter(Process.business_id == business_id)
            .order_by(Process.name)
            .all()
        )

    if session is not None:
        return _do(session)
    with session_scope() as sess:
        return _do(sess)


def set_process_lines(
    process_id: int,
    supply_ids: Sequence[int],
    component_ids: Sequence[int],
    *,
    session: Optional[Session] = None,
) -> Process:
    """Replace a process's supply and component lines."""

    def _do(sess):
        process = sess.get(Process, process_id)
        if process is None:
            raise ProcessNotFound(process_id)
        _replace_lines(sess, process, list(supply_ids), list(component_ids))
        log_operation(logger, "set_process_lines", "success", process_id=process_id)
        return process

    try:
        if session is not None:
            return _do(session)
        with session_scope() as sess:
            return _do(sess)
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to update lines of process {process_id}", e)


def delete_process(process_id: int, *, session: Optional[Session] = None) -> None:
    """Delete a process and its lines."""

    def _do(sess):
        process = sess.get(Process, process_id)
        if process is None:
            raise ProcessNotFound(process_id)
        sess.delete(process)
        sess.flush()
        log_operation(logger, "delete_process", "deleted", process_id=process_id)

    try:
        if session is not None:
            return _do(session)
        with session_scope() as sess:
            return _do(sess)
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to delete process {process_id}", e)
