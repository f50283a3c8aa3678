"""
BOM Service - component recipes as a directed graph.

This module provides functions for:
- Reading a component's recipe lines (BOM edges)
- Reachability-based cycle detection for proposed sub-components
- Atomic replacement of a component's recipe, and single-line edits
- Usage counts and where-used lookups that gate deletion
- Closure collection (everything a component transitively needs)

Every graph walk is an explicit breadth-first traversal with a visited set,
so a graph that is already cyclic in storage still terminates.
"""

import logging
from collections import deque
from contextlib import nullcontext
from typing import Any, Dict, FrozenSet, List, NamedTuple, Sequence, Set, Tuple, Union

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..models import (
    Component,
    ComponentSupply,
    ItemType,
    ProcessComponent,
    ProcessSupply,
    Supply,
)
from ..utils.validators import parse_decimal, sanitize_string, validate_recipe_line
from ..utils.constants import ERROR_INVALID_ITEM_TYPE
from .database import session_scope
from .exceptions import (
    CircularReferenceError,
    ComponentNotFound,
    DatabaseError,
    ReferentialConflict,
    ValidationError,
)
from .locking import RECIPE_GRAPH_KEY, component_key, hold, supply_key
from .logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)


class UsageCount(NamedTuple):
    """How many recipes reference an item."""

    component_usage: int
    process_usage: int

    @property
    def total(self) -> int:
        return self.component_usage + self.process_usage

    def as_dict(self) -> Dict[str, int]:
        return {"components": self.component_usage, "processes": self.process_usage}


class BOMClosure(NamedTuple):
    """Every component and supply reachable from a root component (root included)."""

    root_id: int
    component_ids: FrozenSet[int]
    supply_ids: FrozenSet[int]

    def lock_keys(self) -> List[Tuple[str, int]]:
        keys = [component_key(cid) for cid in self.component_ids]
        keys.extend(supply_key(sid) for sid in self.supply_ids)
        return sorted(keys)


def coerce_item_type(item_type: Union[str, ItemType]) -> ItemType:
    """
    Normalize an item type given as ItemType or its string value.

    Raises:
        ValidationError: If the value is not a known item type
    """
    try:
        return ItemType(item_type)
    except ValueError:
        raise ValidationError([f"Item Type: {ERROR_INVALID_ITEM_TYPE}"])


def _get_component(session, component_id: int) -> Component:
    component = session.get(Component, component_id)
    if component is None:
        raise ComponentNotFound(component_id)
    return component


def _child_component_ids(session, component_id: int) -> List[int]:
    rows = (
        session.query(ComponentSupply.sub_component_id)
        .filter(
            ComponentSupply.component_id == component_id,
            ComponentSupply.sub_component_id.isnot(None),
        )
        .all()
    )
    return [row[0] for row in rows]


def _reaches(session, start_id: int, target_id: int) -> bool:
    visited: Set[int] = set()
    queue = deque([start_id])

    while queue:
        current_id = queue.popleft()
        if current_id == target_id:
            return True
        if current_id in visited:
            continue
        visited.add(current_id)
        queue.extend(_child_component_ids(session, current_id))

    return False


def get_edges(component_id: int, *, session=None) -> List[ComponentSupply]:
    """
    Get a component's recipe lines ordered by sort_order.

    Raises:
        ComponentNotFound: If the component does not exist
    """
    cm = nullcontext(session) if session is not None else session_scope()
    try:
        with cm as sess:
            _get_component(sess, component_id)
            return (
                sess.query(ComponentSupply)
                .filter(ComponentSupply.component_id == component_id)
                .order_by(ComponentSupply.sort_order.asc(), ComponentSupply.id.asc())
                .all()
            )
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to load recipe for component {component_id}", e)


def would_create_cycle(parent_id: int, candidate_id: int, *, session=None) -> bool:
    """
    Check whether adding candidate as a sub-component of parent makes a cycle.

    True if the candidate is the parent itself, or if the parent is reachable
    from the candidate by following component-type recipe lines.

    Algorithm:
        Breadth-first traversal from the candidate with visited tracking
    """
    if parent_id == candidate_id:
        return True

    cm = nullcontext(session) if session is not None else session_scope()
    try:
        with cm as sess:
            return _reaches(sess, candidate_id, parent_id)
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to check BOM reachability", e)


def _validate_lines(
    session,
    component: Component,
    lines: Sequence[Dict[str, Any]],
    operation: str,
    existing: Sequence[ComponentSupply] = (),
    first_sort_order: int = 0,
) -> List[Dict[str, Any]]:
    """
    Validate proposed lines; returns normalized line dicts or raises.

    ``existing`` holds lines the recipe keeps, so duplicates against them
    are rejected too. Must run under the recipe edit locks.
    """
    errors: List[str] = []
    normalized = []
    seen: Set[Tuple[ItemType, int]] = {edge.item_ref for edge in existing}

    for position, line in enumerate(lines, start=1):
        line_errors = validate_recipe_line(line, position)
        if line_errors:
            errors.extend(line_errors)
            continue

        item_type = ItemType(line["item_type"])
        item_id = line["item_id"]
        ref = (item_type, item_id)
        if ref in seen:
            errors.append(f"Line {position}: Duplicate {item_type.value} {item_id} in recipe")
            continue
        seen.add(ref)

        model = Supply if item_type is ItemType.SUPPLY else Component
        item = session.get(model, item_id)
        if item is None:
            errors.append(f"Line {position}: {item_type.value.capitalize()} {item_id} not found")
            continue
        if item.business_id != component.business_id:
            errors.append(
                f"Line {position}: {item_type.value.capitalize()} {item_id} "
                f"belongs to another business"
            )
            continue
        if item_type is ItemType.SUPPLY and not item.kind.usable_in_recipes:
            errors.append(f"Line {position}: Supply {item_id} is for final products only")
            continue

        normalized.append(
            {
                "item_type": item_type,
                "item_id": item_id,
                "quantity": parse_decimal(line["quantity"]),
                "sort_order": (
                    line["sort_order"]
                    if line.get("sort_order") is not None
                    else first_sort_order + position - 1
                ),
                "is_optional": bool(line.get("is_optional", False)),
                "notes": sanitize_string(line.get("notes")),
            }
        )

    if errors:
        log_operation(
            logger,
            operation,
            "validation_failed",
            level=logging.WARNING,
            component_id=component.id,
            errors=errors,
        )
        raise ValidationError(errors)

    for line in normalized:
        if line["item_type"] is ItemType.COMPONENT and (
            line["item_id"] == component.id or _reaches(session, line["item_id"], component.id)
        ):
            log_operation(
                logger,
                operation,
                "circular_reference",
                level=logging.WARNING,
                component_id=component.id,
                child_id=line["item_id"],
            )
            raise CircularReferenceError(component.id, line["item_id"])

    return normalized


def _new_edge(line: Dict[str, Any]) -> ComponentSupply:
    is_supply = line["item_type"] is ItemType.SUPPLY
    return ComponentSupply(
        item_type=line["item_type"].value,
        supply_id=line["item_id"] if is_supply else None,
        sub_component_id=None if is_supply else line["item_id"],
        quantity=line["quantity"],
        sort_order=line["sort_order"],
        is_optional=line["is_optional"],
        notes=line["notes"],
    )


def _recipe_edit_locks(component_id: int):
    return hold([component_key(component_id), RECIPE_GRAPH_KEY])


def set_recipe(
    component_id: int, lines: Sequence[Dict[str, Any]], *, session=None
) -> List[ComponentSupply]:
    """
    Replace a component's whole recipe atomically.

    Every line is validated (item type, quantity, existence, business,
    supply type, duplicates, cycles) before anything is deleted, so a
    rejected recipe leaves the previous one intact.

    The component's lock and the recipe graph lock are held for the whole
    check-and-replace: concurrent edits are serialized, so two edits can
    never each pass a cycle check that only the other's edge would fail,
    and a concurrent production run never observes a half-updated recipe.
    When the caller passes a session, the locks are released before the
    caller commits.

    Args:
        component_id: Component whose recipe is replaced
        lines: List of dicts with item_type ("supply" | "component"),
            item_id, quantity and optional sort_order, is_optional, notes.
            An empty list clears the recipe.
        session: Optional session (caller owns the transaction)

    Returns:
        The new recipe lines, ordered by sort_order

    Raises:
        ComponentNotFound: If the component does not exist
        ValidationError: If any line is malformed or references a missing item
        CircularReferenceError: If a component line would create a cycle
    """
    try:
        with _recipe_edit_locks(component_id):
            cm = nullcontext(session) if session is not None else session_scope()
            with cm as sess:
                component = _get_component(sess, component_id)
                normalized = _validate_lines(sess, component, lines, "set_recipe")

                # Old rows must be gone before the unique constraints see new ones
                component.recipe_lines.clear()
                sess.flush()

                for line in normalized:
                    component.recipe_lines.append(_new_edge(line))
                sess.flush()

                log_operation(
                    logger,
                    "set_recipe",
                    "success",
                    component_id=component_id,
                    line_count=len(normalized),
                )
                return sorted(component.recipe_lines, key=lambda e: (e.sort_order, e.id))
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to set recipe for component {component_id}", e)


def add_recipe_lines(
    component_id: int, lines: Sequence[Dict[str, Any]], *, session=None
) -> List[ComponentSupply]:
    """
    Append lines to a component's recipe, keeping the existing ones.

    Lines are validated like set_recipe's, and a line whose item is already
    in the recipe is a duplicate. Without an explicit sort_order, new lines
    are placed after the existing ones. All lines are added or none.

    Returns:
        The added lines, in the order given

    Raises:
        ComponentNotFound: If the component does not exist
        ValidationError: Malformed, duplicate or missing items
        CircularReferenceError: If a component line would create a cycle
    """
    try:
        with _recipe_edit_locks(component_id):
            cm = nullcontext(session) if session is not None else session_scope()
            with cm as sess:
                component = _get_component(sess, component_id)
                existing = list(component.recipe_lines)
                next_order = max((edge.sort_order or 0 for edge in existing), default=-1) + 1
                normalized = _validate_lines(
                    sess,
                    component,
                    lines,
                    "add_recipe_lines",
                    existing=existing,
                    first_sort_order=next_order,
                )

                added = [_new_edge(line) for line in normalized]
                component.recipe_lines.extend(added)
                sess.flush()

                log_operation(
                    logger,
                    "add_recipe_lines",
                    "success",
                    component_id=component_id,
                    line_count=len(added),
                )
                return added
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to add recipe lines to component {component_id}", e)


def add_recipe_line(component_id: int, line: Dict[str, Any], *, session=None) -> ComponentSupply:
    """Append one line to a component's recipe (see add_recipe_lines)."""
    return add_recipe_lines(component_id, [line], session=session)[0]


def remove_recipe_line(component_id: int, line_id: int, *, session=None) -> bool:
    """
    Remove one line from a component's recipe.

    Returns:
        True if the line was removed, False if the component has no such line

    Raises:
        ComponentNotFound: If the component does not exist
    """
    try:
        with _recipe_edit_locks(component_id):
            cm = nullcontext(session) if session is not None else session_scope()
            with cm as sess:
                component = _get_component(sess, component_id)
                edge = sess.get(ComponentSupply, line_id)
                if edge is None or edge.component_id != component.id:
                    return False

                component.recipe_lines.remove(edge)
                sess.flush()
                log_operation(
                    logger,
                    "remove_recipe_line",
                    "success",
                    component_id=component_id,
                    line_id=line_id,
                )
                return True
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to remove recipe line {line_id}", e)


def get_usage_count(
    item_id: int, item_type: Union[str, ItemType], *, session=None
) -> UsageCount:
    """
    Count recipe lines and process lines that reference an item.

    Returns:
        UsageCount(component_usage, process_usage)
    """
    kind = coerce_item_type(item_type)

    cm = nullcontext(session) if session is not None else session_scope()
    try:
        with cm as sess:
            if kind is ItemType.SUPPLY:
                component_usage = (
                    sess.query(func.count(ComponentSupply.id))
                    .filter(ComponentSupply.supply_id == item_id)
                    .scalar()
                )
                process_usage = (
                    sess.query(func.count(ProcessSupply.id))
                    .filter(ProcessSupply.supply_id == item_id)
                    .scalar()
                )
            else:
                component_usage = (
                    sess.query(func.count(ComponentSupply.id))
                    .filter(ComponentSupply.sub_component_id == item_id)
                    .scalar()
                )
                process_usage = (
                    sess.query(func.count(ProcessComponent.id))
                    .filter(ProcessComponent.component_id == item_id)
                    .scalar()
                )
            return UsageCount(component_usage or 0, process_usage or 0)
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to count usage of {kind.value} {item_id}", e)


def ensure_not_in_use(item_id: int, item_type: Union[str, ItemType], *, session=None) -> None:
    """
    Gate a delete on an item not being referenced.

    Raises:
        ReferentialConflict: If any recipe or process references the item
    """
    kind = coerce_item_type(item_type)
    usage = get_usage_count(item_id, kind, session=session)
    if usage.total > 0:
        log_operation(
            logger,
            "ensure_not_in_use",
            "referential_conflict",
            level=logging.WARNING,
            item_type=kind.value,
            item_id=item_id,
            usage=usage.as_dict(),
        )
        raise ReferentialConflict(kind.value, item_id, usage.as_dict())


def get_parent_components(
    item_id: int, item_type: Union[str, ItemType], *, session=None
) -> List[Component]:
    """Get the components whose recipes use an item directly, ordered by name."""
    kind = coerce_item_type(item_type)
    if kind is ItemType.SUPPLY:
        column = ComponentSupply.supply_id
    else:
        column = ComponentSupply.sub_component_id

    cm = nullcontext(session) if session is not None else session_scope()
    try:
        with cm as sess:
            return (
                sess.query(Component)
                .join(ComponentSupply, ComponentSupply.component_id == Component.id)
                .filter(column == item_id)
                .distinct()
                .order_by(Component.name)
                .all()
            )
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to find parents of {kind.value} {item_id}", e)


def collect_closure(component_id: int, *, session=None) -> BOMClosure:
    """
    Collect every component and supply reachable from a component.

    Used to plan which locks a production run must hold.

    Raises:
        ComponentNotFound: If the root component does not exist
    """
    cm = nullcontext(session) if session is not None else session_scope()
    try:
        with cm as sess:
            _get_component(sess, component_id)
            components: Set[int] = set()
            supplies: Set[int] = set()
            queue = deque([component_id])

            while queue:
                current_id = queue.popleft()
                if current_id in components:
                    continue
                components.add(current_id)

                rows = (
                    sess.query(ComponentSupply.supply_id, ComponentSupply.sub_component_id)
                    .filter(ComponentSupply.component_id == current_id)
                    .all()
                )
                for supply_id, sub_component_id in rows:
                    if supply_id is not None:
                        supplies.add(supply_id)
                    if sub_component_id is not None:
                        queue.append(sub_component_id)

            return BOMClosure(component_id, frozenset(components), frozenset(supplies))
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to collect closure of component {component_id}", e)
