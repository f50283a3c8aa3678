"""
Production Service - realize production runs of components.

This module provides functions for:
- Checking whether a component can be produced (dry run)
- Producing a batch: pricing it, consuming supplies from the ledger and
  sub-component batches, and recording the ComponentProduction
- Drawing down produced batches (consumption with over-consumption guard)
- Availability and expiring-batch queries for notifiers
- Administrative correction and deactivation of batches

A production run moves through ProductionStage REQUESTED -> PRICED ->
CONSUMING -> COMMITTED, or ends FAILED. Every write of a run happens in one
session: when produce() owns the session, a failure rolls everything back;
when the caller passes a session, the caller owns rollback. Availability is
checked for every required line before the first write.

produce() holds the per-item locks of the component's whole BOM closure
(the component, every reachable sub-component and every reachable supply)
until the transaction ends.
"""

import logging
from contextlib import contextmanager, nullcontext
from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..models import (
    BatchConsumptionOrder,
    Component,
    ComponentConsumption,
    ComponentProduction,
    ComponentSupply,
    ItemType,
    ProductionStage,
)
from ..utils.config import get_config
from ..utils.constants import (
    MAX_BATCH_NUMBER_LENGTH,
    MAX_NOTES_LENGTH,
    QUANTITY_PLACES,
    ZERO,
)
from ..utils.datetime_utils import batch_timestamp, expiration_window, to_date, utc_now, utc_today
from ..utils.validators import (
    parse_decimal,
    sanitize_string,
    validate_non_negative_number,
    validate_positive_number,
    validate_string_length,
)
from . import bom_service, ledger_service
from .cost_service import CostCalculator
from .database import session_scope
from .exceptions import (
    ComponentNotFound,
    DatabaseError,
    InsufficientStock,
    OverConsumption,
    ProductionNotFound,
    ServiceError,
    ValidationError,
)
from .locking import component_key, hold
from .logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)

UPDATABLE_FIELDS = ("notes", "expiration_date", "batch_number", "amount_consumed")


@dataclass
class PlannedLine:
    """What a production run will do with one recipe line."""

    line: ComponentSupply
    item_type: ItemType
    item_id: int
    item_name: Optional[str]
    required: Decimal
    available: Decimal
    action: str  # "consume", "produce_shortfall", "skip" or "missing"

    @property
    def shortfall(self) -> Decimal:
        return max(ZERO, self.required - self.available)

    def as_missing(self) -> Dict[str, Any]:
        return {
            "item_type": self.item_type.value,
            "item_id": self.item_id,
            "item_name": self.item_name,
            "needed": self.required,
            "available": self.available,
        }


# =============================================================================
# Helpers
# =============================================================================


def _dec(value) -> Decimal:
    return Decimal(str(value)) if value is not None else ZERO


def _log_stage(stage: ProductionStage, component_id: int, **context) -> None:
    log_operation(
        logger, "produce", stage.value, level=logging.DEBUG, component_id=component_id, **context
    )


def _get_component(session, component_id: int) -> Component:
    component = session.get(Component, component_id)
    if component is None:
        raise ComponentNotFound(component_id)
    return component


def _get_production(session, production_id: int) -> ComponentProduction:
    production = session.get(ComponentProduction, production_id)
    if production is None:
        raise ProductionNotFound(production_id)
    return production


def _sub_production_allowed(allow_sub_production: Optional[bool]) -> bool:
    if allow_sub_production is None:
        return get_config().auto_produce_subcomponents
    return bool(allow_sub_production)


def _required_quantity(line: ComponentSupply, amount: Decimal, yield_amount: Decimal) -> Decimal:
    """
    Quantity of a line's child needed for ``amount`` units, at ledger precision.

    Raises:
        ValidationError: If a non-zero need rounds to zero
    """
    exact = _dec(line.quantity) * amount / yield_amount
    required = exact.quantize(QUANTITY_PLACES, rounding=ROUND_HALF_UP)
    if required <= 0 < exact:
        raise ValidationError(
            [
                f"{line.kind.value.capitalize()} {line.item_id}: Quantity needed for "
                f"{amount} unit(s) is below {QUANTITY_PLACES}; produce a larger amount"
            ]
        )
    return required


def _available_batches(session, component_id: int, today: Optional[date] = None):
    """Usable batches of a component in the configured draw-down order."""
    today = today or utc_today()
    query = session.query(ComponentProduction).filter(
        ComponentProduction.component_id == component_id,
        ComponentProduction.is_active.is_(True),
        ComponentProduction.amount_consumed < ComponentProduction.produced_amount,
    )

    order = BatchConsumptionOrder(get_config().batch_consumption_order)
    if order is BatchConsumptionOrder.EARLIEST_EXPIRING:
        query = query.order_by(
            ComponentProduction.expiration_date.is_(None).asc(),
            ComponentProduction.expiration_date.asc(),
            ComponentProduction.production_date.asc(),
            ComponentProduction.id.asc(),
        )
    else:
        query = query.order_by(
            ComponentProduction.production_date.asc(), ComponentProduction.id.asc()
        )

    return [batch for batch in query.all() if batch.is_available(today)]


def _available_in_session(session, component_id: int, today: Optional[date] = None) -> Decimal:
    return sum(
        (batch.remaining_amount for batch in _available_batches(session, component_id, today)),
        ZERO,
    )


def _draw_batches(
    session,
    component: Component,
    amount: Decimal,
    consumer_production_id: Optional[int],
    notes: Optional[str] = None,
) -> List[ComponentConsumption]:
    """Draw ``amount`` from a component's batches; InsufficientStock if short."""
    batches = _available_batches(session, component.id)
    available = sum((batch.remaining_amount for batch in batches), ZERO)
    if available < amount:
        raise InsufficientStock("component", component.id, component.name, amount, available)

    consumptions = []
    remaining_needed = amount
    for batch in batches:
        if remaining_needed <= 0:
            break
        take = min(batch.remaining_amount, remaining_needed)
        batch.amount_consumed = _dec(batch.amount_consumed) + take
        consumption = ComponentConsumption(
            production_id=batch.id,
            consumer_production_id=consumer_production_id,
            amount=take,
            notes=notes,
        )
        session.add(consumption)
        consumptions.append(consumption)
        remaining_needed -= take

    session.flush()
    return consumptions


def _plan(
    session,
    component: Component,
    amount: Decimal,
    allow_sub_production: bool,
    missing: List[Dict[str, Any]],
    visited: Optional[set] = None,
    reserved: Optional[Dict[Tuple[ItemType, int], Decimal]] = None,
) -> List[PlannedLine]:
    """
    Decide, line by line, how a run of ``amount`` would be satisfied.

    Unsatisfiable lines are appended to ``missing``. With sub-production
    allowed, a short sub-component is planned recursively for its shortfall.

    ``reserved`` is shared by the whole plan, recursive sub-plans included:
    what one line will draw is subtracted from what later lines see, in
    the same order the run consumes them.
    """
    visited = set() if visited is None else visited
    reserved = {} if reserved is None else reserved
    visited.add(component.id)

    allow_negative = get_config().allow_negative_stock
    yield_amount = _dec(component.yield_amount)
    planned = []

    for line in component.recipe_lines:
        required = _required_quantity(line, amount, yield_amount)
        ref = line.item_ref

        if line.kind is ItemType.SUPPLY:
            on_hand = ledger_service.get_current_stock(line.supply_id, session=session)
            available = max(ZERO, on_hand - reserved.get(ref, ZERO))
            enough = available >= required or allow_negative
        else:
            on_hand = _available_in_session(session, line.sub_component_id)
            available = max(ZERO, on_hand - reserved.get(ref, ZERO))
            enough = available >= required

        entry = PlannedLine(
            line=line,
            item_type=line.kind,
            item_id=line.item_id,
            item_name=line.item_name,
            required=required,
            available=available,
            action="consume",
        )

        if enough:
            reserved[ref] = reserved.get(ref, ZERO) + required
        elif line.is_optional:
            entry.action = "skip"
        elif (
            line.kind is ItemType.COMPONENT
            and allow_sub_production
            and line.sub_component_id not in visited
        ):
            entry.action = "produce_shortfall"
            # Existing batches are used up; the sub-run's output covers the rest
            reserved[ref] = reserved.get(ref, ZERO) + available
            _plan(
                session,
                line.sub_component,
                entry.shortfall,
                allow_sub_production,
                missing,
                visited,
                reserved,
            )
        else:
            entry.action = "missing"
            missing.append(entry.as_missing())

        planned.append(entry)

    visited.discard(component.id)
    return planned


def _next_batch_number(session, component_id: int, moment: datetime) -> str:
    count = (
        session.query(func.count(ComponentProduction.id))
        .filter(ComponentProduction.component_id == component_id)
        .scalar()
    )
    return f"{component_id}-{batch_timestamp(moment)}-{(count or 0) + 1}"


@contextmanager
def _closure_locks(component_id: int, session=None):
    """
    Hold the locks of a component's BOM closure.

    The closure is re-read under the locks; if a concurrent recipe edit
    grew it in the meantime, the larger key set is acquired instead.
    """
    keys = set(bom_service.collect_closure(component_id, session=session).lock_keys())
    while True:
        with hold(keys):
            current = set(bom_service.collect_closure(component_id, session=session).lock_keys())
            if current <= keys:
                yield sorted(keys)
                return
        keys |= current


def _validate_produce_input(amount, expiration_date, production_date, notes, batch_number):
    errors = []
    is_valid, error = validate_positive_number(amount, "Amount")
    if not is_valid:
        errors.append(error)

    expires = None
    if expiration_date is not None:
        try:
            expires = to_date(expiration_date)
        except ValueError:
            errors.append("Expiration Date: Must be a valid date")

    if production_date is not None and not isinstance(production_date, datetime):
        errors.append("Production Date: Must be a datetime")
    elif expires is not None and production_date is not None:
        if expires < production_date.date():
            errors.append("Expiration Date: Must not be before the production date")

    for is_valid, error in (
        validate_string_length(notes, MAX_NOTES_LENGTH, "Notes"),
        validate_string_length(batch_number, MAX_BATCH_NUMBER_LENGTH, "Batch Number"),
    ):
        if not is_valid:
            errors.append(error)

    return errors, expires


# =============================================================================
# Availability Check Functions
# =============================================================================


def check_can_produce(
    component_id: int,
    amount,
    allow_sub_production: Optional[bool] = None,
    *,
    session=None,
) -> Dict[str, Any]:
    """
    Check if a component can be produced with current stock (dry run).

    Args:
        component_id: Component to produce
        amount: Quantity to produce
        allow_sub_production: Count short sub-components as producible
            (defaults to config auto_produce_subcomponents)
        session: Optional database session

    Returns:
        Dict with keys:
            - "can_produce" (bool): True if nothing required is missing
            - "missing" (List[Dict]): item_type, item_id, item_name, needed,
              available for every unsatisfiable required line
            - "skipped_optional" (List[Dict]): optional lines that would be
              skipped
            - "unit_cost" (Decimal): Current unit cost
            - "total_cost" (Decimal): unit_cost x amount

    Raises:
        ValidationError: If amount <= 0 or a line's need rounds to zero
        ComponentNotFound: If the component does not exist
        CircularReferenceError: If the stored BOM has a cycle
    """
    is_valid, error = validate_positive_number(amount, "Amount")
    if not is_valid:
        raise ValidationError([error])
    amount = parse_decimal(amount)

    cm = nullcontext(session) if session is not None else session_scope()
    try:
        with cm as sess:
            component = _get_component(sess, component_id)
            unit_cost = CostCalculator(sess).unit_cost(component_id)

            missing: List[Dict[str, Any]] = []
            planned = _plan(
                sess, component, amount, _sub_production_allowed(allow_sub_production), missing
            )
            return {
                "can_produce": len(missing) == 0,
                "missing": missing,
                "skipped_optional": [p.as_missing() for p in planned if p.action == "skip"],
                "unit_cost": unit_cost,
                "total_cost": unit_cost * amount,
            }
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to check production of component {component_id}", e)


# =============================================================================
# Production
# =============================================================================


def produce(
    component_id: int,
    amount,
    expiration_date=None,
    notes: Optional[str] = None,
    batch_number: Optional[str] = None,
    production_date: Optional[datetime] = None,
    allow_sub_production: Optional[bool] = None,
    *,
    session=None,
) -> ComponentProduction:
    """
    Produce a batch of a component.

    Steps:
        1. Validate input (REQUESTED)
        2. Price the run with a fresh CostCalculator (PRICED)
        3. Plan every recipe line; fail before any write if a required line
           cannot be satisfied. Optional lines that cannot be satisfied are
           skipped.
        4. Record the batch, then consume supplies FIFO and sub-component
           batches in the configured order, producing sub-component
           shortfalls first when allowed (CONSUMING)
        5. Commit (COMMITTED)

    Each line needs ``line.quantity x amount / yield_amount`` of its child.

    Args:
        component_id: Component to produce
        amount: Quantity produced (> 0)
        expiration_date: Optional date (or ISO string) the batch expires
        notes: Optional notes
        batch_number: Optional batch number; generated as
            ``<component_id>-<YYYYMMDDHHMMSS>-<seq>`` when omitted
        production_date: Optional production datetime (defaults to now)
        allow_sub_production: Produce short sub-components recursively
            (defaults to config auto_produce_subcomponents)
        session: Optional session. If provided, the caller owns the
            transaction and must roll back on error.

    Returns:
        The new ComponentProduction (cost = frozen unit cost)

    Raises:
        ValidationError: Invalid amount, dates or text fields, or a line whose
            need at this amount is below ledger precision
        ComponentNotFound: If the component does not exist
        CircularReferenceError: If the stored BOM has a cycle
        InsufficientStock: If a required supply or sub-component is short
        LockTimeoutError: If the closure locks cannot be acquired in time
    """
    _log_stage(ProductionStage.REQUESTED, component_id, amount=str(amount))

    errors, expires = _validate_produce_input(
        amount, expiration_date, production_date, notes, batch_number
    )
    if errors:
        log_operation(
            logger,
            "produce",
            ProductionStage.FAILED.value,
            level=logging.WARNING,
            component_id=component_id,
            errors=errors,
        )
        raise ValidationError(errors)

    amount = parse_decimal(amount)
    allow_sub = _sub_production_allowed(allow_sub_production)

    try:
        with _closure_locks(component_id, session=session):
            cm = nullcontext(session) if session is not None else session_scope()
            with cm as sess:
                production = _produce_in_session(
                    sess,
                    component_id,
                    amount,
                    expires,
                    sanitize_string(notes),
                    sanitize_string(batch_number),
                    production_date,
                    allow_sub,
                )
    except ServiceError as e:
        log_operation(
            logger,
            "produce",
            ProductionStage.FAILED.value,
            level=logging.WARNING,
            component_id=component_id,
            error=str(e),
        )
        raise
    except SQLAlchemyError as e:
        log_operation(
            logger,
            "produce",
            ProductionStage.FAILED.value,
            level=logging.ERROR,
            component_id=component_id,
            error=str(e),
        )
        raise DatabaseError(f"Failed to produce component {component_id}", e)

    log_operation(
        logger,
        "produce",
        ProductionStage.COMMITTED.value,
        component_id=component_id,
        production_id=production.id,
        amount=str(amount),
        cost=str(production.cost),
    )
    return production


def _produce_in_session(
    sess,
    component_id: int,
    amount: Decimal,
    expires: Optional[date],
    notes: Optional[str],
    batch_number: Optional[str],
    production_date: Optional[datetime],
    allow_sub: bool,
) -> ComponentProduction:
    component = _get_component(sess, component_id)
    if not component.active:
        raise ValidationError([f"Component {component_id} is inactive"])

    unit_cost = CostCalculator(sess).unit_cost(component_id)
    _log_stage(ProductionStage.PRICED, component_id, unit_cost=str(unit_cost))

    missing: List[Dict[str, Any]] = []
    planned = _plan(sess, component, amount, allow_sub, missing)
    if missing:
        first = missing[0]
        raise InsufficientStock(
            first["item_type"],
            first["item_id"],
            first["item_name"],
            first["needed"],
            first["available"],
        )

    moment = production_date or utc_now()
    production = ComponentProduction(
        component_id=component.id,
        business_id=component.business_id,
        store_id=component.store_id,
        produced_amount=amount,
        amount_consumed=ZERO,
        production_date=moment,
        expiration_date=expires,
        batch_number=batch_number or _next_batch_number(sess, component.id, moment),
        cost=unit_cost,
        notes=notes,
        is_active=True,
    )
    sess.add(production)
    sess.flush()
    _log_stage(ProductionStage.CONSUMING, component_id, production_id=production.id)

    for step in planned:
        if step.action == "skip":
            log_operation(
                logger,
                "produce",
                "optional_line_skipped",
                component_id=component_id,
                item_type=step.item_type.value,
                item_id=step.item_id,
                required=str(step.required),
                available=str(step.available),
            )
            continue

        if step.item_type is ItemType.SUPPLY:
            ledger_service.consume_fifo(
                step.item_id,
                step.required,
                component_production_id=production.id,
                notes=f"Production {production.batch_number}",
                session=sess,
            )
            continue

        child = step.line.sub_component
        if step.action == "produce_shortfall":
            shortfall = step.required - _available_in_session(sess, child.id)
            if shortfall > 0:
                produce(
                    child.id,
                    shortfall,
                    notes=f"Auto-produced for {component.name}",
                    allow_sub_production=True,
                    session=sess,
                )
        _draw_batches(
            sess,
            child,
            step.required,
            consumer_production_id=production.id,
            notes=f"Production {production.batch_number}",
        )

    return production


# =============================================================================
# Batch draw-down
# =============================================================================


def _production_component_id(production_id: int, session=None) -> int:
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as sess:
        return _get_production(sess, production_id).component_id


def consume(
    production_id: int,
    amount,
    consumer_production_id: Optional[int] = None,
    notes: Optional[str] = None,
    *,
    session=None,
) -> ComponentProduction:
    """
    Draw down a production batch.

    Args:
        production_id: Batch to draw from
        amount: Quantity consumed (> 0)
        consumer_production_id: Optional production run using the batch
        notes: Optional notes for the consumption record
        session: Optional session (caller owns the transaction)

    Returns:
        The updated ComponentProduction

    Raises:
        ValidationError: If amount <= 0 or the batch is inactive
        ProductionNotFound: If the batch does not exist
        OverConsumption: If amount exceeds what is left; the batch is
            left unchanged
    """
    is_valid, error = validate_positive_number(amount, "Amount")
    if not is_valid:
        log_operation(
            logger,
            "consume",
            "validation_failed",
            level=logging.WARNING,
            production_id=production_id,
            errors=[error],
        )
        raise ValidationError([error])
    amount = parse_decimal(amount)

    try:
        component_id = _production_component_id(production_id, session=session)
        with hold([component_key(component_id)]):
            cm = nullcontext(session) if session is not None else session_scope()
            with cm as sess:
                production = _get_production(sess, production_id)
                if not production.is_active:
                    raise ValidationError([f"Production {production_id} is inactive"])

                remaining = production.remaining_amount
                if amount > remaining:
                    log_operation(
                        logger,
                        "consume",
                        "over_consumption",
                        level=logging.WARNING,
                        production_id=production_id,
                        requested=str(amount),
                        remaining=str(remaining),
                    )
                    raise OverConsumption(production_id, amount, remaining)

                production.amount_consumed = _dec(production.amount_consumed) + amount
                sess.add(
                    ComponentConsumption(
                        production_id=production_id,
                        consumer_production_id=consumer_production_id,
                        amount=amount,
                        notes=sanitize_string(notes),
                    )
                )
                sess.flush()

                log_operation(
                    logger,
                    "consume",
                    "success",
                    production_id=production_id,
                    amount=str(amount),
                    remaining=str(production.remaining_amount),
                )
                return production
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to consume from production {production_id}", e)


# =============================================================================
# Queries
# =============================================================================


def get_available_quantity(
    component_id: int, today: Optional[date] = None, *, session=None
) -> Decimal:
    """
    Sum of remaining amounts over active, non-expired batches.

    Raises:
        ComponentNotFound: If the component does not exist
    """
    cm = nullcontext(session) if session is not None else session_scope()
    try:
        with cm as sess:
            _get_component(sess, component_id)
            return _available_in_session(sess, component_id, today)
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to compute availability of component {component_id}", e)


def _expiring_query(session, within_days: Optional[int], today: Optional[date]):
    if within_days is None:
        within_days = get_config().expiring_days_default
    try:
        start, end = expiration_window(within_days, today)
    except ValueError:
        raise ValidationError(["Within Days: Must be zero or greater"])

    return session.query(ComponentProduction).filter(
        ComponentProduction.is_active.is_(True),
        ComponentProduction.expiration_date.isnot(None),
        ComponentProduction.expiration_date >= start,
        ComponentProduction.expiration_date <= end,
        ComponentProduction.amount_consumed < ComponentProduction.produced_amount,
    )


def get_expiring_batches(
    component_id: int,
    within_days: Optional[int] = None,
    today: Optional[date] = None,
    *,
    session=None,
) -> List[ComponentProduction]:
    """
    Get a component's batches expiring within a window.

    The window runs from today through today + within_days, inclusive.
    Only active, not exhausted batches are returned, soonest first.

    Args:
        component_id: Component to inspect
        within_days: Days to look ahead (defaults to config
            expiring_days_default)
        today: Reference date (defaults to today, UTC)

    Raises:
        ValidationError: If within_days is negative
        ComponentNotFound: If the component does not exist
    """
    cm = nullcontext(session) if session is not None else session_scope()
    try:
        with cm as sess:
            _get_component(sess, component_id)
            return (
                _expiring_query(sess, within_days, today)
                .filter(ComponentProduction.component_id == component_id)
                .order_by(ComponentProduction.expiration_date.asc(), ComponentProduction.id.asc())
                .all()
            )
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to load expiring batches of component {component_id}", e)


def get_expiring_productions(
    business_id: int,
    days_ahead: Optional[int] = None,
    store_id: Optional[int] = None,
    today: Optional[date] = None,
    *,
    session=None,
) -> List[ComponentProduction]:
    """Get every expiring batch of a business (optionally one store), soonest first."""
    cm = nullcontext(session) if session is not None else session_scope()
    try:
        with cm as sess:
            query = _expiring_query(sess, days_ahead, today).filter(
                ComponentProduction.business_id == business_id
            )
            if store_id is not None:
                query = query.filter(ComponentProduction.store_id == store_id)
            return query.order_by(
                ComponentProduction.expiration_date.asc(), ComponentProduction.id.asc()
            ).all()
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to load expiring batches of business {business_id}", e)


def get_production(production_id: int, *, session=None) -> ComponentProduction:
    """Get a production batch by ID (ProductionNotFound if missing)."""
    cm = nullcontext(session) if session is not None else session_scope()
    try:
        with cm as sess:
            return _get_production(sess, production_id)
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to load production {production_id}", e)


def get_productions_by_component(
    component_id: int, include_inactive: bool = False, *, session=None
) -> List[ComponentProduction]:
    """Get a component's batches, newest first."""
    cm = nullcontext(session) if session is not None else session_scope()
    try:
        with cm as sess:
            _get_component(sess, component_id)
            query = sess.query(ComponentProduction).filter(
                ComponentProduction.component_id == component_id
            )
            if not include_inactive:
                query = query.filter(ComponentProduction.is_active.is_(True))
            return query.order_by(
                ComponentProduction.production_date.desc(), ComponentProduction.id.desc()
            ).all()
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to load productions of component {component_id}", e)


def get_active_productions(
    business_id: int, store_id: Optional[int] = None, *, session=None
) -> List[ComponentProduction]:
    """Get a business's active batches that still have something left, newest first."""
    cm = nullcontext(session) if session is not None else session_scope()
    try:
        with cm as sess:
            query = sess.query(ComponentProduction).filter(
                ComponentProduction.business_id == business_id,
                ComponentProduction.is_active.is_(True),
                ComponentProduction.amount_consumed < ComponentProduction.produced_amount,
            )
            if store_id is not None:
                query = query.filter(ComponentProduction.store_id == store_id)
            return query.order_by(
                ComponentProduction.production_date.desc(), ComponentProduction.id.desc()
            ).all()
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to load productions of business {business_id}", e)


def get_component_stock(component_id: int, *, session=None) -> Dict[str, Any]:
    """
    Availability summary of a component.

    Returns:
        Dict with component_id, name, unit, available, minimum_stock,
        status (StockStatus) and batch_count (usable batches)
    """
    cm = nullcontext(session) if session is not None else session_scope()
    try:
        with cm as sess:
            component = _get_component(sess, component_id)
            batches = _available_batches(sess, component_id)
            available = sum((b.remaining_amount for b in batches), ZERO)
            minimum = _dec(component.minimum_stock)
            return {
                "component_id": component.id,
                "name": component.name,
                "unit": component.unit,
                "available": available,
                "minimum_stock": minimum,
                "status": ledger_service.stock_status(available, minimum),
                "batch_count": len(batches),
            }
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to summarize stock of component {component_id}", e)


# =============================================================================
# Administrative correction
# =============================================================================


def update_production(
    production_id: int, data: Dict[str, Any], *, session=None
) -> ComponentProduction:
    """
    Correct a production batch.

    Only notes, expiration_date, batch_number and amount_consumed may be
    changed. amount_consumed must stay within [0, produced_amount].
    produced_amount and cost are never changed.

    Raises:
        ValidationError: Unknown fields or out-of-range values
        ProductionNotFound: If the batch does not exist
    """
    errors = [f"{key}: Field cannot be updated" for key in data if key not in UPDATABLE_FIELDS]

    updates: Dict[str, Any] = {}
    if "notes" in data:
        is_valid, error = validate_string_length(data["notes"], MAX_NOTES_LENGTH, "Notes")
        if not is_valid:
            errors.append(error)
        updates["notes"] = sanitize_string(data["notes"])
    if "batch_number" in data:
        is_valid, error = validate_string_length(
            data["batch_number"], MAX_BATCH_NUMBER_LENGTH, "Batch Number"
        )
        if not is_valid:
            errors.append(error)
        updates["batch_number"] = sanitize_string(data["batch_number"])
    if "expiration_date" in data:
        try:
            updates["expiration_date"] = to_date(data["expiration_date"])
        except ValueError:
            errors.append("Expiration Date: Must be a valid date")
    if "amount_consumed" in data:
        is_valid, error = validate_non_negative_number(data["amount_consumed"], "Amount Consumed")
        if not is_valid:
            errors.append(error)
        else:
            updates["amount_consumed"] = parse_decimal(data["amount_consumed"])

    if errors:
        log_operation(
            logger,
            "update_production",
            "validation_failed",
            level=logging.WARNING,
            production_id=production_id,
            errors=errors,
        )
        raise ValidationError(errors)

    try:
        component_id = _production_component_id(production_id, session=session)
        with hold([component_key(component_id)]):
            cm = nullcontext(session) if session is not None else session_scope()
            with cm as sess:
                production = _get_production(sess, production_id)
                consumed = updates.get("amount_consumed")
                if consumed is not None and consumed > _dec(production.produced_amount):
                    raise ValidationError(
                        [
                            f"Amount Consumed: Must be {production.produced_amount} or less "
                            f"(produced amount)"
                        ]
                    )

                for key, value in updates.items():
                    setattr(production, key, value)
                sess.flush()

                log_operation(
                    logger,
                    "update_production",
                    "success",
                    production_id=production_id,
                    fields=sorted(updates),
                )
                return production
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to update production {production_id}", e)


def deactivate_production(production_id: int, *, session=None) -> ComponentProduction:
    """Soft-deactivate a batch; it no longer counts toward availability."""
    try:
        component_id = _production_component_id(production_id, session=session)
        with hold([component_key(component_id)]):
            cm = nullcontext(session) if session is not None else session_scope()
            with cm as sess:
                production = _get_production(sess, production_id)
                production.is_active = False
                sess.flush()
                log_operation(
                    logger, "deactivate_production", "success", production_id=production_id
                )
                return production
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to deactivate production {production_id}", e)
