"""
Ledger Service - append-only supply stock movements.

This module provides functions for:
- Deriving current stock and weighted unit cost from a supply's entries
- Classifying stock against a minimum threshold
- Recording additions (purchases, corrections) and consumptions
- FIFO draw-down of addition lots (used by production runs)
- Ledger history and per-supply stock summaries

Stock is never stored: it is always the sum of the active entry amounts for
the supply. Entries are only ever appended; the single permitted mutation is
soft deactivation. Writers hold the supply's lock (see locking.py) for the
whole read-check-append so concurrent consumers cannot drive stock below
zero under the no-negative-stock policy.

All functions accept an optional ``session``. When provided, the caller owns
the transaction and nothing is committed here.
"""

import logging
from contextlib import nullcontext
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..models import StockStatus, Supply, SupplyConsumptionPolicy, SupplyEntry
from ..utils.config import get_config
from ..utils.constants import COST_PLACES, MAX_NOTES_LENGTH, MAX_TAG_LENGTH, ZERO
from ..utils.validators import (
    parse_decimal,
    sanitize_string,
    validate_identity,
    validate_non_negative_number,
    validate_positive_number,
    validate_string_length,
)
from .database import session_scope
from .exceptions import (
    DatabaseError,
    InsufficientStock,
    SupplyEntryNotFound,
    SupplyNotFound,
    ValidationError,
)
from .locking import hold, supply_key
from .logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)


# =============================================================================
# Helpers
# =============================================================================


def _dec(value) -> Decimal:
    return Decimal(str(value)) if value is not None else ZERO


def _negative_allowed(allow_negative: Optional[bool]) -> bool:
    if allow_negative is None:
        return get_config().allow_negative_stock
    return bool(allow_negative)


def _get_supply(session, supply_id: int) -> Supply:
    supply = session.get(Supply, supply_id)
    if supply is None:
        raise SupplyNotFound(supply_id)
    return supply


def _raise_if_invalid(operation: str, errors: List[str], **context) -> None:
    if errors:
        log_operation(
            logger,
            operation,
            "validation_failed",
            level=logging.WARNING,
            errors=errors,
            **context,
        )
        raise ValidationError(errors)


def _validate_text_fields(errors: List[str], tag: Optional[str], notes: Optional[str]) -> None:
    for ok, error in (
        validate_string_length(tag, MAX_TAG_LENGTH, "Tag"),
        validate_string_length(notes, MAX_NOTES_LENGTH, "Notes"),
    ):
        if not ok:
            errors.append(error)


def _stock_in_session(session, supply_id: int) -> Decimal:
    total = (
        session.query(func.sum(SupplyEntry.amount))
        .filter(SupplyEntry.supply_id == supply_id, SupplyEntry.is_active.is_(True))
        .scalar()
    )
    return _dec(total)


def _unit_cost_in_session(session, supply_id: int) -> Decimal:
    additions = (
        session.query(SupplyEntry.amount, SupplyEntry.unit_cost)
        .filter(
            SupplyEntry.supply_id == supply_id,
            SupplyEntry.is_active.is_(True),
            SupplyEntry.amount > 0,
        )
        .all()
    )
    total_amount = ZERO
    total_value = ZERO
    for amount, unit_cost in additions:
        total_amount += _dec(amount)
        total_value += _dec(amount) * _dec(unit_cost)

    if total_amount <= 0:
        return ZERO
    return (total_value / total_amount).quantize(COST_PLACES)


def _remaining_lots_in_session(session, supply_id: int) -> List[Dict[str, Any]]:
    """
    FIFO fold: additions oldest first, minus the total consumed.

    Back-references on consumption entries are deliberately not read; the
    result depends only on the set of active entries.
    """
    entries = (
        session.query(SupplyEntry)
        .filter(SupplyEntry.supply_id == supply_id, SupplyEntry.is_active.is_(True))
        .order_by(SupplyEntry.created_at.asc(), SupplyEntry.id.asc())
        .all()
    )

    consumed_left = sum((-_dec(e.amount) for e in entries if e.is_consumption), ZERO)

    lots = []
    for entry in entries:
        if not entry.is_addition:
            continue
        amount = _dec(entry.amount)
        taken = min(amount, consumed_left)
        consumed_left -= taken
        remaining = amount - taken
        if remaining > 0:
            lots.append(
                {
                    "entry": entry,
                    "entry_id": entry.id,
                    "created_at": entry.created_at,
                    "amount": amount,
                    "remaining": remaining,
                    "unit_cost": _dec(entry.unit_cost),
                }
            )
    return lots


def _append_entry(session, **fields) -> SupplyEntry:
    entry = SupplyEntry(**fields)
    session.add(entry)
    session.flush()
    return entry


# =============================================================================
# Pure functions
# =============================================================================


def stock_status(current, minimum) -> StockStatus:
    """
    Classify a stock level against a minimum threshold.

    Args:
        current: Current stock (Decimal, int or numeric string)
        minimum: Minimum stock threshold

    Returns:
        OUT_OF_STOCK when nothing is on hand (zero or, under permissive
        policy, negative), LOW_STOCK when below the minimum, else IN_STOCK

    Example:
        >>> stock_status(1, 5)
        <StockStatus.LOW_STOCK: 'low_stock'>
    """
    current = _dec(current)
    minimum = _dec(minimum)
    if current <= 0:
        return StockStatus.OUT_OF_STOCK
    if current < minimum:
        return StockStatus.LOW_STOCK
    return StockStatus.IN_STOCK


# =============================================================================
# Queries
# =============================================================================


def get_current_stock(supply_id: int, *, session=None) -> Decimal:
    """
    Get a supply's current stock: the sum of its active entry amounts.

    An empty history yields Decimal("0").

    Raises:
        SupplyNotFound: If the supply does not exist
        DatabaseError: If the query fails
    """
    cm = nullcontext(session) if session is not None else session_scope()
    try:
        with cm as sess:
            _get_supply(sess, supply_id)
            return _stock_in_session(sess, supply_id)
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to compute stock for supply {supply_id}", e)


def get_current_unit_cost(supply_id: int, *, session=None) -> Decimal:
    """
    Get a supply's current unit cost.

    The cost is the weighted average unit cost over the supply's active
    addition entries (sum of amount x unit_cost / sum of amount). A supply
    with no additions costs zero.

    Raises:
        SupplyNotFound: If the supply does not exist
    """
    cm = nullcontext(session) if session is not None else session_scope()
    try:
        with cm as sess:
            _get_supply(sess, supply_id)
            return _unit_cost_in_session(sess, supply_id)
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to compute unit cost for supply {supply_id}", e)


def get_remaining_lots(supply_id: int, *, session=None) -> List[Dict[str, Any]]:
    """
    Get the addition lots that still have stock left, oldest first.

    Returns:
        List of dicts with entry_id, created_at, amount, remaining, unit_cost
    """
    cm = nullcontext(session) if session is not None else session_scope()
    try:
        with cm as sess:
            _get_supply(sess, supply_id)
            lots = _remaining_lots_in_session(sess, supply_id)
            for lot in lots:
                lot.pop("entry")
            return lots
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to compute lots for supply {supply_id}", e)


def get_history(
    supply_id: int, include_inactive: bool = True, *, session=None
) -> List[SupplyEntry]:
    """
    Get a supply's ledger entries in chronological order.

    Args:
        supply_id: Supply ID
        include_inactive: Include deactivated entries (default True)

    Returns:
        Entries ordered by created_at, then id
    """
    cm = nullcontext(session) if session is not None else session_scope()
    try:
        with cm as sess:
            _get_supply(sess, supply_id)
            query = sess.query(SupplyEntry).filter(SupplyEntry.supply_id == supply_id)
            if not include_inactive:
                query = query.filter(SupplyEntry.is_active.is_(True))
            return query.order_by(SupplyEntry.created_at.asc(), SupplyEntry.id.asc()).all()
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to load history for supply {supply_id}", e)


def get_entry(entry_id: int, *, session=None) -> SupplyEntry:
    """Get a ledger entry by ID (SupplyEntryNotFound if missing)."""
    cm = nullcontext(session) if session is not None else session_scope()
    try:
        with cm as sess:
            entry = sess.get(SupplyEntry, entry_id)
            if entry is None:
                raise SupplyEntryNotFound(entry_id)
            return entry
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to load supply entry {entry_id}", e)


def get_entry_history(entry_id: int, *, session=None) -> Dict[str, Any]:
    """
    Get an entry together with the consumptions that reference it.

    The back-reference is informational: ``consumed_via_references`` is not
    the lot's FIFO draw-down, only the sum of consumptions that name it.

    Returns:
        Dict with "entry", "consumptions" (chronological) and
        "consumed_via_references" (Decimal magnitude)
    """
    cm = nullcontext(session) if session is not None else session_scope()
    try:
        with cm as sess:
            entry = sess.get(SupplyEntry, entry_id)
            if entry is None:
                raise SupplyEntryNotFound(entry_id)
            consumptions = (
                sess.query(SupplyEntry)
                .filter(SupplyEntry.reference_entry_id == entry_id)
                .order_by(SupplyEntry.created_at.asc(), SupplyEntry.id.asc())
                .all()
            )
            consumed = sum((-_dec(c.amount) for c in consumptions if c.is_active), ZERO)
            return {
                "entry": entry,
                "consumptions": consumptions,
                "consumed_via_references": consumed,
            }
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to load history for entry {entry_id}", e)


def _stock_summary(session, supply: Supply) -> Dict[str, Any]:
    rows = (
        session.query(SupplyEntry.amount)
        .filter(SupplyEntry.supply_id == supply.id, SupplyEntry.is_active.is_(True))
        .all()
    )
    incoming = sum((_dec(amount) for (amount,) in rows if _dec(amount) > 0), ZERO)
    outgoing = sum((-_dec(amount) for (amount,) in rows if _dec(amount) < 0), ZERO)
    current = incoming - outgoing
    minimum = _dec(supply.minimum_stock)
    return {
        "supply_id": supply.id,
        "name": supply.name,
        "unit": supply.unit,
        "business_id": supply.business_id,
        "store_id": supply.store_id,
        "total_incoming": incoming,
        "total_outgoing": outgoing,
        "current_stock": current,
        "minimum_stock": minimum,
        "status": stock_status(current, minimum),
        "unit_cost": _unit_cost_in_session(session, supply.id),
    }


def get_supply_stock(supply_id: int, *, session=None) -> Dict[str, Any]:
    """
    Get a stock summary for one supply.

    Returns:
        Dict with total_incoming, total_outgoing, current_stock,
        minimum_stock, status (StockStatus) and unit_cost
    """
    cm = nullcontext(session) if session is not None else session_scope()
    try:
        with cm as sess:
            return _stock_summary(sess, _get_supply(sess, supply_id))
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to summarize stock for supply {supply_id}", e)


def get_all_supply_stocks(
    business_id: int,
    store_id: Optional[int] = None,
    include_inactive: bool = False,
    *,
    session=None,
) -> List[Dict[str, Any]]:
    """
    Get stock summaries for every supply of a business (optionally one store).

    Results are ordered by supply name.
    """
    cm = nullcontext(session) if session is not None else session_scope()
    try:
        with cm as sess:
            query = sess.query(Supply).filter(Supply.business_id == business_id)
            if store_id is not None:
                query = query.filter(Supply.store_id == store_id)
            if not include_inactive:
                query = query.filter(Supply.active.is_(True))
            return [_stock_summary(sess, s) for s in query.order_by(Supply.name).all()]
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to summarize stock for business {business_id}", e)


# =============================================================================
# Writes
# =============================================================================


def record_addition(
    supply_id: int,
    amount,
    unit_cost,
    provider_id: Optional[int] = None,
    tag: Optional[str] = None,
    notes: Optional[str] = None,
    *,
    session=None,
) -> SupplyEntry:
    """
    Append a positive (stock received) entry.

    Args:
        supply_id: Supply receiving stock
        amount: Quantity received (> 0)
        unit_cost: Cost per unit (>= 0)
        provider_id: Optional external provider reference
        tag: Optional label
        notes: Optional notes
        session: Optional session (caller owns the transaction)

    Returns:
        The new SupplyEntry

    Raises:
        ValidationError: If amount <= 0 or unit_cost < 0
        SupplyNotFound: If the supply does not exist
    """
    errors = []
    for ok, error in (
        validate_positive_number(amount, "Amount"),
        validate_non_negative_number(unit_cost, "Unit Cost"),
    ):
        if not ok:
            errors.append(error)
    if provider_id is not None:
        ok, error = validate_identity(provider_id, "Provider ID")
        if not ok:
            errors.append(error)
    _validate_text_fields(errors, tag, notes)
    _raise_if_invalid("record_addition", errors, supply_id=supply_id)

    amount = parse_decimal(amount)
    unit_cost = parse_decimal(unit_cost)

    try:
        with hold([supply_key(supply_id)]):
            cm = nullcontext(session) if session is not None else session_scope()
            with cm as sess:
                _get_supply(sess, supply_id)
                entry = _append_entry(
                    sess,
                    supply_id=supply_id,
                    amount=amount,
                    unit_cost=unit_cost,
                    provider_id=provider_id,
                    tag=sanitize_string(tag),
                    notes=sanitize_string(notes),
                )
                log_operation(
                    logger,
                    "record_addition",
                    "success",
                    supply_id=supply_id,
                    entry_id=entry.id,
                    amount=str(amount),
                )
                return entry
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to record addition for supply {supply_id}", e)


def record_consumption(
    supply_id: int,
    amount,
    unit_cost=None,
    referenced_entry_id: Optional[int] = None,
    component_production_id: Optional[int] = None,
    notes: Optional[str] = None,
    tag: Optional[str] = None,
    allow_negative: Optional[bool] = None,
    *,
    session=None,
) -> SupplyEntry:
    """
    Append one negative (stock removed) entry.

    ``amount`` is the consumed magnitude; the stored amount is negative.

    Args:
        supply_id: Supply being consumed
        amount: Quantity consumed (> 0)
        unit_cost: Cost per unit; defaults to the supply's current unit cost
        referenced_entry_id: Optional addition this consumption draws from
            (informational back-reference only)
        component_production_id: Optional production run causing the entry
        notes: Optional notes
        tag: Optional label
        allow_negative: Override the configured negative-stock policy
        session: Optional session (caller owns the transaction)

    Returns:
        The new SupplyEntry

    Raises:
        ValidationError: Non-positive amount, negative cost, or a referenced
            entry that is not an addition of this supply
        SupplyEntryNotFound: If the referenced entry does not exist
        InsufficientStock: If stock would go negative and that is not allowed
    """
    errors = []
    ok, error = validate_positive_number(amount, "Amount")
    if not ok:
        errors.append(error)
    if unit_cost is not None:
        ok, error = validate_non_negative_number(unit_cost, "Unit Cost")
        if not ok:
            errors.append(error)
    _validate_text_fields(errors, tag, notes)
    _raise_if_invalid("record_consumption", errors, supply_id=supply_id)

    amount = parse_decimal(amount)

    try:
        with hold([supply_key(supply_id)]):
            cm = nullcontext(session) if session is not None else session_scope()
            with cm as sess:
                supply = _get_supply(sess, supply_id)

                if referenced_entry_id is not None:
                    referenced = sess.get(SupplyEntry, referenced_entry_id)
                    if referenced is None:
                        raise SupplyEntryNotFound(referenced_entry_id)
                    if referenced.supply_id != supply_id or not referenced.is_addition:
                        _raise_if_invalid(
                            "record_consumption",
                            [
                                f"Referenced Entry: Entry {referenced_entry_id} is not an "
                                f"addition of supply {supply_id}"
                            ],
                            supply_id=supply_id,
                        )

                current = _stock_in_session(sess, supply_id)
                if amount > current and not _negative_allowed(allow_negative):
                    log_operation(
                        logger,
                        "record_consumption",
                        "insufficient_stock",
                        level=logging.WARNING,
                        supply_id=supply_id,
                        required=str(amount),
                        available=str(current),
                    )
                    raise InsufficientStock("supply", supply_id, supply.name, amount, current)

                if unit_cost is None:
                    cost = _unit_cost_in_session(sess, supply_id)
                else:
                    cost = parse_decimal(unit_cost)

                entry = _append_entry(
                    sess,
                    supply_id=supply_id,
                    amount=-amount,
                    unit_cost=cost,
                    reference_entry_id=referenced_entry_id,
                    component_production_id=component_production_id,
                    tag=sanitize_string(tag),
                    notes=sanitize_string(notes),
                )
                log_operation(
                    logger,
                    "record_consumption",
                    "success",
                    supply_id=supply_id,
                    entry_id=entry.id,
                    amount=str(amount),
                    negative_stock=amount > current,
                )
                return entry
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to record consumption for supply {supply_id}", e)


def consume_fifo(
    supply_id: int,
    amount,
    component_production_id: Optional[int] = None,
    dry_run: bool = False,
    allow_negative: Optional[bool] = None,
    policy: Optional[str] = None,
    notes: Optional[str] = None,
    *,
    session=None,
) -> Dict[str, Any]:
    """Consume supply stock lot by lot, oldest addition first.

    Algorithm:
        1. Fold the active entries into remaining addition lots (oldest first)
        2. Walk the lots, taking from each until the amount is covered
        3. Unless dry_run, append one consumption entry per lot slice, each
           referencing its addition and carrying that lot's unit cost
        4. Under the "average" policy a single entry is written at the
           weighted-average unit cost instead

    Args:
        supply_id: Supply to consume
        amount: Quantity needed (> 0)
        component_production_id: Production run causing the consumption
        dry_run: If True, only report what would be consumed; nothing is
            written and no error is raised for a shortfall
        allow_negative: Override the configured negative-stock policy. When
            allowed, the uncovered part is written as one entry without a
            back-reference at the current unit cost.
        policy: "fifo" or "average" (defaults to config)
        notes: Notes stored on every written entry
        session: Optional session. If provided, the caller owns the
            transaction and this function will NOT commit.

    Returns:
        Dict with keys:
            - "consumed" (Decimal): Amount covered (or recorded)
            - "breakdown" (List[Dict]): Per-lot slices with entry_id,
              quantity_consumed, unit_cost and remaining_in_lot
            - "shortfall" (Decimal): Amount not covered (0 if satisfied)
            - "satisfied" (bool): True if the full amount is covered
            - "total_cost" (Decimal): Cost of the consumed portion
            - "entries" (List[SupplyEntry]): Entries written (empty on dry run)

    Raises:
        ValidationError: If amount <= 0 or policy is unknown
        SupplyNotFound: If the supply does not exist
        InsufficientStock: If not dry_run, stock is short and negative stock
            is not allowed (nothing is written)
    """
    errors = []
    ok, error = validate_positive_number(amount, "Amount")
    if not ok:
        errors.append(error)
    policy = policy or get_config().supply_consumption_policy
    try:
        policy = SupplyConsumptionPolicy(policy)
    except ValueError:
        errors.append(f"Policy: Unknown supply consumption policy '{policy}'")
    _raise_if_invalid("consume_fifo", errors, supply_id=supply_id)

    needed = parse_decimal(amount)

    def _do_consume(sess):
        supply = _get_supply(sess, supply_id)
        lots = _remaining_lots_in_session(sess, supply_id)

        consumed = ZERO
        total_cost = ZERO
        remaining_needed = needed
        breakdown = []
        for lot in lots:
            if remaining_needed <= 0:
                break
            take = min(lot["remaining"], remaining_needed)
            consumed += take
            remaining_needed -= take
            total_cost += take * lot["unit_cost"]
            breakdown.append(
                {
                    "entry_id": lot["entry_id"],
                    "lot_date": lot["created_at"],
                    "quantity_consumed": take,
                    "unit_cost": lot["unit_cost"],
                    "remaining_in_lot": lot["remaining"] - take,
                }
            )

        shortfall = max(ZERO, remaining_needed)
        result = {
            "consumed": consumed,
            "breakdown": breakdown,
            "shortfall": shortfall,
            "satisfied": shortfall == 0,
            "total_cost": total_cost,
            "entries": [],
        }
        if dry_run:
            return result

        if shortfall > 0 and not _negative_allowed(allow_negative):
            available = _stock_in_session(sess, supply_id)
            log_operation(
                logger,
                "consume_fifo",
                "insufficient_stock",
                level=logging.WARNING,
                supply_id=supply_id,
                required=str(needed),
                available=str(available),
            )
            raise InsufficientStock("supply", supply_id, supply.name, needed, available)

        current_cost = _unit_cost_in_session(sess, supply_id)
        entries = []
        if policy is SupplyConsumptionPolicy.AVERAGE:
            entries.append(
                _append_entry(
                    sess,
                    supply_id=supply_id,
                    amount=-needed,
                    unit_cost=current_cost,
                    component_production_id=component_production_id,
                    notes=sanitize_string(notes),
                )
            )
            total_cost = needed * current_cost
        else:
            for slice_ in breakdown:
                entries.append(
                    _append_entry(
                        sess,
                        supply_id=supply_id,
                        amount=-slice_["quantity_consumed"],
                        unit_cost=slice_["unit_cost"],
                        reference_entry_id=slice_["entry_id"],
                        component_production_id=component_production_id,
                        notes=sanitize_string(notes),
                    )
                )
            if shortfall > 0:
                entries.append(
                    _append_entry(
                        sess,
                        supply_id=supply_id,
                        amount=-shortfall,
                        unit_cost=current_cost,
                        component_production_id=component_production_id,
                        notes=sanitize_string(notes),
                    )
                )
                total_cost += shortfall * current_cost
                breakdown.append(
                    {
                        "entry_id": None,
                        "lot_date": None,
                        "quantity_consumed": shortfall,
                        "unit_cost": current_cost,
                        "remaining_in_lot": ZERO,
                    }
                )

        log_operation(
            logger,
            "consume_fifo",
            "success",
            supply_id=supply_id,
            amount=str(needed),
            entries=len(entries),
            policy=policy.value,
            negative_stock=shortfall > 0,
        )
        result.update(
            consumed=needed,
            shortfall=ZERO,
            satisfied=True,
            total_cost=total_cost,
            entries=entries,
        )
        return result

    try:
        with hold([supply_key(supply_id)]):
            if session is not None:
                # Caller owns the transaction - don't commit
                return _do_consume(session)
            with session_scope() as sess:
                return _do_consume(sess)
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to consume supply {supply_id}", e)


def deactivate_entry(
    entry_id: int, allow_negative: Optional[bool] = None, *, session=None
) -> SupplyEntry:
    """
    Soft-deactivate a ledger entry (the only permitted entry mutation).

    Deactivating an addition lowers stock; under the no-negative policy it is
    refused with InsufficientStock when that would leave stock below zero.
    Deactivating an already inactive entry is a no-op.

    Raises:
        SupplyEntryNotFound: If the entry does not exist
        InsufficientStock: If the deactivation would make stock negative
    """
    cm = nullcontext(session) if session is not None else session_scope()
    try:
        with cm as sess:
            entry = sess.get(SupplyEntry, entry_id)
            if entry is None:
                raise SupplyEntryNotFound(entry_id)
            supply_id = entry.supply_id

        # Re-read under the supply lock in the writing session
        with hold([supply_key(supply_id)]):
            cm = nullcontext(session) if session is not None else session_scope()
            with cm as sess:
                entry = sess.get(SupplyEntry, entry_id)
                if not entry.is_active:
                    return entry

                current = _stock_in_session(sess, supply_id)
                after = current - _dec(entry.amount)
                if after < 0 and not _negative_allowed(allow_negative):
                    supply = _get_supply(sess, supply_id)
                    raise InsufficientStock(
                        "supply", supply_id, supply.name, _dec(entry.amount), current
                    )

                entry.is_active = False
                sess.flush()
                log_operation(
                    logger,
                    "deactivate_entry",
                    "success",
                    supply_id=supply_id,
                    entry_id=entry_id,
                    stock_after=str(after),
                )
                return entry
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to deactivate supply entry {entry_id}", e)
