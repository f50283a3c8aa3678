"""
Cost Service - recursive unit-cost roll-up over the BOM graph.

A component's unit cost is the sum over its recipe lines of
``line.quantity x child unit cost``, divided by the component's yield.
Supplies are priced by their ledger's weighted-average unit cost;
sub-components are priced recursively.

Each CostCalculator is request-scoped: it memoizes unit costs for the life
of one top-level call (ledger costs change over time, so nothing is cached
across calls) and tracks the components currently being evaluated so a
cycle stored in the database is reported instead of recursing forever.

Usage:
    with session_scope() as session:
        calculator = CostCalculator(session)
        cost = calculator.unit_cost(bread.id)
        tree = calculator.build_bom_tree(bread.id)
"""

import logging
from collections import Counter
from contextlib import nullcontext
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..models import Component, ComponentSupply, ItemType, Supply
from ..utils.constants import COST_PLACES, ZERO
from ..utils.validators import parse_decimal, validate_positive_number
from . import ledger_service
from .database import session_scope
from .exceptions import CircularReferenceError, ComponentNotFound, DatabaseError, ValidationError
from .logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)


@dataclass
class BOMTreeNode:
    """One node of a display BOM tree."""

    id: int
    name: str
    type: ItemType
    quantity: Decimal  # line quantity (root: the component's yield)
    level: int  # root = 0
    cost: Decimal  # the node's own unit cost
    unit: Optional[str] = None
    is_optional: bool = False
    children: List["BOMTreeNode"] = field(default_factory=list)

    @property
    def extended_cost(self) -> Decimal:
        """quantity x unit cost."""
        return self.quantity * self.cost

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "quantity": str(self.quantity),
            "level": self.level,
            "cost": str(self.cost),
            "extended_cost": str(self.extended_cost),
            "unit": self.unit,
            "is_optional": self.is_optional,
            "children": [child.to_dict() for child in self.children],
        }


class CostCalculator:
    """
    Request-scoped unit-cost calculator.

    Attributes:
        session: Session all reads go through
        evaluation_counts: Counter of how many times each component's cost
            was actually computed (cache hits are not counted)
    """

    def __init__(self, session):
        self.session = session
        self.evaluation_counts: Counter = Counter()
        self._component_costs: Dict[int, Decimal] = {}
        self._supply_costs: Dict[int, Decimal] = {}
        self._visiting: List[int] = []

    # -- pricing -------------------------------------------------------------

    def supply_cost(self, supply_id: int) -> Decimal:
        """Current unit cost of a supply (zero if the supply is missing)."""
        if supply_id not in self._supply_costs:
            if self.session.get(Supply, supply_id) is None:
                cost = ZERO
            else:
                cost = ledger_service.get_current_unit_cost(supply_id, session=self.session)
            self._supply_costs[supply_id] = cost
        return self._supply_costs[supply_id]

    def unit_cost(self, component_id: int) -> Decimal:
        """
        Unit cost of a component, rounded to cost precision.

        Raises:
            ComponentNotFound: If the component does not exist
            CircularReferenceError: If the stored recipe graph has a cycle
                through this component (``path`` lists the cycle)
        """
        if self.session.get(Component, component_id) is None:
            raise ComponentNotFound(component_id)
        return self._evaluate(component_id).quantize(COST_PLACES)

    def _enter(self, component_id: int) -> None:
        if component_id in self._visiting:
            start = self._visiting.index(component_id)
            path = self._visiting[start:] + [component_id]
            log_operation(
                logger,
                "unit_cost",
                "circular_reference",
                level=logging.ERROR,
                component_id=self._visiting[-1],
                cycle=path,
            )
            raise CircularReferenceError(self._visiting[-1], component_id, path)
        self._visiting.append(component_id)

    def _line_child_cost(self, line: ComponentSupply) -> Decimal:
        if line.kind is ItemType.SUPPLY:
            return self.supply_cost(line.supply_id)
        if self.session.get(Component, line.sub_component_id) is None:
            return ZERO
        return self._evaluate(line.sub_component_id)

    def _evaluate(self, component_id: int) -> Decimal:
        if component_id in self._component_costs:
            return self._component_costs[component_id]

        self._enter(component_id)
        try:
            component = self.session.get(Component, component_id)
            self.evaluation_counts[component_id] += 1

            total = ZERO
            for line in component.recipe_lines:
                total += Decimal(str(line.quantity)) * self._line_child_cost(line)

            yield_amount = Decimal(str(component.yield_amount or 0))
            cost = total / yield_amount if yield_amount > 0 else ZERO
        finally:
            self._visiting.pop()

        self._component_costs[component_id] = cost
        return cost

    # -- display tree ------------------------------------------------------------

    def build_bom_tree(self, component_id: int) -> BOMTreeNode:
        """
        Build a display tree of a component's BOM.

        The root carries the component's yield as its quantity; every other
        node carries its recipe-line quantity. Each node's ``cost`` is its
        own unit cost. Missing children are left out.

        Raises:
            ComponentNotFound: If the component does not exist
            CircularReferenceError: If the stored graph has a cycle
        """
        component = self.session.get(Component, component_id)
        if component is None:
            raise ComponentNotFound(component_id)
        return self._component_node(
            component, Decimal(str(component.yield_amount)), level=0, is_optional=False
        )

    def _component_node(
        self, component: Component, quantity: Decimal, level: int, is_optional: bool
    ) -> BOMTreeNode:
        cost = self._evaluate(component.id).quantize(COST_PLACES)
        node = BOMTreeNode(
            id=component.id,
            name=component.name,
            type=ItemType.COMPONENT,
            quantity=quantity,
            level=level,
            cost=cost,
            unit=component.unit,
            is_optional=is_optional,
        )

        self._enter(component.id)
        try:
            for line in component.recipe_lines:
                line_quantity = Decimal(str(line.quantity))
                if line.kind is ItemType.SUPPLY:
                    supply = line.supply
                    if supply is None:
                        continue
                    node.children.append(
                        BOMTreeNode(
                            id=supply.id,
                            name=supply.name,
                            type=ItemType.SUPPLY,
                            quantity=line_quantity,
                            level=level + 1,
                            cost=self.supply_cost(supply.id).quantize(COST_PLACES),
                            unit=supply.unit,
                            is_optional=bool(line.is_optional),
                        )
                    )
                elif line.sub_component is not None:
                    node.children.append(
                        self._component_node(
                            line.sub_component,
                            line_quantity,
                            level=level + 1,
                            is_optional=bool(line.is_optional),
                        )
                    )
        finally:
            self._visiting.pop()

        return node


# =============================================================================
# Module-level convenience functions
# =============================================================================


def calculate_unit_cost(component_id: int, *, session=None) -> Decimal:
    """Unit cost of a component using a fresh calculator."""
    cm = nullcontext(session) if session is not None else session_scope()
    try:
        with cm as sess:
            return CostCalculator(sess).unit_cost(component_id)
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to calculate cost of component {component_id}", e)


def get_bom_tree(component_id: int, *, session=None) -> BOMTreeNode:
    """Display BOM tree of a component using a fresh calculator."""
    cm = nullcontext(session) if session is not None else session_scope()
    try:
        with cm as sess:
            return CostCalculator(sess).build_bom_tree(component_id)
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to build BOM tree for component {component_id}", e)


def calculate_batch_cost(component_id: int, amount, *, session=None) -> Decimal:
    """
    Total cost of producing ``amount`` units of a component at current costs.

    Raises:
        ValidationError: If amount <= 0
    """
    is_valid, error = validate_positive_number(amount, "Amount")
    if not is_valid:
        raise ValidationError([error])

    unit_cost = calculate_unit_cost(component_id, session=session)
    return (unit_cost * parse_decimal(amount)).quantize(COST_PLACES)
