"""Integration order for a ranked batch of change units.

The order is rank order with prerequisites pulled in eagerly. Suppose units
1 2 3 4 5 come from upstream and pending unit 6 rewrites something that
landed between 2 and 3. Plain rank order is 1 2 3 4 5 6. If 3 declares 6 as
a prerequisite, 6 is moved up to just before 3, giving 1 2 6 3 4 5. Delaying
3 until 6 comes up naturally (1 2 4 5 6 3) would reorder unrelated units, and
rewritten changes usually want to keep their original upstream position.
"""

from __future__ import annotations

from collections.abc import Sequence

from .changes import ChangeUnit
from .errors import (
    DanglingPrerequisiteError,
    DuplicateUnitError,
    OrderIncompleteError,
    PrerequisiteCycleError,
)


def rank_sort_key(unit: ChangeUnit) -> tuple[bool, int, int]:
    """Sort resolved ranks ascending, unresolved last, ties by batch position."""
    return (unit.rank is None, unit.rank or 0, unit.position)


def resolve_order(units: Sequence[ChangeUnit]) -> list[ChangeUnit]:
    """Return ``units`` in integration order.

    Raises:
        DuplicateUnitError: Two units share an id.
        DanglingPrerequisiteError: A prerequisite is not in the batch.
        PrerequisiteCycleError: Prerequisites form a cycle.
        OrderIncompleteError: The traversal did not emit every unit once.
    """
    by_id: dict[str, ChangeUnit] = {}
    for unit in units:
        if unit.id in by_id:
            raise DuplicateUnitError(unit.id)
        by_id[unit.id] = unit

    ranked = sorted(units, key=rank_sort_key)
    order: list[ChangeUnit] = []
    walked: set[str] = set()
    walking: list[str] = []

    def walk(unit: ChangeUnit) -> None:
        if unit.id in walked:
            return
        if unit.id in walking:
            start = walking.index(unit.id)
            raise PrerequisiteCycleError((*walking[start:], unit.id))
        walking.append(unit.id)
        try:
            for prerequisite_id in unit.prerequisites:
                prerequisite = by_id.get(prerequisite_id)
                if prerequisite is None:
                    raise DanglingPrerequisiteError(unit.id, prerequisite_id)
                walk(prerequisite)
        finally:
            walking.pop()
        order.append(unit)
        walked.add(unit.id)

    for unit in ranked:
        walk(unit)

    if len(order) != len(units):
        raise OrderIncompleteError(expected=len(units), actual=len(order))
    return order
