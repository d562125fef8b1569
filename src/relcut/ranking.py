"""Chronological ranking of change units across reference histories.

Changes already merged upstream rank below pending or branch-only changes,
and changes found in the same reference keep that reference's commit order.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence

from .changes import ChangeUnit

HistoryFn = Callable[[str], Sequence[str]]
RankTable = dict[str, int | None]


def ranking_references(
    units: Iterable[ChangeUnit], *, upstream_ref: str, release_ref: str
) -> list[str]:
    """Return references in ranking priority order.

    The upstream branch comes first, then the release branch, then each
    unit's own source ref in batch order. Empty and repeated refs are
    dropped.

    Example:
        >>> units = [ChangeUnit("1", source_ref="r/1"), ChangeUnit("2"),
        ...          ChangeUnit("3", source_ref="r/1")]
        >>> ranking_references(units, upstream_ref="m", release_ref="rel")
        ['m', 'rel', 'r/1']
    """
    references: list[str] = []
    seen: set[str] = set()
    for ref in (upstream_ref, release_ref, *(unit.source_ref for unit in units)):
        if not ref or ref in seen:
            continue
        seen.add(ref)
        references.append(ref)
    return references


def rank_commits(
    targets: Iterable[str], references: Sequence[str], history: HistoryFn
) -> RankTable:
    """Assign every target commit a rank from the reference histories.

    For each reference the newest-first history is scanned up to the first
    commit that is already ranked. The ``n`` unranked targets in that prefix
    receive ``next + n`` down to ``next + 1`` in walk order, and ``next``
    advances by ``n``. Targets never seen keep ``None``.

    Example:
        >>> logs = {"m": ["c3", "c2", "c1"], "p": ["c9", "c3"]}
        >>> rank_commits(["c1", "c3", "c9", "cx"], ["m", "p"], logs.__getitem__)
        {'c1': 1, 'c3': 2, 'c9': 3, 'cx': None}
    """
    table: RankTable = {commit: None for commit in targets if commit}
    next_rank = 0
    for ref in references:
        scanned: list[str] = []
        for commit in history(ref):
            if table.get(commit) is not None:
                break
            scanned.append(commit)
        found = [commit for commit in scanned if commit in table and table[commit] is None]
        cursor = next_rank + len(found)
        for commit in found:
            table[commit] = cursor
            cursor -= 1
        next_rank += len(found)
    return table


def rank_changes(
    units: Sequence[ChangeUnit], references: Sequence[str], history: HistoryFn
) -> dict[str, int | None]:
    """Return the rank of each unit keyed by unit id.

    Units without content, or whose content is not reachable from any of
    ``references``, map to ``None``.
    """
    table = rank_commits((unit.content_ref for unit in units), references, history)
    return {
        unit.id: table.get(unit.content_ref) if unit.content_ref else None for unit in units
    }


def apply_ranks(units: Sequence[ChangeUnit], ranks: dict[str, int | None]) -> list[str]:
    """Store ranks on ``units`` and return ids of units with unreachable content."""
    unreachable: list[str] = []
    for unit in units:
        unit.rank = ranks.get(unit.id)
        if unit.content_ref and unit.rank is None:
            unreachable.append(unit.id)
    return unreachable
