from relcut.changes import ChangeUnit
from relcut.ranking import apply_ranks, rank_changes, rank_commits, ranking_references

HISTORIES = {
    "master": ["m5", "m4", "m3", "m2", "m1"],
    "release-branch.go1.9": ["r2", "r1", "m1"],
    "refs/changes/01/101/1": ["p1", "m3", "m2"],
}


def test_commits_in_one_reference_rank_in_history_order() -> None:
    table = rank_commits(["m4", "m1", "m2"], ["master"], HISTORIES.__getitem__)

    assert table["m1"] < table["m2"] < table["m4"]
    assert sorted(table.values()) == [1, 2, 3]


def test_earlier_reference_ranks_below_later_ones() -> None:
    table = rank_commits(
        ["p1", "r2", "m3"],
        ["master", "release-branch.go1.9", "refs/changes/01/101/1"],
        HISTORIES.__getitem__,
    )

    assert table == {"p1": 3, "r2": 2, "m3": 1}


def test_scan_stops_at_first_ranked_commit() -> None:
    histories = {"one": ["b", "a"], "two": ["c", "a", "z"]}

    table = rank_commits(["a", "c", "z"], ["one", "two"], histories.__getitem__)

    assert table == {"a": 1, "c": 2, "z": None}


def test_unreachable_content_stays_unresolved() -> None:
    units = [
        ChangeUnit("1", content_ref="m2"),
        ChangeUnit("2", content_ref="nowhere", position=1),
        ChangeUnit("3", content_ref="", position=2),
    ]

    ranks = rank_changes(units, ["master"], HISTORIES.__getitem__)
    unreachable = apply_ranks(units, ranks)

    assert ranks == {"1": 1, "2": None, "3": None}
    assert unreachable == ["2"]
    assert units[0].rank == 1


def test_ranking_references_puts_upstream_and_release_first() -> None:
    units = [
        ChangeUnit("1", source_ref="refs/changes/01/101/1"),
        ChangeUnit("2", source_ref="master"),
        ChangeUnit("3", source_ref=""),
    ]

    assert ranking_references(
        units, upstream_ref="master", release_ref="release-branch.go1.9"
    ) == ["master", "release-branch.go1.9", "refs/changes/01/101/1"]
