"""In-memory collaborators for driver and pipeline tests."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from relcut import exec as exec_util
from relcut.driver.models import BuildResult
from relcut.errors import RemoteLookupError
from relcut.review import RemoteChange, ReviewLabel

BASE_COMMIT = "base"
BASE_TREE = "T0"


@dataclass
class FakeWorld:
    """Commit objects and review refs shared by every fake checkout."""

    objects: dict[str, tuple[str, str]] = field(
        default_factory=lambda: {BASE_COMMIT: (BASE_TREE, "root")}
    )
    refs: dict[str, str] = field(default_factory=dict)
    counter: int = 0

    def commit(self, tree: str, parent: str) -> str:
        self.counter += 1
        commit = f"c{self.counter}"
        self.objects[commit] = (tree, parent)
        return commit


class FakeVcs:
    """Single work checkout over a ``FakeWorld``."""

    def __init__(
        self,
        world: FakeWorld,
        *,
        conflicts: set[str] | None = None,
        histories: Mapping[str, list[str]] | None = None,
        tags: set[str] | None = None,
        path: Path = Path("/work/gitwork"),
    ) -> None:
        self.world = world
        self.path = path
        self.tip = BASE_COMMIT
        self.conflicts = conflicts or set()
        self.histories = dict(histories or {})
        self.tags = tags or set()
        self.calls: list[tuple[str, str]] = []
        self.pushed: list[str] = []
        self.prefixes: list[str] = []

    def fetch_refs(self, refspecs: list[str]) -> None:
        for refspec in refspecs:
            self.calls.append(("fetch_refs", refspec))

    def commit_history(self, ref: str) -> list[str]:
        return list(self.histories.get(ref, []))

    def apply_patch(self, content_ref: str) -> bool:
        self.calls.append(("apply", content_ref))
        if content_ref in self.conflicts:
            return False
        tree = f"{self.world.objects[self.tip][0]}+{content_ref}"
        self.tip = self.world.commit(tree, self.tip)
        return True

    def abort_apply(self) -> None:
        self.calls.append(("abort", self.tip))

    def amend_message(self, prefix: str) -> None:
        self.prefixes.append(prefix)
        tree, parent = self.world.objects[self.tip]
        self.tip = self.world.commit(tree, parent)

    def current_tip(self) -> str:
        return self.tip

    def tree_and_parent(self, ref: str) -> tuple[str, str]:
        return self.world.objects[ref]

    def fetch_revision(self, ref: str) -> str:
        self.calls.append(("fetch_revision", ref))
        return self.world.refs[ref]

    def reset_to(self, ref: str) -> None:
        self.calls.append(("reset", ref))
        self.tip = ref

    def tag_exists(self, name: str) -> bool:
        return name in self.tags

    def tag(self, name: str) -> tuple[bool, str]:
        if name in self.tags:
            return False, f"fatal: tag '{name}' already exists"
        self.tags.add(name)
        return True, ""

    def push(self, refspec: str) -> None:
        self.pushed.append(refspec)


class FakeReview:
    """Review system that records uploads as new changes."""

    def __init__(
        self,
        world: FakeWorld,
        *,
        upload_votes: Mapping[ReviewLabel, int] | None = None,
        lose_uploads: bool = False,
        branch: str = "release-branch.go1.9",
    ) -> None:
        self.world = world
        self.branch = branch
        self.upload_votes = dict(upload_votes or {})
        self.lose_uploads = lose_uploads
        self.changes: dict[int, RemoteChange] = {}
        self.uploads: list[str] = []
        self.lookups: list[str] = []
        self.submitted: list[int] = []
        self.next_number = 1000

    def add(self, commit: str, *, votes: Mapping[ReviewLabel, int] | None = None) -> RemoteChange:
        self.next_number += 1
        number = self.next_number
        ref = f"refs/changes/{number % 100:02d}/{number}/1"
        change = RemoteChange(number=number, revision=commit, ref=ref, votes=dict(votes or {}))
        self.world.refs[ref] = commit
        self.changes[number] = change
        return change

    def get_change(self, number: int) -> RemoteChange | None:
        return self.changes.get(number)

    def find_change_by_commit(self, commit: str) -> RemoteChange | None:
        self.lookups.append(commit)
        for change in self.changes.values():
            if change.revision == commit:
                return change
        return None

    def upload_change(self, vcs: FakeVcs) -> RemoteChange:
        tip = vcs.current_tip()
        self.uploads.append(tip)
        if self.lose_uploads:
            raise RemoteLookupError(tip)
        return self.add(tip, votes=self.upload_votes)

    def submit_change(self, change: RemoteChange) -> None:
        self.submitted.append(change.number)
        self.world.refs[self.branch] = change.revision


class FakeBuild:
    """Build validator that fails while applied trees contain a marker."""

    command_text = "./make.bash"

    def __init__(self, vcs: FakeVcs | None = None, *, failing: set[str] | None = None) -> None:
        self.vcs = vcs
        self.failing = failing or set()
        self.calls = 0

    def validate(self) -> BuildResult:
        self.calls += 1
        if self.vcs is not None:
            tree = self.vcs.world.objects[self.vcs.tip][0]
            broken = [marker for marker in self.failing if marker in tree.split("+")]
            if broken:
                return BuildResult(ok=False, output=f"build broken by {broken[0]}")
        return BuildResult(ok=True, output="ALL TESTS PASSED")


class FakeRunner:
    """Command runner returning queued results and recording requests."""

    def __init__(self, results: list[exec_util.CommandResult | None] | None = None) -> None:
        self.results = list(results or [])
        self.requests: list[exec_util.CommandRequest] = []

    def run(self, request: exec_util.CommandRequest) -> exec_util.CommandResult | None:
        self.requests.append(request)
        if not self.results:
            return exec_util.CommandResult(
                argv=request.argv, returncode=0, stdout="", stderr=""
            )
        return self.results.pop(0)


def ok_result(stdout: str = "", argv: tuple[str, ...] = ()) -> exec_util.CommandResult:
    return exec_util.CommandResult(argv=argv, returncode=0, stdout=stdout, stderr="")


def failed_result(
    stderr: str = "", *, returncode: int = 1, argv: tuple[str, ...] = ()
) -> exec_util.CommandResult:
    return exec_util.CommandResult(argv=argv, returncode=returncode, stdout="", stderr=stderr)
