"""Fatal run error contracts.

A fatal error aborts the whole integration run: unit processing halts, the
partial batch summary is still reported, and the CLI exits non-zero. Per-unit
problems (apply conflicts, build failures, missing content) are not
exceptions; they are recorded as ``UnitFailure`` values by the driver.
"""

from __future__ import annotations

from typing import Literal

FatalErrorCode = Literal[
    "invalid_input",
    "duplicate_unit",
    "dangling_prerequisite",
    "prerequisite_cycle",
    "order_incomplete",
    "remote_lookup_failed",
    "malformed_commit",
    "tag_exists",
    "external_command_failed",
]


class FatalError(Exception):
    """Condition that leaves the run in a state it must not continue from.

    Use ``raise FatalError(...) from exc`` to chain a causing exception; it is
    available as ``__cause__``.
    """

    def __init__(
        self,
        code: FatalErrorCode,
        message: str,
        *,
        recovery_hint: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.recovery_hint = recovery_hint


class InvalidInputError(FatalError):
    """Batch file or configuration could not be validated."""

    def __init__(self, message: str, *, recovery_hint: str | None = None) -> None:
        super().__init__("invalid_input", message, recovery_hint=recovery_hint)


class DuplicateUnitError(FatalError):
    """Two change units in a batch share an id."""

    def __init__(self, unit_id: str) -> None:
        super().__init__("duplicate_unit", f"change {unit_id} appears more than once in the batch")
        self.unit_id = unit_id


class DanglingPrerequisiteError(FatalError):
    """A unit names a prerequisite that is not part of the batch."""

    def __init__(self, unit_id: str, prerequisite: str) -> None:
        super().__init__(
            "dangling_prerequisite",
            f"change {unit_id} has prerequisite {prerequisite} which is not in the batch",
            recovery_hint=f"add {prerequisite} to the batch or drop the prerequisite",
        )
        self.unit_id = unit_id
        self.prerequisite = prerequisite


class PrerequisiteCycleError(FatalError):
    """Prerequisite edges form a cycle."""

    def __init__(self, cycle: tuple[str, ...]) -> None:
        super().__init__(
            "prerequisite_cycle",
            "prerequisite cycle: " + " -> ".join(cycle),
        )
        self.cycle = cycle


class OrderIncompleteError(FatalError):
    """The resolved order lost or duplicated units."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            "order_incomplete",
            f"resolved order has {actual} changes, expected {expected}",
        )
        self.expected = expected
        self.actual = actual


class RemoteLookupError(FatalError):
    """The review change for a just-uploaded commit could not be found."""

    def __init__(self, commit: str, *, detail: str | None = None) -> None:
        message = f"cannot find review change for commit {commit}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__("remote_lookup_failed", message)
        self.commit = commit


class MalformedCommitError(FatalError):
    """A commit object has no readable tree or parent."""

    def __init__(self, commit: str, blob: str) -> None:
        super().__init__(
            "malformed_commit",
            f"malformed commit object {commit}:\n{blob}",
        )
        self.commit = commit


class TagExistsError(FatalError):
    """The release tag already exists."""

    def __init__(self, tag: str) -> None:
        super().__init__(
            "tag_exists",
            f"{tag} tag already exists in the repository",
            recovery_hint="bump the release version or finalize with 'relcut tag'",
        )
        self.tag = tag


class ExternalCommandError(FatalError):
    """A git, review or build command that must succeed did not."""

    def __init__(self, message: str, *, recovery_hint: str | None = None) -> None:
        super().__init__("external_command_failed", message, recovery_hint=recovery_hint)
