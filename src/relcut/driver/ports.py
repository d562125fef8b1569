"""Typed collaborator ports used by the integration driver."""

from __future__ import annotations

from typing import Protocol

from ..review import RemoteChange
from .models import BuildResult


class VersionControl(Protocol):
    """Operations on the single working checkout owned by a run."""

    def fetch_refs(self, refspecs: list[str]) -> None: ...

    def commit_history(self, ref: str) -> list[str]: ...

    def apply_patch(self, content_ref: str) -> bool: ...

    def abort_apply(self) -> None: ...

    def amend_message(self, prefix: str) -> None: ...

    def current_tip(self) -> str: ...

    def tree_and_parent(self, ref: str) -> tuple[str, str]: ...

    def fetch_revision(self, ref: str) -> str: ...

    def reset_to(self, ref: str) -> None: ...

    def tag_exists(self, name: str) -> bool: ...

    def tag(self, name: str) -> tuple[bool, str]: ...

    def push(self, refspec: str) -> None: ...


class ReviewSystem(Protocol):
    """Remote review queries and uploads."""

    def get_change(self, number: int) -> RemoteChange | None: ...

    def find_change_by_commit(self, commit: str) -> RemoteChange | None: ...

    def upload_change(self, vcs: VersionControl) -> RemoteChange: ...

    def submit_change(self, change: RemoteChange) -> None: ...


class BuildValidator(Protocol):
    """Build check run on the checkout before publishing a change."""

    @property
    def command_text(self) -> str: ...

    def validate(self) -> BuildResult: ...
