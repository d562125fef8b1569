"""The release work checkout: a mirror clone plus a fresh working clone.

The first run for a release clones a mirror that later runs use as an
object cache and that planning runs rank from. Every integration run then
re-clones the working checkout from scratch with ``--reference`` to the
mirror, so no state from a previous run leaks into the integration stack.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path

from . import exec as exec_util
from . import git
from . import log as relcut_log
from . import paths
from .errors import ExternalCommandError
from .models import RelcutConfig


@dataclass
class WorkingBranch:
    """Single-writer handle on the work checkout.

    Implements the ``VersionControl`` port used by the ranker, driver and
    finalizer. A run owns exactly one instance.
    """

    path: Path
    remote: str = "origin"
    git_path: str | None = None
    runner: exec_util.CommandRunner | None = None

    def fetch_refs(self, refspecs: list[str]) -> None:
        if not refspecs:
            return
        git.git_fetch(self.path, self.remote, refspecs, git_path=self.git_path, runner=self.runner)

    def commit_history(self, ref: str) -> list[str]:
        return git.git_log_hashes(self.path, ref, git_path=self.git_path, runner=self.runner)

    def apply_patch(self, content_ref: str) -> bool:
        result = git.git_cherry_pick(
            self.path, content_ref, git_path=self.git_path, runner=self.runner
        )
        if not result.ok:
            relcut_log.debug(f"cherry-pick {content_ref} failed:\n{result.output}")
        return result.ok

    def abort_apply(self) -> None:
        if not git.git_cherry_pick_abort(self.path, git_path=self.git_path, runner=self.runner):
            relcut_log.debug("no cherry-pick in progress to abort")

    def amend_message(self, prefix: str) -> None:
        """Give the HEAD commit message the release-branch prefix."""
        message = git.git_commit_message(self.path, git_path=self.git_path, runner=self.runner)
        normalized = with_message_prefix(message, prefix)
        if normalized == message:
            return
        git.git_amend_message(self.path, normalized, git_path=self.git_path, runner=self.runner)

    def current_tip(self) -> str:
        tip = git.git_rev_parse(self.path, "HEAD", git_path=self.git_path, runner=self.runner)
        if tip is None:
            raise ExternalCommandError(f"work checkout {self.path} has no HEAD commit")
        return tip

    def tree_and_parent(self, ref: str) -> tuple[str, str]:
        return git.git_tree_and_parent(self.path, ref, git_path=self.git_path, runner=self.runner)

    def fetch_revision(self, ref: str) -> str:
        """Fetch a single ref and return the commit it points at."""
        self.fetch_refs([ref])
        fetched = git.git_rev_parse(
            self.path, "FETCH_HEAD", git_path=self.git_path, runner=self.runner
        )
        if fetched is None:
            raise ExternalCommandError(f"fetching {ref} did not produce FETCH_HEAD")
        return fetched

    def reset_to(self, ref: str) -> None:
        git.git_reset_hard(self.path, ref, git_path=self.git_path, runner=self.runner)

    def tag_exists(self, name: str) -> bool:
        return git.git_tag_exists(self.path, name, git_path=self.git_path, runner=self.runner)

    def tag(self, name: str) -> tuple[bool, str]:
        result = git.git_tag(self.path, name, git_path=self.git_path, runner=self.runner)
        return result.ok, result.output

    def push(self, refspec: str) -> None:
        git.git_push(self.path, self.remote, refspec, git_path=self.git_path, runner=self.runner)


def with_message_prefix(message: str, prefix: str) -> str:
    """Return ``message`` with ``prefix`` on its subject line.

    Example:
        >>> with_message_prefix("net: fix\\n\\nbody\\n", "[release-branch.go1.9] ")
        '[release-branch.go1.9] net: fix\\n\\nbody\\n'
        >>> with_message_prefix("[release-branch.go1.9] net: fix\\n", "[release-branch.go1.9] ")
        '[release-branch.go1.9] net: fix\\n'
    """
    if not prefix or message.startswith(prefix):
        return message
    return prefix + message.lstrip()


def prepare_mirror(
    config: RelcutConfig,
    release_root: Path,
    *,
    runner: exec_util.CommandRunner | None = None,
) -> WorkingBranch:
    """Clone or refresh the mirror and return a handle on it.

    The work checkout is left untouched, so read-only runs can rank changes
    without discarding an integrated stack.
    """
    project = config.project
    release_branch = config.release.branch or ""
    git_path = config.git.path
    release_root.mkdir(parents=True, exist_ok=True)
    relcut_log.info(f"working in {release_root}")

    mirror = paths.mirror_dir(release_root)
    if not mirror.exists():
        git.git_clone(project.repo_url, mirror, git_path=git_path, runner=runner)
        # Keep fetched review refs around for later runs.
        git.git_config_set(mirror, "gc.auto", "0", git_path=git_path, runner=runner)
    else:
        git.git_fetch(
            mirror, project.remote, [project.upstream_branch], git_path=git_path, runner=runner
        )
    git.git_fetch(mirror, project.remote, [release_branch], git_path=git_path, runner=runner)
    return WorkingBranch(path=mirror, remote=project.remote, git_path=git_path, runner=runner)


def prepare_checkout(
    config: RelcutConfig,
    release_root: Path,
    *,
    runner: exec_util.CommandRunner | None = None,
) -> WorkingBranch:
    """Refresh the mirror and clone a fresh work checkout of the release branch."""
    project = config.project
    release_branch = config.release.branch or ""
    git_path = config.git.path
    mirror = prepare_mirror(config, release_root, runner=runner).path

    work = paths.checkout_dir(release_root)
    if work.exists():
        shutil.rmtree(work)
    git.git_clone(
        project.repo_url,
        work,
        reference=mirror,
        branch=release_branch,
        git_path=git_path,
        runner=runner,
    )
    git.git_config_set(work, "gc.auto", "0", git_path=git_path, runner=runner)
    git.git_checkout_branch(work, project.work_branch, git_path=git_path, runner=runner)
    return WorkingBranch(path=work, remote=project.remote, git_path=git_path, runner=runner)
