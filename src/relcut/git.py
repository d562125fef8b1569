"""Git helper functions used by the relcut checkout."""

from pathlib import Path

from . import exec as exec_util
from . import log as relcut_log
from .errors import ExternalCommandError, MalformedCommitError


def git_command(args: list[str], *, git_path: str | None = None) -> list[str]:
    """Build a git command using an optional executable path.

    Example:
        >>> git_command(["status"], git_path=" /usr/bin/git ")
        ['/usr/bin/git', 'status']
    """
    resolved = git_path.strip() if isinstance(git_path, str) else ""
    if not resolved:
        resolved = "git"
    return [resolved, *args]


def _run_git(
    repo_dir: Path | None,
    args: list[str],
    *,
    git_path: str | None = None,
    input: str | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> exec_util.CommandResult:
    prefix = ["-C", str(repo_dir)] if repo_dir is not None else []
    relcut_log.trace(f"git {' '.join(args)}")
    request = exec_util.CommandRequest(
        argv=tuple(git_command([*prefix, *args], git_path=git_path)),
        input=input,
    )
    try:
        return exec_util.run_capture(request, runner=runner)
    except exec_util.CommandExecutionError as exc:
        raise ExternalCommandError(str(exc)) from exc


def _check_git(
    repo_dir: Path | None,
    args: list[str],
    *,
    git_path: str | None = None,
    input: str | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> str:
    result = _run_git(repo_dir, args, git_path=git_path, input=input, runner=runner)
    if not result.ok:
        detail = (result.stderr or result.stdout or "").strip()
        message = f"git {' '.join(args)} failed"
        raise ExternalCommandError(f"{message}:\n{detail}" if detail else message)
    return result.stdout


def git_clone(
    url: str,
    dest: Path,
    *,
    reference: Path | None = None,
    branch: str | None = None,
    git_path: str | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> None:
    """Clone ``url`` into ``dest``, borrowing objects from ``reference``."""
    args = ["clone"]
    if reference is not None:
        args += ["--reference", str(reference)]
    if branch:
        args += ["-b", branch]
    args += [url, str(dest)]
    _check_git(None, args, git_path=git_path, runner=runner)


def git_config_set(
    repo_dir: Path,
    key: str,
    value: str,
    *,
    git_path: str | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> None:
    _check_git(repo_dir, ["config", key, value], git_path=git_path, runner=runner)


def git_fetch(
    repo_dir: Path,
    remote: str,
    refspecs: list[str],
    *,
    git_path: str | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> None:
    """Fetch ``refspecs`` from ``remote``; failure is fatal."""
    _check_git(repo_dir, ["fetch", remote, *refspecs], git_path=git_path, runner=runner)


def git_log_hashes(
    repo_dir: Path,
    ref: str,
    *,
    git_path: str | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> list[str]:
    """Return commit hashes reachable from ``ref``, newest first."""
    output = _check_git(
        repo_dir, ["log", "--pretty=format:%H", ref], git_path=git_path, runner=runner
    )
    return [line.strip() for line in output.splitlines() if line.strip()]


def git_cherry_pick(
    repo_dir: Path,
    commit: str,
    *,
    git_path: str | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> exec_util.CommandResult:
    """Cherry-pick ``commit`` onto HEAD, returning the raw result."""
    return _run_git(repo_dir, ["cherry-pick", commit], git_path=git_path, runner=runner)


def git_cherry_pick_abort(
    repo_dir: Path,
    *,
    git_path: str | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> bool:
    """Abort an in-progress cherry-pick; ``False`` when none was in progress."""
    result = _run_git(repo_dir, ["cherry-pick", "--abort"], git_path=git_path, runner=runner)
    return result.ok


def git_commit_message(
    repo_dir: Path,
    ref: str = "HEAD",
    *,
    git_path: str | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> str:
    return _check_git(
        repo_dir, ["log", "-1", "--format=%B", ref], git_path=git_path, runner=runner
    )


def git_amend_message(
    repo_dir: Path,
    message: str,
    *,
    git_path: str | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> None:
    """Replace the HEAD commit message, keeping its tree and parent."""
    _check_git(
        repo_dir,
        ["commit", "--amend", "--allow-empty", "-F", "-"],
        git_path=git_path,
        input=message,
        runner=runner,
    )


def git_rev_parse(
    repo_dir: Path,
    ref: str,
    *,
    git_path: str | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> str | None:
    """Resolve a ref to its commit hash.

    Returns:
        Commit hash or ``None`` when the ref does not resolve.
    """
    result = _run_git(
        repo_dir,
        ["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"],
        git_path=git_path,
        runner=runner,
    )
    if not result.ok:
        return None
    return result.stdout.strip() or None


def git_ref_exists(
    repo_dir: Path,
    ref: str,
    *,
    git_path: str | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> bool:
    """Check whether a fully qualified git ref exists."""
    result = _run_git(
        repo_dir, ["show-ref", "--verify", "--quiet", ref], git_path=git_path, runner=runner
    )
    return result.ok


def git_tag_exists(
    repo_dir: Path,
    tag: str,
    *,
    git_path: str | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> bool:
    """Check whether a local tag exists."""
    if not tag:
        return False
    return git_ref_exists(repo_dir, f"refs/tags/{tag}", git_path=git_path, runner=runner)


def parse_tree_and_parent(commit: str, blob: str) -> tuple[str, str]:
    """Return the tree and parent hashes from a raw commit object.

    Only the header is read; for merge commits the last parent line wins.

    Raises:
        MalformedCommitError: The header has no tree or no parent.

    Example:
        >>> parse_tree_and_parent("c1", "tree t1\\nparent p1\\nauthor a\\n\\nmsg\\n")
        ('t1', 'p1')
    """
    tree = ""
    parent = ""
    for line in blob.split("\n"):
        if line == "":
            break
        if line.startswith("tree "):
            tree = line[len("tree ") :].strip()
        elif line.startswith("parent "):
            parent = line[len("parent ") :].strip()
    if not tree or not parent:
        raise MalformedCommitError(commit, blob)
    return tree, parent


def git_tree_and_parent(
    repo_dir: Path,
    commit: str,
    *,
    git_path: str | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> tuple[str, str]:
    """Return the ``(tree, parent)`` fingerprint of ``commit``."""
    result = _run_git(repo_dir, ["cat-file", "commit", commit], git_path=git_path, runner=runner)
    if not result.ok:
        raise MalformedCommitError(commit, result.output)
    return parse_tree_and_parent(commit, result.stdout)


def git_reset_hard(
    repo_dir: Path,
    ref: str,
    *,
    git_path: str | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> None:
    _check_git(repo_dir, ["reset", "--hard", ref], git_path=git_path, runner=runner)


def git_checkout_branch(
    repo_dir: Path,
    branch: str,
    *,
    git_path: str | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> None:
    """Create or reset ``branch`` at HEAD and switch to it."""
    _check_git(repo_dir, ["checkout", "-B", branch], git_path=git_path, runner=runner)


def git_tag(
    repo_dir: Path,
    name: str,
    *,
    git_path: str | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> exec_util.CommandResult:
    """Create a lightweight tag at HEAD, returning the raw result."""
    return _run_git(repo_dir, ["tag", name], git_path=git_path, runner=runner)


def git_push(
    repo_dir: Path,
    remote: str,
    refspec: str,
    *,
    git_path: str | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> None:
    _check_git(repo_dir, ["push", remote, refspec], git_path=git_path, runner=runner)
