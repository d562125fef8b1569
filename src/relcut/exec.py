"""Subprocess helpers for running git, review and build commands."""

import json
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Protocol, TypeVar

from pydantic import BaseModel, ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


@dataclass(frozen=True)
class CommandRequest:
    """Typed command invocation request."""

    argv: tuple[str, ...]
    cwd: Path | None = None
    env: Mapping[str, str] | None = None
    capture_output: bool = True
    text: bool = True
    timeout_seconds: float | None = None
    input: str | None = None


@dataclass(frozen=True)
class CommandResult:
    """Typed command execution result."""

    argv: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    @property
    def output(self) -> str:
        """Combined stdout and stderr, in that order."""
        parts = [part for part in (self.stdout, self.stderr) if part]
        return "\n".join(part.rstrip("\n") for part in parts)


class CommandRunner(Protocol):
    """Runtime command-execution interface."""

    def run(self, request: CommandRequest) -> CommandResult | None: ...


class SubprocessCommandRunner:
    """Default command-runner adapter backed by subprocess."""

    def run(self, request: CommandRequest) -> CommandResult | None:
        run_kwargs: dict[str, object] = {
            "cwd": request.cwd,
            "env": request.env,
            "check": False,
        }
        if request.capture_output:
            run_kwargs["capture_output"] = True
            run_kwargs["text"] = request.text
        if request.timeout_seconds is not None:
            run_kwargs["timeout"] = request.timeout_seconds
        if request.input is not None:
            run_kwargs["input"] = request.input
            run_kwargs["text"] = True
        try:
            completed = subprocess.run(list(request.argv), **run_kwargs)
        except FileNotFoundError:
            return None
        except subprocess.TimeoutExpired as exc:
            stdout = _partial_output(exc.stdout)
            stderr = _partial_output(exc.stderr)
            return CommandResult(
                argv=request.argv,
                returncode=124,
                stdout=stdout,
                stderr=stderr,
                timed_out=True,
            )

        stdout = completed.stdout if isinstance(completed.stdout, str) else ""
        stderr = completed.stderr if isinstance(completed.stderr, str) else ""
        return CommandResult(
            argv=request.argv,
            returncode=completed.returncode,
            stdout=stdout,
            stderr=stderr,
        )


_DEFAULT_COMMAND_RUNNER: CommandRunner = SubprocessCommandRunner()


def _partial_output(value: str | bytes | None) -> str:
    """Return output captured before a timeout as text.

    ``TimeoutExpired`` carries raw bytes on POSIX even for text-mode runs.
    """
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


@dataclass(frozen=True)
class CommandExecutionError(RuntimeError):
    """Raised when a command is missing or exits unsuccessfully."""

    request: CommandRequest
    detail: str
    result: CommandResult | None = None

    def __str__(self) -> str:
        return self.detail


@dataclass(frozen=True)
class CommandParseError(RuntimeError):
    """Raised when command output parsing fails."""

    request: CommandRequest
    detail: str
    context: str | None = None

    def __str__(self) -> str:
        return self.detail


def run_with_runner(
    request: CommandRequest, *, runner: CommandRunner | None = None
) -> CommandResult | None:
    """Execute a typed command request with the given runner."""
    active_runner = runner or _DEFAULT_COMMAND_RUNNER
    return active_runner.run(request)


def _missing_command_detail(request: CommandRequest) -> str:
    argv = request.argv
    if not argv:
        return "missing required command"
    return f"missing required command: {argv[0]}"


def _command_failure_detail(request: CommandRequest, result: CommandResult) -> str:
    output = (result.stderr or result.stdout or "").strip()
    command_text = " ".join(request.argv)
    if result.timed_out:
        return f"command timed out: {command_text}"
    if output:
        return f"command failed: {command_text}\n{output}"
    return f"command failed: {command_text}"


def run_capture(
    request: CommandRequest, *, runner: CommandRunner | None = None
) -> CommandResult:
    """Execute a command and return its result whatever the exit status.

    Raises:
        CommandExecutionError: The executable could not be found.
    """
    result = run_with_runner(request, runner=runner)
    if result is None:
        raise CommandExecutionError(request=request, detail=_missing_command_detail(request))
    return result


def run_checked(
    request: CommandRequest, *, runner: CommandRunner | None = None
) -> CommandResult:
    """Execute a command that must succeed.

    Raises:
        CommandExecutionError: The executable is missing or exited non-zero.
    """
    result = run_capture(request, runner=runner)
    if not result.ok:
        raise CommandExecutionError(
            request=request,
            result=result,
            detail=_command_failure_detail(request, result),
        )
    return result


def parse_json_lines_models(
    result: CommandResult,
    *,
    model_type: type[ModelT],
    skip: str | None = None,
    context: str | None = None,
) -> list[ModelT]:
    """Parse newline-delimited JSON objects into validated Pydantic models.

    Objects containing the ``skip`` key (for example a trailing statistics
    record) are ignored.
    """
    context_suffix = f" ({context})" if context else ""
    models: list[ModelT] = []
    for index, line in enumerate((result.stdout or "").splitlines()):
        raw = line.strip()
        if not raw:
            continue
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise CommandParseError(
                request=CommandRequest(argv=result.argv),
                detail=f"failed to parse command output{context_suffix}: {exc}",
                context=context,
            ) from exc
        if not isinstance(payload, dict):
            continue
        if skip is not None and skip in payload:
            continue
        try:
            models.append(model_type.model_validate(payload))
        except ValidationError as exc:
            raise CommandParseError(
                request=CommandRequest(argv=result.argv),
                detail=(
                    f"failed to validate command output{context_suffix}"
                    f" at line {index + 1}: {exc}"
                ),
                context=context,
            ) from exc
    return models
