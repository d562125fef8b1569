"""Build validation run on the work checkout before a change is published."""

from __future__ import annotations

import shlex
from dataclasses import dataclass
from pathlib import Path

from . import exec as exec_util
from . import log as relcut_log
from .driver.models import BuildResult
from .errors import ExternalCommandError
from .models import BuildSection


def output_tail(output: str, lines: int) -> str:
    """Return the last ``lines`` lines of ``output``.

    Example:
        >>> output_tail("a\\nb\\nc\\n", 2)
        'b\\nc'
    """
    if lines <= 0:
        return ""
    return "\n".join(output.rstrip("\n").splitlines()[-lines:])


@dataclass
class CommandBuild:
    """Run the configured build command inside the work checkout."""

    checkout: Path
    settings: BuildSection
    runner: exec_util.CommandRunner | None = None

    @property
    def workdir(self) -> Path:
        return self.checkout / self.settings.subdir if self.settings.subdir else self.checkout

    @property
    def command_text(self) -> str:
        return shlex.join(self.settings.command)

    def validate(self) -> BuildResult:
        relcut_log.info(f"running {self.command_text} in {self.workdir}")
        request = exec_util.CommandRequest(
            argv=tuple(self.settings.command),
            cwd=self.workdir,
            timeout_seconds=self.settings.timeout_seconds,
        )
        try:
            result = exec_util.run_capture(request, runner=self.runner)
        except exec_util.CommandExecutionError as exc:
            raise ExternalCommandError(
                str(exc), recovery_hint="check build.command in the relcut config"
            ) from exc
        tail = output_tail(result.output, self.settings.output_tail_lines)
        if result.timed_out:
            relcut_log.error(f"{self.command_text} timed out")
            return BuildResult(ok=False, output=tail)
        if not result.ok:
            relcut_log.debug(f"{self.command_text} exited {result.returncode}")
        return BuildResult(ok=result.ok, output=tail)
