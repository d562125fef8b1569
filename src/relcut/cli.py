"""relcut command-line interface."""

from __future__ import annotations

from pathlib import Path

import typer

from . import __version__
from . import config as config_mod
from . import io as relcut_io
from . import log as relcut_log
from .errors import FatalError
from .pipeline import ReleaseRunRequest, ReleaseRunService, RunMode, tag_release
from .summary import render_summary

app = typer.Typer(
    help="Integrate a curated batch of changes onto a release branch.",
    no_args_is_help=True,
)

CONFIG_OPTION = typer.Option(
    Path("relcut.json"), "--config", "-c", help="Path to the relcut JSON config."
)
BATCH_OPTION = typer.Option(
    Path("changes.json"), "--batch", "-b", help="Path to the curated change batch."
)
VERSION_OPTION = typer.Option(
    None, "--version", "-V", help="Release version, overriding release.version."
)
FINAL_OPTION = typer.Option(
    False, "--final", help="Submit the integrated review changes before tagging."
)


def _validate_log_level(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip().lower()
    if normalized not in relcut_log.LOG_LEVEL_NAMES:
        choices = ", ".join(relcut_log.LOG_LEVEL_NAMES)
        raise typer.BadParameter(f"expected one of: {choices}")
    return normalized


def _show_version(value: bool) -> None:
    if value:
        relcut_io.say(f"relcut {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        help="Log level: trace, debug, info, success, warning or error.",
        callback=_validate_log_level,
    ),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colorized output."),
    show_version: bool = typer.Option(
        False,
        "--show-version",
        help="Print the relcut version and exit.",
        callback=_show_version,
        is_eager=True,
    ),
) -> None:
    if log_level is not None:
        relcut_log.set_level(log_level)
    if no_color:
        relcut_log.set_no_color(True)


def _run(
    config_path: Path,
    batch_path: Path,
    version: str | None,
    mode: RunMode,
    tag: bool,
    final: bool = False,
) -> None:
    cfg = config_mod.load_config(config_path, version=version, final=final)
    service = ReleaseRunService()
    request = ReleaseRunRequest(config=cfg, batch_path=batch_path, mode=mode, tag=tag)
    try:
        outcome = service(request)
    except FatalError as exc:
        relcut_log.error(exc.message)
        if exc.recovery_hint:
            relcut_log.info(f"hint: {exc.recovery_hint}")
        if service.summary is not None:
            render_summary(service.summary, say=relcut_io.say)
        raise typer.Exit(code=1) from exc

    if mode == "plan":
        relcut_io.say(f"Integration order for {cfg.release.version}:")
        for unit in outcome.order:
            rank = "unreachable" if unit.rank is None else str(unit.rank)
            relcut_io.say(f"- {unit.id} (rank {rank})")
        return
    render_summary(outcome.summary, say=relcut_io.say)
    if not outcome.summary.complete:
        raise typer.Exit(code=1)


@app.command("plan")
def plan_cmd(
    config_path: Path = CONFIG_OPTION,
    batch_path: Path = BATCH_OPTION,
    version: str | None = VERSION_OPTION,
) -> None:
    """Rank and order the batch without touching the release branch."""
    _run(config_path, batch_path, version, "plan", False)


@app.command("run")
def run_cmd(
    config_path: Path = CONFIG_OPTION,
    batch_path: Path = BATCH_OPTION,
    version: str | None = VERSION_OPTION,
    tag: bool = typer.Option(False, "--tag", help="Tag and push the release when complete."),
    final: bool = FINAL_OPTION,
) -> None:
    """Integrate the batch onto the release branch."""
    _run(config_path, batch_path, version, "run", tag, final)


@app.command("tag")
def tag_cmd(
    config_path: Path = CONFIG_OPTION,
    version: str | None = VERSION_OPTION,
    final: bool = FINAL_OPTION,
) -> None:
    """Tag and push the integrated release branch from a previous complete run."""
    cfg = config_mod.load_config(config_path, version=version, final=final)
    try:
        result = tag_release(cfg)
    except FatalError as exc:
        relcut_log.error(exc.message)
        if exc.recovery_hint:
            relcut_log.info(f"hint: {exc.recovery_hint}")
        raise typer.Exit(code=1) from exc
    if not result.tagged:
        raise typer.Exit(code=1)
