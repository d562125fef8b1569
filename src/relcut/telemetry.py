"""Pipeline step timing helpers."""

from __future__ import annotations

import os
import time
from collections.abc import Callable

TRACE_ENV = "RELCUT_TRACE"
SLOW_STEP_SECONDS = 0.5


def trace_enabled(env_var: str = TRACE_ENV) -> bool:
    """Return whether step trace output is enabled for an env var."""
    return os.environ.get(env_var, "").strip().lower() in {
        "1",
        "true",
        "yes",
        "on",
    }


def step(
    label: str,
    *,
    timings: list[tuple[str, float]],
    trace: bool,
    say: Callable[[str], None],
    log_debug: Callable[[str], None] | None = None,
) -> Callable[[str | None], None]:
    """Render start/finish status for a named pipeline step."""
    say(f"-> {label}")
    if log_debug is not None:
        log_debug(f"step start label={label}")
    start = time.perf_counter()

    def finish(extra: str | None = None) -> None:
        elapsed = time.perf_counter() - start
        timings.append((label, elapsed))
        suffix = f" ({elapsed:.2f}s)" if trace or elapsed >= SLOW_STEP_SECONDS else ""
        detail = f": {extra}" if extra else ""
        say(f"ok {label}{suffix}{detail}")
        if log_debug is not None:
            log_debug(f"step finish label={label} elapsed={elapsed:.2f}s{detail}")

    return finish


def report_timings(
    timings: list[tuple[str, float]], *, trace: bool, say: Callable[[str], None]
) -> None:
    """Render a timing summary when tracing or when a step was slow."""
    slow = [item for item in timings if item[1] >= SLOW_STEP_SECONDS]
    shown = timings if trace else slow
    if not shown:
        return
    say("Timing summary:")
    for label, elapsed in sorted(shown, key=lambda item: item[1], reverse=True):
        say(f"- {label}: {elapsed:.2f}s")
