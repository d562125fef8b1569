"""Configuration helpers for relcut runs.

This module reads the JSON run configuration, validates it with Pydantic
models and resolves the release work directory.

Example:
    >>> from relcut.config import load_json
    >>> from pathlib import Path
    >>> load_json(Path("missing.json")) is None
    True
"""

import json
from pathlib import Path

from pydantic import BaseModel, ValidationError

from . import paths
from .io import die
from .models import RelcutConfig


def load_json(path: Path) -> dict | None:
    """Load a JSON object file if it exists.

    Args:
        path: Path to the JSON file.

    Returns:
        Parsed payload as a dict, or ``None`` if the file does not exist.
    """
    if not path.exists():
        return None
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        die(f"invalid JSON in {path}: {exc}")
    if not isinstance(payload, dict):
        die(f"expected a JSON object in {path}")
    return payload


def write_json(path: Path, payload: dict | BaseModel) -> None:
    """Write a JSON payload to disk.

    Args:
        path: Path to the JSON file to write.
        payload: Dict or Pydantic model to serialize.
    """
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(mode="json")
    with path.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2)
        fh.write("\n")


def parse_config(payload: dict, source: Path | str | None = None) -> RelcutConfig:
    """Validate a configuration payload.

    Args:
        payload: Raw config payload.
        source: Optional path or label for error messages.

    Returns:
        Parsed ``RelcutConfig``.

    Example:
        >>> parse_config(
        ...     {"project": {"repo_url": "https://example.com/go"},
        ...      "release": {"version": "go1.10.1"}}
        ... ).release.branch
        'release-branch.go1.10'
    """
    try:
        return RelcutConfig.model_validate(payload)
    except ValidationError as exc:
        location = f" at {source}" if source else ""
        die(f"invalid relcut config{location}:\n{exc}")


def load_config(
    path: Path, *, version: str | None = None, final: bool = False
) -> RelcutConfig:
    """Load and validate the run configuration from disk.

    Args:
        path: Configuration file path.
        version: Optional release version overriding ``release.version``.
        final: Force ``release.final`` on.
    """
    payload = load_json(path)
    if payload is None:
        die(f"config file not found: {path}")
    if version:
        release = payload.get("release")
        release = dict(release) if isinstance(release, dict) else {}
        release["version"] = version
        release.pop("branch", None)
        release.pop("message_prefix", None)
        payload = {**payload, "release": release}
    if final:
        release = payload.get("release")
        release = dict(release) if isinstance(release, dict) else {}
        payload = {**payload, "release": {**release, "final": True}}
    return parse_config(payload, source=path)


def release_root(config: RelcutConfig) -> Path:
    """Return the work directory for the configured release."""
    base = Path(config.work_dir).expanduser() if config.work_dir else None
    return paths.release_dir(config.release.version, base=base)
