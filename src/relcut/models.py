"""Pydantic models for relcut configuration data."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

VOTE_MIN = -2
VOTE_MAX = 2


def _strip_or_none(value: object) -> object:
    if value is None:
        return None
    if isinstance(value, str):
        normalized = value.strip()
        return normalized or None
    return value


def release_branch_for_version(version: str) -> str:
    """Return the release branch name for a release version.

    Example:
        >>> release_branch_for_version("go1.9.2")
        'release-branch.go1.9'
    """
    short = version.strip().lower()
    if "." not in short:
        raise ValueError(f"release version {version!r} has no minor component")
    return "release-branch." + short[: short.rindex(".")]


class ProjectSection(BaseModel):
    """Repository being released.

    Attributes:
        repo_url: Clone URL of the project.
        remote: Remote name used inside the work checkout.
        upstream_branch: Primary development branch.
        review_namespace: Local branch prefix for fetched refs.
        work_branch: Local branch the integration stack is built on.

    Example:
        >>> ProjectSection(repo_url="https://go.googlesource.com/go").remote
        'origin'
    """

    model_config = ConfigDict(extra="allow")

    repo_url: str
    remote: str = "origin"
    upstream_branch: str = "master"
    review_namespace: str = "review/"
    work_branch: str = "relwork"

    @field_validator("repo_url", mode="before")
    @classmethod
    def normalize_repo_url(cls, value: object) -> object:
        normalized = _strip_or_none(value)
        if normalized is None:
            raise ValueError("repo_url must not be empty")
        return normalized

    @field_validator("remote", "upstream_branch", "work_branch", mode="before")
    @classmethod
    def normalize_names(cls, value: object) -> object:
        return _strip_or_none(value)


class ReleaseSection(BaseModel):
    """Release being cut.

    ``branch`` and ``message_prefix`` default from ``version``. A ``final``
    release submits the integrated review changes before it is tagged.

    Example:
        >>> ReleaseSection(version="go1.9.2").message_prefix
        '[release-branch.go1.9] '
    """

    model_config = ConfigDict(extra="allow")

    version: str
    branch: str | None = None
    message_prefix: str | None = None
    final: bool = False

    @field_validator("version", mode="before")
    @classmethod
    def normalize_version(cls, value: object) -> object:
        normalized = _strip_or_none(value)
        if normalized is None:
            raise ValueError("release version must not be empty")
        if isinstance(normalized, str):
            return normalized.lower()
        return normalized

    @field_validator("branch", mode="before")
    @classmethod
    def normalize_branch(cls, value: object) -> object:
        return _strip_or_none(value)

    @model_validator(mode="after")
    def derive_branch(self) -> ReleaseSection:
        if self.branch is None:
            self.branch = release_branch_for_version(self.version)
        if self.message_prefix is None:
            self.message_prefix = f"[{self.branch}] "
        return self


class GitSection(BaseModel):
    """Git configuration.

    Attributes:
        path: Git executable path (default ``git``).
    """

    model_config = ConfigDict(extra="allow")

    path: str = "git"

    @field_validator("path", mode="before")
    @classmethod
    def normalize_path(cls, value: object) -> object:
        if value is None:
            return "git"
        if isinstance(value, str):
            normalized = value.strip()
            return normalized or "git"
        return value


class ReviewSection(BaseModel):
    """Review system access and vote policy.

    Attributes:
        query_command: Command prefix for Gerrit queries, for example
            ``["ssh", "-p", "29418", "review.example.com", "gerrit"]``.
        upload_ref: Push target template; ``{branch}`` is the release branch.
        upload_options: Gerrit push options appended after ``%``.
        build_verification_label: Label carrying automated build votes.
        approval_label: Label carrying human approval votes.
        trusted_build_vote: Build vote at or above which a candidate is
            trusted and local build validation is skipped.
        approval_vote: Approval vote below which a warning is recorded.
        verify_untrusted_reuse: Build reused candidates whose build vote is
            below ``trusted_build_vote``.
    """

    model_config = ConfigDict(extra="allow")

    query_command: list[str] = Field(default_factory=list)
    upload_ref: str = "refs/for/{branch}"
    upload_options: list[str] = Field(default_factory=lambda: ["l=Run-TryBot+1"])
    build_verification_label: str = "TryBot-Result"
    approval_label: str = "Code-Review"
    trusted_build_vote: int = 1
    approval_vote: int = 2
    verify_untrusted_reuse: bool = False
    timeout_seconds: float = 30.0
    retry_attempts: int = 2

    @field_validator("trusted_build_vote", "approval_vote")
    @classmethod
    def validate_vote(cls, value: int) -> int:
        if not VOTE_MIN <= value <= VOTE_MAX:
            raise ValueError(f"vote threshold {value} outside {VOTE_MIN}..{VOTE_MAX}")
        return value

    @field_validator("query_command", "upload_options", mode="before")
    @classmethod
    def normalize_argv(cls, value: object) -> object:
        if value is None:
            return []
        if isinstance(value, str):
            return value.split()
        return value


class BuildSection(BaseModel):
    """Build validation step run before a change is published.

    Attributes:
        command: Command run inside ``subdir`` of the work checkout.
        subdir: Checkout-relative directory to run the command in.
        timeout_seconds: Optional limit for a single build.
        output_tail_lines: Lines of build output kept in failure reports.
    """

    model_config = ConfigDict(extra="allow")

    command: list[str] = Field(default_factory=lambda: ["./make.bash"])
    subdir: str = "src"
    timeout_seconds: float | None = None
    output_tail_lines: int = 40

    @field_validator("command", mode="before")
    @classmethod
    def normalize_command(cls, value: object) -> object:
        if isinstance(value, str):
            return value.split()
        return value

    @field_validator("command", mode="after")
    @classmethod
    def validate_command(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("build command must not be empty")
        return value


class RelcutConfig(BaseModel):
    """Top-level relcut configuration.

    Example:
        >>> RelcutConfig.model_validate(
        ...     {"project": {"repo_url": "https://example.com/go"},
        ...      "release": {"version": "go1.9.2"}}
        ... ).release.branch
        'release-branch.go1.9'
    """

    model_config = ConfigDict(extra="allow")

    project: ProjectSection
    release: ReleaseSection
    git: GitSection = Field(default_factory=GitSection)
    review: ReviewSection = Field(default_factory=ReviewSection)
    build: BuildSection = Field(default_factory=BuildSection)
    work_dir: str | None = None

    @field_validator("work_dir", mode="before")
    @classmethod
    def normalize_work_dir(cls, value: object) -> object:
        return _strip_or_none(value)
