from __future__ import annotations
"""Core domain entities shared by build stages and adapters.

These data models are intentionally framework-agnostic and can be reused across
different adapters (CLI, tests, other CI providers).
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Union


RUN_STATUS_COMPLETED = "completed"
RUN_CONCLUSION_SUCCESS = "success"


@dataclass(slots=True)
class Identity:
    """Account resolved from the auth token.

    Attributes:
        login: Account login, used as repository owner.
        name: Display name used as git committer name.
        email: Commit email (public email or derived noreply address).
    """

    login: str
    name: str
    email: str


@dataclass(slots=True)
class RepoRecord:
    name: str
    full_name: str
    private: bool
    html_url: str | None = None


@dataclass(slots=True)
class RemoteRun:
    """One CI workflow run as last observed by polling.

    Attributes:
        id: Numeric run identifier.
        name: Human-readable workflow name.
        status: `queued`, `in_progress` or `completed`.
        conclusion: `success`, `failure`, ... once completed, else `None`.
        created_at: Creation timestamp (timezone-aware) if reported.
    """

    id: int
    name: str
    status: str
    conclusion: str | None = None
    created_at: datetime | None = None

    @property
    def is_completed(self) -> bool:
        return self.status == RUN_STATUS_COMPLETED

    @property
    def succeeded(self) -> bool:
        return self.is_completed and self.conclusion == RUN_CONCLUSION_SUCCESS

    @property
    def display_name(self) -> str:
        return self.name or f"Run #{self.id}"


@dataclass(slots=True)
class Artifact:
    """Named build output owned by one run. `size_in_bytes` is advisory."""

    id: int
    name: str
    expired: bool = False
    size_in_bytes: int | None = None


@dataclass(slots=True, frozen=True)
class ArchiveEntry:
    """Central directory record of one ZIP entry."""

    name: str
    compression_method: int
    compressed_size: int
    uncompressed_size: int
    local_header_offset: int

    @property
    def is_directory(self) -> bool:
        return self.name.endswith("/") or (self.compressed_size == 0 and self.uncompressed_size == 0)


@dataclass(slots=True, frozen=True)
class ExtractedEntry:
    name: str
    data: bytes


@dataclass(slots=True, frozen=True)
class EntryNotFound:
    reason: str


ExtractionResult = Union[ExtractedEntry, EntryNotFound]


@dataclass(slots=True, frozen=True)
class Redirect:
    """API answered with a redirect; `location` is the signed download URL."""

    status: int
    location: str


@dataclass(slots=True, frozen=True)
class Body:
    """API answered with a body; `payload` is decoded JSON when possible."""

    status: int
    payload: Any


ApiResponse = Union[Redirect, Body]


@dataclass(slots=True)
class ProjectConfig:
    """Saved project configuration (`app.config.json`).

    Only `app_name` is required by the build; the remaining keys are kept in
    `raw` so writing the file back does not drop them.
    """

    app_name: str | None
    store_url: str | None = None
    github_token: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class SavedArtifact:
    artifact_name: str
    path: Path
    size: int
    extracted: bool


@dataclass(slots=True)
class FailedArtifact:
    artifact_name: str
    error: str


@dataclass(slots=True)
class BuildContext:
    """Mutable per-build context threaded through every stage.

    Stages read and write this object to hand results downstream. The token is
    kept in memory only and excluded from `repr`.

    Attributes:
        cwd: Working directory holding `output/` and `app.config.json`.
        token: Bearer token for the workflow API.
        repo_name: Target repository name; derived from the app name when unset.
        is_public: Create the repository as public instead of private.
        output_path: Directory where downloaded artifacts are written.
        app_name: App display name from the saved project configuration.
        app_config: Full saved project configuration.
        owner: Account login resolved from the token.
        user_name: Committer display name.
        user_email: Committer email.
        repo_full_name: `owner/repo` identifier once ensured.
        push_started_at: Wall-clock time the push stage started.
        discovered_run_ids: Run ids found after the push, in discovery order.
        completed_runs: Append-only list of completed runs, unique by id.
        saved_artifacts: Files written by the download stage.
        failed_artifacts: Artifacts whose download or extraction failed.
    """

    cwd: Path
    token: str = field(repr=False)
    output_path: Path
    repo_name: str | None = None
    is_public: bool = False
    app_name: str | None = None
    app_config: ProjectConfig | None = None
    owner: str | None = None
    user_name: str | None = None
    user_email: str | None = None
    repo_full_name: str | None = None
    push_started_at: datetime | None = None
    discovered_run_ids: list[int] = field(default_factory=list)
    completed_runs: list[RemoteRun] = field(default_factory=list)
    saved_artifacts: list[SavedArtifact] = field(default_factory=list)
    failed_artifacts: list[FailedArtifact] = field(default_factory=list)

    @property
    def output_dir(self) -> Path:
        """Generated project directory (`<cwd>/output`)."""
        return self.cwd / "output"

    @property
    def staging_dir(self) -> Path:
        return self.cwd / ".build-staging"

    def record_completed_run(self, run: RemoteRun) -> bool:
        """Append `run` unless a run with the same id is already recorded.

        Returns:
            True when the run was newly recorded.
        """
        if any(existing.id == run.id for existing in self.completed_runs):
            return False
        self.completed_runs.append(run)
        return True


@dataclass(slots=True)
class StageResult:
    """Standard result returned by each `Stage.execute()` call.

    Attributes:
        stage_name: Stage identifier for logs and summaries.
        message: Human-readable stage outcome.
        warnings: Non-fatal problems reported by the stage.
        metadata: Optional structured result payload for downstream consumers.
    """

    stage_name: str
    message: str = ""
    warnings: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
