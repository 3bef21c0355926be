from __future__ import annotations
"""Application use case that turns a generated app project into CI build outputs."""

from dataclasses import dataclass, field
from datetime import datetime
import logging
from pathlib import Path
import time
from typing import Callable

from cloud_build_tool.application.stages import (
    AuthenticateStage,
    DownloadArtifactsStage,
    EnsureRepoStage,
    PushSourceStage,
    ValidateProjectStage,
    WaitForBuildsStage,
)
from cloud_build_tool.application.timing import utc_now
from cloud_build_tool.domain.entities import (
    BuildContext,
    FailedArtifact,
    RemoteRun,
    SavedArtifact,
    StageResult,
)
from cloud_build_tool.domain.errors import MissingToken
from cloud_build_tool.domain.ports import (
    ConfigStorePort,
    FileSystemPort,
    GitClientPort,
    ProgressReporter,
    WorkflowApiPort,
)
from cloud_build_tool.domain.stages import StagePipeline


LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class BuildSettings:
    """Timing and remote layout knobs for one build."""

    poll_interval_seconds: float = 15.0
    timeout_seconds: float = 1800.0
    settle_seconds: float = 5.0
    discovery_grace_seconds: float = 120.0
    git_host: str = "github.com"
    branch: str = "main"


@dataclass(slots=True)
class BuildSummary:
    """Outcome of one successful orchestration (CI builds may still have failed)."""

    repo_full_name: str
    repo_url: str
    output_path: Path
    completed_runs: tuple[RemoteRun, ...]
    succeeded_runs: int
    failed_runs: int
    saved_artifacts: tuple[SavedArtifact, ...]
    failed_artifacts: tuple[FailedArtifact, ...]
    stage_results: tuple[StageResult, ...]


@dataclass(slots=True)
class CloudBuildOrchestrator:
    """Core orchestration use case.

    Responsibilities:
    - validate the generated project and saved configuration
    - resolve identity and ensure the remote repository
    - push the project and wait for the CI runs it triggers
    - download, extract and name the artifacts of successful runs

    Stages run strictly in order; any `BuildError` aborts the build and is
    propagated unchanged. Nothing is rolled back, so a created repository is
    reused by the next invocation.
    """

    workflow_api: WorkflowApiPort
    git_client: GitClientPort
    filesystem: FileSystemPort
    config_store: ConfigStorePort
    progress: ProgressReporter
    settings: BuildSettings = field(default_factory=BuildSettings)
    clock: Callable[[], datetime] = utc_now
    monotonic: Callable[[], float] = time.monotonic
    sleep: Callable[[float], None] = time.sleep

    def build_pipeline(self) -> StagePipeline:
        return StagePipeline(
            [
                ValidateProjectStage(self.filesystem, self.git_client, self.config_store),
                AuthenticateStage(self.workflow_api),
                EnsureRepoStage(self.workflow_api),
                PushSourceStage(
                    self.git_client,
                    self.filesystem,
                    git_host=self.settings.git_host,
                    branch=self.settings.branch,
                    clock=self.clock,
                ),
                WaitForBuildsStage(
                    self.workflow_api,
                    poll_interval_seconds=self.settings.poll_interval_seconds,
                    timeout_seconds=self.settings.timeout_seconds,
                    settle_seconds=self.settings.settle_seconds,
                    discovery_grace_seconds=self.settings.discovery_grace_seconds,
                    clock=self.clock,
                    monotonic=self.monotonic,
                    sleep=self.sleep,
                ),
                DownloadArtifactsStage(self.workflow_api, self.filesystem),
            ]
        )

    def execute(
        self,
        *,
        cwd: Path,
        token: str,
        output_path: Path,
        repo_name: str | None = None,
        is_public: bool = False,
    ) -> BuildSummary:
        """Run all build stages for the project in `cwd`.

        Args:
            cwd: Directory holding `output/` and the saved project configuration.
            token: Workflow API token; must be non-empty.
            output_path: Directory receiving downloaded artifacts.
            repo_name: Remote repository name; derived from the app name when `None`.
            is_public: Create a public repository instead of a private one.

        Returns:
            `BuildSummary` of the completed build.
        """
        if not token:
            raise MissingToken("A GitHub token is required. Use --token or set GITHUB_TOKEN.")

        context = BuildContext(
            cwd=cwd,
            token=token,
            output_path=output_path,
            repo_name=repo_name or None,
            is_public=is_public,
        )
        LOGGER.info(
            "cloud build started",
            extra={
                "event": "build.started",
                "cwd": str(cwd),
                "output_path": str(output_path),
                "repo_name": context.repo_name,
                "is_public": is_public,
            },
        )

        stage_results = tuple(self.build_pipeline().run(context, self.progress))

        succeeded_runs = sum(1 for run in context.completed_runs if run.succeeded)
        summary = BuildSummary(
            repo_full_name=context.repo_full_name or "",
            repo_url=f"https://{self.settings.git_host}/{context.repo_full_name}",
            output_path=output_path,
            completed_runs=tuple(context.completed_runs),
            succeeded_runs=succeeded_runs,
            failed_runs=len(context.completed_runs) - succeeded_runs,
            saved_artifacts=tuple(context.saved_artifacts),
            failed_artifacts=tuple(context.failed_artifacts),
            stage_results=stage_results,
        )

        LOGGER.info(
            "cloud build completed",
            extra={
                "event": "build.completed",
                "repo": summary.repo_full_name,
                "succeeded_runs": summary.succeeded_runs,
                "failed_runs": summary.failed_runs,
                "saved_artifacts": len(summary.saved_artifacts),
                "failed_artifacts": len(summary.failed_artifacts),
            },
        )
        return summary
