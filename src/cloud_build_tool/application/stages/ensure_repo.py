from __future__ import annotations
"""Stage 3: reuse or create the remote repository."""

import logging

from cloud_build_tool.domain.entities import BuildContext, StageResult
from cloud_build_tool.domain.ports import ProgressReporter, WorkflowApiPort
from cloud_build_tool.domain.stages import Stage


LOGGER = logging.getLogger(__name__)


class EnsureRepoStage(Stage):
    """Create the target repository unless it already exists.

    New repositories are private unless the build asked for a public one. An
    existing repository is reused as-is, which keeps re-runs idempotent.
    """

    title = "Create GitHub repository"

    def __init__(self, workflow_api: WorkflowApiPort) -> None:
        self._workflow_api = workflow_api

    def execute(self, context: BuildContext, progress: ProgressReporter) -> StageResult:
        owner = _require(context.owner, "owner")
        repo_name = _require(context.repo_name, "repo_name")

        created = False
        if self._workflow_api.repo_exists(owner, repo_name):
            progress.info(f"Repository {owner}/{repo_name} already exists, reusing")
        else:
            private = not context.is_public
            self._workflow_api.create_repo(repo_name, private=private)
            created = True
            visibility = "private" if private else "public"
            progress.success(f"Created {visibility} repository: {owner}/{repo_name}")

        context.repo_full_name = f"{owner}/{repo_name}"
        LOGGER.info(
            "repository ensured",
            extra={"event": "build.repo.ensured", "repo": context.repo_full_name, "repo_created": created},
        )
        return StageResult(
            stage_name=self.name,
            message="Repository created" if created else "Repository reused",
            metadata={"repo": context.repo_full_name, "created": created},
        )


def _require(value: str | None, field_name: str) -> str:
    if not value:
        raise RuntimeError(f"Build context is missing '{field_name}'; earlier stages did not run")
    return value
