from __future__ import annotations
"""Stage 1: confirm the generated project can be built."""

import logging

from cloud_build_tool.application.naming import derive_repo_name
from cloud_build_tool.domain.entities import BuildContext, StageResult
from cloud_build_tool.domain.errors import MissingConfig, MissingOutput, MissingWorkflows
from cloud_build_tool.domain.ports import ConfigStorePort, FileSystemPort, GitClientPort, ProgressReporter
from cloud_build_tool.domain.stages import Stage


LOGGER = logging.getLogger(__name__)


class ValidateProjectStage(Stage):
    """Check local preconditions before any network call.

    Requires `output/`, `output/.github/workflows/`, a working git binary and a
    saved project configuration with an app name. Derives the repository name
    from the app name when none was given.
    """

    title = "Validate project"

    def __init__(
        self,
        filesystem: FileSystemPort,
        git_client: GitClientPort,
        config_store: ConfigStorePort,
    ) -> None:
        self._filesystem = filesystem
        self._git_client = git_client
        self._config_store = config_store

    def execute(self, context: BuildContext, progress: ProgressReporter) -> StageResult:
        if not self._filesystem.path_exists(context.output_dir):
            raise MissingOutput("output/ directory not found. Generate the app project first.")

        workflow_dir = context.output_dir / ".github" / "workflows"
        if not self._filesystem.path_exists(workflow_dir):
            raise MissingWorkflows(
                "No CI workflows found in output/.github/workflows/. Generate the app project first."
            )

        git_version = self._git_client.check_available()

        config = self._config_store.load()
        if config is None or not config.app_name:
            raise MissingConfig("No app config found. Generate the app project first.")

        context.app_name = config.app_name
        context.app_config = config
        if not context.repo_name:
            context.repo_name = derive_repo_name(config.app_name)

        LOGGER.info(
            "project validated",
            extra={
                "event": "build.validate.success",
                "app_name": context.app_name,
                "repo_name": context.repo_name,
                "git_version": git_version,
            },
        )
        progress.success("Project validated")
        progress.info(f"App: {context.app_name}")

        return StageResult(
            stage_name=self.name,
            message="Project validated",
            metadata={"app_name": context.app_name, "repo_name": context.repo_name},
        )
