from __future__ import annotations
"""Stage 4: stage the generated project and force-push it to the main branch."""

import logging
from datetime import datetime
from typing import Callable
from urllib.parse import quote

from cloud_build_tool.application.timing import utc_now
from cloud_build_tool.domain.entities import BuildContext, StageResult
from cloud_build_tool.domain.ports import FileSystemPort, GitClientPort, ProgressReporter
from cloud_build_tool.domain.stages import Stage


LOGGER = logging.getLogger(__name__)

WORKFLOW_DIR_NAME = ".github"
DEFAULT_COMMIT_MESSAGE = (
    "storefront app build\n\n"
    "Co-Authored-By: storefront-build <storefront-build@users.noreply.github.com>"
)


class PushSourceStage(Stage):
    """Push the generated project through a scratch staging directory.

    Layout of the pushed tree:
    - `output/<item>` for every item of the generated project except `.github`
    - `.github/` at the repository root so the CI system discovers workflows

    The staging directory is removed before use and again in a `finally`
    block, whether or not the push succeeded. Pushing is a force-push: it
    overwrites the branch history on every build.
    """

    title = "Push code to GitHub"

    def __init__(
        self,
        git_client: GitClientPort,
        filesystem: FileSystemPort,
        *,
        git_host: str = "github.com",
        branch: str = "main",
        commit_message: str = DEFAULT_COMMIT_MESSAGE,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._git_client = git_client
        self._filesystem = filesystem
        self._git_host = git_host
        self._branch = branch
        self._commit_message = commit_message
        self._clock = clock

    def execute(self, context: BuildContext, progress: ProgressReporter) -> StageResult:
        context.push_started_at = self._clock()
        staging_dir = context.staging_dir

        self._filesystem.remove_tree(staging_dir)
        self._filesystem.ensure_directory(staging_dir)
        try:
            copied = self._stage_files(context)
            self._git_client.publish(
                staging_dir,
                remote_url=self.remote_url(context),
                branch=self._branch,
                author_name=context.user_name or context.owner or "",
                author_email=context.user_email or "",
                message=self._commit_message,
            )
        finally:
            self._filesystem.remove_tree(staging_dir)
            LOGGER.info(
                "staging directory removed",
                extra={"event": "build.push.cleanup", "staging_dir": str(staging_dir)},
            )

        repo_url = f"https://{self._git_host}/{context.owner}/{context.repo_name}"
        progress.success(f"Code pushed to {self._branch} branch")
        progress.info(repo_url)
        return StageResult(
            stage_name=self.name,
            message=f"Pushed {copied} item(s) to {self._branch}",
            metadata={"repo_url": repo_url, "items": copied},
        )

    def remote_url(self, context: BuildContext) -> str:
        token = quote(context.token, safe="")
        return f"https://x-access-token:{token}@{self._git_host}/{context.owner}/{context.repo_name}.git"

    def _stage_files(self, context: BuildContext) -> int:
        staging_dir = context.staging_dir
        copied = 0
        for item in self._filesystem.list_directory(context.output_dir):
            if item.name == WORKFLOW_DIR_NAME:
                continue
            self._filesystem.copy_tree(item, staging_dir / "output" / item.name)
            copied += 1

        workflow_root = context.output_dir / WORKFLOW_DIR_NAME
        if self._filesystem.path_exists(workflow_root):
            self._filesystem.copy_tree(workflow_root, staging_dir / WORKFLOW_DIR_NAME)
            copied += 1
        return copied
