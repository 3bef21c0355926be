from __future__ import annotations
"""Stage 2: resolve the account behind the token."""

from cloud_build_tool.domain.entities import BuildContext, StageResult
from cloud_build_tool.domain.ports import ProgressReporter, WorkflowApiPort
from cloud_build_tool.domain.stages import Stage


class AuthenticateStage(Stage):
    title = "Authenticate with GitHub"

    def __init__(self, workflow_api: WorkflowApiPort) -> None:
        self._workflow_api = workflow_api

    def execute(self, context: BuildContext, progress: ProgressReporter) -> StageResult:
        identity = self._workflow_api.get_authenticated_user()
        context.owner = identity.login
        context.user_name = identity.name
        context.user_email = identity.email

        progress.success(f"Authenticated as {identity.name} ({identity.login})")
        return StageResult(
            stage_name=self.name,
            message=f"Authenticated as {identity.login}",
            metadata={"owner": identity.login},
        )
