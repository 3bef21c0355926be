from __future__ import annotations
"""Stage 5: wait for the CI runs triggered by the push to finish."""

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Callable

from cloud_build_tool.application.timing import Deadline, utc_now
from cloud_build_tool.domain.entities import BuildContext, RemoteRun, StageResult
from cloud_build_tool.domain.errors import ApiRequestError, BuildTimeout, NoRunsDetected
from cloud_build_tool.domain.ports import ProgressReporter, WorkflowApiPort
from cloud_build_tool.domain.stages import Stage


LOGGER = logging.getLogger(__name__)


def run_created_after(run: RemoteRun, cutoff: datetime) -> bool:
    """Return whether `run` was created strictly after `cutoff`.

    Runs without a creation timestamp never match. Naive timestamps are
    treated as UTC.
    """
    if run.created_at is None:
        return False
    created_at = run.created_at
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return created_at > cutoff


class WaitForBuildsStage(Stage):
    """Poll the workflow API until every run triggered by the push completes.

    Two polling phases share one deadline:
    1. discovery: list runs until some were created after
       `push_started_at - discovery_grace_seconds`,
    2. completion: fetch each pending run until all report `completed`.

    A failed API call inside either loop is logged and retried on the next
    interval; only the deadline ends the stage. Failed runs are not an error.
    """

    title = "Wait for GitHub Actions builds"

    def __init__(
        self,
        workflow_api: WorkflowApiPort,
        *,
        poll_interval_seconds: float = 15.0,
        timeout_seconds: float = 1800.0,
        settle_seconds: float = 5.0,
        discovery_grace_seconds: float = 120.0,
        clock: Callable[[], datetime] = utc_now,
        monotonic: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._workflow_api = workflow_api
        self._poll_interval_seconds = max(0.1, poll_interval_seconds)
        self._timeout_seconds = max(1.0, timeout_seconds)
        self._settle_seconds = max(0.0, settle_seconds)
        self._discovery_grace = timedelta(seconds=max(0.0, discovery_grace_seconds))
        self._clock = clock
        self._monotonic = monotonic
        self._sleep = sleep

    def execute(self, context: BuildContext, progress: ProgressReporter) -> StageResult:
        owner = context.owner or ""
        repo = context.repo_name or ""
        deadline = Deadline(self._timeout_seconds, monotonic=self._monotonic, sleep=self._sleep)
        pushed_at = context.push_started_at or self._clock()
        cutoff = pushed_at - self._discovery_grace

        progress.info(
            f"Polling every {self._poll_interval_seconds:g}s (timeout: {self._timeout_seconds / 60:g} min)..."
        )
        deadline.sleep(self._settle_seconds)

        run_ids = self._discover_runs(owner, repo, cutoff, deadline, progress)
        if not run_ids:
            LOGGER.error(
                "no workflow runs detected",
                extra={"event": "build.runs.none", "repo": f"{owner}/{repo}", "elapsed": deadline.elapsed()},
            )
            raise NoRunsDetected("No workflow runs detected. Check the CI workflows in output/.github/workflows/.")

        for run_id in run_ids:
            if run_id not in context.discovered_run_ids:
                context.discovered_run_ids.append(run_id)
        progress.info(f"Found {len(run_ids)} workflow run(s)")

        self._wait_for_completion(context, owner, repo, run_ids, deadline, progress)

        completed_ids = {run.id for run in context.completed_runs}
        pending = [run_id for run_id in run_ids if run_id not in completed_ids]
        if pending:
            LOGGER.error(
                "build timed out",
                extra={"event": "build.runs.timeout", "pending_run_ids": pending},
            )
            raise BuildTimeout(f"Build timed out after {self._timeout_seconds / 60:g} minutes.")

        succeeded = [run for run in context.completed_runs if run.succeeded]
        failed_count = len(context.completed_runs) - len(succeeded)
        warnings: list[str] = []
        if succeeded:
            progress.success(f"{len(succeeded)} build(s) completed successfully")
        if failed_count:
            message = (
                f"{failed_count} build(s) failed; artifacts from successful builds will still be downloaded"
            )
            progress.warning(message)
            warnings.append(message)

        LOGGER.info(
            "workflow runs completed",
            extra={
                "event": "build.runs.completed",
                "run_ids": run_ids,
                "succeeded": len(succeeded),
                "failed": failed_count,
            },
        )
        return StageResult(
            stage_name=self.name,
            message=f"{len(succeeded)} of {len(context.completed_runs)} build(s) succeeded",
            warnings=warnings,
            metadata={"run_ids": run_ids, "succeeded": len(succeeded), "failed": failed_count},
        )

    def _discover_runs(
        self,
        owner: str,
        repo: str,
        cutoff: datetime,
        deadline: Deadline,
        progress: ProgressReporter,
    ) -> list[int]:
        while not deadline.expired():
            try:
                runs = self._workflow_api.list_runs(owner, repo)
            except ApiRequestError as error:
                LOGGER.warning(
                    "run listing failed; retrying next interval",
                    extra={"event": "build.runs.list_failed", "error": str(error)},
                )
                progress.warning(f"Could not list workflow runs: {error}")
                runs = []

            run_ids: list[int] = []
            for run in runs:
                if run_created_after(run, cutoff) and run.id not in run_ids:
                    run_ids.append(run.id)
            if run_ids:
                return run_ids

            progress.info("Waiting for builds to start...")
            deadline.sleep(self._poll_interval_seconds)

        return []

    def _wait_for_completion(
        self,
        context: BuildContext,
        owner: str,
        repo: str,
        run_ids: list[int],
        deadline: Deadline,
        progress: ProgressReporter,
    ) -> None:
        while not deadline.expired():
            completed_ids = {run.id for run in context.completed_runs}
            all_done = True
            for run_id in run_ids:
                if run_id in completed_ids:
                    continue

                try:
                    run = self._workflow_api.get_run(owner, repo, run_id)
                except ApiRequestError as error:
                    all_done = False
                    LOGGER.warning(
                        "run status fetch failed; retrying next interval",
                        extra={"event": "build.run.fetch_failed", "run_id": run_id, "error": str(error)},
                    )
                    progress.warning(f"Could not fetch run {run_id}: {error}")
                    continue

                if run.is_completed:
                    if context.record_completed_run(run):
                        outcome = "done" if run.succeeded else (run.conclusion or "unknown")
                        progress.info(f"{run.display_name}: {outcome}")
                else:
                    all_done = False
                    progress.info(f"{run.display_name}: {run.status}...")

            if all_done:
                return
            deadline.sleep(self._poll_interval_seconds)
