from __future__ import annotations
"""Stage 6: download, extract and save artifacts of successful runs."""

import logging
from typing import Callable

from cloud_build_tool.application.naming import artifact_filename, format_size, raw_archive_filename
from cloud_build_tool.archive.zip_reader import extract_first_entry
from cloud_build_tool.domain.entities import (
    Artifact,
    BuildContext,
    ExtractedEntry,
    ExtractionResult,
    FailedArtifact,
    SavedArtifact,
    StageResult,
)
from cloud_build_tool.domain.ports import FileSystemPort, ProgressReporter, WorkflowApiPort
from cloud_build_tool.domain.stages import Stage


LOGGER = logging.getLogger(__name__)

NO_ARTIFACTS_WARNING = "No artifacts found. Builds may have failed or produced no outputs."


class DownloadArtifactsStage(Stage):
    """Materialize build outputs into the output directory.

    Runs are visited in discovery order and artifacts in listing order. Expired
    artifacts are skipped. Each artifact is saved under its deterministic name
    when the archive reader finds an entry, otherwise the untouched ZIP is kept
    as `<artifact>.zip`. A failing artifact is reported and skipped; saving no
    file at all is a warning, not an error.
    """

    title = "Download build artifacts"

    def __init__(
        self,
        workflow_api: WorkflowApiPort,
        filesystem: FileSystemPort,
        *,
        extractor: Callable[[bytes], ExtractionResult] = extract_first_entry,
    ) -> None:
        self._workflow_api = workflow_api
        self._filesystem = filesystem
        self._extractor = extractor

    def execute(self, context: BuildContext, progress: ProgressReporter) -> StageResult:
        owner = context.owner or ""
        repo = context.repo_name or ""
        self._filesystem.ensure_directory(context.output_path)

        warnings: list[str] = []
        for run in self._successful_runs_in_discovery_order(context):
            for artifact in self._workflow_api.list_artifacts(owner, repo, run.id):
                if artifact.expired:
                    LOGGER.info(
                        "expired artifact skipped",
                        extra={"event": "build.artifact.expired", "artifact": artifact.name, "run_id": run.id},
                    )
                    continue

                progress.info(f"Downloading {artifact.name}...")
                try:
                    saved = self._save_artifact(context, owner, repo, artifact)
                except Exception as error:  # noqa: BLE001
                    message = f"Failed to download {artifact.name}: {error}"
                    LOGGER.warning(
                        "artifact download failed",
                        extra={
                            "event": "build.artifact.failed",
                            "artifact": artifact.name,
                            "run_id": run.id,
                            "error": str(error),
                        },
                    )
                    context.failed_artifacts.append(FailedArtifact(artifact_name=artifact.name, error=str(error)))
                    warnings.append(message)
                    progress.warning(message)
                    continue

                context.saved_artifacts.append(saved)
                progress.success(f"Saved: {saved.path.name} ({format_size(saved.size)})")

        if not context.saved_artifacts:
            warnings.append(NO_ARTIFACTS_WARNING)
            progress.warning(NO_ARTIFACTS_WARNING)
        else:
            progress.success(f"{len(context.saved_artifacts)} artifact(s) saved to {context.output_path}")

        return StageResult(
            stage_name=self.name,
            message=f"{len(context.saved_artifacts)} artifact(s) saved",
            warnings=warnings,
            metadata={
                "saved": [str(item.path) for item in context.saved_artifacts],
                "failed": [item.artifact_name for item in context.failed_artifacts],
            },
        )

    @staticmethod
    def _successful_runs_in_discovery_order(context: BuildContext):
        order = {run_id: index for index, run_id in enumerate(context.discovered_run_ids)}
        runs = [run for run in context.completed_runs if run.succeeded]
        return sorted(runs, key=lambda run: order.get(run.id, len(order)))

    def _save_artifact(self, context: BuildContext, owner: str, repo: str, artifact: Artifact) -> SavedArtifact:
        archive = self._workflow_api.download_artifact(owner, repo, artifact.id)
        result = self._extractor(archive)

        if isinstance(result, ExtractedEntry):
            path = context.output_path / artifact_filename(artifact.name, context.app_name or "")
            data = result.data
        else:
            LOGGER.info(
                "artifact kept as raw archive",
                extra={"event": "build.artifact.raw", "artifact": artifact.name, "reason": result.reason},
            )
            path = context.output_path / raw_archive_filename(artifact.name)
            data = archive

        self._filesystem.write_bytes(path, data)
        LOGGER.info(
            "artifact saved",
            extra={"event": "build.artifact.saved", "artifact": artifact.name, "path": str(path), "size": len(data)},
        )
        return SavedArtifact(
            artifact_name=artifact.name,
            path=path,
            size=len(data),
            extracted=isinstance(result, ExtractedEntry),
        )
