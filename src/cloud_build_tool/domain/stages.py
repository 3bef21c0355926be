from __future__ import annotations
"""Build stage contracts and linear pipeline composition."""

import logging
from abc import ABC, abstractmethod
from typing import Sequence

from .entities import BuildContext, StageResult
from .ports import ProgressReporter


LOGGER = logging.getLogger(__name__)


class Stage(ABC):
    """One step of the cloud build.

    Implementers should:
    - read required state from `BuildContext`,
    - update `BuildContext` for downstream stages,
    - return a `StageResult` on completion, or raise a `BuildError` to abort.
    """

    title: str = ""

    @property
    def name(self) -> str:
        """Stable default stage name used in summaries/logging."""
        return self.__class__.__name__

    @abstractmethod
    def execute(self, context: BuildContext, progress: ProgressReporter) -> StageResult:
        """Execute stage logic for the current build.

        Args:
            context: Mutable context for the current build.
            progress: Reporter for human-readable progress lines.

        Returns:
            StageResult describing the outcome.
        """
        raise NotImplementedError


class StagePipeline:
    """Ordered stages executed strictly in sequence.

    There are no retries and no skipped stages: the first exception unwinds to
    the caller and later stages never run.
    """

    def __init__(self, stages: Sequence[Stage]) -> None:
        self._stages = tuple(stages)

    @property
    def stages(self) -> tuple[Stage, ...]:
        return self._stages

    def run(self, context: BuildContext, progress: ProgressReporter) -> list[StageResult]:
        results: list[StageResult] = []
        total = len(self._stages)
        for number, stage in enumerate(self._stages, start=1):
            progress.step(number, total, stage.title or stage.name)
            LOGGER.info(
                "build stage started",
                extra={"event": "build.stage.start", "stage": stage.name, "number": number},
            )
            result = stage.execute(context, progress)
            if not result.stage_name:
                result.stage_name = stage.name
            results.append(result)
            LOGGER.info(
                "build stage completed",
                extra={
                    "event": "build.stage.completed",
                    "stage": stage.name,
                    "number": number,
                    "warnings": len(result.warnings),
                },
            )
        return results
