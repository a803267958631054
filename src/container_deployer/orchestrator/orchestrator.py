"""Deployment orchestrator: runs stages in order and stops at the first failure."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from ..errors import DeploymentError
from ..utils.logging import log_success
from .models import DeploymentSession, PipelineReport, StageResult, StageStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Stage:
    """A named pipeline step."""

    name: str
    title: str
    action: Callable[[], Optional[StageResult]]


class DeploymentOrchestrator:
    """
    Fail-fast stage runner.

    Each stage either returns (optionally with warnings) or raises a
    DeploymentError. The first error ends the run; the report tells the
    caller which stage failed and why, and nothing is rolled back.
    """

    def __init__(self, session: DeploymentSession) -> None:
        self.session = session

    def run(self, stages: Iterable[Stage]) -> PipelineReport:
        stages = list(stages)
        for index, stage in enumerate(stages, 1):
            logger.info("Step %d/%d: %s...", index, len(stages), stage.title)
            try:
                result = stage.action() or StageResult.ok()
            except DeploymentError as exc:
                if exc.stage is None:
                    exc.stage = stage.name
                self.session.record(stage.name, StageStatus.FAILED, str(exc))
                logger.error("%s failed: %s", stage.title, exc)
                return PipelineReport(
                    success=False,
                    outcomes=self.session.outcomes,
                    error=exc,
                    failed_stage=stage.name,
                )

            if result.warnings:
                self.session.record(stage.name, StageStatus.WARNING, "; ".join(result.warnings))
            else:
                self.session.record(stage.name, StageStatus.SUCCESS, result.summary)
            if result.summary:
                log_success(logger, "%s", result.summary)

        return PipelineReport(success=True, outcomes=self.session.outcomes)
