"""Data models for the orchestrator module."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional


class StageStatus(Enum):
    """Outcome of a single pipeline stage."""
    SUCCESS = "success"
    WARNING = "warning"
    FAILED = "failed"


@dataclass(frozen=True)
class StageOutcome:
    """One entry in the session's ordered outcome record."""
    stage: str
    status: StageStatus
    detail: str = ""


@dataclass
class StageResult:
    """Value returned by a stage callable.

    Stages signal fatal errors by raising; warnings travel back here.
    """
    summary: str = ""
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def ok(cls, summary: str = "") -> "StageResult":
        return cls(summary=summary)


class DeploymentSession:
    """Timestamped log sink identifier plus the ordered stage record."""

    def __init__(self, log_dir: Path, *, prefix: str = "deploy_", now: Optional[datetime] = None) -> None:
        started = now or datetime.now()
        self.started_at = started
        self.session_id = started.strftime("%Y%m%d_%H%M%S")
        self.log_path = Path(log_dir) / f"{prefix}{self.session_id}.log"
        self._outcomes: List[StageOutcome] = []

    @property
    def outcomes(self) -> List[StageOutcome]:
        return list(self._outcomes)

    @property
    def image_tag(self) -> str:
        """Generation tag applied to images built during this session."""
        return self.session_id

    def record(self, stage: str, status: StageStatus, detail: str = "") -> StageOutcome:
        outcome = StageOutcome(stage=stage, status=status, detail=detail)
        self._outcomes.append(outcome)
        return outcome

    @property
    def warnings(self) -> List[StageOutcome]:
        return [o for o in self._outcomes if o.status is StageStatus.WARNING]


@dataclass
class PipelineReport:
    """Final verdict handed to the top-level handler."""
    success: bool
    outcomes: List[StageOutcome]
    error: Optional[BaseException] = None
    failed_stage: Optional[str] = None

    @property
    def exit_code(self) -> int:
        return 0 if self.success else 1

    @property
    def warnings(self) -> List[StageOutcome]:
        return [o for o in self.outcomes if o.status is StageStatus.WARNING]
