"""Orchestrator module for stage-based deployment execution.

- DeploymentOrchestrator: runs named stages in order, fail-fast
- DeploymentSession: timestamped log identity plus the ordered outcome record
- StageResult/PipelineReport: values handed back to the caller
"""

from .models import (
    DeploymentSession,
    PipelineReport,
    StageOutcome,
    StageResult,
    StageStatus,
)
from .orchestrator import DeploymentOrchestrator, Stage

__all__ = [
    "DeploymentOrchestrator",
    "DeploymentSession",
    "PipelineReport",
    "Stage",
    "StageOutcome",
    "StageResult",
    "StageStatus",
]
