"""Deployment workflow module."""

from deployctl.deploy.models import (
    DeploymentRecord,
    Host,
    LogResult,
    LogStatus,
    Release,
    WorkflowState,
)

__all__ = [
    "DeploymentRecord",
    "Host",
    "LogResult",
    "LogStatus",
    "Release",
    "WorkflowState",
]
