"""Sandboxed execution of generated analysis code."""

from .audit_logger import ExecutionAuditLogger
from .code_envelope import build_script
from .exceptions import (
    ArtifactNotFoundError,
    ExecutionFaulted,
    ExecutionTimeout,
    SandboxError,
)
from .sandbox_runner import ExecutionResult, ExecutionState, SandboxRunner

__all__ = [
    "SandboxError",
    "ExecutionFaulted",
    "ExecutionTimeout",
    "ArtifactNotFoundError",
    "build_script",
    "SandboxRunner",
    "ExecutionResult",
    "ExecutionState",
    "ExecutionAuditLogger",
]
