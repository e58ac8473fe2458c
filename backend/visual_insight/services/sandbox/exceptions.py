"""Exceptions for sandboxed code execution and artifact storage."""


class SandboxError(Exception):
    """Base exception for sandbox failures."""

    pass


class ExecutionFaulted(SandboxError):
    """Script ran but exited non-zero or did not produce its output file."""

    def __init__(self, message: str, execution_id: str = None, exit_code: int = None):
        super().__init__(message)
        self.execution_id = execution_id
        self.exit_code = exit_code


class ExecutionTimeout(ExecutionFaulted):
    """Script exceeded its wall-clock budget and was killed."""

    def __init__(self, message: str, execution_id: str = None, timeout_seconds: float = None):
        super().__init__(message, execution_id=execution_id)
        self.timeout_seconds = timeout_seconds


class ArtifactNotFoundError(SandboxError):
    """No artifact is registered under the requested filename."""

    def __init__(self, filename: str):
        super().__init__(f"Artifact not found: {filename}")
        self.filename = filename
