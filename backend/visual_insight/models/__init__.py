"""Pydantic models for the application.

- analysis_models: Pipeline domain models (schema, replies, results)
- api_models: External API request/response models
"""

# Pipeline domain models
from .analysis_models import (
    ANALYSIS_PLACEHOLDER,
    CODE_PLACEHOLDER,
    EXPLANATION_PLACEHOLDER,
    VISUALIZATION_TYPE_PLACEHOLDER,
    AnalysisRequest,
    ArtifactMetadata,
    ColumnType,
    DatasetSchema,
    ExecutionRequest,
    ExecutionSummary,
    ModelReply,
    OutputFormat,
    PipelineError,
    PipelineResult,
    PipelineStatus,
    Provider,
)

# API models (external contracts)
from .api_models import (
    ArtifactInfo,
    ArtifactListResponse,
    DatasetResponse,
    ExecuteRequest,
    HealthResponse,
    PreviewRequest,
    VisualizeRequest,
)

__all__ = [
    "ANALYSIS_PLACEHOLDER",
    "CODE_PLACEHOLDER",
    "EXPLANATION_PLACEHOLDER",
    "VISUALIZATION_TYPE_PLACEHOLDER",
    "AnalysisRequest",
    "ArtifactMetadata",
    "ColumnType",
    "DatasetSchema",
    "ExecutionRequest",
    "ExecutionSummary",
    "ModelReply",
    "OutputFormat",
    "PipelineError",
    "PipelineResult",
    "PipelineStatus",
    "Provider",
    "ArtifactInfo",
    "ArtifactListResponse",
    "DatasetResponse",
    "ExecuteRequest",
    "HealthResponse",
    "PreviewRequest",
    "VisualizeRequest",
]
