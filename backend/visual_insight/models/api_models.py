"""Pydantic models for API requests and responses."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .analysis_models import OutputFormat, Provider


class VisualizeRequest(BaseModel):
    """Request model for the visualize endpoint."""

    query: str = Field(..., min_length=1, description="Natural-language analysis request")
    dataset_id: str = Field(..., description="ID returned by the upload endpoint")
    provider: Provider = Field(default=Provider.OPENAI, description="Model provider")
    model: str | None = Field(default=None, description="Provider model override")
    output_format: OutputFormat = Field(default=OutputFormat.PNG, description="Chart format")


class PreviewRequest(BaseModel):
    """Request model for generating code without running it."""

    query: str = Field(..., min_length=1)
    dataset_id: str
    provider: Provider = Provider.OPENAI
    model: str | None = None


class ExecuteRequest(BaseModel):
    """Request model for running previously generated (possibly edited) code."""

    code: str = Field(..., min_length=1, description="Analysis code to run")
    dataset_id: str
    output_format: OutputFormat = OutputFormat.PNG


class DatasetResponse(BaseModel):
    """Response model for an ingested dataset."""

    id: str
    original_name: str
    columns: list[str]
    data_types: dict[str, str]
    row_count: int
    sample_data: list[list[Any]] = Field(default_factory=list)
    file_size: int
    upload_time: datetime


class ArtifactInfo(BaseModel):
    """Listing entry for a stored chart."""

    filename: str
    execution_id: str
    format: str
    size: int
    size_in_mb: float
    content_type: str
    created_at: datetime
    modified_at: datetime


class ArtifactListResponse(BaseModel):
    charts: list[ArtifactInfo]
    total_count: int


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    timestamp: datetime
