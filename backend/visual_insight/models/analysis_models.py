"""Domain models shared by the analysis pipeline stages."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

ANALYSIS_PLACEHOLDER = "Analysis not provided"
CODE_PLACEHOLDER = 'print("No code generated")'
VISUALIZATION_TYPE_PLACEHOLDER = "Unknown"
EXPLANATION_PLACEHOLDER = "Explanation not provided"


class ColumnType(str, Enum):
    """Inferred type of a dataset column."""

    NUMBER = "number"
    DATE = "date"
    STRING = "string"


class Provider(str, Enum):
    """Model providers the gateway can talk to."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"

    @classmethod
    def _missing_(cls, value: object) -> "Provider | None":
        # Client-facing names used by the upload UI
        aliases = {"claude": cls.ANTHROPIC, "gemini": cls.GOOGLE}
        if isinstance(value, str):
            return aliases.get(value.lower())
        return None


class OutputFormat(str, Enum):
    """Chart file formats the sandbox can produce."""

    PNG = "png"
    JPG = "jpg"
    SVG = "svg"
    HTML = "html"

    @property
    def is_interactive(self) -> bool:
        return self is OutputFormat.HTML


class DatasetSchema(BaseModel):
    """Column layout and a small sample of an ingested dataset."""

    model_config = ConfigDict(frozen=True)

    columns: list[str] = Field(..., description="Column names in file order")
    data_types: dict[str, ColumnType] = Field(
        default_factory=dict, description="Inferred type per column"
    )
    row_count: int = Field(..., ge=0, description="Number of non-empty data rows")
    sample_data: list[list[Any]] = Field(
        default_factory=list, max_length=5, description="Up to five leading rows"
    )


class AnalysisRequest(BaseModel):
    """A single natural-language analysis request."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    query: str = Field(..., min_length=1)
    dataset_schema: DatasetSchema = Field(..., alias="schema")
    provider: Provider = Provider.OPENAI


class ModelReply(BaseModel):
    """Sections extracted from a raw model reply."""

    analysis: str = ANALYSIS_PLACEHOLDER
    code: str = CODE_PLACEHOLDER
    visualization_type: str = VISUALIZATION_TYPE_PLACEHOLDER
    explanation: str = EXPLANATION_PLACEHOLDER
    missing_sections: list[str] = Field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.missing_sections)


class ExecutionRequest(BaseModel):
    """Code to run against a dataset file."""

    code: str
    dataset_path: str
    output_format: OutputFormat = OutputFormat.PNG


class PipelineStatus(str, Enum):
    """Terminal outcome of a pipeline run."""

    COMPLETED = "completed"
    PROVIDER_ERROR = "provider_error"
    EXECUTION_FAULTED = "execution_faulted"
    TIMEOUT = "timeout"


class PipelineError(BaseModel):
    """Failure detail attached to a non-completed pipeline result."""

    kind: str = Field(..., description="ProviderError, ExecutionFaulted or Timeout")
    message: str
    code: str | None = Field(default=None, description="Provider error code, if any")


class ArtifactMetadata(BaseModel):
    """Size and format of a produced chart."""

    size_bytes: int
    format: OutputFormat


class ExecutionSummary(BaseModel):
    """Serializable view of a sandbox execution."""

    execution_id: str
    state: str
    success: bool
    stdout: str = ""
    stderr: str = ""
    exit_code: int | None = None
    artifact_filename: str | None = None
    artifact_metadata: ArtifactMetadata | None = None
    error: str | None = None
    error_type: str | None = None
    execution_time: float | None = None


class PipelineResult(BaseModel):
    """Discriminated result of query -> model -> sandbox -> artifact."""

    status: PipelineStatus
    analysis: str | None = None
    code: str | None = None
    visualization_type: str | None = None
    explanation: str | None = None
    execution: ExecutionSummary | None = None
    error: PipelineError | None = None

    @property
    def succeeded(self) -> bool:
        return self.status is PipelineStatus.COMPLETED
