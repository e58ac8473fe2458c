"""
Query -> model -> sandbox -> artifact pipeline.

Each stage is its own component; this module only wires them together and
turns stage failures into a tagged PipelineResult instead of exceptions.
"""

import logging
from pathlib import Path
from typing import Callable

from visual_insight.config import config
from visual_insight.models import (
    AnalysisRequest,
    DatasetSchema,
    ExecutionRequest,
    ModelReply,
    OutputFormat,
    PipelineError,
    PipelineResult,
    PipelineStatus,
    Provider,
)
from visual_insight.services.artifact_store import ArtifactRecord, ArtifactStore
from visual_insight.services.llm_exceptions import ProviderError
from visual_insight.services.llm_service import LLMService, get_llm_service
from visual_insight.services.sandbox import (
    ExecutionAuditLogger,
    ExecutionResult,
    ExecutionState,
    SandboxRunner,
)

from .prompts import build_analysis_prompt
from .response_parser import parse_model_reply

logger = logging.getLogger(__name__)


class AnalysisPipeline:
    """Runs one analysis request end to end."""

    def __init__(
        self,
        runner: SandboxRunner,
        store: ArtifactStore,
        llm_service_factory: Callable[..., LLMService] = get_llm_service,
    ):
        self.runner = runner
        self.store = store
        self.llm_service_factory = llm_service_factory

    async def preview(
        self,
        query: str,
        schema: DatasetSchema,
        provider: Provider | str = Provider.OPENAI,
        model: str | None = None,
    ) -> ModelReply:
        """
        Ask the model for analysis code without running it.

        Raises:
            ProviderError: the provider call failed
        """
        llm_service = self.llm_service_factory(provider=provider, model=model)
        request = AnalysisRequest(query=query, schema=schema, provider=llm_service.provider)
        prompt = build_analysis_prompt(request.query, request.dataset_schema)
        raw = await llm_service.send_prompt(prompt)
        return parse_model_reply(raw)

    async def execute_code(
        self,
        code: str,
        dataset_path: str | Path,
        output_format: OutputFormat | str = OutputFormat.PNG,
    ) -> ExecutionResult:
        """Run code (generated or user-edited) against a dataset."""
        request = ExecutionRequest(
            code=code, dataset_path=str(dataset_path), output_format=output_format
        )
        return await self.runner.execute(request.code, request.dataset_path, request.output_format)

    async def run_pipeline(
        self,
        query: str,
        schema: DatasetSchema,
        dataset_path: str | Path,
        provider: Provider | str = Provider.OPENAI,
        output_format: OutputFormat | str = OutputFormat.PNG,
        model: str | None = None,
    ) -> PipelineResult:
        """
        Generate code for ``query`` and run it against ``dataset_path``.

        Never raises for provider or execution failures; the result status
        says which stage failed. Analysis text is kept when execution fails.

        Raises:
            ValueError: unknown output_format, before any provider call
        """
        output_format = OutputFormat(output_format)

        try:
            reply = await self.preview(query, schema, provider=provider, model=model)
        except ProviderError as e:
            logger.error(f"Provider call failed ({e.code}): {e.message}")
            return PipelineResult(
                status=PipelineStatus.PROVIDER_ERROR,
                error=PipelineError(kind="ProviderError", message=e.message, code=e.code),
            )

        execution = await self.execute_code(reply.code, dataset_path, output_format)

        if execution.state is ExecutionState.COMPLETED:
            status = PipelineStatus.COMPLETED
            error = None
        elif execution.state is ExecutionState.TIMED_OUT:
            status = PipelineStatus.TIMEOUT
            error = PipelineError(kind="Timeout", message=execution.error)
        else:
            status = PipelineStatus.EXECUTION_FAULTED
            error = PipelineError(kind="ExecutionFaulted", message=execution.error)

        if error is not None:
            logger.warning(f"Execution {execution.execution_id} ended as {status.value}: {error.message}")

        return PipelineResult(
            status=status,
            analysis=reply.analysis,
            code=reply.code,
            visualization_type=reply.visualization_type,
            explanation=reply.explanation,
            execution=execution.to_summary(),
            error=error,
        )

    def get_artifact(self, filename: str) -> tuple[bytes, str]:
        """Return chart bytes and content type; raises ArtifactNotFoundError."""
        return self.store.get(filename)

    def list_artifacts(self) -> list[ArtifactRecord]:
        return self.store.list()

    def delete_artifact(self, filename: str) -> bool:
        """Delete a chart; a repeated delete raises ArtifactNotFoundError."""
        self.store.delete(filename)
        return True


_pipeline: AnalysisPipeline | None = None


def build_pipeline() -> AnalysisPipeline:
    """Build a pipeline from the application configuration."""
    paths = config.get_paths()
    store = ArtifactStore(paths["artifacts_dir"])
    runner = SandboxRunner(
        temp_dir=paths["temp_dir"],
        artifact_store=store,
        config=config.get_sandbox_config(),
        audit_logger=ExecutionAuditLogger(config=config.get_audit_config()),
    )
    return AnalysisPipeline(runner=runner, store=store)


def get_pipeline() -> AnalysisPipeline:
    """Get the shared pipeline instance, creating it on first use."""
    global _pipeline
    if _pipeline is None:
        _pipeline = build_pipeline()
    return _pipeline
