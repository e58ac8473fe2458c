"""End-to-end tests for the analysis pipeline with a mocked model."""

from unittest.mock import Mock

import pytest

from visual_insight.models import (
    ANALYSIS_PLACEHOLDER,
    CODE_PLACEHOLDER,
    OutputFormat,
    PipelineStatus,
)
from visual_insight.services.analysis.pipeline import AnalysisPipeline
from visual_insight.services.sandbox import ArtifactNotFoundError, SandboxRunner

from tests.fixtures.mock_llm_responses import (
    PLOTLY_REPLY,
    RAISING_CODE_REPLY,
    SALES_BY_REGION_REPLY,
    SLEEPING_CODE_REPLY,
    TAGLESS_REPLY,
)


@pytest.fixture
def pipeline(sandbox_runner, artifact_store, llm_service_factory) -> AnalysisPipeline:
    return AnalysisPipeline(
        runner=sandbox_runner, store=artifact_store, llm_service_factory=llm_service_factory
    )


class TestAnalysisPipeline:
    """Test suite for AnalysisPipeline."""

    @pytest.mark.asyncio
    async def test_sales_by_region_end_to_end(self, pipeline, mock_llm, sales_csv, sales_schema):
        """Test query -> model -> sandbox -> retrievable png artifact."""
        mock_llm.ainvoke.return_value = Mock(content=SALES_BY_REGION_REPLY)

        result = await pipeline.run_pipeline(
            "show total sales by region", sales_schema, sales_csv, "openai", OutputFormat.PNG
        )

        assert result.status is PipelineStatus.COMPLETED, result.execution
        assert result.succeeded
        assert result.execution.success
        assert result.visualization_type == "Bar chart"
        assert result.analysis.startswith("North has the highest")
        filename = result.execution.artifact_filename
        assert filename == f"{result.execution.execution_id}.png"

        data, content_type = pipeline.get_artifact(filename)
        assert content_type == "image/png"
        assert data.startswith(b"\x89PNG")
        assert [r.filename for r in pipeline.list_artifacts()] == [filename]

        prompt = mock_llm.ainvoke.call_args.args[0][-1].content
        assert "USER QUERY: show total sales by region" in prompt
        assert "Columns: Region, Sales" in prompt

    @pytest.mark.asyncio
    async def test_tagless_reply_runs_placeholder_code(
        self, pipeline, mock_llm, sales_csv, sales_schema
    ):
        """Test a reply with no tags degrades to placeholders and faults for lack of a figure."""
        mock_llm.ainvoke.return_value = Mock(content=TAGLESS_REPLY)

        result = await pipeline.run_pipeline("anything", sales_schema, sales_csv)

        assert result.status is PipelineStatus.EXECUTION_FAULTED
        assert result.analysis == ANALYSIS_PLACEHOLDER
        assert result.code == CODE_PLACEHOLDER
        assert result.execution.state == "faulted"
        assert result.execution.exit_code == 3
        assert result.error.kind == "ExecutionFaulted"
        assert result.error.message == "No figure was produced by the analysis code"
        assert pipeline.list_artifacts() == []

    @pytest.mark.asyncio
    async def test_execution_failure_keeps_analysis(
        self, pipeline, mock_llm, sales_csv, sales_schema
    ):
        """Test analysis text survives when the generated code raises."""
        mock_llm.ainvoke.return_value = Mock(content=RAISING_CODE_REPLY)

        result = await pipeline.run_pipeline("profit", sales_schema, sales_csv)

        assert result.status is PipelineStatus.EXECUTION_FAULTED
        assert result.analysis == "Looks at a column that does not exist."
        assert "KeyError" in result.error.message

    @pytest.mark.asyncio
    async def test_timeout_status(
        self, tmp_path, artifact_store, llm_service_factory, mock_llm, sales_csv, sales_schema
    ):
        """Test a run over its time budget reports timeout and keeps the reply text."""
        runner = SandboxRunner(tmp_path / "temp", artifact_store, config={"timeout_seconds": 3})
        pipeline = AnalysisPipeline(runner, artifact_store, llm_service_factory)
        mock_llm.ainvoke.return_value = Mock(content=SLEEPING_CODE_REPLY)

        result = await pipeline.run_pipeline("slow", sales_schema, sales_csv)

        assert result.status is PipelineStatus.TIMEOUT
        assert result.error.kind == "Timeout"
        assert result.explanation == "Never finishes."

    @pytest.mark.asyncio
    async def test_provider_error_short_circuits(
        self, pipeline, mock_llm, sales_csv, sales_schema, sandbox_runner
    ):
        """Test a provider failure returns provider_error without launching anything."""
        error = Exception("Rate limit reached")
        error.status_code = 429
        mock_llm.ainvoke.side_effect = error

        result = await pipeline.run_pipeline("q", sales_schema, sales_csv)

        assert result.status is PipelineStatus.PROVIDER_ERROR
        assert result.error.kind == "ProviderError"
        assert result.error.code == "quota"
        assert result.execution is None
        assert result.analysis is None
        assert list(sandbox_runner.temp_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_html_output(self, pipeline, mock_llm, sales_csv, sales_schema):
        mock_llm.ainvoke.return_value = Mock(content=PLOTLY_REPLY)

        result = await pipeline.run_pipeline(
            "interactive", sales_schema, sales_csv, output_format="html"
        )

        assert result.succeeded, result.execution.stderr
        assert pipeline.get_artifact(result.execution.artifact_filename)[1] == "text/html"

    @pytest.mark.asyncio
    async def test_preview_does_not_execute(self, pipeline, mock_llm, sales_schema):
        mock_llm.ainvoke.return_value = Mock(content=SALES_BY_REGION_REPLY)

        reply = await pipeline.preview("show total sales by region", sales_schema)

        assert reply.code.startswith("totals = df.groupby")
        assert pipeline.list_artifacts() == []

    @pytest.mark.asyncio
    async def test_execute_code_then_delete(self, pipeline, sales_csv):
        """Test edited code can be run directly and its artifact deleted once."""
        code = 'plt.figure()\nplt.bar(["a", "b"], [1, 2])'

        result = await pipeline.execute_code(code, sales_csv, "jpg")

        assert result.success, result.stderr
        assert pipeline.get_artifact(result.artifact_filename)[1] == "image/jpeg"
        assert pipeline.delete_artifact(result.artifact_filename) is True
        with pytest.raises(ArtifactNotFoundError):
            pipeline.delete_artifact(result.artifact_filename)

    @pytest.mark.asyncio
    async def test_unknown_output_format_rejected_before_model_call(
        self, pipeline, mock_llm, sales_csv, sales_schema
    ):
        with pytest.raises(ValueError):
            await pipeline.run_pipeline("q", sales_schema, sales_csv, output_format="gif")

        mock_llm.ainvoke.assert_not_awaited()
