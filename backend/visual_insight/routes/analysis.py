"""Analysis API routes: generate, preview and execute chart code."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from visual_insight.config import config
from visual_insight.models import (
    ExecuteRequest,
    OutputFormat,
    PipelineStatus,
    PreviewRequest,
    Provider,
    VisualizeRequest,
)
from visual_insight.services.analysis.pipeline import AnalysisPipeline, get_pipeline
from visual_insight.services.dataset_service import (
    DatasetRecord,
    DatasetService,
    get_dataset_service,
)
from visual_insight.services.llm_exceptions import ProviderError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analysis", tags=["analysis"])

STATUS_CODES = {
    PipelineStatus.COMPLETED: 200,
    PipelineStatus.EXECUTION_FAULTED: 422,
    PipelineStatus.TIMEOUT: 422,
    PipelineStatus.PROVIDER_ERROR: 502,
}


def _require_dataset(datasets: DatasetService, dataset_id: str) -> DatasetRecord:
    record = datasets.get_dataset(dataset_id)
    if record is None:
        raise HTTPException(
            status_code=404, detail=f"Dataset not found: {dataset_id}. Please upload it again."
        )
    return record


@router.post("/visualize")
async def visualize(
    request: VisualizeRequest,
    pipeline: AnalysisPipeline = Depends(get_pipeline),
    datasets: DatasetService = Depends(get_dataset_service),
) -> JSONResponse:
    """Generate analysis code for a query, run it and return the chart reference."""
    record = _require_dataset(datasets, request.dataset_id)
    logger.info(
        f"Visualize request: dataset={request.dataset_id}, provider={request.provider.value}, "
        f"format={request.output_format.value}"
    )

    result = await pipeline.run_pipeline(
        query=request.query,
        schema=record.schema,
        dataset_path=record.file_path,
        provider=request.provider,
        output_format=request.output_format,
        model=request.model,
    )
    return JSONResponse(
        status_code=STATUS_CODES[result.status],
        content=result.model_dump(mode="json"),
    )


@router.post("/preview")
async def preview(
    request: PreviewRequest,
    pipeline: AnalysisPipeline = Depends(get_pipeline),
    datasets: DatasetService = Depends(get_dataset_service),
) -> dict[str, Any]:
    """Generate analysis code without running it."""
    record = _require_dataset(datasets, request.dataset_id)
    try:
        reply = await pipeline.preview(
            request.query, record.schema, provider=request.provider, model=request.model
        )
    except ProviderError as e:
        raise HTTPException(status_code=502, detail=e.to_dict())

    return {
        "analysis": reply.analysis,
        "code": reply.code,
        "visualization_type": reply.visualization_type,
        "explanation": reply.explanation,
        "missing_sections": reply.missing_sections,
    }


@router.post("/execute")
async def execute(
    request: ExecuteRequest,
    pipeline: AnalysisPipeline = Depends(get_pipeline),
    datasets: DatasetService = Depends(get_dataset_service),
) -> JSONResponse:
    """Run previously generated (possibly edited) code against a dataset."""
    record = _require_dataset(datasets, request.dataset_id)
    result = await pipeline.execute_code(request.code, record.file_path, request.output_format)
    return JSONResponse(
        status_code=200 if result.success else 422,
        content=result.to_summary().model_dump(mode="json"),
    )


@router.get("/models")
async def get_models() -> dict[str, Any]:
    """List the providers and models a request can choose from."""
    models = {}
    for provider in Provider:
        llm_config = config.get_llm_config(provider.value)
        models[provider.value] = {
            "default_model": llm_config["model"],
            "models": llm_config["available_models"],
        }
    return {"providers": models, "default_provider": config.get_llm_config()["provider"]}


@router.get("/formats")
async def get_formats() -> dict[str, Any]:
    """List supported output formats."""
    return {
        "formats": [
            {"format": fmt.value, "interactive": fmt.is_interactive} for fmt in OutputFormat
        ]
    }
