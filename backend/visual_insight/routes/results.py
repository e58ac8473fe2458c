"""Chart result API routes."""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from visual_insight.models import ArtifactInfo, ArtifactListResponse
from visual_insight.services.analysis.pipeline import AnalysisPipeline, get_pipeline
from visual_insight.services.sandbox import ArtifactNotFoundError

router = APIRouter(prefix="/results", tags=["results"])


@router.get("/charts", response_model=ArtifactListResponse)
async def list_charts(pipeline: AnalysisPipeline = Depends(get_pipeline)) -> ArtifactListResponse:
    """List stored charts, newest first."""
    charts = [ArtifactInfo(**record.to_dict()) for record in pipeline.list_artifacts()]
    return ArtifactListResponse(charts=charts, total_count=len(charts))


@router.get("/charts/{filename}")
async def get_chart(filename: str, pipeline: AnalysisPipeline = Depends(get_pipeline)) -> Response:
    """Serve a chart inline."""
    try:
        data, content_type = pipeline.get_artifact(filename)
    except ArtifactNotFoundError:
        raise HTTPException(status_code=404, detail=f"Chart not found: {filename}")
    return Response(content=data, media_type=content_type)


@router.get("/charts/{filename}/metadata", response_model=ArtifactInfo)
async def get_chart_metadata(
    filename: str, pipeline: AnalysisPipeline = Depends(get_pipeline)
) -> ArtifactInfo:
    """Size, format and timestamps of a chart."""
    try:
        record = pipeline.store.get_record(filename)
    except ArtifactNotFoundError:
        raise HTTPException(status_code=404, detail=f"Chart not found: {filename}")
    return ArtifactInfo(**record.to_dict())


@router.get("/download/{filename}")
async def download_chart(
    filename: str, pipeline: AnalysisPipeline = Depends(get_pipeline)
) -> Response:
    """Serve a chart as an attachment."""
    try:
        data, content_type = pipeline.get_artifact(filename)
    except ArtifactNotFoundError:
        raise HTTPException(status_code=404, detail=f"Chart not found: {filename}")
    return Response(
        content=data,
        media_type=content_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.delete("/charts/{filename}")
async def delete_chart(filename: str, pipeline: AnalysisPipeline = Depends(get_pipeline)) -> dict:
    """Delete a chart."""
    try:
        pipeline.delete_artifact(filename)
    except ArtifactNotFoundError:
        raise HTTPException(status_code=404, detail=f"Chart not found: {filename}")
    return {"message": f"Chart {filename} deleted", "filename": filename}
