"""Dataset upload API routes."""

import logging
import shutil
import tempfile
from pathlib import Path

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from visual_insight.config import config
from visual_insight.models import DatasetResponse
from visual_insight.services.dataset_service import (
    DatasetError,
    DatasetService,
    get_dataset_service,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/datasets", tags=["datasets"])


@router.post("/upload", response_model=DatasetResponse)
async def upload_dataset(
    file: UploadFile = File(...),
    datasets: DatasetService = Depends(get_dataset_service),
) -> DatasetResponse:
    """Upload a CSV or Excel file and return its schema."""
    if not file.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")

    max_bytes = config.get_ingestion_config()["max_upload_mb"] * 1024 * 1024
    suffix = Path(file.filename).suffix.lower()

    with tempfile.NamedTemporaryFile(suffix=suffix, delete=False) as tmp:
        shutil.copyfileobj(file.file, tmp)
        tmp_path = Path(tmp.name)

    try:
        if tmp_path.stat().st_size > max_bytes:
            raise HTTPException(status_code=413, detail="File exceeds the maximum upload size")
        record = datasets.ingest(tmp_path, original_name=file.filename)
    except DatasetError as e:
        raise HTTPException(status_code=400, detail=str(e))
    finally:
        tmp_path.unlink(missing_ok=True)

    return DatasetResponse(**record.to_dict())


@router.get("", response_model=list[DatasetResponse])
async def list_datasets(
    datasets: DatasetService = Depends(get_dataset_service),
) -> list[DatasetResponse]:
    """List uploaded datasets, newest first."""
    return [DatasetResponse(**record.to_dict()) for record in datasets.list_datasets()]


@router.get("/{dataset_id}", response_model=DatasetResponse)
async def get_dataset(
    dataset_id: str,
    datasets: DatasetService = Depends(get_dataset_service),
) -> DatasetResponse:
    """Get the schema of an uploaded dataset."""
    record = datasets.get_dataset(dataset_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Dataset not found: {dataset_id}")
    return DatasetResponse(**record.to_dict())


@router.delete("/{dataset_id}")
async def delete_dataset(
    dataset_id: str,
    datasets: DatasetService = Depends(get_dataset_service),
) -> dict:
    """Delete an uploaded dataset and its normalized file."""
    if not datasets.delete_dataset(dataset_id):
        raise HTTPException(status_code=404, detail=f"Dataset not found: {dataset_id}")
    return {"message": f"Dataset {dataset_id} deleted", "id": dataset_id}
