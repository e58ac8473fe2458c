"""Service for ingesting uploaded datasets and describing their schema."""

import logging
import math
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from visual_insight.config import config
from visual_insight.models import ColumnType, DatasetSchema

logger = logging.getLogger(__name__)


class DatasetError(ValueError):
    """Uploaded file cannot be turned into a dataset."""


@dataclass
class DatasetRecord:
    """An ingested dataset and where its normalized CSV lives."""

    id: str
    original_name: str
    file_path: Path
    schema: DatasetSchema
    file_size: int
    upload_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "original_name": self.original_name,
            "columns": self.schema.columns,
            "data_types": {k: v.value for k, v in self.schema.data_types.items()},
            "row_count": self.schema.row_count,
            "sample_data": self.schema.sample_data,
            "file_size": self.file_size,
            "upload_time": self.upload_time.isoformat(),
        }


class DatasetRegistry:
    """Explicit id -> DatasetRecord mapping."""

    def __init__(self):
        self._records: Dict[str, DatasetRecord] = {}
        self._lock = threading.Lock()

    def add(self, record: DatasetRecord) -> None:
        with self._lock:
            self._records[record.id] = record

    def get(self, dataset_id: str) -> Optional[DatasetRecord]:
        with self._lock:
            return self._records.get(dataset_id)

    def remove(self, dataset_id: str) -> Optional[DatasetRecord]:
        with self._lock:
            return self._records.pop(dataset_id, None)

    def all(self) -> List[DatasetRecord]:
        with self._lock:
            return list(self._records.values())


def _is_number(value: str) -> bool:
    # Mirrors JavaScript Number(): "nan" and digit separators are not numbers
    if "_" in value:
        return False
    try:
        parsed = float(value)
    except ValueError:
        return False
    return not math.isnan(parsed)


def _is_date(value: str) -> bool:
    try:
        parsed = pd.to_datetime(value)
    except (ValueError, TypeError, OverflowError):
        return False
    # "nan", "NaT" and friends parse to NaT
    return not pd.isna(parsed)


def infer_column_type(values: List[str]) -> ColumnType:
    """
    Infer a column type from its first non-empty value only.

    No majority vote: a column whose first value is numeric is a number
    column even if later rows hold text.
    """
    for value in values:
        value = value.strip()
        if not value:
            continue
        if _is_number(value):
            return ColumnType.NUMBER
        if _is_date(value):
            return ColumnType.DATE
        return ColumnType.STRING
    return ColumnType.STRING


def build_schema(df: pd.DataFrame, sample_rows: int = 5) -> DatasetSchema:
    """Describe a DataFrame of raw string cells."""
    columns = [str(c) for c in df.columns]
    data_types = {
        name: infer_column_type(df.iloc[:, i].tolist()) for i, name in enumerate(columns)
    }
    sample = df.head(min(sample_rows, 5)).values.tolist()
    return DatasetSchema(
        columns=columns,
        data_types=data_types,
        row_count=len(df),
        sample_data=sample,
    )


class DatasetService:
    """Normalizes uploaded CSV/Excel files to CSV and keeps their schemas."""

    def __init__(
        self,
        uploads_dir: str | Path,
        registry: Optional[DatasetRegistry] = None,
        config: Optional[Dict[str, Any]] = None,
    ):
        self.config = config or {}
        self.uploads_dir = Path(uploads_dir)
        self.uploads_dir.mkdir(parents=True, exist_ok=True)
        self.registry = registry or DatasetRegistry()
        self.sample_rows = self.config.get("sample_rows", 5)
        self.allowed_extensions = [
            ext.lower() for ext in self.config.get("allowed_extensions", [".csv", ".xlsx", ".xls"])
        ]

    def _read_raw(self, source_path: Path, extension: str) -> pd.DataFrame:
        if extension == ".csv":
            df = pd.read_csv(source_path, dtype=str, keep_default_na=False, skipinitialspace=True)
        else:
            try:
                df = pd.read_excel(source_path, sheet_name=0, dtype=str, keep_default_na=False)
            except Exception as e:
                raise DatasetError(f"Excel processing failed: {e}") from e
        return df

    def ingest(self, source_path: str | Path, original_name: Optional[str] = None) -> DatasetRecord:
        """
        Turn an uploaded file into a registered dataset.

        Args:
            source_path: Uploaded CSV/XLSX/XLS file
            original_name: Client-side filename, used for the extension check

        Returns:
            DatasetRecord pointing at a normalized CSV in the uploads directory

        Raises:
            DatasetError: unsupported type, unreadable file, or no data rows
        """
        source_path = Path(source_path)
        original_name = original_name or source_path.name
        extension = Path(original_name).suffix.lower()
        if extension not in self.allowed_extensions:
            raise DatasetError(
                f"File type {extension or '(none)'} is not allowed. Please upload CSV or Excel files."
            )

        try:
            df = self._read_raw(source_path, extension)
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
            raise DatasetError(f"Could not parse {original_name}: {e}") from e

        df.columns = [str(c).strip() for c in df.columns]
        df = df.apply(lambda col: col.str.strip())
        df = df[(df != "").any(axis=1)].reset_index(drop=True)
        if len(df.columns) == 0 or len(df) == 0:
            raise DatasetError("File must contain at least a header row and one data row")

        dataset_id = str(uuid.uuid4())
        normalized_path = self.uploads_dir / f"{dataset_id}.csv"
        df.to_csv(normalized_path, index=False)

        record = DatasetRecord(
            id=dataset_id,
            original_name=original_name,
            file_path=normalized_path,
            schema=build_schema(df, self.sample_rows),
            file_size=source_path.stat().st_size,
        )
        self.registry.add(record)
        logger.info(
            f"Ingested dataset {dataset_id} from {original_name}: "
            f"{record.schema.row_count} rows, {len(record.schema.columns)} columns"
        )
        return record

    def list_datasets(self) -> List[DatasetRecord]:
        """Registered datasets, newest upload first."""
        return sorted(self.registry.all(), key=lambda r: r.upload_time, reverse=True)

    def get_dataset(self, dataset_id: str) -> Optional[DatasetRecord]:
        return self.registry.get(dataset_id)

    def delete_dataset(self, dataset_id: str) -> bool:
        record = self.registry.remove(dataset_id)
        if record is None:
            return False
        record.file_path.unlink(missing_ok=True)
        return True


_dataset_service: Optional[DatasetService] = None


def get_dataset_service() -> DatasetService:
    """Get the shared dataset service, creating it on first use."""
    global _dataset_service
    if _dataset_service is None:
        _dataset_service = DatasetService(
            config.get_paths()["uploads_dir"], config=config.get_ingestion_config()
        )
    return _dataset_service
