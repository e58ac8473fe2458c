"""Chart artifact storage keyed by execution id."""

import logging
import shutil
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path

from visual_insight.models import OutputFormat
from visual_insight.services.sandbox.exceptions import ArtifactNotFoundError

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "svg": "image/svg+xml",
    "html": "text/html",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"


def content_type_for(filename: str) -> str:
    """Derive the content type from the file extension alone."""
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    return CONTENT_TYPES.get(ext, DEFAULT_CONTENT_TYPE)


@dataclass
class ArtifactRecord:
    """A finalized chart file."""

    filename: str
    execution_id: str
    format: str
    path: Path
    size_bytes: int
    created_at: datetime
    modified_at: datetime

    @property
    def content_type(self) -> str:
        return content_type_for(self.filename)

    def to_dict(self) -> dict:
        return {
            "filename": self.filename,
            "execution_id": self.execution_id,
            "format": self.format,
            "size": self.size_bytes,
            "size_in_mb": round(self.size_bytes / (1024 * 1024), 2),
            "content_type": self.content_type,
            "created_at": self.created_at.isoformat(),
            "modified_at": self.modified_at.isoformat(),
        }


class ArtifactStore:
    """
    Index of chart files in one directory.

    The in-memory index is the source of truth for lookups; the directory is
    scanned once at construction to pick up charts from a previous run.
    Only files handed over through ``finalize``/``register`` are visible.
    """

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._index: dict[str, ArtifactRecord] = {}
        self._lock = threading.Lock()
        self._rehydrate()

    def _rehydrate(self) -> None:
        known = {ext for ext in CONTENT_TYPES}
        for path in self.directory.iterdir():
            if path.is_file() and path.suffix.lstrip(".").lower() in known:
                self.register(path)
        if self._index:
            logger.info(f"Loaded {len(self._index)} existing artifacts from {self.directory}")

    @staticmethod
    def _record_for(path: Path) -> ArtifactRecord:
        stat = path.stat()
        # Birth time where the platform records it, else ctime; capped at mtime.
        born = getattr(stat, "st_birthtime", stat.st_ctime)
        return ArtifactRecord(
            filename=path.name,
            execution_id=path.stem,
            format=path.suffix.lstrip(".").lower(),
            path=path,
            size_bytes=stat.st_size,
            created_at=datetime.fromtimestamp(min(born, stat.st_mtime), tz=timezone.utc),
            modified_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        )

    def register(self, path: str | Path) -> ArtifactRecord:
        """Index a file that already lives in the store directory."""
        path = Path(path)
        if path.parent.resolve() != self.directory.resolve():
            raise ValueError(f"{path} is not inside the artifact directory {self.directory}")
        record = self._record_for(path)
        with self._lock:
            self._index[record.filename] = record
        return record

    def finalize(self, staged_path: str | Path, filename: str) -> ArtifactRecord:
        """Move a closed, completed output file into the store and index it."""
        if Path(filename).name != filename:
            raise ValueError(f"Invalid artifact filename: {filename}")
        target = self.directory / filename
        shutil.move(str(staged_path), str(target))
        record = self.register(target)
        logger.info(f"Stored artifact {filename} ({record.size_bytes} bytes)")
        return record

    def get_record(self, filename: str) -> ArtifactRecord:
        with self._lock:
            record = self._index.get(filename)
        if record is None:
            raise ArtifactNotFoundError(filename)
        return record

    def get(self, filename: str) -> tuple[bytes, str]:
        """Return the file bytes and content type."""
        record = self.get_record(filename)
        try:
            data = record.path.read_bytes()
        except FileNotFoundError:
            # Removed behind our back
            with self._lock:
                self._index.pop(filename, None)
            raise ArtifactNotFoundError(filename)
        return data, record.content_type

    def delete(self, filename: str) -> None:
        """Delete an artifact; a second delete raises ArtifactNotFoundError."""
        with self._lock:
            record = self._index.pop(filename, None)
        if record is None:
            raise ArtifactNotFoundError(filename)
        record.path.unlink(missing_ok=True)
        logger.info(f"Deleted artifact {filename}")

    def sweep(self, max_age: timedelta, now: datetime | None = None) -> list[str]:
        """Delete every artifact last modified more than ``max_age`` ago."""
        now = now or datetime.now(timezone.utc)
        cutoff = now - max_age
        with self._lock:
            expired = [r for r in self._index.values() if r.modified_at < cutoff]
            for record in expired:
                del self._index[record.filename]

        for record in expired:
            record.path.unlink(missing_ok=True)

        if expired:
            logger.info(f"Retention sweep removed {len(expired)} artifacts older than {max_age}")
        return [r.filename for r in expired]

    def __len__(self) -> int:
        with self._lock:
            return len(self._index)

    @staticmethod
    def filename_for(execution_id: str, output_format: OutputFormat | str) -> str:
        return f"{execution_id}.{OutputFormat(output_format).value}"

    # Defined last: the name shadows the builtin inside the class body
    def list(self) -> list[ArtifactRecord]:
        """All artifacts, most recently modified first."""
        with self._lock:
            records = [*self._index.values()]
        return sorted(records, key=lambda r: r.modified_at, reverse=True)
