"""Services module."""

from .artifact_store import ArtifactRecord, ArtifactStore
from .dataset_service import DatasetError, DatasetService, get_dataset_service
from .llm_exceptions import LLMError, ProviderError
from .llm_service import LLMService, get_llm_service

__all__ = [
    "ArtifactRecord",
    "ArtifactStore",
    "DatasetError",
    "DatasetService",
    "get_dataset_service",
    "LLMError",
    "ProviderError",
    "LLMService",
    "get_llm_service",
]
