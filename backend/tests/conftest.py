"""
Pytest configuration and fixtures for backend tests.

This module provides shared fixtures for:
- Sample datasets and their schemas
- Artifact stores and sandbox runners rooted in tmp_path
- Mocked LLM services
"""

import logging
from pathlib import Path
from typing import Callable
from unittest.mock import AsyncMock, Mock

import pytest

from visual_insight.models import ColumnType, DatasetSchema
from visual_insight.services.artifact_store import ArtifactStore
from visual_insight.services.llm_service import LLMService
from visual_insight.services.sandbox import SandboxRunner

from tests.fixtures.datasets import SALES_CSV

logger = logging.getLogger(__name__)


# ============================================================================
# Dataset fixtures
# ============================================================================


@pytest.fixture
def sales_csv(tmp_path: Path) -> Path:
    """Small Region/Sales dataset on disk."""
    file_path = tmp_path / "sales.csv"
    file_path.write_text(SALES_CSV)
    return file_path


@pytest.fixture
def sales_schema() -> DatasetSchema:
    """Schema matching the sales_csv fixture."""
    return DatasetSchema(
        columns=["Region", "Sales"],
        data_types={"Region": ColumnType.STRING, "Sales": ColumnType.NUMBER},
        row_count=6,
        sample_data=[["North", "120"], ["South", "80"], ["East", "150"]],
    )


# ============================================================================
# Storage and sandbox fixtures
# ============================================================================


@pytest.fixture
def artifact_store(tmp_path: Path) -> ArtifactStore:
    """Empty artifact store in its own directory."""
    return ArtifactStore(tmp_path / "output")


@pytest.fixture
def sandbox_runner(tmp_path: Path, artifact_store: ArtifactStore) -> SandboxRunner:
    """Runner with a generous timeout for interpreter start-up on slow CI machines."""
    return SandboxRunner(
        temp_dir=tmp_path / "temp",
        artifact_store=artifact_store,
        config={"timeout_seconds": 60, "max_output_bytes": 64 * 1024, "dpi": 72},
    )


# ============================================================================
# LLM fixtures
# ============================================================================


@pytest.fixture
def mock_llm() -> Mock:
    """
    Provide mocked chat model for deterministic tests.

    Returns a pre-defined reply without actual API calls; tests override
    ``ainvoke.return_value`` or ``ainvoke.side_effect`` as needed.
    """
    mock_llm = Mock()
    mock_llm.ainvoke = AsyncMock(
        return_value=Mock(content="Mocked LLM response for testing purposes.")
    )
    return mock_llm


@pytest.fixture
def llm_service_factory(mock_llm: Mock) -> Callable[..., LLMService]:
    """Factory with the get_llm_service signature that wires in mock_llm."""

    def _factory(provider="openai", model=None, **kwargs) -> LLMService:
        service = LLMService(provider=provider, model=model)
        service._llm = mock_llm
        return service

    return _factory


# ============================================================================
# Pytest hooks and configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line("markers", "slow: mark test as slow (deselect with '-m \"not slow\"')")
    config.addinivalue_line("markers", "unit: fast tests without subprocesses")
    config.addinivalue_line("markers", "sandbox: tests that launch a Python subprocess")
    config.addinivalue_line("markers", "integration: end-to-end pipeline and HTTP tests")


def pytest_collection_modifyitems(config, items):
    """Automatically apply markers based on test path."""
    for item in items:
        path = str(item.fspath)
        if "unit" in path:
            item.add_marker(pytest.mark.unit)
        elif "sandbox" in path:
            item.add_marker(pytest.mark.sandbox)
            item.add_marker(pytest.mark.slow)
        elif "integration" in path:
            item.add_marker(pytest.mark.integration)
