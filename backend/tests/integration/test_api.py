"""HTTP tests for the FastAPI routes."""

from unittest.mock import Mock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from visual_insight.main import app
from visual_insight.services.analysis.pipeline import AnalysisPipeline, get_pipeline
from visual_insight.services.dataset_service import DatasetService, get_dataset_service

from tests.fixtures.datasets import SALES_CSV
from tests.fixtures.mock_llm_responses import SALES_BY_REGION_REPLY, TAGLESS_REPLY


@pytest.fixture
def dataset_service(tmp_path) -> DatasetService:
    return DatasetService(tmp_path / "uploads")


@pytest_asyncio.fixture
async def client(sandbox_runner, artifact_store, llm_service_factory, dataset_service):
    """Async client with the pipeline and dataset service rooted in tmp_path."""
    pipeline = AnalysisPipeline(sandbox_runner, artifact_store, llm_service_factory)
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    app.dependency_overrides[get_dataset_service] = lambda: dataset_service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _upload(client: AsyncClient) -> dict:
    response = await client.post(
        "/api/datasets/upload", files={"file": ("sales.csv", SALES_CSV.encode(), "text/csv")}
    )
    assert response.status_code == 200, response.text
    return response.json()


class TestDatasetRoutes:
    """Upload and lookup of datasets."""

    @pytest.mark.asyncio
    async def test_upload_returns_schema(self, client):
        dataset = await _upload(client)

        assert dataset["columns"] == ["Region", "Sales"]
        assert dataset["data_types"] == {"Region": "string", "Sales": "number"}
        assert dataset["row_count"] == 6

        response = await client.get(f"/api/datasets/{dataset['id']}")
        assert response.status_code == 200
        assert response.json()["original_name"] == "sales.csv"

    @pytest.mark.asyncio
    async def test_upload_rejects_unsupported_type(self, client):
        response = await client.post(
            "/api/datasets/upload", files={"file": ("notes.txt", b"a,b\n1,2\n", "text/plain")}
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_list_datasets(self, client):
        assert (await client.get("/api/datasets")).json() == []

        dataset = await _upload(client)

        response = await client.get("/api/datasets")
        assert response.status_code == 200
        assert [d["id"] for d in response.json()] == [dataset["id"]]

    @pytest.mark.asyncio
    async def test_delete_dataset(self, client):
        dataset = await _upload(client)

        assert (await client.delete(f"/api/datasets/{dataset['id']}")).status_code == 200
        assert (await client.get(f"/api/datasets/{dataset['id']}")).status_code == 404


class TestAnalysisRoutes:
    """Visualize, preview and execute."""

    @pytest.mark.asyncio
    async def test_visualize_then_fetch_chart(self, client, mock_llm):
        """Test a completed run returns 200 and its chart is served from /results."""
        mock_llm.ainvoke.return_value = Mock(content=SALES_BY_REGION_REPLY)
        dataset = await _upload(client)

        response = await client.post(
            "/api/analysis/visualize",
            json={"query": "show total sales by region", "dataset_id": dataset["id"]},
        )

        assert response.status_code == 200, response.text
        body = response.json()
        assert body["status"] == "completed"
        filename = body["execution"]["artifact_filename"]

        chart = await client.get(f"/api/results/charts/{filename}")
        assert chart.status_code == 200
        assert chart.headers["content-type"] == "image/png"

        download = await client.get(f"/api/results/download/{filename}")
        assert "attachment" in download.headers["content-disposition"]

        metadata = await client.get(f"/api/results/charts/{filename}/metadata")
        assert metadata.json()["format"] == "png"

        listing = await client.get("/api/results/charts")
        assert listing.json()["total_count"] == 1

        assert (await client.delete(f"/api/results/charts/{filename}")).status_code == 200
        assert (await client.delete(f"/api/results/charts/{filename}")).status_code == 404

    @pytest.mark.asyncio
    async def test_visualize_fault_returns_422_with_analysis(self, client, mock_llm):
        mock_llm.ainvoke.return_value = Mock(content=TAGLESS_REPLY)
        dataset = await _upload(client)

        response = await client.post(
            "/api/analysis/visualize", json={"query": "q", "dataset_id": dataset["id"]}
        )

        assert response.status_code == 422
        body = response.json()
        assert body["status"] == "execution_faulted"
        assert body["analysis"] == "Analysis not provided"

    @pytest.mark.asyncio
    async def test_visualize_provider_error_returns_502(self, client, mock_llm):
        mock_llm.ainvoke.side_effect = ConnectionError("connection reset")
        dataset = await _upload(client)

        response = await client.post(
            "/api/analysis/visualize", json={"query": "q", "dataset_id": dataset["id"]}
        )

        assert response.status_code == 502
        assert response.json()["error"]["code"] == "network"

    @pytest.mark.asyncio
    async def test_visualize_unknown_dataset(self, client):
        response = await client.post(
            "/api/analysis/visualize", json={"query": "q", "dataset_id": "nope"}
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_preview_and_execute(self, client, mock_llm):
        """Test the two-step flow: generate code, then run it."""
        mock_llm.ainvoke.return_value = Mock(content=SALES_BY_REGION_REPLY)
        dataset = await _upload(client)

        preview = await client.post(
            "/api/analysis/preview",
            json={"query": "show total sales by region", "dataset_id": dataset["id"]},
        )
        assert preview.status_code == 200
        code = preview.json()["code"]

        executed = await client.post(
            "/api/analysis/execute",
            json={"code": code, "dataset_id": dataset["id"], "output_format": "svg"},
        )
        assert executed.status_code == 200, executed.text
        assert executed.json()["artifact_filename"].endswith(".svg")

    @pytest.mark.asyncio
    async def test_models_and_formats(self, client):
        models = (await client.get("/api/analysis/models")).json()
        formats = (await client.get("/api/analysis/formats")).json()

        assert set(models["providers"]) == {"openai", "anthropic", "google"}
        assert {f["format"] for f in formats["formats"]} == {"png", "jpg", "svg", "html"}


class TestConfigRoutes:

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/api/config/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_providers(self, client):
        response = await client.get("/api/config/providers")

        assert "openai" in response.json()["llm_providers"]
