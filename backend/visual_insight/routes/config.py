"""Configuration API routes."""

from datetime import datetime
from typing import Dict

from fastapi import APIRouter

from visual_insight.config import config
from visual_insight.models import HealthResponse

router = APIRouter(prefix="/config", tags=["config"])


@router.get("/providers")
async def get_providers() -> Dict:
    """Get available LLM providers with their models."""
    yaml_config = config.yaml_config

    llm_providers = {}
    for provider, conf in yaml_config.get("llm", {}).get("providers", {}).items():
        llm_providers[provider] = {
            "models": conf.get("models", []),
            "default_model": conf.get("default_model"),
            "has_api_key": config.get_api_key(provider) is not None,
        }

    return {"llm_providers": llm_providers}


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        version=config.get_app_config()["version"],
        timestamp=datetime.now(),
    )
