"""Configuration management for the application."""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Keys
    openai_api_key: Optional[str] = Field(default=None, alias="OPENAI_API_KEY")
    anthropic_api_key: Optional[str] = Field(default=None, alias="ANTHROPIC_API_KEY")
    google_api_key: Optional[str] = Field(default=None, alias="GOOGLE_API_KEY")

    # Root for temp scripts, chart output and normalized uploads
    data_dir: str = Field(default="./data", alias="DATA_DIR")

    # Server configuration
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")
    debug: bool = Field(default=False, alias="DEBUG")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


def load_yaml_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load YAML configuration file."""
    if config_path is None:
        config_path = Path(__file__).parent.parent / "config" / "config.yaml"
    else:
        config_path = Path(config_path)

    if not config_path.exists():
        return {}

    with open(config_path, "r") as f:
        return yaml.safe_load(f) or {}


class AppConfig:
    """Combined application configuration."""

    def __init__(self, config_path: Optional[str] = None):
        self.settings = Settings()
        self.yaml_config = load_yaml_config(config_path)

    def get_app_config(self) -> Dict[str, Any]:
        """Get application name and version."""
        app_config = self.yaml_config.get("app", {})
        return {
            "name": app_config.get("name", "Visual Insight"),
            "version": app_config.get("version", "1.0.0"),
        }

    def get_llm_config(self, provider: Optional[str] = None) -> Dict[str, Any]:
        """Get LLM configuration for a specific provider."""
        yaml_llm = self.yaml_config.get("llm", {})
        default_provider = yaml_llm.get("default_provider", "openai")
        provider = provider or default_provider

        llm_config = yaml_llm.get("providers", {}).get(provider, {})

        # Hardcoded fallback models per provider
        default_models = {
            "openai": "gpt-4o",
            "anthropic": "claude-sonnet-4-5-20250929",
            "google": "gemini-1.5-pro",
        }

        return {
            "provider": provider,
            "model": llm_config.get("default_model", default_models.get(provider, "gpt-4o")),
            "temperature": llm_config.get("temperature", 0.3),
            "max_tokens": llm_config.get("max_tokens", 2000),
            "available_models": llm_config.get("models", []),
        }

    def get_api_key(self, provider: str) -> Optional[str]:
        """Get API key for a specific provider."""
        key_map = {
            "openai": self.settings.openai_api_key,
            "anthropic": self.settings.anthropic_api_key,
            "google": self.settings.google_api_key,
        }
        return key_map.get(provider)

    def get_paths(self) -> Dict[str, Path]:
        """Get the working directories, rooted at DATA_DIR."""
        storage = self.yaml_config.get("storage", {})
        root = Path(self.settings.data_dir)
        return {
            "temp_dir": root / storage.get("temp_dir", "temp"),
            "artifacts_dir": root / storage.get("artifacts_dir", "output"),
            "uploads_dir": root / storage.get("uploads_dir", "uploads"),
        }

    def get_sandbox_config(self) -> Dict[str, Any]:
        """Get sandbox execution limits."""
        sandbox = self.yaml_config.get("sandbox", {})
        return {
            "python_executable": sandbox.get("python_executable"),
            "timeout_seconds": sandbox.get("timeout_seconds", 60),
            "max_output_bytes": sandbox.get("max_output_bytes", 64 * 1024),
            "kill_grace_seconds": sandbox.get("kill_grace_seconds", 2),
            "dpi": sandbox.get("dpi", 150),
        }

    def get_storage_config(self) -> Dict[str, Any]:
        """Get artifact retention settings."""
        storage = self.yaml_config.get("storage", {})
        return {
            "retention_hours": storage.get("retention_hours", 24),
            "sweep_interval_seconds": storage.get("sweep_interval_seconds", 3600),
        }

    def get_audit_config(self) -> Dict[str, Any]:
        """Get execution audit log settings."""
        audit = self.yaml_config.get("audit", {})
        return {
            "enabled": audit.get("enabled", True),
            "log_file": audit.get("log_file", "logs/code_execution_audit.log"),
        }

    def get_ingestion_config(self) -> Dict[str, Any]:
        """Get dataset upload settings."""
        ingestion = self.yaml_config.get("ingestion", {})
        return {
            "sample_rows": ingestion.get("sample_rows", 5),
            "allowed_extensions": ingestion.get("allowed_extensions", [".csv", ".xlsx", ".xls"]),
            "max_upload_mb": ingestion.get("max_upload_mb", 50),
        }


# Global config instance
config = AppConfig()
