"""Model gateway: one interface over the supported chat providers."""

import asyncio
import logging
from typing import Callable

import httpx
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage

from visual_insight.config import config
from visual_insight.models import Provider
from visual_insight.services.analysis.prompts import SYSTEM_PROMPT
from visual_insight.services.llm_exceptions import ProviderError

logger = logging.getLogger(__name__)


def _build_openai(model: str, temperature: float, max_tokens: int, api_key: str) -> BaseChatModel:
    from langchain_openai import ChatOpenAI

    return ChatOpenAI(
        model=model,
        temperature=temperature,
        max_tokens=max_tokens,
        api_key=api_key,
    )


def _build_anthropic(model: str, temperature: float, max_tokens: int, api_key: str) -> BaseChatModel:
    from langchain_anthropic import ChatAnthropic

    return ChatAnthropic(
        model=model,
        temperature=temperature,
        max_tokens=max_tokens,
        anthropic_api_key=api_key,
    )


def _build_google(model: str, temperature: float, max_tokens: int, api_key: str) -> BaseChatModel:
    from langchain_google_genai import ChatGoogleGenerativeAI

    return ChatGoogleGenerativeAI(
        model=model,
        temperature=temperature,
        max_output_tokens=max_tokens,
        google_api_key=api_key,
    )


PROVIDER_BUILDERS: dict[Provider, Callable[..., BaseChatModel]] = {
    Provider.OPENAI: _build_openai,
    Provider.ANTHROPIC: _build_anthropic,
    Provider.GOOGLE: _build_google,
}


class LLMService:
    """Sends prompts to exactly one configured provider."""

    def __init__(
        self,
        provider: Provider | str | None = None,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ):
        if provider is None:
            provider = config.get_llm_config()["provider"]
        try:
            self.provider = Provider(provider)
        except ValueError:
            raise ProviderError(
                ProviderError.CONFIG, f"Unsupported LLM provider: {provider}", provider=str(provider)
            )
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._llm: BaseChatModel | None = None

    def _get_llm(self) -> BaseChatModel:
        """Get LLM instance based on provider configuration."""
        if self._llm is not None:
            return self._llm

        llm_config = config.get_llm_config(self.provider.value)
        model_name = self.model or llm_config["model"]
        temperature = (
            self.temperature if self.temperature is not None else llm_config["temperature"]
        )
        max_tokens = self.max_tokens if self.max_tokens is not None else llm_config["max_tokens"]

        api_key = config.get_api_key(self.provider.value)
        if not api_key:
            raise ProviderError(
                ProviderError.CONFIG,
                f"{self.provider.value} API key not configured",
                provider=self.provider.value,
                model=model_name,
            )

        logger.info(
            f"Initializing LLM: provider={self.provider.value}, model={model_name}, "
            f"temperature={temperature}, max_tokens={max_tokens}"
        )
        self.model = model_name
        self._llm = PROVIDER_BUILDERS[self.provider](model_name, temperature, max_tokens, api_key)
        return self._llm

    @property
    def llm(self) -> BaseChatModel:
        """Get the LLM instance."""
        return self._get_llm()

    async def send_prompt(self, prompt: str, system_prompt: str | None = SYSTEM_PROMPT) -> str:
        """
        Send a built prompt and return the raw reply text.

        Raises:
            ProviderError: on configuration, auth, quota, network or request failures
        """
        messages = []
        if system_prompt:
            messages.append(SystemMessage(content=system_prompt))
        messages.append(HumanMessage(content=prompt))

        llm = self.llm
        logger.info(
            f"Calling LLM: {self.provider.value}/{self.model or 'default'}, "
            f"prompt_length={len(prompt)}"
        )

        try:
            response = await llm.ainvoke(messages)
        except Exception as e:
            code = self._classify_error(e)
            logger.error(f"LLM call failed [{code}]: {self.provider.value}/{self.model} - {e}")
            raise ProviderError(
                code,
                str(e),
                provider=self.provider.value,
                model=self.model,
                original_error=e,
            ) from e

        text = self._content_to_text(response.content)
        logger.info(f"LLM response received: length={len(text)}")
        return text

    @staticmethod
    def _content_to_text(content) -> str:
        """Flatten message content; Anthropic and Gemini may return content blocks."""
        if content is None:
            return ""
        if isinstance(content, str):
            return content
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)

    def _classify_error(self, error: Exception) -> str:
        """
        Map a provider SDK exception onto a ProviderError code.

        HTTP status codes are checked first (the OpenAI and Anthropic SDKs
        expose ``status_code``), then transport-level exception types, then
        well-known message fragments.
        """
        status_code = getattr(error, "status_code", None)
        if status_code is not None:
            if status_code in {401, 403}:
                return ProviderError.AUTH
            if status_code in {402, 429}:
                return ProviderError.QUOTA
            if status_code in {408, 500, 502, 503, 504}:
                return ProviderError.NETWORK
            if status_code in {400, 404, 413, 422}:
                return ProviderError.BAD_REQUEST

        if isinstance(
            error,
            asyncio.TimeoutError
            | httpx.TimeoutException
            | httpx.ConnectError
            | httpx.NetworkError
            | httpx.RemoteProtocolError
            | ConnectionError,
        ):
            return ProviderError.NETWORK

        error_str = str(error).lower()
        if any(k in error_str for k in ("api key", "api_key", "unauthorized", "permission")):
            return ProviderError.AUTH
        if any(k in error_str for k in ("quota", "rate limit", "resource_exhausted")):
            return ProviderError.QUOTA
        if any(k in error_str for k in ("context_length_exceeded", "maximum context length")):
            return ProviderError.BAD_REQUEST
        return ProviderError.UNKNOWN


def get_llm_service(
    provider: Provider | str | None = None,
    model: str | None = None,
    temperature: float | None = None,
    max_tokens: int | None = None,
) -> LLMService:
    """Factory function to get LLM service."""
    return LLMService(
        provider=provider, model=model, temperature=temperature, max_tokens=max_tokens
    )
