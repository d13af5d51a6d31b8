"""LLM client factory and completion service.

Provides a factory function to create LLM clients for an OpenAI-compatible
API, and the completion service the tutor core calls through.
"""

import logging
from typing import Any, Dict, List, Optional, Protocol

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from pydantic import BaseModel

from ...core.config import get_settings
from ...observability.langsmith import build_trace_config
from .utils import messages_to_langchain

logger = logging.getLogger(__name__)


def _resolve_api_key(base_url: str, api_key: str) -> str:
    """Provide a safe API key value for local OpenAI-compatible servers."""
    if api_key:
        return api_key
    base = (base_url or "").lower()
    if "127.0.0.1" in base or "localhost" in base:
        return "lm-studio"
    return ""


def get_llm(
    temperature: Optional[float] = None,
    model: Optional[str] = None,
    max_tokens: Optional[int] = None,
    streaming: bool = False,
) -> ChatOpenAI:
    """
    Get a configured LLM client.

    Args:
        temperature: Override default temperature (0.0-1.0)
        model: Override default model name
        max_tokens: Override default max tokens
        streaming: Enable streaming responses

    Returns:
        Configured ChatOpenAI instance

    Example:
        >>> llm = get_llm(temperature=0.5)
        >>> response = await llm.ainvoke("Hello!")
    """
    settings = get_settings()

    return ChatOpenAI(
        base_url=settings.LLM_BASE_URL,
        api_key=_resolve_api_key(settings.LLM_BASE_URL, settings.LLM_API_KEY),
        model=model or settings.LLM_MODEL,
        temperature=temperature if temperature is not None else settings.LLM_TEMPERATURE,
        max_tokens=max_tokens or settings.LLM_MAX_TOKENS,
        streaming=streaming,
    )


# =============================================================================
# Completion Service
# =============================================================================

class CompletionResult(BaseModel):
    """Reply text plus the identifiers of what produced it."""

    reply: str
    model: str
    provider: str
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None


class CompletionService(Protocol):
    """Opaque text completion capability. May raise on provider failure."""

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        conversation_history: Optional[List[Dict[str, Any]]] = None,
        temperature: Optional[float] = None,
        tags: Optional[List[str]] = None,
    ) -> CompletionResult:
        ...


class LangChainCompletionService:
    """Completion service backed by a LangChain chat model."""

    def __init__(self, model: Optional[str] = None, provider: Optional[str] = None):
        settings = get_settings()
        self.model = model or settings.LLM_MODEL
        self.provider = provider or settings.LLM_PROVIDER

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        conversation_history: Optional[List[Dict[str, Any]]] = None,
        temperature: Optional[float] = None,
        tags: Optional[List[str]] = None,
    ) -> CompletionResult:
        llm = get_llm(temperature=temperature, model=self.model)
        messages = [
            SystemMessage(content=system_prompt),
            *messages_to_langchain(conversation_history or []),
            HumanMessage(content=user_prompt),
        ]

        response = await llm.ainvoke(
            messages,
            config=build_trace_config(run_name="tutor-completion", tags=tags),
        )
        reply = response.content if isinstance(response.content, str) else str(response.content)

        usage = getattr(response, "usage_metadata", None) or {}
        metadata = getattr(response, "response_metadata", None) or {}

        return CompletionResult(
            reply=reply,
            model=metadata.get("model_name", self.model),
            provider=self.provider,
            prompt_tokens=usage.get("input_tokens"),
            completion_tokens=usage.get("output_tokens"),
            total_tokens=usage.get("total_tokens"),
        )
