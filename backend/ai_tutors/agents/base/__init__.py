"""Base infrastructure for all agents."""

from .llm import CompletionResult, CompletionService, LangChainCompletionService, get_llm

__all__ = [
    "get_llm",
    "CompletionResult",
    "CompletionService",
    "LangChainCompletionService",
]
