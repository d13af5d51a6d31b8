"""AI Tutors - Agents Package.

This package contains the multi-persona tutoring core:
- Base: LLM client factory and the completion service
- Tutor: routing, collaboration and the session service
"""

from .base import CompletionResult, CompletionService, LangChainCompletionService, get_llm

__all__ = [
    "get_llm",
    "CompletionResult",
    "CompletionService",
    "LangChainCompletionService",
]
