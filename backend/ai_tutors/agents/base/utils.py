"""Shared utilities for agent implementations."""

import logging
from typing import Any, List

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

logger = logging.getLogger(__name__)


def messages_to_langchain(
    messages: List[Any]
) -> List[BaseMessage]:
    """
    Convert message dicts to LangChain message objects.

    Args:
        messages: List of message dictionaries with 'role' and 'content'

    Returns:
        List of LangChain message objects
    """
    result = []
    for msg in messages:
        # Pass through LangChain message objects unchanged.
        if isinstance(msg, BaseMessage):
            result.append(msg)
            continue

        if isinstance(msg, dict):
            role = str(msg.get("role", "")).lower()
            content = msg.get("content", "")

            if role == "assistant":
                result.append(AIMessage(content=content))
            elif role == "system":
                result.append(SystemMessage(content=content))
            else:
                result.append(HumanMessage(content=content))
            continue

        # Fallback: stringify unknown message shapes as user content.
        result.append(HumanMessage(content=str(msg)))

    return result
