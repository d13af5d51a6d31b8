"""LangSmith tracing for tutor completions."""

import logging
import os
from typing import Any, Dict, Iterable, Optional

from ..core.config import Settings

logger = logging.getLogger(__name__)

# Setting name -> environment variables read by LangSmith/LangChain
_TRACE_ENV = {
    "LANGSMITH_API_KEY": ("LANGSMITH_API_KEY", "LANGCHAIN_API_KEY"),
    "LANGSMITH_ENDPOINT": ("LANGSMITH_ENDPOINT", "LANGCHAIN_ENDPOINT"),
    "LANGSMITH_PROJECT": ("LANGSMITH_PROJECT", "LANGCHAIN_PROJECT"),
    "LANGSMITH_WORKSPACE_ID": ("LANGSMITH_WORKSPACE_ID",),
}

TRACE_TAG = "ai-tutors"


def initialize_langsmith(settings: Settings) -> bool:
    """
    Export the LangSmith settings to the environment.

    Returns:
        True when tracing was requested and an API key is configured.
    """
    enabled = bool(settings.LANGSMITH_TRACING) and bool(settings.LANGSMITH_API_KEY.strip())

    os.environ["LANGSMITH_TRACING"] = "true" if settings.LANGSMITH_TRACING else "false"
    os.environ["LANGCHAIN_TRACING_V2"] = "true" if enabled else "false"

    for setting, names in _TRACE_ENV.items():
        value = getattr(settings, setting)
        if value:
            for name in names:
                os.environ[name] = value

    if enabled:
        logger.info(f"LangSmith tracing enabled for project {settings.LANGSMITH_PROJECT}")
    else:
        logger.info("LangSmith tracing disabled")

    return enabled


def build_trace_config(
    run_name: str,
    tags: Optional[Iterable[str]] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Runnable config for one completion call.

    Every run is tagged ``ai-tutors``; caller tags (mode, agent name) follow.
    """
    config: Dict[str, Any] = {
        "run_name": run_name,
        "tags": [TRACE_TAG, *(tags or [])],
    }
    if metadata:
        config["metadata"] = dict(metadata)
    return config
