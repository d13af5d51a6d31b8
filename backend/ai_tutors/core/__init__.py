"""Core configuration and error types for the AI Tutors backend."""

from .config import Settings, get_settings
from .exceptions import (
    AgentNotFoundError,
    ConversationNotFoundError,
    InvalidModeError,
    NoAgentsAvailableError,
    SelectedAgentNotFoundError,
    SessionNotFoundError,
    TutorError,
    UpstreamCompletionError,
)

__all__ = [
    "Settings",
    "get_settings",
    "TutorError",
    "SessionNotFoundError",
    "ConversationNotFoundError",
    "AgentNotFoundError",
    "InvalidModeError",
    "NoAgentsAvailableError",
    "SelectedAgentNotFoundError",
    "UpstreamCompletionError",
]
