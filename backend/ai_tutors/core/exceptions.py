"""Error taxonomy for the tutor core.

Each error carries the HTTP status it maps to, so the API layer can
translate it without knowing the individual cases.
"""

from fastapi import status


class TutorError(Exception):
    """Base class for all tutor errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "TUTOR_ERROR"
    default_message: str = "Tutor error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class SessionNotFoundError(TutorError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "SESSION_NOT_FOUND"
    default_message = "Session not found"


class ConversationNotFoundError(TutorError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "CONVERSATION_NOT_FOUND"
    default_message = "Conversation not found"


class AgentNotFoundError(TutorError):
    """Agent is missing or inactive."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "AGENT_NOT_FOUND"
    default_message = "Agent not found or inactive"


class InvalidModeError(TutorError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "INVALID_MODE"
    default_message = "Invalid tutor mode"


class NoAgentsAvailableError(TutorError):
    """The deployment has no active tutor agents."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "NO_AGENTS_AVAILABLE"
    default_message = "No agents available"


class SelectedAgentNotFoundError(TutorError):
    """A routing decision named an agent the catalog cannot resolve."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "SELECTED_AGENT_NOT_FOUND"
    default_message = "Selected agent not found"


class UpstreamCompletionError(TutorError):
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "AI_ERROR"
    default_message = "Failed to get AI response"
