"""Tutor data tools.

- Catalog: read-only access to the tutor agent directory
- Interactions: best-effort audit logging and aggregate stats
"""

from .catalog import (
    AgentDirectory,
    get_active_agent,
    list_available_agents,
    to_profile,
)

from .interactions import (
    AuditSink,
    DatabaseAuditSink,
    InteractionLogger,
    get_interaction_logs,
    get_stats,
)

__all__ = [
    # Catalog
    "AgentDirectory",
    "get_active_agent",
    "list_available_agents",
    "to_profile",

    # Interactions
    "AuditSink",
    "DatabaseAuditSink",
    "InteractionLogger",
    "get_interaction_logs",
    "get_stats",
]
