"""Database package for AI Tutors."""

from .base import (
    Base,
    close_all,
    get_tutor_engine,
    get_tutor_session,
    get_tutor_session_maker,
    init_databases,
    utc_now,
)

__all__ = [
    "Base",
    "close_all",
    "get_tutor_engine",
    "get_tutor_session",
    "get_tutor_session_maker",
    "init_databases",
    "utc_now",
]
