"""AI Tutors - multi-persona tutoring service."""

__version__ = "0.1.0"
