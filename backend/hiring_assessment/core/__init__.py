"""
Core module for application configuration and assessment logic.

The session engine is not imported at package level to avoid circular
imports with hiring_assessment.models. Import it directly:
from hiring_assessment.core import session_engine
"""
from .config import settings

__all__ = ["settings"]
