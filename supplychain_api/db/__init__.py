"""
Persistence layer: settings, declarative base, ORM models and async sessions.

Importing the package registers every model on Base.metadata.
"""

from . import models  # noqa: F401
from .base import Base  # noqa: F401
from .session import get_async_session, get_engine, get_session_maker  # noqa: F401
