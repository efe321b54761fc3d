"""SQL backend: engine/session helpers and schema creation."""

from .session import Base, get_engine, get_session
from .create_tables import create_all

__all__ = ["Base", "get_engine", "get_session", "create_all"]
