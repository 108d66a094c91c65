"""Database package."""
from cyclecoach.db.database import Base, async_session_maker, get_db, get_read_db

__all__ = ["Base", "async_session_maker", "get_db", "get_read_db"]
