"""Accounts, sessions, and the personal library.

WHY: Saving items for later requires knowing who the user is. Both
concerns share one SQLite file and one lifecycle, built explicitly by
connect_backend() and injected into the HTTP app.

RULES:
- Nothing here is a module-level singleton
- Demo mode (no database) is represented by Unavailable, not by None
"""

from speakit.library.auth import AuthError, AuthService, Session, SessionState, SessionStore
from speakit.library.backend import Backend, Unavailable, connect_backend
from speakit.library.store import ContentType, LibraryStore, SavedContent

__all__ = [
    "AuthError",
    "AuthService",
    "Backend",
    "ContentType",
    "LibraryStore",
    "SavedContent",
    "Session",
    "SessionState",
    "SessionStore",
    "Unavailable",
    "connect_backend",
]
