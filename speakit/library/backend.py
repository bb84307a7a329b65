"""Explicit construction of the auth + library backend.

WHY: Accounts and the library share one storage location that may not
be configured at all (demo mode) or may fail to open. Instead of a
lazily-initialized global that silently stays empty, the backend is
built once, up front, and handed to whoever needs it. A failed or
missing configuration yields a typed Unavailable value carrying the
reason, so callers can fail fast with a clear message.

RULES:
- connect_backend(None) returns Unavailable (demo mode), never raises
- Storage errors during initialization return Unavailable, logged as warnings
- Backend.available is True, Unavailable.available is False
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from speakit.config import SESSION_TTL_SECONDS
from speakit.library.auth import AuthService, SessionStore
from speakit.library.store import LibraryStore

logger = logging.getLogger(__name__)

DEMO_MODE_REASON = (
    "Authentication and library are unavailable: "
    "SPEAKIT_DATABASE is not configured (demo mode)."
)


@dataclass
class Backend:
    auth: AuthService
    library: LibraryStore

    available = True


@dataclass(frozen=True)
class Unavailable:
    reason: str

    available = False


def connect_backend(
    database_path: Optional[str],
    session_ttl_seconds: int = SESSION_TTL_SECONDS,
) -> Union[Backend, Unavailable]:
    """Open the accounts/library database, or explain why it is unavailable."""
    if not database_path:
        logger.info("Running in demo mode: no database configured")
        return Unavailable(DEMO_MODE_REASON)

    try:
        Path(database_path).parent.mkdir(parents=True, exist_ok=True)
        library = LibraryStore(database_path)
        auth = AuthService(database_path, sessions=SessionStore(ttl_seconds=session_ttl_seconds))
    except (sqlite3.Error, OSError) as exc:
        logger.warning("Library storage unavailable at %s: %s", database_path, exc)
        return Unavailable("Authentication and library are unavailable: {}".format(exc))

    logger.info("Library storage ready at %s", database_path)
    return Backend(auth=auth, library=library)
