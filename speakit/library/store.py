"""SQLite-backed personal library of saved articles and PDFs.

WHY: Signed-in users can save what they are listening to and come back
to it later. The library is a small CRUD surface over one record type,
scoped by user and ordered by when each item was last opened.

HOW: Each method opens its own short-lived sqlite3 connection (rows as
sqlite3.Row), runs one statement inside a transaction, and closes the
connection. Timestamps are epoch seconds from an injectable clock.

RULES:
- init() is idempotent and runs from the constructor
- list_for_user() orders by last_accessed_at descending (newest first)
- get()/touch()/delete() never raise for unknown ids (None/False)
- type must be "url" or "pdf" (ValueError otherwise)
- Ownership checks belong to the caller; the store only filters by user_id
"""

from __future__ import annotations

import enum
import logging
import sqlite3
import time
import uuid
from collections.abc import Callable
from contextlib import closing
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class ContentType(str, enum.Enum):
    URL = "url"
    PDF = "pdf"


@dataclass
class SavedContent:
    """One saved library item.

    RULES:
    - url is only set for items extracted from a web page
    - summary is only set when the user generated one before saving
    """

    id: str
    user_id: str
    title: str
    content: str
    type: ContentType
    created_at: float
    last_accessed_at: float
    url: Optional[str] = None
    summary: Optional[str] = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> SavedContent:
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            content=row["content"],
            type=ContentType(row["type"]),
            created_at=row["created_at"],
            last_accessed_at=row["last_accessed_at"],
            url=row["url"],
            summary=row["summary"],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "content": self.content,
            "type": self.type.value,
            "url": self.url,
            "summary": self.summary,
            "created_at": self.created_at,
            "last_accessed_at": self.last_accessed_at,
        }


class LibraryStore:
    """CRUD over saved content in a SQLite database file.

    Args:
        database_path: Path to the SQLite file (created if missing).
        clock: Returns the current time in epoch seconds.
    """

    def __init__(self, database_path: str, clock: Callable[[], float] = time.time) -> None:
        self.database_path = database_path
        self._clock = clock
        self.init()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.database_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init(self) -> None:
        with closing(self._connect()) as conn, conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS saved_content (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    content TEXT NOT NULL,
                    url TEXT,
                    type TEXT NOT NULL,
                    summary TEXT,
                    created_at REAL NOT NULL,
                    last_accessed_at REAL NOT NULL
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_saved_content_user "
                "ON saved_content(user_id, last_accessed_at)"
            )

    def create(
        self,
        user_id: str,
        title: str,
        content: str,
        type: str,
        url: Optional[str] = None,
        summary: Optional[str] = None,
    ) -> SavedContent:
        """Insert a new item and return it."""
        content_type = ContentType(type)
        now = self._clock()
        item = SavedContent(
            id=uuid.uuid4().hex,
            user_id=user_id,
            title=title,
            content=content,
            type=content_type,
            created_at=now,
            last_accessed_at=now,
            url=url,
            summary=summary,
        )
        with closing(self._connect()) as conn, conn:
            conn.execute(
                """
                INSERT INTO saved_content
                    (id, user_id, title, content, url, type, summary, created_at, last_accessed_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    item.id, item.user_id, item.title, item.content, item.url,
                    item.type.value, item.summary, item.created_at, item.last_accessed_at,
                ),
            )
        logger.info("Saved library item %s for user %s", item.id, user_id)
        return item

    def list_for_user(self, user_id: str) -> List[SavedContent]:
        with closing(self._connect()) as conn:
            rows = conn.execute(
                "SELECT * FROM saved_content WHERE user_id = ? "
                "ORDER BY last_accessed_at DESC, rowid DESC",
                (user_id,),
            ).fetchall()
        return [SavedContent.from_row(row) for row in rows]

    def get(self, content_id: str) -> Optional[SavedContent]:
        with closing(self._connect()) as conn:
            row = conn.execute(
                "SELECT * FROM saved_content WHERE id = ?", (content_id,)
            ).fetchone()
        return SavedContent.from_row(row) if row else None

    def touch(self, content_id: str) -> bool:
        """Set last_accessed_at to now. Returns False for unknown ids."""
        with closing(self._connect()) as conn, conn:
            cur = conn.execute(
                "UPDATE saved_content SET last_accessed_at = ? WHERE id = ?",
                (self._clock(), content_id),
            )
            return cur.rowcount > 0

    def delete(self, content_id: str) -> bool:
        with closing(self._connect()) as conn, conn:
            cur = conn.execute("DELETE FROM saved_content WHERE id = ?", (content_id,))
            deleted = cur.rowcount > 0
        if deleted:
            logger.info("Deleted library item %s", content_id)
        return deleted
