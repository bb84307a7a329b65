"""Email/password and guest authentication with in-memory sessions.

WHY: The library is personal, so requests must be tied to a user. Users
can create an account, sign in, continue as a guest, and sign out. The
session state (signed out, guest, authenticated) decides what the
library endpoints allow.

HOW: Accounts live in the same SQLite file as the library, with
PBKDF2-SHA256 password hashes. Sessions are opaque bearer tokens kept
in a thread-safe in-memory SessionStore with TTL expiry, in the same
shape as a job store: a dict guarded by a threading.Lock plus a
cleanup_expired() sweep.

RULES:
- Emails are stored lower-cased and must look like name@host.tld
- Passwords shorter than MIN_PASSWORD_LENGTH are rejected ("weak-password")
- Duplicate sign-up raises AuthError("email-already-in-use")
- Wrong email or password raises the same AuthError("invalid-credential")
- Guest sessions get a fresh "anon-" user id and no account row
- Expired or unknown tokens resolve to None (signed out)
"""

from __future__ import annotations

import enum
import hashlib
import hmac
import logging
import re
import secrets
import sqlite3
import threading
import time
import uuid
from collections.abc import Callable
from contextlib import closing
from dataclasses import dataclass
from typing import Dict, List, Optional

from speakit.config import MIN_PASSWORD_LENGTH, SESSION_TTL_SECONDS

logger = logging.getLogger(__name__)

_PBKDF2_ITERATIONS = 120_000
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class SessionState(str, enum.Enum):
    SIGNED_OUT = "signed_out"
    GUEST = "guest"
    AUTHENTICATED = "authenticated"


class AuthError(Exception):
    """Raised for rejected sign-up or sign-in attempts.

    RULES:
    - code is one of: invalid-email, weak-password, email-already-in-use,
      invalid-credential
    """

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(message)


@dataclass
class Session:
    """A signed-in (or guest) session identified by an opaque token."""

    token: str
    user_id: str
    is_anonymous: bool
    created_at: float
    expires_at: float
    email: Optional[str] = None

    @property
    def state(self) -> SessionState:
        return SessionState.GUEST if self.is_anonymous else SessionState.AUTHENTICATED


def hash_password(password: str, salt: Optional[bytes] = None) -> str:
    salt = salt or secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, _PBKDF2_ITERATIONS)
    return "pbkdf2_sha256${}${}${}".format(_PBKDF2_ITERATIONS, salt.hex(), digest.hex())


def verify_password(password: str, encoded: str) -> bool:
    try:
        algorithm, iterations, salt_hex, digest_hex = encoded.split("$")
    except ValueError:
        return False
    if algorithm != "pbkdf2_sha256":
        return False
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), bytes.fromhex(salt_hex), int(iterations)
    )
    return hmac.compare_digest(digest.hex(), digest_hex)


class SessionStore:
    """Thread-safe in-memory store for session tokens.

    RULES:
    - All public methods that touch state acquire self._lock
    - get() drops and returns None for expired sessions
    - cleanup_expired() returns the number of sessions removed
    """

    def __init__(
        self,
        ttl_seconds: int = SESSION_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()
        self._ttl_seconds = ttl_seconds
        self._clock = clock

    def create(self, user_id: str, is_anonymous: bool, email: Optional[str] = None) -> Session:
        now = self._clock()
        session = Session(
            token=secrets.token_urlsafe(32),
            user_id=user_id,
            is_anonymous=is_anonymous,
            created_at=now,
            expires_at=now + self._ttl_seconds,
            email=email,
        )
        with self._lock:
            self._sessions[session.token] = session
        return session

    def get(self, token: str) -> Optional[Session]:
        with self._lock:
            session = self._sessions.get(token)
            if session is None:
                return None
            if session.expires_at <= self._clock():
                del self._sessions[token]
                return None
            return session

    def delete(self, token: str) -> bool:
        with self._lock:
            return self._sessions.pop(token, None) is not None

    def list_sessions(self) -> List[Session]:
        with self._lock:
            return sorted(self._sessions.values(), key=lambda s: s.created_at)

    def cleanup_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [t for t, s in self._sessions.items() if s.expires_at <= now]
            for token in expired:
                del self._sessions[token]
        if expired:
            logger.info("Expired %d session(s)", len(expired))
        return len(expired)


class AuthService:
    """Account registry plus session issuing.

    Args:
        database_path: SQLite file shared with the library store.
        sessions: Session store; a fresh one is created when omitted.
    """

    def __init__(self, database_path: str, sessions: Optional[SessionStore] = None) -> None:
        self.database_path = database_path
        self.sessions = sessions or SessionStore()
        self.init()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.database_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init(self) -> None:
        with closing(self._connect()) as conn, conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    email TEXT NOT NULL UNIQUE,
                    password_hash TEXT NOT NULL,
                    created_at REAL NOT NULL
                )
                """
            )

    @staticmethod
    def _normalize_email(email: str) -> str:
        email = (email or "").strip().lower()
        if not _EMAIL_RE.match(email):
            raise AuthError("invalid-email", "Invalid email address")
        return email

    def sign_up(self, email: str, password: str) -> Session:
        email = self._normalize_email(email)
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise AuthError(
                "weak-password",
                "Password must be at least {} characters".format(MIN_PASSWORD_LENGTH),
            )
        user_id = uuid.uuid4().hex
        try:
            with closing(self._connect()) as conn, conn:
                conn.execute(
                    "INSERT INTO users (id, email, password_hash, created_at) VALUES (?, ?, ?, ?)",
                    (user_id, email, hash_password(password), time.time()),
                )
        except sqlite3.IntegrityError:
            raise AuthError("email-already-in-use", "An account with this email already exists")
        logger.info("Created account %s", user_id)
        return self.sessions.create(user_id, is_anonymous=False, email=email)

    def sign_in(self, email: str, password: str) -> Session:
        try:
            email = self._normalize_email(email)
        except AuthError:
            raise AuthError("invalid-credential", "Invalid email or password")
        with closing(self._connect()) as conn:
            row = conn.execute(
                "SELECT id, password_hash FROM users WHERE email = ?", (email,)
            ).fetchone()
        if row is None or not verify_password(password or "", row["password_hash"]):
            raise AuthError("invalid-credential", "Invalid email or password")
        return self.sessions.create(row["id"], is_anonymous=False, email=email)

    def sign_in_anonymously(self) -> Session:
        user_id = "anon-{}".format(uuid.uuid4().hex)
        logger.info("Started guest session for %s", user_id)
        return self.sessions.create(user_id, is_anonymous=True)

    def sign_out(self, token: str) -> bool:
        return self.sessions.delete(token)

    def resolve(self, token: Optional[str]) -> Optional[Session]:
        if not token:
            return None
        return self.sessions.get(token)

    def state_of(self, token: Optional[str]) -> SessionState:
        session = self.resolve(token)
        return session.state if session else SessionState.SIGNED_OUT
