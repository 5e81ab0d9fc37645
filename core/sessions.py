# core/sessions.py
"""
Server-side session state.

A Session is either anonymous (pre-authentication: it only carries the login
attempt window) or authenticated (it carries an Identity snapshot and the CSRF
token issued at login). SessionStore implements the lifecycle on top of a
pluggable backend; every read-modify-write goes through `backend.update`, which
serializes writers per session id.
"""
from __future__ import annotations
import logging
import secrets
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, Dict, Optional, Tuple

from sqlalchemy import text as sa_text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from core.csrf import new_token
from core.db import transaction
from core.errors import NotAuthenticated, SessionExpired, StoreUnavailable
from core.roles import Role

log = logging.getLogger(__name__)

__all__ = [
    "Identity", "AttemptWindow", "Session", "SessionBackend",
    "MemorySessionBackend", "SqlSessionBackend", "SessionStore",
]

Clock = Callable[[], float]
Mutator = Callable[[Optional["Session"]], Optional["Session"]]

@dataclass(frozen=True)
class Identity:
    account_id: int
    username: str
    role: Role

@dataclass(frozen=True)
class AttemptWindow:
    count: int
    started_at: float

    def age(self, now: float) -> float:
        return now - self.started_at

@dataclass(frozen=True)
class Session:
    sid: str
    identity: Optional[Identity]
    last_activity: float
    csrf_token: Optional[str]
    attempts: AttemptWindow
    version: int = 0

    @property
    def authenticated(self) -> bool:
        return self.identity is not None

# ──────────────────────────────────────────────────────────────────────────────
# Backends
# ──────────────────────────────────────────────────────────────────────────────

class SessionBackend:
    """
    Storage contract. `update(sid, fn)` calls fn with the current session (or None)
    and atomically stores what it returns: a new Session replaces the record,
    None deletes it, the same object leaves it untouched. fn may be called more
    than once and must not have side effects.
    """

    def load(self, sid: str) -> Optional[Session]:
        raise NotImplementedError

    def insert(self, session: Session) -> None:
        raise NotImplementedError

    def update(self, sid: str, fn: Mutator) -> Optional[Session]:
        raise NotImplementedError

    def delete(self, sid: str) -> None:
        self.update(sid, lambda _current: None)

    def purge_expired(self, cutoff: float) -> int:
        """Delete every session whose last activity is at or before cutoff. Returns the count."""
        raise NotImplementedError

    def delete_for_account(self, account_id: int, conn: Optional[Connection] = None) -> int:
        """Delete every session of account_id; `conn` joins an open transaction where the store supports it."""
        raise NotImplementedError

class MemorySessionBackend(SessionBackend):
    LOCK_STRIPES = 64

    def __init__(self):
        self._sessions: Dict[str, Session] = {}
        # a fixed set of locks shared by hash, so unknown sids never allocate one
        self._locks: Tuple[threading.Lock, ...] = tuple(threading.Lock() for _ in range(self.LOCK_STRIPES))

    def _lock_for(self, sid: str) -> threading.Lock:
        return self._locks[hash(sid) % len(self._locks)]

    def load(self, sid: str) -> Optional[Session]:
        return self._sessions.get(sid)

    def insert(self, session: Session) -> None:
        with self._lock_for(session.sid):
            self._sessions[session.sid] = replace(session, version=1)

    def update(self, sid: str, fn: Mutator) -> Optional[Session]:
        with self._lock_for(sid):
            current = self._sessions.get(sid)
            result = fn(current)
            if result is current:
                return current
            if result is None:
                self._sessions.pop(sid, None)
                return None
            stored = replace(result, version=(current.version if current else 0) + 1)
            self._sessions[sid] = stored
            return stored

    def _remove_where(self, pred: Callable[[Session], bool]) -> int:
        removed = 0
        for sid in [s.sid for s in list(self._sessions.values()) if pred(s)]:
            with self._lock_for(sid):
                current = self._sessions.get(sid)
                if current is not None and pred(current):
                    del self._sessions[sid]
                    removed += 1
        return removed

    def purge_expired(self, cutoff: float) -> int:
        return self._remove_where(lambda s: s.last_activity <= cutoff)

    def delete_for_account(self, account_id: int, conn: Optional[Connection] = None) -> int:
        return self._remove_where(lambda s: s.identity is not None and s.identity.account_id == account_id)

class SqlSessionBackend(SessionBackend):
    """
    Sessions in the `sessions` table. Writes are compare-and-swap on `version`;
    a writer that loses the race re-reads and re-applies its change.
    """
    MAX_RETRIES = 20

    def __init__(self, engine: Engine):
        self._engine = engine

    @staticmethod
    def _from_row(row) -> Session:
        m = row._mapping
        identity = None
        if m["account_id"] is not None:
            identity = Identity(int(m["account_id"]), m["username"], Role.parse(m["role"]))
        return Session(
            sid=m["sid"],
            identity=identity,
            last_activity=float(m["last_activity"]),
            csrf_token=m["csrf_token"],
            attempts=AttemptWindow(int(m["attempt_count"]), float(m["attempt_window_start"])),
            version=int(m["version"]),
        )

    @staticmethod
    def _params(session: Session) -> dict:
        ident = session.identity
        return {
            "sid": session.sid,
            "aid": ident.account_id if ident else None,
            "un": ident.username if ident else None,
            "role": ident.role.value if ident else None,
            "la": session.last_activity,
            "csrf": session.csrf_token,
            "ac": session.attempts.count,
            "aws": session.attempts.started_at,
        }

    def _select(self, conn, sid: str) -> Optional[Session]:
        row = conn.execute(sa_text("SELECT * FROM sessions WHERE sid=:sid"), {"sid": sid}).fetchone()
        return self._from_row(row) if row else None

    def load(self, sid: str) -> Optional[Session]:
        with transaction(self._engine) as conn:
            return self._select(conn, sid)

    def insert(self, session: Session) -> None:
        with transaction(self._engine) as conn:
            conn.execute(sa_text("""
                INSERT INTO sessions(sid, account_id, username, role, last_activity, csrf_token,
                                     attempt_count, attempt_window_start, version)
                VALUES (:sid, :aid, :un, :role, :la, :csrf, :ac, :aws, 1)
            """), self._params(session))

    def update(self, sid: str, fn: Mutator) -> Optional[Session]:
        for _ in range(self.MAX_RETRIES):
            try:
                with transaction(self._engine) as conn:
                    current = self._select(conn, sid)
                    result = fn(current)
                    if result is current:
                        return current
                    if result is None:
                        res = conn.execute(sa_text("DELETE FROM sessions WHERE sid=:sid AND version=:v"),
                                           {"sid": sid, "v": current.version})
                        if res.rowcount == 1:
                            return None
                        continue
                    if current is None:
                        conn.execute(sa_text("""
                            INSERT INTO sessions(sid, account_id, username, role, last_activity, csrf_token,
                                                 attempt_count, attempt_window_start, version)
                            VALUES (:sid, :aid, :un, :role, :la, :csrf, :ac, :aws, 1)
                        """), self._params(replace(result, sid=sid)))
                        return replace(result, sid=sid, version=1)
                    params = self._params(replace(result, sid=sid))
                    params["v"] = current.version
                    res = conn.execute(sa_text("""
                        UPDATE sessions
                        SET account_id=:aid, username=:un, role=:role, last_activity=:la, csrf_token=:csrf,
                            attempt_count=:ac, attempt_window_start=:aws, version=version+1
                        WHERE sid=:sid AND version=:v
                    """), params)
                    if res.rowcount == 1:
                        return replace(result, sid=sid, version=current.version + 1)
            except IntegrityError:
                # concurrent insert of the same sid; re-read and retry
                continue
        log.error("Session update gave up after %d conflicting writes", self.MAX_RETRIES)
        raise StoreUnavailable()

    def purge_expired(self, cutoff: float) -> int:
        with transaction(self._engine) as conn:
            res = conn.execute(sa_text("DELETE FROM sessions WHERE last_activity <= :cutoff"), {"cutoff": cutoff})
        return res.rowcount

    def delete_for_account(self, account_id: int, conn: Optional[Connection] = None) -> int:
        with transaction(conn or self._engine) as c:
            res = c.execute(sa_text("DELETE FROM sessions WHERE account_id = :a"), {"a": account_id})
        return res.rowcount

# ──────────────────────────────────────────────────────────────────────────────
# Store
# ──────────────────────────────────────────────────────────────────────────────

class SessionStore:
    def __init__(
        self,
        backend: Optional[SessionBackend] = None,
        timeout_seconds: int = 1800,
        clock: Clock = time.time,
        token_bytes: int = 32,
    ):
        self.backend = backend or MemorySessionBackend()
        self.timeout_seconds = timeout_seconds
        self.clock = clock
        self._token_bytes = token_bytes

    @staticmethod
    def _new_sid() -> str:
        return secrets.token_urlsafe(32)

    def _expired(self, session: Session, now: float) -> bool:
        return now - session.last_activity >= self.timeout_seconds

    def get(self, sid: Optional[str]) -> Optional[Session]:
        return self.backend.load(sid) if sid else None

    def update(self, sid: str, fn: Mutator) -> Optional[Session]:
        return self.backend.update(sid, fn)

    def purge_expired(self) -> int:
        """
        Drop sessions idle for two timeout periods. A session between one and two
        periods old is kept so its owner's next request still reports SessionExpired.
        """
        removed = self.backend.purge_expired(self.clock() - 2 * self.timeout_seconds)
        if removed:
            log.info("Purged %d stale sessions", removed)
        return removed

    def destroy_for_account(self, account_id: int, conn: Optional[Connection] = None) -> int:
        removed = self.backend.delete_for_account(account_id, conn=conn)
        if removed:
            log.info("Ended %d sessions of account %s", removed, account_id)
        return removed

    def open(self, sid: Optional[str] = None) -> Session:
        """Return the live session for sid, or start a new anonymous one. Stale sessions are purged first."""
        self.purge_expired()
        if sid:
            def _refresh(current: Optional[Session]) -> Optional[Session]:
                if current is None:
                    return None
                now = self.clock()
                if self._expired(current, now):
                    return None
                return replace(current, last_activity=max(current.last_activity, now))

            session = self.backend.update(sid, _refresh)
            if session is not None:
                return session

        now = self.clock()
        session = Session(
            sid=self._new_sid(),
            identity=None,
            last_activity=now,
            csrf_token=None,
            attempts=AttemptWindow(0, now),
        )
        self.backend.insert(session)
        return replace(session, version=1)

    def create(self, identity: Identity, previous_sid: Optional[str] = None) -> Session:
        """Start an authenticated session; the session the client held before is invalidated."""
        self.purge_expired()
        if previous_sid:
            self.destroy(previous_sid)
        now = self.clock()
        session = Session(
            sid=self._new_sid(),
            identity=identity,
            last_activity=now,
            csrf_token=new_token(self._token_bytes),
            attempts=AttemptWindow(0, now),
        )
        self.backend.insert(session)
        return replace(session, version=1)

    def touch(self, sid: Optional[str]) -> Session:
        if not sid:
            raise NotAuthenticated()
        outcome: Dict[str, str] = {}

        def _advance(current: Optional[Session]) -> Optional[Session]:
            outcome.clear()
            if current is None or not current.authenticated:
                return current
            now = self.clock()
            if self._expired(current, now):
                outcome["expired"] = current.identity.username
                return None
            return replace(current, last_activity=max(current.last_activity, now))

        session = self.backend.update(sid, _advance)
        if outcome.get("expired"):
            log.info("Session expired for %s", outcome["expired"])
            raise SessionExpired()
        if session is None or not session.authenticated:
            raise NotAuthenticated()
        return session

    def destroy(self, sid: Optional[str]) -> None:
        if sid:
            self.backend.delete(sid)
