# core/throttle.py
from __future__ import annotations
import logging
import math
from dataclasses import dataclass, replace
from typing import Optional

from core.errors import NotAuthenticated
from core.sessions import AttemptWindow, Session, SessionStore

log = logging.getLogger(__name__)

@dataclass(frozen=True)
class ThrottleStatus:
    blocked: bool
    retry_after: int = 0

    def message(self) -> str:
        minutes = max(1, math.ceil(self.retry_after / 60))
        return f"Too many login attempts. Please try again in {minutes} minute(s)."

class LoginThrottle:
    """
    Fixed-window counter of failed logins, kept on the pre-authentication session.

    The window is reset lazily: only a failure evaluated after the window has
    aged past `window_seconds` starts a new one. A burst of up to twice the limit
    can straddle a window boundary.
    """

    def __init__(self, store: SessionStore, max_attempts: int = 5, window_seconds: int = 900):
        self._store = store
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds

    def record_attempt(self, sid: str, success: bool) -> AttemptWindow:
        def _apply(current: Optional[Session]) -> Optional[Session]:
            if current is None:
                return None
            now = self._store.clock()
            if success:
                return replace(current, attempts=AttemptWindow(0, now))
            window = current.attempts
            if window.age(now) > self.window_seconds:
                window = AttemptWindow(0, now)
            return replace(current, attempts=AttemptWindow(window.count + 1, window.started_at))

        session = self._store.update(sid, _apply)
        if session is None:
            raise NotAuthenticated()
        if not success and session.attempts.count >= self.max_attempts:
            log.warning("Login throttle engaged after %d failed attempts", session.attempts.count)
        return session.attempts

    def is_blocked(self, sid: str) -> ThrottleStatus:
        session = self._store.get(sid)
        if session is None:
            return ThrottleStatus(False)
        window = session.attempts
        age = window.age(self._store.clock())
        if window.count >= self.max_attempts and age <= self.window_seconds:
            return ThrottleStatus(True, max(0, math.ceil(self.window_seconds - age)))
        return ThrottleStatus(False)
