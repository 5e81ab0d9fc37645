# core/auth.py
from __future__ import annotations
import logging
import time
from typing import Callable, Optional

from sqlalchemy.engine import Engine

from core.accounts import AccountService
from core.csrf import CSRFGuard
from core.errors import AuthenticationFailure, CSRFMismatch, NotAuthenticated, RateLimited
from core.linkage import IdentityLinkage
from core.policy import Action, CapabilitySet, capabilities_for, require, require_admin
from core.sessions import SessionBackend, Session, SessionStore, SqlSessionBackend
from core.settings import Settings
from core.throttle import LoginThrottle

log = logging.getLogger(__name__)

__all__ = ["AccessControl", "build_access_control"]

class AccessControl:
    """
    What every request handler calls: login/logout, the per-request session
    check, the CSRF check for mutations and the capability check for profiles.
    """

    def __init__(
        self,
        sessions: SessionStore,
        throttle: LoginThrottle,
        csrf: CSRFGuard,
        linkage: IdentityLinkage,
        accounts: AccountService,
    ):
        self.sessions = sessions
        self.throttle = throttle
        self.csrf = csrf
        self.linkage = linkage
        self.accounts = accounts

    def open(self, sid: Optional[str] = None) -> Session:
        return self.sessions.open(sid)

    def login(self, sid: str, username: Optional[str], password: Optional[str]) -> Session:
        """
        Verify credentials on the pre-authentication session `sid` and return the
        new authenticated session. `sid` is destroyed on success.
        """
        if self.sessions.get(sid) is None:
            raise NotAuthenticated()

        status = self.throttle.is_blocked(sid)
        if status.blocked:
            log.warning("Login rejected while throttled (retry in %ss)", status.retry_after)
            raise RateLimited(status.retry_after, status.message())

        username = (username or "").strip()
        if not username or not password:
            self.throttle.record_attempt(sid, success=False)
            raise AuthenticationFailure()

        identity = self.accounts.verify_credentials(username, password)
        if identity is None:
            self.throttle.record_attempt(sid, success=False)
            log.info("Failed login for username %r", username)
            raise AuthenticationFailure()

        self.throttle.record_attempt(sid, success=True)
        session = self.sessions.create(identity, previous_sid=sid)
        log.info("User %s logged in as %s", identity.username, identity.role.value)
        return session

    def logout(self, sid: Optional[str]) -> None:
        session = self.sessions.get(sid)
        self.sessions.destroy(sid)
        if session is not None and session.identity is not None:
            log.info("User %s logged out", session.identity.username)

    def current(self, sid: Optional[str]) -> Session:
        return self.sessions.touch(sid)

    def require_csrf(self, session: Session, token: object) -> None:
        if not self.csrf.validate(session, token):
            log.warning("CSRF validation failed")
            raise CSRFMismatch()

    def capabilities(self, session: Session, profile_id: Optional[int]) -> CapabilitySet:
        return capabilities_for(session.identity, profile_id, self.linkage)

    def require_capability(self, session: Session, profile_id: Optional[int], action: Action | str) -> None:
        require(self.capabilities(session, profile_id), action)

    def require_admin(self, session: Session) -> None:
        require_admin(session.identity)

def build_access_control(
    engine: Engine,
    settings: Settings,
    backend: Optional[SessionBackend] = None,
    clock: Callable[[], float] = time.time,
) -> AccessControl:
    auth = settings.auth
    sessions = SessionStore(
        backend or SqlSessionBackend(engine),
        timeout_seconds=auth.session_timeout_seconds,
        clock=clock,
        token_bytes=auth.csrf_token_bytes,
    )
    linkage = IdentityLinkage(engine)
    return AccessControl(
        sessions=sessions,
        throttle=LoginThrottle(sessions, auth.throttle_max_attempts, auth.throttle_window_seconds),
        csrf=CSRFGuard(sessions, auth.csrf_token_bytes),
        linkage=linkage,
        accounts=AccountService(engine, linkage, auth, sessions=sessions),
    )
