# core/csrf.py
from __future__ import annotations
import hmac
import secrets
from dataclasses import replace
from typing import TYPE_CHECKING, Optional

from core.errors import NotAuthenticated

if TYPE_CHECKING:
    from core.sessions import Session, SessionStore

DEFAULT_TOKEN_BYTES = 32

def new_token(nbytes: int = DEFAULT_TOKEN_BYTES) -> str:
    return secrets.token_hex(nbytes)

class CSRFGuard:
    """Per-session anti-forgery token. The token is set at login and kept until the next login."""

    def __init__(self, store: "SessionStore", token_bytes: int = DEFAULT_TOKEN_BYTES):
        self._store = store
        self._token_bytes = token_bytes

    def issue(self, sid: str) -> str:
        def _ensure(current: Optional["Session"]) -> Optional["Session"]:
            if current is None or current.csrf_token:
                return current
            return replace(current, csrf_token=new_token(self._token_bytes))

        session = self._store.update(sid, _ensure)
        if session is None:
            raise NotAuthenticated()
        return session.csrf_token

    def validate(self, session: Optional["Session"], supplied: object) -> bool:
        expected = session.csrf_token if session is not None else None
        if not expected or not isinstance(supplied, str) or not supplied:
            return False
        return hmac.compare_digest(expected.encode("utf-8"), supplied.encode("utf-8"))
