# core/accounts.py
from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional

import bcrypt
from sqlalchemy import text as sa_text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from core.db import transaction
from core.errors import AccountValidationError
from core.linkage import IdentityLinkage
from core.roles import Role
from core.sessions import Identity, SessionStore
from core.settings import AuthConfig

log = logging.getLogger(__name__)

__all__ = ["AccountService", "hash_password"]

BCRYPT_MAX_BYTES = 72

def hash_password(password: str, rounds: int = 12) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")

class AccountService:
    """Login accounts: validation, bcrypt hashing, credential checks and the account side of linking."""

    def __init__(
        self,
        engine: Engine,
        linkage: IdentityLinkage,
        config: Optional[AuthConfig] = None,
        sessions: Optional[SessionStore] = None,
    ):
        self._engine = engine
        self._linkage = linkage
        self._sessions = sessions
        self._config = config or AuthConfig()
        self._dummy_hash: Optional[bytes] = None

    # ------------------------------------------------------------------ lookups
    def role_names(self) -> List[str]:
        with transaction(self._engine) as conn:
            rows = conn.execute(sa_text("SELECT name FROM roles ORDER BY name")).fetchall()
        return [r[0] for r in rows]

    def get_account(self, account_id: int) -> Optional[Dict[str, Any]]:
        with transaction(self._engine) as conn:
            row = conn.execute(sa_text("""
                SELECT a.id, a.username, a.is_active, a.created_at, r.name AS role, p.id AS profile_id
                FROM accounts a
                JOIN roles r ON r.id = a.role_id
                LEFT JOIN staff_profiles p ON p.account_id = a.id
                WHERE a.id = :id
            """), {"id": account_id}).fetchone()
        return dict(row._mapping) if row else None

    def list_accounts(self) -> List[Dict[str, Any]]:
        with transaction(self._engine) as conn:
            rows = conn.execute(sa_text("""
                SELECT a.id, a.username, a.is_active, a.created_at, r.name AS role,
                       p.id AS profile_id, p.first_name, p.last_name
                FROM accounts a
                JOIN roles r ON r.id = a.role_id
                LEFT JOIN staff_profiles p ON p.account_id = a.id
                ORDER BY a.created_at DESC, a.id DESC
            """)).fetchall()
        return [dict(r._mapping) for r in rows]

    @staticmethod
    def _role_id(conn: Connection, role_name: Optional[str]) -> Optional[int]:
        if not role_name or not role_name.strip():
            return None
        row = conn.execute(sa_text("SELECT id FROM roles WHERE lower(name) = lower(:n)"),
                           {"n": role_name.strip()}).fetchone()
        return int(row[0]) if row else None

    @staticmethod
    def _username_taken(conn: Connection, username: str, exclude_id: Optional[int] = None) -> bool:
        row = conn.execute(sa_text("SELECT 1 FROM accounts WHERE username = :u AND id <> :x"),
                           {"u": username, "x": exclude_id if exclude_id is not None else -1}).fetchone()
        return bool(row)

    # --------------------------------------------------------------- validation
    def _validate(self, username: str, password: Optional[str], password_required: bool) -> List[str]:
        cfg = self._config
        errors: List[str] = []
        if not username:
            errors.append("Username is required.")
        elif not cfg.username_min_length <= len(username) <= cfg.username_max_length:
            errors.append(
                f"Username must be between {cfg.username_min_length} and {cfg.username_max_length} characters."
            )
        if not password:
            if password_required:
                errors.append("Password is required.")
        elif len(password) < cfg.min_password_length:
            errors.append(f"Password must be at least {cfg.min_password_length} characters.")
        elif len(password.encode("utf-8")) > BCRYPT_MAX_BYTES:
            errors.append(f"Password must not exceed {BCRYPT_MAX_BYTES} bytes.")
        return errors

    # ---------------------------------------------------------------- mutations
    def create_account(self, username: str, password: str, role_name: str, profile_id: Optional[int] = None) -> int:
        """Create an account, optionally linked to a staff profile in the same transaction. Returns its id."""
        username = (username or "").strip()
        errors = self._validate(username, password, password_required=True)
        try:
            with transaction(self._engine) as conn:
                role_id = self._role_id(conn, role_name)
                if role_id is None:
                    errors.append("Please select a user type.")
                if not errors and self._username_taken(conn, username):
                    errors.append("Username already exists!")
                if errors:
                    raise AccountValidationError(errors)

                conn.execute(sa_text("""
                    INSERT INTO accounts(username, credential_hash, role_id) VALUES (:u, :h, :r)
                """), {"u": username, "h": hash_password(password, self._config.bcrypt_rounds), "r": role_id})
                account_id = int(conn.execute(sa_text("SELECT id FROM accounts WHERE username = :u"),
                                              {"u": username}).scalar_one())
                if profile_id is not None:
                    self._linkage.link(account_id, profile_id, conn=conn)
        except IntegrityError as e:
            raise AccountValidationError(["Username already exists!"]) from e
        log.info("Created account %s (%s)", username, role_name)
        return account_id

    def update_account(
        self,
        account_id: int,
        *,
        actor_id: int,
        username: str,
        role_name: str,
        password: Optional[str] = None,
        profile_id: Optional[int] = None,
    ) -> None:
        """Update username/role (and password when given) and replace the profile link."""
        if account_id == actor_id:
            raise AccountValidationError(["You cannot edit your own account here."])
        username = (username or "").strip()
        errors = self._validate(username, password, password_required=False)
        try:
            with transaction(self._engine) as conn:
                if not conn.execute(sa_text("SELECT 1 FROM accounts WHERE id = :id"), {"id": account_id}).fetchone():
                    raise AccountValidationError(["User not found."])
                role_id = self._role_id(conn, role_name)
                if role_id is None:
                    errors.append("Please select a user type.")
                if not errors and self._username_taken(conn, username, exclude_id=account_id):
                    errors.append("Username already exists!")
                if errors:
                    raise AccountValidationError(errors)

                params = {"u": username, "r": role_id, "id": account_id}
                if password:
                    params["h"] = hash_password(password, self._config.bcrypt_rounds)
                    conn.execute(sa_text("UPDATE accounts SET username=:u, credential_hash=:h, role_id=:r WHERE id=:id"),
                                 params)
                else:
                    conn.execute(sa_text("UPDATE accounts SET username=:u, role_id=:r WHERE id=:id"), params)

                self._linkage.unlink(account_id, conn=conn)
                if profile_id is not None:
                    self._linkage.link(account_id, profile_id, conn=conn)
                self._end_sessions(account_id, conn)
        except IntegrityError as e:
            raise AccountValidationError(["Username already exists!"]) from e
        log.info("Updated account %s", account_id)

    def delete_account(self, account_id: int, *, actor_id: int) -> None:
        if account_id == actor_id:
            raise AccountValidationError(["You cannot delete your own account!"])
        with transaction(self._engine) as conn:
            self._linkage.unlink(account_id, conn=conn)
            res = conn.execute(sa_text("DELETE FROM accounts WHERE id = :id"), {"id": account_id})
            if res.rowcount == 0:
                raise AccountValidationError(["User not found."])
            self._end_sessions(account_id, conn)
        log.info("Deleted account %s", account_id)

    def _end_sessions(self, account_id: int, conn: Connection) -> None:
        # live sessions carry an identity snapshot; the account must log in again
        if self._sessions is not None:
            self._sessions.destroy_for_account(account_id, conn=conn)

    # ------------------------------------------------------------- credentials
    def _dummy_check(self, password: str) -> None:
        # keeps unknown usernames as slow as known ones
        if self._dummy_hash is None:
            self._dummy_hash = bcrypt.hashpw(b"dummy-password", bcrypt.gensalt(rounds=self._config.bcrypt_rounds))
        bcrypt.checkpw(password.encode("utf-8")[:BCRYPT_MAX_BYTES], self._dummy_hash)

    def verify_credentials(self, username: str, password: str) -> Optional[Identity]:
        """Identity for an active account whose password matches, else None. Never says which part failed."""
        username = (username or "").strip()
        password = password or ""
        with transaction(self._engine) as conn:
            row = conn.execute(sa_text("""
                SELECT a.id, a.username, a.credential_hash, r.name AS role
                FROM accounts a JOIN roles r ON r.id = a.role_id
                WHERE a.username = :u AND a.is_active = 1
            """), {"u": username}).fetchone()

        if not row or len(password.encode("utf-8")) > BCRYPT_MAX_BYTES:
            self._dummy_check(password)
            return None
        m = row._mapping
        try:
            ok = bcrypt.checkpw(password.encode("utf-8"), m["credential_hash"].encode("utf-8"))
        except ValueError:
            log.error("Account %s has a malformed credential hash", m["id"])
            return None
        if not ok:
            return None
        return Identity(account_id=int(m["id"]), username=m["username"], role=Role.parse(m["role"]))
