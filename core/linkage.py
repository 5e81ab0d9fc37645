# core/linkage.py
"""
Account ↔ staff profile link.

This module is the only writer of `staff_profiles.account_id`. Each profile
references at most one account and each account is referenced by at most one
profile; only faculty accounts may be linked.
"""
from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import text as sa_text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from core.db import transaction
from core.errors import LinkageConflict, RoleMismatch
from core.roles import Role

log = logging.getLogger(__name__)

class IdentityLinkage:
    def __init__(self, engine: Engine):
        self._engine = engine

    def link(self, account_id: int, profile_id: int, conn: Optional[Connection] = None) -> None:
        """
        Point profile_id at account_id, releasing whatever profile the account had
        and superseding whatever account the profile had. Pass `conn` to join an
        open transaction.
        """
        try:
            with transaction(conn or self._engine) as c:
                row = c.execute(sa_text("""
                    SELECT r.name FROM accounts a JOIN roles r ON r.id = a.role_id WHERE a.id = :a
                """), {"a": account_id}).fetchone()
                if not row:
                    raise LinkageConflict(f"Account {account_id} does not exist.")
                if Role.parse(row[0]) is not Role.FACULTY:
                    raise RoleMismatch(
                        f"Account {account_id} has role '{row[0]}'; only faculty accounts can be linked to a staff profile."
                    )
                if not c.execute(sa_text("SELECT 1 FROM staff_profiles WHERE id = :p"), {"p": profile_id}).fetchone():
                    raise LinkageConflict(f"Staff profile {profile_id} does not exist.")

                c.execute(sa_text("UPDATE staff_profiles SET account_id = NULL WHERE account_id = :a AND id <> :p"),
                          {"a": account_id, "p": profile_id})
                c.execute(sa_text("UPDATE staff_profiles SET account_id = :a WHERE id = :p"),
                          {"a": account_id, "p": profile_id})
        except IntegrityError as e:
            log.warning("Link account %s -> profile %s lost a concurrent update", account_id, profile_id)
            raise LinkageConflict() from e
        log.info("Linked account %s to staff profile %s", account_id, profile_id)

    def unlink(self, account_id: int, conn: Optional[Connection] = None) -> None:
        with transaction(conn or self._engine) as c:
            res = c.execute(sa_text("UPDATE staff_profiles SET account_id = NULL WHERE account_id = :a"),
                            {"a": account_id})
        if res.rowcount:
            log.info("Unlinked account %s from its staff profile", account_id)

    def profile_id_for(self, account_id: int, conn: Optional[Connection] = None) -> Optional[int]:
        with transaction(conn or self._engine) as c:
            row = c.execute(sa_text("SELECT id FROM staff_profiles WHERE account_id = :a LIMIT 1"),
                            {"a": account_id}).fetchone()
        return int(row[0]) if row else None

    def account_id_for(self, profile_id: int, conn: Optional[Connection] = None) -> Optional[int]:
        with transaction(conn or self._engine) as c:
            row = c.execute(sa_text("SELECT account_id FROM staff_profiles WHERE id = :p"),
                            {"p": profile_id}).fetchone()
        return int(row[0]) if row and row[0] is not None else None

    def unlinked_profiles(self) -> List[Dict[str, Any]]:
        with transaction(self._engine) as c:
            rows = c.execute(sa_text("""
                SELECT id, first_name, last_name FROM staff_profiles
                WHERE account_id IS NULL ORDER BY last_name, first_name
            """)).fetchall()
        return [dict(r._mapping) for r in rows]
