# schemas/_seed.py
from __future__ import annotations

import logging
import os
import bcrypt
from sqlalchemy import text as sa_text
from core.schema_registry import register

log = logging.getLogger(__name__)

# ──────────────────────────────────────────────────────────────────────────────
# First administrator account. Only seeded when a password is provided, so a
# fresh install never ships with a known credential.
# ──────────────────────────────────────────────────────────────────────────────

SEED_ADMIN_USERNAME = os.getenv("SEED_ADMIN_USERNAME", "admin")
SEED_ADMIN_PASSWORD = os.getenv("SEED_ADMIN_PASSWORD", "")

@register("90_seed")
def seed_admin(engine):
    if not SEED_ADMIN_PASSWORD:
        return
    with engine.begin() as conn:
        if conn.execute(sa_text("SELECT 1 FROM accounts WHERE username=:u"), {"u": SEED_ADMIN_USERNAME}).fetchone():
            return
        role_id = conn.execute(sa_text("SELECT id FROM roles WHERE name='Administrator'")).scalar_one()
        pw_hash = bcrypt.hashpw(SEED_ADMIN_PASSWORD.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")
        conn.execute(
            sa_text("INSERT INTO accounts(username, credential_hash, role_id) VALUES(:u, :h, :r)"),
            {"u": SEED_ADMIN_USERNAME, "h": pw_hash, "r": role_id},
        )
    log.info("Seeded administrator account %s", SEED_ADMIN_USERNAME)
