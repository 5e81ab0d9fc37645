# schemas/sessions_schema.py
from sqlalchemy import text as T
from core.schema_registry import register

@register("40_sessions")
def install_sessions(engine):
    # timestamps are epoch seconds; version drives compare-and-swap writes
    with engine.begin() as c:
        c.execute(T("""
        CREATE TABLE IF NOT EXISTS sessions(
          sid TEXT PRIMARY KEY,
          account_id INTEGER,
          username TEXT,
          role TEXT,
          last_activity REAL NOT NULL,
          csrf_token TEXT,
          attempt_count INTEGER NOT NULL DEFAULT 0,
          attempt_window_start REAL NOT NULL,
          version INTEGER NOT NULL DEFAULT 1
        )"""))
        c.execute(T("CREATE INDEX IF NOT EXISTS ix_sessions_account ON sessions(account_id)"))
