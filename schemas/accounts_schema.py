# schemas/accounts_schema.py
from sqlalchemy import text as T
from core.schema_registry import register

@register("20_accounts")
def install_accounts(engine):
    with engine.begin() as c:
        c.execute(T("""
        CREATE TABLE IF NOT EXISTS accounts(
          id INTEGER PRIMARY KEY AUTOINCREMENT,
          username TEXT NOT NULL UNIQUE COLLATE NOCASE,
          credential_hash TEXT NOT NULL,
          role_id INTEGER NOT NULL REFERENCES roles(id),
          is_active INTEGER NOT NULL DEFAULT 1,
          created_at DATETIME DEFAULT CURRENT_TIMESTAMP
        )"""))
        c.execute(T("CREATE INDEX IF NOT EXISTS ix_accounts_role ON accounts(role_id)"))
