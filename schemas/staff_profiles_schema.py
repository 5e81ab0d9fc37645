# schemas/staff_profiles_schema.py
from sqlalchemy import text as T
from core.schema_registry import register

@register("30_staff_profiles")
def install_staff_profiles(engine):
    """
    Directory entries. account_id is the optional back-reference to a login
    account; the partial unique index keeps it one-to-one.
    """
    with engine.begin() as c:
        c.execute(T("""
        CREATE TABLE IF NOT EXISTS staff_profiles(
          id INTEGER PRIMARY KEY AUTOINCREMENT,
          first_name TEXT NOT NULL,
          last_name TEXT NOT NULL,
          email TEXT COLLATE NOCASE,
          account_id INTEGER REFERENCES accounts(id) ON DELETE SET NULL,
          created_at DATETIME DEFAULT CURRENT_TIMESTAMP
        )"""))
        c.execute(T("""
        CREATE UNIQUE INDEX IF NOT EXISTS uq_staff_profiles_account
        ON staff_profiles(account_id) WHERE account_id IS NOT NULL
        """))
