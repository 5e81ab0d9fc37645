# schemas/roles_schema.py
from sqlalchemy import text as T
from core.schema_registry import register

BASE_ROLES = ["Administrator", "Faculty"]

@register("10_roles")
def install_roles(engine):
    """Role lookup table. New rows are allowed; the access core treats unknown names as 'other'."""
    with engine.begin() as c:
        c.execute(T("""
        CREATE TABLE IF NOT EXISTS roles(
          id INTEGER PRIMARY KEY AUTOINCREMENT,
          name TEXT NOT NULL UNIQUE COLLATE NOCASE
        )"""))
        for name in BASE_ROLES:
            c.execute(T("INSERT OR IGNORE INTO roles(name) VALUES(:n)"), {"n": name})
