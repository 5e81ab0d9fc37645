import pytest
from sqlalchemy import text as sa_text
from sqlalchemy.exc import IntegrityError

from core.db import init_db, transaction
from core.errors import StoreUnavailable
from core.schema_registry import registered

class TestTransaction:
    def test_missing_table_is_store_unavailable(self, engine):
        with pytest.raises(StoreUnavailable) as exc:
            with transaction(engine) as conn:
                conn.execute(sa_text("SELECT * FROM no_such_table"))
        assert exc.value.message == "System error. Please try again later."

    def test_integrity_error_passes_through(self, engine):
        with pytest.raises(IntegrityError):
            with transaction(engine) as conn:
                conn.execute(sa_text("INSERT INTO roles(name) VALUES ('faculty')"))

    def test_open_connection_is_reused(self, engine):
        with engine.begin() as conn:
            with transaction(conn) as inner:
                assert inner is conn

    def test_rolls_back_on_error(self, engine):
        with pytest.raises(RuntimeError):
            with transaction(engine) as conn:
                conn.execute(sa_text("INSERT INTO roles(name) VALUES ('Librarian')"))
                raise RuntimeError("abort")

        with transaction(engine) as conn:
            assert conn.execute(sa_text("SELECT COUNT(*) FROM roles WHERE name='Librarian'")).scalar_one() == 0

class TestSchemas:
    def test_installers_are_registered(self, engine):
        names = registered()

        for name in ["10_roles", "20_accounts", "30_staff_profiles", "40_sessions", "90_seed"]:
            assert name in names

    def test_init_db_is_idempotent(self, engine):
        init_db(engine)

        with transaction(engine) as conn:
            roles = conn.execute(sa_text("SELECT name FROM roles ORDER BY name")).scalars().all()
        assert roles == ["Administrator", "Faculty"]

    def test_deleting_account_nulls_profile_reference(self, engine):
        with transaction(engine) as conn:
            conn.execute(sa_text("""
                INSERT INTO accounts(username, credential_hash, role_id)
                SELECT 'fac1', 'x', id FROM roles WHERE name='Faculty'
            """))
            account_id = conn.execute(sa_text("SELECT id FROM accounts WHERE username='fac1'")).scalar_one()
            conn.execute(sa_text("INSERT INTO staff_profiles(first_name, last_name, account_id) VALUES ('A', 'B', :a)"),
                         {"a": account_id})
            conn.execute(sa_text("DELETE FROM accounts WHERE id=:a"), {"a": account_id})
            assert conn.execute(sa_text("SELECT account_id FROM staff_profiles")).scalar_one() is None
