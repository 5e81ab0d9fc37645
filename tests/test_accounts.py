import pytest
from sqlalchemy import text as sa_text

from core.accounts import AccountService
from core.errors import AccountValidationError, RoleMismatch
from core.linkage import IdentityLinkage
from core.roles import Role
from core.settings import AuthConfig
from helpers import make_profile, profile_account

@pytest.fixture
def linkage(engine):
    return IdentityLinkage(engine)

@pytest.fixture
def accounts(engine, linkage):
    return AccountService(engine, linkage, AuthConfig(bcrypt_rounds=4))

class TestCreateAccount:
    def test_creates_and_verifies(self, accounts):
        account_id = accounts.create_account("fac1", "secret1", "Faculty")

        identity = accounts.verify_credentials("fac1", "secret1")

        assert identity.account_id == account_id
        assert identity.username == "fac1"
        assert identity.role is Role.FACULTY

    def test_stores_bcrypt_hash(self, engine, accounts):
        accounts.create_account("fac1", "secret1", "Faculty")

        with engine.begin() as conn:
            stored = conn.execute(sa_text("SELECT credential_hash FROM accounts WHERE username='fac1'")).scalar_one()
        assert stored != "secret1"
        assert stored.startswith("$2")

    def test_role_name_is_case_insensitive(self, accounts):
        accounts.create_account("admin1", "secret1", "administrator")

        assert accounts.verify_credentials("admin1", "secret1").role is Role.ADMINISTRATOR

    @pytest.mark.parametrize("username,password,role,message", [
        ("", "secret1", "Faculty", "Username is required."),
        ("ab", "secret1", "Faculty", "Username must be between 3 and 50 characters."),
        ("a" * 51, "secret1", "Faculty", "Username must be between 3 and 50 characters."),
        ("fac1", "", "Faculty", "Password is required."),
        ("fac1", "12345", "Faculty", "Password must be at least 6 characters."),
        ("fac1", "x" * 73, "Faculty", "Password must not exceed 72 bytes."),
        ("fac1", "secret1", "", "Please select a user type."),
        ("fac1", "secret1", "Janitor", "Please select a user type."),
    ])
    def test_validation(self, accounts, username, password, role, message):
        with pytest.raises(AccountValidationError) as exc:
            accounts.create_account(username, password, role)
        assert message in exc.value.errors
        assert accounts.list_accounts() == []

    def test_reports_every_problem(self, accounts):
        with pytest.raises(AccountValidationError) as exc:
            accounts.create_account("", "", "")
        assert exc.value.errors == ["Username is required.", "Password is required.", "Please select a user type."]

    def test_username_must_be_unique_ignoring_case(self, accounts):
        accounts.create_account("alice", "secret1", "Faculty")

        with pytest.raises(AccountValidationError) as exc:
            accounts.create_account("  Alice ", "secret2", "Faculty")
        assert exc.value.errors == ["Username already exists!"]

    def test_links_profile_in_same_transaction(self, engine, accounts, linkage):
        p = make_profile(engine)

        account_id = accounts.create_account("fac1", "secret1", "Faculty", profile_id=p)

        assert linkage.profile_id_for(account_id) == p

    def test_role_mismatch_rolls_back_creation(self, engine, accounts):
        p = make_profile(engine)

        with pytest.raises(RoleMismatch):
            accounts.create_account("admin1", "secret1", "Administrator", profile_id=p)

        assert accounts.list_accounts() == []
        assert profile_account(engine, p) is None

class TestVerifyCredentials:
    def test_wrong_password_and_unknown_user(self, accounts):
        accounts.create_account("fac1", "secret1", "Faculty")

        assert accounts.verify_credentials("fac1", "wrong-pass") is None
        assert accounts.verify_credentials("nobody", "secret1") is None
        assert accounts.verify_credentials("fac1", "") is None
        assert accounts.verify_credentials("fac1", "s" * 100) is None

    def test_strips_username(self, accounts):
        accounts.create_account("fac1", "secret1", "Faculty")

        assert accounts.verify_credentials("  fac1  ", "secret1") is not None

    def test_inactive_account_cannot_log_in(self, engine, accounts):
        account_id = accounts.create_account("fac1", "secret1", "Faculty")
        with engine.begin() as conn:
            conn.execute(sa_text("UPDATE accounts SET is_active = 0 WHERE id = :id"), {"id": account_id})

        assert accounts.verify_credentials("fac1", "secret1") is None

    def test_unknown_role_name_parses_to_other(self, engine, accounts):
        with engine.begin() as conn:
            conn.execute(sa_text("INSERT INTO roles(name) VALUES ('Librarian')"))
        accounts.create_account("lib1", "secret1", "Librarian")

        assert accounts.verify_credentials("lib1", "secret1").role is Role.OTHER

class TestUpdateAccount:
    def test_cannot_edit_self(self, accounts):
        admin = accounts.create_account("admin1", "secret1", "Administrator")

        with pytest.raises(AccountValidationError, match="your own account"):
            accounts.update_account(admin, actor_id=admin, username="admin2", role_name="Administrator")

    def test_changes_password_only_when_given(self, accounts):
        admin = accounts.create_account("admin1", "secret1", "Administrator")
        fac = accounts.create_account("fac1", "secret1", "Faculty")

        accounts.update_account(fac, actor_id=admin, username="fac1", role_name="Faculty")
        assert accounts.verify_credentials("fac1", "secret1") is not None

        accounts.update_account(fac, actor_id=admin, username="fac1", role_name="Faculty", password="newpass1")
        assert accounts.verify_credentials("fac1", "secret1") is None
        assert accounts.verify_credentials("fac1", "newpass1") is not None

    def test_replaces_link(self, engine, accounts, linkage):
        admin = accounts.create_account("admin1", "secret1", "Administrator")
        p1 = make_profile(engine, "Ada", "Lovelace")
        p2 = make_profile(engine, "Grace", "Hopper")
        fac = accounts.create_account("fac1", "secret1", "Faculty", profile_id=p1)

        accounts.update_account(fac, actor_id=admin, username="fac1", role_name="Faculty", profile_id=p2)

        assert linkage.profile_id_for(fac) == p2
        assert profile_account(engine, p1) is None

    def test_role_change_drops_link(self, engine, accounts, linkage):
        admin = accounts.create_account("admin1", "secret1", "Administrator")
        p = make_profile(engine)
        fac = accounts.create_account("fac1", "secret1", "Faculty", profile_id=p)

        accounts.update_account(fac, actor_id=admin, username="fac1", role_name="Administrator")

        assert linkage.profile_id_for(fac) is None

    def test_role_mismatch_rolls_back_update(self, engine, accounts, linkage):
        admin = accounts.create_account("admin1", "secret1", "Administrator")
        p = make_profile(engine)
        fac = accounts.create_account("fac1", "secret1", "Faculty", profile_id=p)

        with pytest.raises(RoleMismatch):
            accounts.update_account(fac, actor_id=admin, username="renamed", role_name="Administrator", profile_id=p)

        assert accounts.get_account(fac)["username"] == "fac1"
        assert linkage.profile_id_for(fac) == p

    def test_username_clash_with_other_account(self, accounts):
        admin = accounts.create_account("admin1", "secret1", "Administrator")
        fac = accounts.create_account("fac1", "secret1", "Faculty")

        with pytest.raises(AccountValidationError, match="Username already exists!"):
            accounts.update_account(fac, actor_id=admin, username="ADMIN1", role_name="Faculty")

    def test_unknown_account(self, accounts):
        admin = accounts.create_account("admin1", "secret1", "Administrator")

        with pytest.raises(AccountValidationError, match="User not found."):
            accounts.update_account(999, actor_id=admin, username="ghost", role_name="Faculty")

class TestDeleteAccount:
    def test_cannot_delete_self(self, accounts):
        admin = accounts.create_account("admin1", "secret1", "Administrator")

        with pytest.raises(AccountValidationError, match="You cannot delete your own account!"):
            accounts.delete_account(admin, actor_id=admin)

    def test_deletes_and_frees_profile(self, engine, accounts):
        admin = accounts.create_account("admin1", "secret1", "Administrator")
        p = make_profile(engine)
        fac = accounts.create_account("fac1", "secret1", "Faculty", profile_id=p)

        accounts.delete_account(fac, actor_id=admin)

        assert accounts.get_account(fac) is None
        assert profile_account(engine, p) is None

    def test_unknown_account(self, accounts):
        with pytest.raises(AccountValidationError, match="User not found."):
            accounts.delete_account(999, actor_id=1)

class TestListAccounts:
    def test_includes_role_and_profile(self, engine, accounts):
        p = make_profile(engine, "Ada", "Lovelace")
        fac = accounts.create_account("fac1", "secret1", "Faculty", profile_id=p)
        accounts.create_account("admin1", "secret1", "Administrator")

        rows = {r["username"]: r for r in accounts.list_accounts()}

        assert rows["fac1"]["role"] == "Faculty"
        assert rows["fac1"]["profile_id"] == p
        assert rows["fac1"]["last_name"] == "Lovelace"
        assert rows["admin1"]["profile_id"] is None
        assert accounts.get_account(fac)["profile_id"] == p

    def test_role_names(self, accounts):
        assert accounts.role_names() == ["Administrator", "Faculty"]
