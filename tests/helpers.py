from sqlalchemy import text as sa_text

def make_account(engine, username: str, role_name: str = "Faculty") -> int:
    """Insert an account row directly; for tests that never log in with it."""
    with engine.begin() as conn:
        role_id = conn.execute(sa_text("SELECT id FROM roles WHERE name = :n"), {"n": role_name}).scalar_one_or_none()
        if role_id is None:
            conn.execute(sa_text("INSERT INTO roles(name) VALUES (:n)"), {"n": role_name})
            role_id = conn.execute(sa_text("SELECT id FROM roles WHERE name = :n"), {"n": role_name}).scalar_one()
        conn.execute(sa_text("INSERT INTO accounts(username, credential_hash, role_id) VALUES (:u, 'x', :r)"),
                     {"u": username, "r": role_id})
        return int(conn.execute(sa_text("SELECT id FROM accounts WHERE username = :u"), {"u": username}).scalar_one())

def make_profile(engine, first_name: str = "Ada", last_name: str = "Lovelace", profile_id: int | None = None) -> int:
    with engine.begin() as conn:
        if profile_id is None:
            conn.execute(sa_text("INSERT INTO staff_profiles(first_name, last_name) VALUES (:f, :l)"),
                         {"f": first_name, "l": last_name})
            return int(conn.execute(sa_text("SELECT MAX(id) FROM staff_profiles")).scalar_one())
        conn.execute(sa_text("INSERT INTO staff_profiles(id, first_name, last_name) VALUES (:id, :f, :l)"),
                     {"id": profile_id, "f": first_name, "l": last_name})
        return profile_id

def profile_account(engine, profile_id: int):
    with engine.begin() as conn:
        return conn.execute(sa_text("SELECT account_id FROM staff_profiles WHERE id = :p"),
                            {"p": profile_id}).scalar_one()
