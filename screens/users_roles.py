# screens/users_roles.py
from __future__ import annotations

import pandas as pd
import streamlit as st

from core.auth import AccessControl
from core.errors import (
    AccountValidationError, CSRFMismatch, LinkageConflict, PermissionDenied, RoleMismatch, StoreUnavailable,
)
from core.sessions import Session

NO_PROFILE = "— none —"

def _profile_options(access: AccessControl, current: dict | None = None) -> dict:
    options = {NO_PROFILE: None}
    if current and current.get("profile_id"):
        options[f"#{current['profile_id']} (current)"] = current["profile_id"]
    for p in access.linkage.unlinked_profiles():
        options[f"#{p['id']} {p['last_name']}, {p['first_name']}"] = p["id"]
    return options

def _show_errors(e: Exception):
    if isinstance(e, AccountValidationError):
        for msg in e.errors:
            st.error(msg)
    else:
        st.error(getattr(e, "message", str(e)))

def _mutate(access: AccessControl, session: Session, token: str, fn, success: str):
    """Run an account mutation behind the CSRF check; report errors the admin can act on."""
    try:
        access.require_csrf(session, token)
        fn()
    except (CSRFMismatch, AccountValidationError, RoleMismatch, LinkageConflict, StoreUnavailable) as e:
        _show_errors(e)
        return
    st.success(success)
    st.rerun()

def render(access: AccessControl, session: Session):
    st.title("👥 Manage Users")

    try:
        access.require_admin(session)
    except PermissionDenied as e:
        st.error(e.message)
        return

    try:
        _render_body(access, session)
    except StoreUnavailable as e:
        st.error(e.message)

def _render_body(access: AccessControl, session: Session):
    # widget events reach this script over the app's own websocket, never from a
    # cross-site form; the token captured here pins each form to the session that rendered it
    csrf_token = access.csrf.issue(session.sid)
    actor_id = session.identity.account_id
    accounts = access.accounts.list_accounts()
    role_names = access.accounts.role_names()

    tab_list, tab_add, tab_edit = st.tabs(["Accounts", "Add Account", "Edit / Delete"])

    with tab_list:
        if accounts:
            df = pd.DataFrame(accounts)
            df["staff_profile"] = df.apply(
                lambda r: f"{r['last_name']}, {r['first_name']}" if pd.notna(r["profile_id"]) else "", axis=1
            )
            st.dataframe(df[["id", "username", "role", "staff_profile", "is_active", "created_at"]],
                         use_container_width=True, hide_index=True, column_config={
                             "username": st.column_config.TextColumn("🧑‍💻 Username", width="medium"),
                             "role": st.column_config.TextColumn("🎭 Role", width="small"),
                             "staff_profile": st.column_config.TextColumn("👤 Staff Profile", width="medium"),
                             "is_active": st.column_config.CheckboxColumn("✅ Active?", width="small"),
                         })
        else:
            st.info("No accounts found.")

    with tab_add:
        with st.form("add_account_form"):
            username = st.text_input("🧑‍💻 Username*")
            password = st.text_input("🔑 Password*", type="password")
            role_name = st.selectbox("🎭 User Type*", options=role_names)
            options = _profile_options(access)
            profile_label = st.selectbox("👤 Link to staff profile (faculty only)", options=list(options))
            submitted = st.form_submit_button("➕ Create Account", type="primary")
        if submitted:
            _mutate(access, session, csrf_token,
                    lambda: access.accounts.create_account(username, password, role_name, options[profile_label]),
                    "User created successfully!")

    with tab_edit:
        others = [a for a in accounts if a["id"] != actor_id]
        if not others:
            st.info("No other accounts to edit.")
            return
        labels = {f"{a['username']} (#{a['id']})": a for a in others}
        account = labels[st.selectbox("Account", options=list(labels))]

        with st.form(f"edit_account_form_{account['id']}"):
            new_username = st.text_input("🧑‍💻 Username*", value=account["username"])
            new_password = st.text_input("🔑 New password (leave blank to keep)", type="password")
            new_role = st.selectbox("🎭 User Type*", options=role_names,
                                    index=role_names.index(account["role"]) if account["role"] in role_names else 0)
            options = _profile_options(access, account)
            profile_label = st.selectbox("👤 Linked staff profile", options=list(options),
                                         index=1 if account.get("profile_id") else 0)
            saved = st.form_submit_button("💾 Save Changes", type="primary")
        if saved:
            _mutate(access, session, csrf_token,
                    lambda: access.accounts.update_account(
                        account["id"], actor_id=actor_id, username=new_username, role_name=new_role,
                        password=new_password or None, profile_id=options[profile_label],
                    ),
                    "User updated successfully!")

        st.markdown("---")
        confirm = st.checkbox(f"I want to delete {account['username']}", key=f"confirm_delete_{account['id']}")
        if st.button("🗑️ Delete Account", disabled=not confirm, key=f"delete_{account['id']}"):
            _mutate(access, session, csrf_token,
                    lambda: access.accounts.delete_account(account["id"], actor_id=actor_id),
                    "User deleted successfully!")
