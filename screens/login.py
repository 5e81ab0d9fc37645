# screens/login.py
from __future__ import annotations
import streamlit as st

from core.auth import AccessControl
from core.errors import AuthenticationFailure, NotAuthenticated, RateLimited, SessionExpired, StoreUnavailable
from core.navigation import navigate_to_app

def render(access: AccessControl):
    st.markdown(
        """
        <style>
            section[data-testid="stSidebar"] {
                display: none;
            }
        </style>
        """,
        unsafe_allow_html=True,
    )

    st.title("Sign In")

    # pre-authentication session: carries the login attempt window
    try:
        pre = access.open(st.session_state.get("sid"))
        status = access.throttle.is_blocked(pre.sid)
    except StoreUnavailable as e:
        st.error(e.message)
        return
    st.session_state["sid"] = pre.sid

    if st.session_state.pop("session_expired", False):
        st.warning(SessionExpired.default_message)

    if status.blocked:
        st.error(status.message())

    with st.form("login_form"):
        username = st.text_input("Username", placeholder="Enter your username")
        password = st.text_input("Password", type="password", placeholder="Enter your password")
        submitted = st.form_submit_button("Please Wait..." if status.blocked else "Login", disabled=status.blocked)

    if not submitted:
        return

    try:
        session = access.login(pre.sid, username, password)
    except (RateLimited, AuthenticationFailure) as e:
        st.error(e.message)
        return
    except NotAuthenticated:
        st.session_state.pop("sid", None)
        st.rerun()
    except StoreUnavailable as e:
        st.error(e.message)
        return

    navigate_to_app(session.sid)
