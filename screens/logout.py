# screens/logout.py
from __future__ import annotations
import streamlit as st

from core.auth import AccessControl
from core.errors import StoreUnavailable

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

    st.title("🚪 Logout")

    sid = st.session_state.get("sid")
    if sid:
        try:
            access.logout(sid)
            st.success("You have been logged out successfully.")
        except StoreUnavailable as e:
            st.error(e.message)
    else:
        st.info("You are already logged out")

    for key in ["sid", "show_logout", "session_expired"]:
        st.session_state.pop(key, None)

    if st.button("🔄 Return to Login", type="primary", use_container_width=True):
        st.rerun()
