# core/navigation.py
import streamlit as st

def navigate_to_login(expired: bool = False):
    """Navigate to login page; `expired` makes the login page show the session-expired notice."""
    st.session_state.pop("sid", None)
    if expired:
        st.session_state["session_expired"] = True
    st.rerun()

def navigate_to_logout():
    """Navigate to logout page"""
    st.session_state["show_logout"] = True
    st.rerun()

def navigate_to_app(sid: str):
    """Navigate to main app with the freshly authenticated session"""
    st.session_state["sid"] = sid
    st.session_state.pop("show_logout", None)
    st.session_state.pop("session_expired", None)
    st.rerun()
