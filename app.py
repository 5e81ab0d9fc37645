# app.py
from __future__ import annotations
import logging
import streamlit as st

from core.auth import AccessControl, build_access_control
from core.db import get_engine, init_db
from core.errors import NotAuthenticated, SessionExpired, StoreUnavailable
from core.navigation import navigate_to_login, navigate_to_logout
from core.settings import load_settings
from screens import login, logout, profile, users_roles

log = logging.getLogger(__name__)

# One AccessControl per process: the session store and throttle are shared by all browsers.
@st.cache_resource
def _access_control() -> AccessControl:
    settings = load_settings()
    logging.basicConfig(
        level=settings.app.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    engine = get_engine(settings.db.url)
    init_db(engine)
    log.info("%s started (%s)", settings.app.name, settings.app.environment)
    return build_access_control(engine, settings)

def main():
    st.set_page_config(page_title="Staff Directory", layout="wide")

    try:
        access = _access_control()
    except StoreUnavailable as e:
        st.error(e.message)
        st.stop()

    if st.session_state.get("show_logout"):
        logout.render(access)
        return

    try:
        session = access.current(st.session_state.get("sid"))
    except SessionExpired:
        # the expired record is gone; the login page opens a fresh one
        navigate_to_login(expired=True)
    except NotAuthenticated:
        login.render(access)
        return
    except StoreUnavailable as e:
        st.error(e.message)
        return

    identity = session.identity
    left, right = st.columns([0.75, 0.25])
    with left:
        st.caption(f"Signed in as **{identity.username}** · _{identity.role.value}_")
    with right:
        if st.button("Logout", key="logout_top"):
            navigate_to_logout()

    def _profile_page():
        profile.render(access, session)

    def _users_page():
        users_roles.render(access, session)

    pages = [st.Page(_profile_page, title="👤 Profile", url_path="profile", default=True)]
    if identity.role.is_admin:
        pages.append(st.Page(_users_page, title="👥 Manage Users", url_path="users"))

    nav = st.navigation(pages, position="sidebar")
    nav.run()

if __name__ == "__main__":
    main()
