import streamlit as st

from core.auth import AccessControl
from core.errors import StoreUnavailable
from core.sessions import Session

def render(access: AccessControl, session: Session):
    st.title("👤 Profile")
    try:
        _render_body(access, session)
    except StoreUnavailable as e:
        st.error(e.message)

def _render_body(access: AccessControl, session: Session):
    identity = session.identity
    own_profile = access.linkage.profile_id_for(identity.account_id)

    st.markdown("### Account")
    st.json({
        "username": identity.username,
        "role": identity.role.value,
        "staff_profile": own_profile if own_profile is not None else "—",
    })

    st.markdown("### Access check")
    target = st.number_input("Staff profile id", min_value=1, step=1,
                             value=own_profile if own_profile is not None else 1)
    caps = access.capabilities(session, int(target))
    st.table({
        "action": ["view", "edit", "delete"],
        "allowed": [caps.can_view, caps.can_edit, caps.can_delete],
    })
