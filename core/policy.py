# core/policy.py
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

from core.errors import PermissionDenied
from core.roles import Role

if TYPE_CHECKING:
    from core.linkage import IdentityLinkage
    from core.sessions import Identity

class Action(str, Enum):
    VIEW = "view"
    EDIT = "edit"
    DELETE = "delete"

@dataclass(frozen=True)
class CapabilitySet:
    can_view: bool
    can_edit: bool
    can_delete: bool

    def allows(self, action: Action | str) -> bool:
        try:
            action = Action(action)
        except ValueError:
            return False
        return {
            Action.VIEW: self.can_view,
            Action.EDIT: self.can_edit,
            Action.DELETE: self.can_delete,
        }[action]

NO_CAPABILITIES = CapabilitySet(False, False, False)

def resolve(role: Role, subject_profile_id: Optional[int], target_profile_id: Optional[int]) -> CapabilitySet:
    """
    Capabilities of a subject on a staff profile.

    Administrators may do everything. Everyone else may view, and edit only the
    profile linked to their own account. Deleting is administrator-only, even
    for one's own profile.
    """
    if role is Role.ADMINISTRATOR:
        return CapabilitySet(True, True, True)
    owns = subject_profile_id is not None and subject_profile_id == target_profile_id
    return CapabilitySet(can_view=True, can_edit=owns, can_delete=False)

def capabilities_for(
    identity: Optional["Identity"], target_profile_id: Optional[int], linkage: "IdentityLinkage"
) -> CapabilitySet:
    if identity is None:
        return NO_CAPABILITIES
    if identity.role is Role.ADMINISTRATOR:
        return resolve(identity.role, None, target_profile_id)
    return resolve(identity.role, linkage.profile_id_for(identity.account_id), target_profile_id)

def require(capabilities: CapabilitySet, action: Action | str) -> None:
    if not capabilities.allows(action):
        raise PermissionDenied()

def require_admin(identity: Optional["Identity"]) -> None:
    if identity is None or identity.role is not Role.ADMINISTRATOR:
        raise PermissionDenied()
