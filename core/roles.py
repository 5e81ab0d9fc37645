# core/roles.py
from __future__ import annotations
from enum import Enum

class Role(str, Enum):
    """
    Account role as the access core sees it.

    The `roles` lookup table may grow new rows; anything not recognised here
    parses to OTHER, which gets the non-administrator default capabilities.
    """
    ADMINISTRATOR = "administrator"
    FACULTY = "faculty"
    OTHER = "other"

    @classmethod
    def parse(cls, raw: str | None) -> "Role":
        name = (raw or "").strip().lower()
        for role in (cls.ADMINISTRATOR, cls.FACULTY):
            if role.value == name:
                return role
        return cls.OTHER

    @property
    def is_admin(self) -> bool:
        return self is Role.ADMINISTRATOR
