# core/errors.py
from __future__ import annotations
from typing import Iterable, List

__all__ = [
    "AccessError", "AuthenticationFailure", "RateLimited", "SessionExpired", "NotAuthenticated",
    "CSRFMismatch", "PermissionDenied", "RoleMismatch", "LinkageConflict",
    "AccountValidationError", "StoreUnavailable",
]

class AccessError(Exception):
    """Base class for every failure the access core reports to its callers."""
    default_message = "Access error."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

# Security failures carry fixed messages; the cause never leaks to the caller.

class AuthenticationFailure(AccessError):
    default_message = "Invalid username or password."

    def __init__(self):
        super().__init__()

class RateLimited(AccessError):
    def __init__(self, retry_after: int, message: str):
        super().__init__(message)
        self.retry_after = retry_after

class SessionExpired(AccessError):
    default_message = "Your session has expired. Please log in again."

    def __init__(self):
        super().__init__()

class NotAuthenticated(AccessError):
    default_message = "Please log in to continue."

    def __init__(self):
        super().__init__()

class CSRFMismatch(AccessError):
    default_message = "Invalid security token. Please try again."

    def __init__(self):
        super().__init__()

class PermissionDenied(AccessError):
    default_message = "You don't have permission to perform this action."

    def __init__(self):
        super().__init__()

# Integrity failures on trusted admin paths name the violated rule.

class RoleMismatch(AccessError):
    default_message = "Only faculty accounts can be linked to a staff profile."

class LinkageConflict(AccessError):
    default_message = "The account/profile link changed concurrently. Reload and try again."

class AccountValidationError(AccessError):
    def __init__(self, errors: Iterable[str]):
        self.errors: List[str] = list(errors)
        super().__init__("; ".join(self.errors) or "Invalid account data.")

class StoreUnavailable(AccessError):
    default_message = "System error. Please try again later."
