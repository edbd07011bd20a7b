"""
Exceptions raised by the API key subsystem.

Auth failures carry the HTTP status and JSON body they render to.
Persistence failures are raised to administrative callers and never
reach HTTP clients with details attached.
"""

from typing import Dict


class APIKeyError(Exception):
    """Base class for API key errors"""


class AuthError(APIKeyError):
    status_code = 401
    error = "Unauthorized"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, str]:
        return {"error": self.error, "message": self.message}


class MissingCredential(AuthError):
    def __init__(self):
        super().__init__(
            "API key required. Provide via Authorization: Bearer <key> or X-API-Key header."
        )


class InvalidCredential(AuthError):
    # Unknown and revoked keys share this message
    def __init__(self):
        super().__init__("Invalid or revoked API key")


class MissingPermission(AuthError):
    status_code = 403
    error = "Forbidden"

    def __init__(self, permission: str):
        super().__init__(f"API key does not have '{permission}' permission")
        self.permission = permission


class PersistenceError(APIKeyError):
    """Store unreachable or a constraint was violated"""


class DuplicateHash(PersistenceError):
    """An API key with the same hash already exists"""
