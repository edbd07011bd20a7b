"""
Permission dependencies for FastAPI.
Protect routes with a required API key permission.
"""

from typing import Optional

from fastapi import Depends, Request
from loguru import logger

from auth.errors import MissingPermission
from auth.schemas import AuthContext

# ==================== DEPENDENCY FUNCTIONS ====================

def get_auth_context(request: Request) -> Optional[AuthContext]:
    """
    Dependency: the identity attached by APIKeyAuthMiddleware.

    None when the request was not authenticated (public paths).
    """
    return getattr(request.state, "auth", None)


class PermissionGate:
    """
    Dependency bound to one required permission.

    Usage::

        @app.post("/api/keys")
        async def create_key(ctx: AuthContext = Depends(PermissionGate("admin"))):
            ...
    """

    def __init__(self, permission: str, auth_disabled: bool = False):
        self.permission = permission
        self.auth_disabled = auth_disabled

    def check(self, context: Optional[AuthContext]) -> Optional[AuthContext]:
        if self.auth_disabled:
            return context

        # No upstream authentication means no permissions
        if context is None or not context.has_permission(self.permission):
            name = context.name if context else None
            logger.warning(f"API key {name!r} denied permission: {self.permission}")
            raise MissingPermission(self.permission)

        return context

    def __call__(self, context: Optional[AuthContext] = Depends(get_auth_context)) -> Optional[AuthContext]:
        return self.check(context)


def require_permission(permission: str, auth_disabled: bool = False) -> PermissionGate:
    """Dependency factory: Require specific permission."""
    return PermissionGate(permission, auth_disabled=auth_disabled)


class Permissions:
    """Permission names used by the API"""
    READ = "read"
    WRITE = "write"
    ADMIN = "admin"
