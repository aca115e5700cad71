"""API package exports."""

from authcore.api.dependencies import (
    auth_error_handler,
    get_current_session,
    get_current_user,
    require_admin,
)

__all__ = [
    "auth_error_handler",
    "get_current_session",
    "get_current_user",
    "require_admin",
]
