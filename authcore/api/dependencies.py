"""FastAPI dependencies for bearer-session authentication and authorization."""

from fastapi import Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from authcore.errors import AuthError, RateLimitError
from authcore.models.session import Session
from authcore.models.user import UserProfile
from authcore.services.session_service import SessionStore

bearer_scheme = HTTPBearer(auto_error=False)


def get_session_store() -> SessionStore:
    """Session store used by the dependencies below; override in tests."""
    return SessionStore()


async def get_current_session(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session_store: SessionStore = Depends(get_session_store),
) -> Session:
    """Resolve the ``Authorization: Bearer <token>`` header to a live session.

    Raises:
        HTTPException 401: If the header is missing or the token is unknown/expired
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    session = await session_store.validate(credentials.credentials)

    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired session",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return session


async def get_current_user(
    session: Session = Depends(get_current_session),
) -> UserProfile:
    return session.user


async def require_admin(
    current_user: UserProfile = Depends(get_current_user),
) -> UserProfile:
    """Require the current user to have admin privileges.

    Raises:
        HTTPException 403: If user is not an admin
    """
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user


async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render an AuthError with its own status and code.

    Register with ``app.add_exception_handler(AuthError, auth_error_handler)``.
    """
    headers = {}
    if exc.status_code == 401:
        headers["WWW-Authenticate"] = "Bearer"
    if isinstance(exc, RateLimitError):
        headers["Retry-After"] = str(exc.retry_after)
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers=headers,
    )
