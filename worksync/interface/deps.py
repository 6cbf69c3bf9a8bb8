"""Request dependencies: session tokens and the current user."""

import logging
from typing import Annotated

from fastapi import Depends, Request
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from worksync.core.config import settings
from worksync.core.errors import UnauthorizedError


logger = logging.getLogger(__name__)

SESSION_COOKIE = "session"

serializer = URLSafeTimedSerializer(str(settings.secret_key), salt="worksync-session")


def issue_session_token(user_id: str) -> str:
    """Sign a session token for the user."""
    return serializer.dumps({"user_id": str(user_id)})


def read_session_token(token: str) -> str:
    """Return the user ID from a session token.

    Raises:
        UnauthorizedError: If the token is tampered with, expired or malformed
    """
    try:
        data = serializer.loads(token, max_age=settings.session_max_age_seconds)
    except SignatureExpired as err:
        logger.info("session_expired")
        raise UnauthorizedError("Session expired") from err
    except BadSignature as err:
        logger.warning("session_tampered")
        raise UnauthorizedError("Invalid session") from err

    user_id = data.get("user_id") if isinstance(data, dict) else None
    if not user_id:
        raise UnauthorizedError("Invalid session")
    return str(user_id)


def _extract_token(request: Request) -> str | None:
    authorization = request.headers.get("Authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return request.cookies.get(SESSION_COOKIE)


async def get_current_user_id(request: Request) -> str:
    """Resolve the acting user from the Bearer token or session cookie.

    Raises:
        UnauthorizedError: If no valid session is presented
    """
    token = _extract_token(request)
    if not token:
        logger.info("session_missing", extra={"path": request.url.path})
        raise UnauthorizedError("Authentication required")
    return read_session_token(token)


CurrentUserId = Annotated[str, Depends(get_current_user_id)]
