"""Account registration and sign-in routes."""

import logging

from fastapi import APIRouter, Response, status

from worksync.core.config import settings
from worksync.domain.create_models import LoginRequest, RegisterRequest
from worksync.domain.user import User
from worksync.interface.deps import SESSION_COOKIE, CurrentUserId, issue_session_token
from worksync.models.service_models import AuthResult
from worksync.services import workspace_service


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=SESSION_COOKIE,
        value=token,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        max_age=settings.session_max_age_seconds,
    )


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(body: RegisterRequest, response: Response) -> dict:
    """Create an account with its default workspace and sign in."""
    user = await workspace_service.register_user(name=body.name, email=body.email, password=body.password)
    token = issue_session_token(user["id"])
    _set_session_cookie(response, token)
    return {
        "message": "User registered successfully",
        **AuthResult(user=User.model_validate(user), token=token).model_dump(by_alias=True),
    }


@router.post("/login")
async def login(body: LoginRequest, response: Response) -> dict:
    """Verify credentials and start a session."""
    user = await workspace_service.authenticate_user(email=body.email, password=body.password)
    token = issue_session_token(user["id"])
    _set_session_cookie(response, token)
    logger.info("login_success", extra={"user_id": user["id"]})
    return {
        "message": "Logged in successfully",
        **AuthResult(user=User.model_validate(user), token=token).model_dump(by_alias=True),
    }


@router.post("/logout")
async def logout(response: Response) -> dict:
    """Clear the session cookie."""
    response.delete_cookie(key=SESSION_COOKIE, httponly=True, samesite="lax")
    return {"message": "Logged out successfully"}


@router.get("/me")
async def current_user(user_id: CurrentUserId) -> dict:
    """Return the signed-in user."""
    user = await workspace_service.get_user(user_id=user_id)
    return {"message": "User fetched successfully", "user": User.model_validate(user)}
