"""
Accounts API: /auth/register, /auth/login, and the bearer-token dependency
used by every authenticated route.
"""
from typing import Any, Callable, Optional

from fastapi import APIRouter, Header
from pydantic import BaseModel, ConfigDict, Field

from tracker.core.errors import AuthenticationError


class RegisterRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: Optional[str] = None
    password: Optional[str] = None
    display_name: Optional[str] = Field(default=None, alias="displayName")
    location: Optional[str] = None


class LoginRequest(BaseModel):
    username: str = ""
    password: str = ""


class RegisteredUser(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    display_name: str


class RegisterResponse(BaseModel):
    success: bool = True
    user: RegisteredUser


class LoginUser(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    display_name: str = Field(serialization_alias="displayName")
    location: str


class LoginResponse(BaseModel):
    success: bool = True
    token: str
    user: LoginUser


def bearer_user(tracker_app: Any) -> Callable[..., int]:
    """Dependency factory: resolves "Authorization: Bearer <token>" to a user id or raises 401."""

    def dependency(authorization: Optional[str] = Header(default=None)) -> int:
        parts = (authorization or "").split(" ")
        if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1]:
            raise AuthenticationError("Unauthorized")
        return tracker_app.accounts.authenticate(parts[1])

    return dependency


def get_router(tracker_app: Any) -> Optional[APIRouter]:
    """Return router for account routes."""
    router = APIRouter(tags=["Accounts"])

    @router.post("/auth/register", response_model=RegisterResponse)
    def register(body: RegisterRequest) -> RegisterResponse:
        user = tracker_app.accounts.register(
            body.username,
            body.password,
            display_name=body.display_name,
            location=body.location,
        )
        return RegisterResponse(user=RegisteredUser.model_validate(user))

    @router.post("/auth/login", response_model=LoginResponse)
    def login(body: LoginRequest) -> LoginResponse:
        token, user = tracker_app.accounts.login(body.username, body.password)
        return LoginResponse(token=token, user=LoginUser.model_validate(user))

    return router
