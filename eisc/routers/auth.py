from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field

from eisc.core.security import SESSION_MAX_AGE, create_session_cookie
from eisc.deps import (
    SESSION_COOKIE_NAME,
    get_current_identity,
    get_ledger_sessions,
    get_user_directory,
)
from eisc.models.identity import Identity
from eisc.services.identity import UserDirectory
from eisc.services.sessions import LedgerSessions

router = APIRouter()


class RegisterRequest(BaseModel):
    email: str = Field(min_length=3)
    password: str = Field(min_length=8)
    display_name: str = Field(min_length=1)
    specialty: str | None = None


class LoginRequest(BaseModel):
    email: str
    password: str


def _set_session(response: Response, identity: Identity) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=create_session_cookie(identity.model_dump()),
        max_age=SESSION_MAX_AGE,
        httponly=True,
        secure=False,  # set True in prod with HTTPS
        samesite="lax",
        path="/",
    )


@router.post("/register")
async def auth_register(
    body: RegisterRequest,
    response: Response,
    directory: UserDirectory = Depends(get_user_directory),
):
    """Create an account and start a session. The first ledger load awards the registration milestone."""
    identity = directory.register(body.email, body.password, body.display_name, body.specialty)
    _set_session(response, identity)
    return {"user": identity.model_dump()}


@router.post("/login")
async def auth_login(
    body: LoginRequest,
    response: Response,
    directory: UserDirectory = Depends(get_user_directory),
):
    identity = directory.authenticate(body.email, body.password)
    _set_session(response, identity)
    return {"user": identity.model_dump()}


@router.post("/logout")
async def auth_logout(
    response: Response,
    identity: Identity = Depends(get_current_identity),
    sessions: LedgerSessions = Depends(get_ledger_sessions),
):
    sessions.close(identity.user_id)
    response.delete_cookie(SESSION_COOKIE_NAME, path="/")
    return {"status": "ok"}


@router.get("/me")
async def auth_me(identity: Identity = Depends(get_current_identity)):
    """Return current user. Requires session cookie."""
    return identity.model_dump()
