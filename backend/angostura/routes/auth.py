from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, EmailStr
from sqlalchemy.ext.asyncio import AsyncSession

from angostura import auth
from angostura.db import get_session
from angostura.errors import NotAuthenticated, StorageError
from angostura.models import UserProfile
from angostura.routes.deps import bearer_token, get_current_user
from angostura.services import profiles


router = APIRouter(prefix="/auth")


class ProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    full_name: str
    email: str
    phone: str
    age: int
    country_of_residence: str
    city_town_name: str
    is_admin: bool
    is_provider: bool
    created_at: Optional[datetime] = None


class SessionOut(BaseModel):
    token: str
    profile: ProfileOut


class SignUpRequest(BaseModel):
    username: str = ""
    full_name: str = ""
    email: str = ""
    phone: str = ""
    age: int = 18
    country_of_residence: str = ""
    city_town_name: str = ""
    password: str = ""
    confirm_password: str = ""


class SignInRequest(BaseModel):
    email: EmailStr
    password: str


class ProfileUpdate(BaseModel):
    username: str
    full_name: str
    phone: str
    age: int
    country_of_residence: str = ""
    city_town_name: str = ""


class PasswordUpdate(BaseModel):
    new_password: str = ""
    confirm_password: str = ""


@router.post("/signup", response_model=SessionOut, status_code=status.HTTP_201_CREATED)
async def sign_up(payload: SignUpRequest, session: AsyncSession = Depends(get_session)):
    profile = await profiles.sign_up(session, profiles.SignUpForm(**payload.model_dump()))
    token = await auth.open_session(session, profile.id)
    auth.auth_events.publish(auth.SignedIn(profile))
    return SessionOut(token=token, profile=ProfileOut.model_validate(profile))


@router.post("/signin", response_model=SessionOut)
async def sign_in(payload: SignInRequest, session: AsyncSession = Depends(get_session)):
    identity = await auth.authenticate(session, payload.email, payload.password)
    if identity is None:
        raise NotAuthenticated("Invalid email or password")
    profile = await profiles.get_profile(session, identity.id)
    if profile is None:
        # identity without a profile: sign-up was interrupted
        raise StorageError("Your account is incomplete. Please contact support.")
    token = await auth.open_session(session, identity.id)
    auth.auth_events.publish(auth.SignedIn(profile))
    return SessionOut(token=token, profile=ProfileOut.model_validate(profile))


@router.post("/signout", status_code=status.HTTP_204_NO_CONTENT)
async def sign_out(token: Optional[str] = Depends(bearer_token),
                   user: UserProfile = Depends(get_current_user),
                   session: AsyncSession = Depends(get_session)):
    user_id = user.id
    await auth.close_session(session, token)
    auth.auth_events.publish(auth.SignedOut(user_id))
    return None


@router.get("/me", response_model=ProfileOut)
async def me(user: UserProfile = Depends(get_current_user)):
    return user


@router.put("/me", response_model=ProfileOut)
async def update_me(payload: ProfileUpdate,
                    user: UserProfile = Depends(get_current_user),
                    session: AsyncSession = Depends(get_session)):
    return await profiles.update_profile(session, user, profiles.ProfileForm(**payload.model_dump()))


@router.put("/me/password", status_code=status.HTTP_204_NO_CONTENT)
async def update_password(payload: PasswordUpdate,
                          user: UserProfile = Depends(get_current_user),
                          session: AsyncSession = Depends(get_session)):
    await profiles.change_password(session, user.id, profiles.PasswordForm(**payload.model_dump()))
    return None
