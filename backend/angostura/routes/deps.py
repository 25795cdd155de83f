from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from angostura import auth
from angostura.db import get_session
from angostura.errors import Forbidden, NotAuthenticated
from angostura.models import UserProfile
from angostura.services.profiles import get_profile

bearer = HTTPBearer(auto_error=False)


def bearer_token(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer)) -> Optional[str]:
    if credentials is None or credentials.scheme.lower() != "bearer":
        return None
    return credentials.credentials


async def get_optional_user(token: Optional[str] = Depends(bearer_token),
                            session: AsyncSession = Depends(get_session)) -> Optional[UserProfile]:
    if token is None:
        return None
    user_id = await auth.resolve_session(session, token)
    if user_id is None:
        return None
    return await get_profile(session, user_id)


async def get_current_user(user: Optional[UserProfile] = Depends(get_optional_user)) -> UserProfile:
    if user is None:
        raise NotAuthenticated()
    return user


async def require_admin(user: UserProfile = Depends(get_current_user)) -> UserProfile:
    if not user.is_admin:
        raise Forbidden("Administrator access required")
    return user


async def require_provider(user: UserProfile = Depends(get_current_user)) -> UserProfile:
    if not user.is_provider:
        raise Forbidden("Provider access required")
    return user
