import logging
import re
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from angostura import auth
from angostura.db import is_unique_violation
from angostura.errors import FieldValidationError, StorageError
from angostura.forms import FormErrors
from angostura.models import UserProfile

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^\+?[\d\s\-()]{10,}$")
MIN_USERNAME_LENGTH = 3
MIN_AGE = 13
MAX_AGE = 120
MIN_PASSWORD_LENGTH = 6


@dataclass
class SignUpForm:
    username: str
    full_name: str
    email: str
    phone: str
    age: int
    password: str
    confirm_password: str
    country_of_residence: str = ""
    city_town_name: str = ""


@dataclass
class SignUpErrors(FormErrors):
    username: Optional[str] = None
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    age: Optional[str] = None
    password: Optional[str] = None
    confirm_password: Optional[str] = None


@dataclass
class ProfileForm:
    username: str
    full_name: str
    phone: str
    age: int
    country_of_residence: str = ""
    city_town_name: str = ""


@dataclass
class ProfileErrors(FormErrors):
    username: Optional[str] = None
    full_name: Optional[str] = None
    phone: Optional[str] = None
    age: Optional[str] = None


@dataclass
class PasswordForm:
    new_password: str
    confirm_password: str


@dataclass
class PasswordErrors(FormErrors):
    new_password: Optional[str] = None
    confirm_password: Optional[str] = None


def _username_error(username: str) -> Optional[str]:
    if not username.strip():
        return "Username is required"
    if len(username) < MIN_USERNAME_LENGTH:
        return f"Username must be at least {MIN_USERNAME_LENGTH} characters"
    return None


def _phone_error(phone: str) -> Optional[str]:
    if not phone.strip():
        return "Phone number is required"
    if not PHONE_RE.match(phone):
        return "Please enter a valid phone number"
    return None


def _age_error(age: int) -> Optional[str]:
    if not MIN_AGE <= age <= MAX_AGE:
        return f"Age must be between {MIN_AGE} and {MAX_AGE}"
    return None


def _password_error(password: str, required: str) -> Optional[str]:
    if not password:
        return required
    if len(password) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    return None


def validate_sign_up(form: SignUpForm) -> SignUpErrors:
    errors = SignUpErrors(
        username=_username_error(form.username),
        phone=_phone_error(form.phone),
        age=_age_error(form.age),
        password=_password_error(form.password, "Password is required"),
    )
    if not form.full_name.strip():
        errors.full_name = "Full name is required"
    if not form.email.strip():
        errors.email = "Email is required"
    elif not EMAIL_RE.match(form.email.strip()):
        errors.email = "Please enter a valid email address"
    if form.password != form.confirm_password:
        errors.confirm_password = "Passwords do not match"
    return errors


def validate_profile(form: ProfileForm) -> ProfileErrors:
    errors = ProfileErrors(
        username=_username_error(form.username),
        phone=_phone_error(form.phone),
        age=_age_error(form.age),
    )
    if not form.full_name.strip():
        errors.full_name = "Full name is required"
    return errors


def validate_password(form: PasswordForm) -> PasswordErrors:
    errors = PasswordErrors(new_password=_password_error(form.new_password, "New password is required"))
    if form.new_password != form.confirm_password:
        errors.confirm_password = "Passwords do not match"
    return errors


async def get_profile(session: AsyncSession, user_id: int) -> Optional[UserProfile]:
    res = await session.execute(select(UserProfile).where(UserProfile.id == user_id))
    return res.scalars().first()


async def _username_taken(session: AsyncSession, username: str, exclude_id: Optional[int] = None) -> bool:
    q = select(UserProfile.id).where(UserProfile.username == username)
    if exclude_id is not None:
        q = q.where(UserProfile.id != exclude_id)
    res = await session.execute(q)
    return res.scalar() is not None


async def sign_up(session: AsyncSession, form: SignUpForm) -> UserProfile:
    """Create the auth identity and its profile in one transaction."""
    errors = validate_sign_up(form)
    if not errors.is_valid():
        raise FieldValidationError(errors)

    # Fast pre-check to provide nicer errors, then rely on unique indexes for races
    if await auth.find_identity(session, form.email):
        raise FieldValidationError(SignUpErrors(email="Email already registered"))
    if await _username_taken(session, form.username.strip()):
        raise FieldValidationError(SignUpErrors(username="Username already exists"))

    try:
        identity = await auth.create_identity(session, form.email, form.password)
        profile = UserProfile(
            id=identity.id,
            username=form.username.strip(),
            full_name=form.full_name.strip(),
            email=identity.email,
            phone=form.phone.strip(),
            age=form.age,
            country_of_residence=form.country_of_residence.strip(),
            city_town_name=form.city_town_name.strip(),
            is_admin=False,
            is_provider=False,
        )
        session.add(profile)
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        if is_unique_violation(exc):
            # Handle race: another request took the email or username after the pre-check
            raise FieldValidationError(SignUpErrors(username="Username or email already exists")) from exc
        logger.exception("Sign-up failed for %s", form.email)
        raise StorageError() from exc
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.exception("Sign-up failed for %s", form.email)
        raise StorageError() from exc

    await session.refresh(profile)
    return profile


async def update_profile(session: AsyncSession, profile: UserProfile, form: ProfileForm) -> UserProfile:
    """Email, is_admin and is_provider are not editable here."""
    errors = validate_profile(form)
    if not errors.is_valid():
        raise FieldValidationError(errors)

    profile_id = profile.id
    if await _username_taken(session, form.username.strip(), exclude_id=profile_id):
        raise FieldValidationError(ProfileErrors(username="Username already exists"))

    profile.username = form.username.strip()
    profile.full_name = form.full_name.strip()
    profile.phone = form.phone.strip()
    profile.age = form.age
    profile.country_of_residence = form.country_of_residence.strip()
    profile.city_town_name = form.city_town_name.strip()
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        if is_unique_violation(exc):
            raise FieldValidationError(ProfileErrors(username="Username already exists")) from exc
        logger.exception("Profile update failed for user %s", profile_id)
        raise StorageError() from exc
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.exception("Profile update failed for user %s", profile_id)
        raise StorageError() from exc

    await session.refresh(profile)
    return profile


async def change_password(session: AsyncSession, user_id: int, form: PasswordForm) -> None:
    errors = validate_password(form)
    if not errors.is_valid():
        raise FieldValidationError(errors)
    try:
        await auth.set_password(session, user_id, form.new_password)
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.exception("Password update failed for user %s", user_id)
        raise StorageError() from exc
