"""
Password accounts stored in the auth_accounts collection.
Errors carry provider codes (auth/email-already-in-use, auth/wrong-password, ...).
"""
import uuid
import logging
from typing import Optional

from email_validator import validate_email, EmailNotValidError
from pymongo.errors import DuplicateKeyError

from app.config.database import Collections
from app.config.settings import settings
from app.database.db_operations import db_ops, server_timestamp
from app.models.user import AuthUser
from app.services.errors import AuthProviderError
from app.utils.auth import hash_password, verify_password

logger = logging.getLogger(__name__)


def _normalize_email(email: str) -> str:
    try:
        return validate_email(email.strip(), check_deliverability=False).normalized.lower()
    except EmailNotValidError as e:
        raise AuthProviderError(AuthProviderError.INVALID_EMAIL, str(e))


def _to_user(account: dict) -> AuthUser:
    return AuthUser(uid=str(account["_id"]), email=account["email"], display_name=account.get("display_name"))


class IdentityProvider:
    async def create_user_with_password(self, email: str, password: str) -> AuthUser:
        email = _normalize_email(email)
        if len(password) < settings.MIN_PASSWORD_LENGTH:
            raise AuthProviderError(
                AuthProviderError.WEAK_PASSWORD,
                f"Password should be at least {settings.MIN_PASSWORD_LENGTH} characters",
            )
        if await db_ops.get_one(Collections.AUTH_ACCOUNTS, {"email": email}):
            raise AuthProviderError(AuthProviderError.EMAIL_ALREADY_IN_USE, "The email address is already in use by another account.")

        uid = uuid.uuid4().hex
        try:
            account = await db_ops.insert(Collections.AUTH_ACCOUNTS, uid, {
                "email": email,
                "password_hash": hash_password(password),
                "display_name": None,
                "created_at": server_timestamp(),
            })
        except DuplicateKeyError:
            # lost a race against another sign-up with the same e-mail
            raise AuthProviderError(AuthProviderError.EMAIL_ALREADY_IN_USE, "The email address is already in use by another account.")
        logger.info("Created account %s for %s", uid, email)
        return _to_user(account)

    async def sign_in_with_password(self, email: str, password: str) -> AuthUser:
        email = _normalize_email(email)
        account = await db_ops.get_one(Collections.AUTH_ACCOUNTS, {"email": email})
        if not account:
            raise AuthProviderError(AuthProviderError.USER_NOT_FOUND, "There is no user record corresponding to this identifier.")
        if not verify_password(password, account.get("password_hash") or ""):
            raise AuthProviderError(AuthProviderError.WRONG_PASSWORD, "The password is invalid.")
        return _to_user(account)

    async def update_profile(self, uid: str, display_name: Optional[str] = None) -> None:
        found = await db_ops.update(Collections.AUTH_ACCOUNTS, uid, {"display_name": display_name})
        if not found:
            raise AuthProviderError(AuthProviderError.USER_NOT_FOUND, f"No account {uid}")
