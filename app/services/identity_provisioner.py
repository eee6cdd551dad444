"""
Identity provisioning during checkout: turn (name, email, password) into an
account without a separate registration step.

- new e-mail: create the account, set its display name, write users/{uid}
- known e-mail, same password: sign in and reuse the account (profile untouched)
- known e-mail, other password: RegistrationError(conflict=True)
"""
import logging
from typing import Optional

from app.config.database import Collections
from app.config.settings import settings
from app.database.db_operations import db_ops, server_timestamp
from app.models.user import UserProfile
from app.services.errors import AuthProviderError, RegistrationError
from app.services.identity_provider import IdentityProvider
from app.services.notifier import Notifier
from app.utils.helpers import to_local_isoformat

logger = logging.getLogger(__name__)

CONFLICT_MESSAGE = "Email sudah terdaftar dengan password berbeda. Silakan login."


class IdentityProvisioner:
    def __init__(self, provider: Optional[IdentityProvider] = None, notifier: Optional[Notifier] = None):
        self.provider = provider or IdentityProvider()
        self.notifier = notifier or Notifier()

    async def provision(self, email: str, password: str, name: str, phone: str) -> str:
        """Return the account id for this booker, creating the account if needed"""
        try:
            user = await self.provider.create_user_with_password(email, password)
        except AuthProviderError as e:
            if e.code == AuthProviderError.EMAIL_ALREADY_IN_USE:
                return await self._sign_in_existing(email, password)
            self.notifier.error(f"Gagal mendaftar: {e.message}")
            raise RegistrationError(e.message) from e

        try:
            await self.provider.update_profile(user.uid, display_name=name)
            profile = UserProfile(
                email=user.email,
                display_name=name,
                role=settings.CUSTOMER_ROLE,
                phone=phone,
                created_at=to_local_isoformat(server_timestamp()),
            )
            await db_ops.create_if_absent(Collections.USERS, user.uid, profile.model_dump(by_alias=True))
        except Exception as e:
            logger.error("Account %s created but profile setup failed: %s", user.uid, e)
            self.notifier.error(f"Gagal mendaftar: {e}")
            raise RegistrationError(str(e)) from e

        self.notifier.success("Akun Anda berhasil dibuat! Selamat datang di Sultanah Travel 🕋")
        return user.uid

    async def _sign_in_existing(self, email: str, password: str) -> str:
        try:
            user = await self.provider.sign_in_with_password(email, password)
        except AuthProviderError as e:
            logger.warning("Sign-in for already registered %s failed: %s", email, e.code)
            self.notifier.error(CONFLICT_MESSAGE)
            raise RegistrationError(CONFLICT_MESSAGE, conflict=True) from e
        self.notifier.info("Email sudah terdaftar. Login otomatis...")
        return user.uid
