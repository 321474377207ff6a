import logging
import uuid
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from clinic.auth import create_token
from clinic.database import utcnow
from clinic.exceptions import ClinicError, DependencyFailure, EmailDeliveryError, ValidationError
from clinic.models.account import Account
from clinic.services.email_service import EmailService
from clinic.services.otp_service import OtpStore, generate_code, is_valid_email, otp_store

logger = logging.getLogger(__name__)

DEFAULT_ROLE = "doctor"


async def upsert_account(db: AsyncSession, email: str, role: Optional[str] = None) -> Account:
    """Return the account for `email`, creating it with `role` (default doctor) if absent."""
    account = await db.scalar(select(Account).where(Account.email == email))
    if account is None:
        account = Account(id=str(uuid.uuid4()), email=email, role=role or DEFAULT_ROLE)
        db.add(account)
        await db.flush()
        logger.info("Created %s account for %s", account.role, email)
    return account


class AuthService:
    def __init__(self, store: OtpStore):
        self.store = store

    async def send_code(
        self,
        db: AsyncSession,
        email: str,
        role_hint: Optional[str],
        mailer: EmailService,
    ) -> None:
        """
        Issue a fresh code for `email`.

        The code becomes live only after the email went out; a failed delivery
        leaves the store untouched and raises DependencyFailure.
        """
        if not is_valid_email(email):
            raise ValidationError("Valid email address is required")

        role = role_hint or DEFAULT_ROLE
        code = generate_code()
        try:
            await mailer.send_otp(email, code)
        except EmailDeliveryError as e:
            logger.error("Failed to send verification code to %s: %s %s", email, e.reason, e.details)
            raise DependencyFailure("Failed to send verification code. Please try again.")

        self.store.put(email, code, role)
        await upsert_account(db, email, role)
        logger.info("Issued verification code for %s", email)

    async def verify_code(
        self,
        db: AsyncSession,
        email: str,
        code: str,
        role_hint: Optional[str] = None,
    ) -> tuple[Account, str]:
        """Consume the code for `email` and return the account with a new session token."""
        if not email or not code:
            raise ValidationError("Email and OTP are required")

        try:
            entry = self.store.verify(email, code)
        except ClinicError as e:
            logger.info("Verification failed for %s: %s", email, type(e).__name__)
            raise

        account = await upsert_account(db, email, role_hint or entry.role_hint)
        account.last_login = utcnow()
        await db.flush()

        token = create_token(account)
        logger.info("Login successful for %s", email)
        return account, token


auth_service = AuthService(otp_store)
