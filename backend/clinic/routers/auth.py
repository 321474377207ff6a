from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from clinic.auth import get_current_user, UserPrincipal
from clinic.config import get_settings
from clinic.database import get_db
from clinic.exceptions import NotFoundError
from clinic.models.account import Account
from clinic.responses import success
from clinic.schemas.auth import AccountResponse, SendOtpRequest, TokenResponse, VerifyOtpRequest
from clinic.services.auth_service import auth_service
from clinic.services.email_service import EmailService, get_email_service
from clinic.services.otp_service import otp_rate_limiter

router = APIRouter()


def client_address(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def limit_otp_requests(request: Request) -> None:
    """Fails fast with 429 once a client exceeds its issuance budget."""
    otp_rate_limiter.hit(client_address(request))


@router.post("/send-otp", dependencies=[Depends(limit_otp_requests)])
async def send_otp(
    body: SendOtpRequest,
    db: AsyncSession = Depends(get_db),
    mailer: EmailService = Depends(get_email_service),
):
    """
    Email a 6-digit login code.
    Body: {"email": "doc@example.com", "role_hint": "doctor"}
    """
    email = body.email.strip()
    await auth_service.send_code(db, email, body.role_hint, mailer)
    return success(
        "Verification code sent to your email",
        expires_in=get_settings().otp_ttl_seconds,
    )


@router.post("/verify-otp")
async def verify_otp(body: VerifyOtpRequest, db: AsyncSession = Depends(get_db)):
    """Exchange a valid code for a session token."""
    account, token = await auth_service.verify_code(
        db, body.email.strip(), body.code.strip(), body.role_hint
    )
    data = TokenResponse(
        token=token,
        expires_in=get_settings().token_expire_seconds,
        user=AccountResponse.model_validate(account),
    )
    return success("Login successful", data)


@router.get("/me")
async def me(
    db: AsyncSession = Depends(get_db),
    current_user: UserPrincipal = Depends(get_current_user),
):
    account = await db.scalar(select(Account).where(Account.id == current_user.account_id))
    if account is None:
        raise NotFoundError("Account not found")
    return success("Account retrieved", AccountResponse.model_validate(account))
