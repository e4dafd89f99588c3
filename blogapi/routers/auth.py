import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.database import get_db
from ..core.email import Mailer
from ..core.errors import Conflict, Unauthorized, Forbidden, NotFound
from ..core.security import (
    verify_password,
    get_password_hash,
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    token_claims,
    get_current_user,
)
from ..dependencies import get_mailer
from ..models.otp import CodePurpose
from ..models.user import User
from ..schemas.auth import (
    RegisterRequest,
    LoginRequest,
    RefreshRequest,
    ProfileUpdate,
    ForgotPasswordRequest,
    ResetPasswordRequest,
)
from ..schemas.common import ok, dump
from ..schemas.user import UserOut
from ..services.verification import issue_code, redeem_code, normalize_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _session_payload(user: User) -> dict:
    claims = token_claims(user)
    return {
        "user": {"id": user.id, "email": user.email, "name": user.name, "role": user.role, "image": user.image},
        "accessToken": create_access_token(claims),
        "refreshToken": create_refresh_token(claims),
    }


@router.post("/register", status_code=201)
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    email = normalize_email(payload.email)
    if db.query(User).filter(User.email == email).first():
        raise Conflict("User with this email already exists")
    user = User(
        email=email,
        password_hash=get_password_hash(payload.password),
        name=payload.name.strip(),
        role=payload.role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Registered %s user %s", user.role, user.email)
    return ok(_session_payload(user), "User registered successfully")


@router.post("/login")
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == normalize_email(payload.email)).first()
    if not user:
        raise Unauthorized("Invalid email or password")
    if not user.is_active:
        raise Forbidden("Account is disabled")
    if not verify_password(payload.password, user.password_hash):
        raise Unauthorized("Invalid email or password")
    return ok(_session_payload(user), "Login successful")


@router.post("/refresh-token")
def refresh_token(payload: RefreshRequest, db: Session = Depends(get_db)):
    claims = decode_refresh_token(payload.refresh_token)
    if claims is None:
        raise Unauthorized("Invalid or expired refresh token")
    user = db.get(User, int(claims["sub"]))
    if not user or not user.is_active:
        raise Unauthorized("Invalid or expired refresh token")
    return ok({"accessToken": create_access_token(token_claims(user))}, "Token refreshed successfully")


@router.get("/profile")
def get_profile(user: User = Depends(get_current_user)):
    return ok(dump(UserOut, user))


@router.put("/profile")
def update_profile(
    payload: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(user, field, value)
    db.commit()
    db.refresh(user)
    return ok(dump(UserOut, user), "Profile updated successfully")


@router.post("/forgot-password")
async def forgot_password(
    payload: ForgotPasswordRequest,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    """Email a password reset code. The answer is the same whether or not the account exists."""
    email = normalize_email(payload.email)
    user = db.query(User).filter(User.email == email).first()
    if user and user.is_active:
        await issue_code(db, mailer, email, CodePurpose.PASSWORD_RESET)
    else:
        logger.info("Password reset requested for unknown or inactive account %s", email)
    return ok({"email": email}, "If the account exists, a reset code has been sent to the email address")


@router.post("/reset-password")
def reset_password(payload: ResetPasswordRequest, db: Session = Depends(get_db)):
    email = normalize_email(payload.email)
    redeem_code(db, email, CodePurpose.PASSWORD_RESET, payload.otp)
    user = db.query(User).filter(User.email == email).first()
    if not user:
        raise NotFound("User not found")
    user.password_hash = get_password_hash(payload.new_password)
    db.commit()
    logger.info("Password reset for %s", email)
    return ok(message="Password reset successful")
