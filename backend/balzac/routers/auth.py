"""
Authentication router for Balzac.

Handles registration, login, password changes and resets, and email
verification.
"""

from datetime import timedelta
from typing import Optional, Dict, Any
import logging

from fastapi import APIRouter, Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from balzac.core.config import settings
from balzac.core.database import get_db, utcnow
from balzac.core.exceptions import UpstreamError
from balzac.core.security import (
    verify_password,
    get_password_hash,
    create_access_token,
    verify_token,
    create_email_verification_token,
    create_password_reset_token,
    verify_email_token,
    verify_password_reset_token,
    check_password_strength
)
from balzac.models.user import User
from balzac.schemas.auth import (
    UserRegister,
    Token,
    PasswordChange,
    PasswordReset,
    PasswordResetRequest,
    EmailVerification,
    MessageResponse,
    UserResponse
)
from balzac.services import users as user_service
from balzac.services.email import (
    EmailMessage,
    EmailSender,
    auth_email,
    get_email_sender,
    password_reset_email
)
logger = logging.getLogger(__name__)

router = APIRouter()

# OAuth2 scheme for token authentication
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_STR}/auth/login")


# Dependencies
def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> User:
    """
    Get current authenticated user from JWT token.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Non autorisé",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = verify_token(token)
    if payload is None or payload.get("type") is not None:
        raise credentials_exception

    subject: Optional[str] = payload.get("sub")
    if subject is None or not str(subject).isdigit():
        raise credentials_exception

    user = db.get(User, int(subject))
    if user is None:
        raise credentials_exception

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Compte désactivé"
        )

    return user


def _issue_token(user: User) -> Dict[str, Any]:
    expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = create_access_token(
        subject=str(user.id),
        expires_delta=expires,
        additional_claims={
            "email": user.email,
            "is_admin": user.is_admin,
        }
    )
    return {
        "access_token": access_token,
        "token_type": "bearer",
        "expires_in": int(expires.total_seconds()),
        "force_password_change": user.force_password_change,
    }


def _send_quietly(sender: Optional[EmailSender], to: str, content: Dict[str, str]) -> None:
    if sender is None:
        logger.info(f"Email service not configured, '{content['subject']}' not sent to {to}")
        return
    try:
        sender.send(EmailMessage(to=[to], subject=content["subject"], html=content["html"]))
    except UpstreamError as e:
        logger.error(f"Could not send '{content['subject']}' to {to}: {e.message}")


# Endpoints
@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(
    user_data: UserRegister,
    db: Session = Depends(get_db),
    sender: Optional[EmailSender] = Depends(get_email_sender)
) -> User:
    """
    Register a new learner account.
    """
    email = user_service.check_email(user_data.email)

    if user_service.get_user_by_email(db, email):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Un utilisateur avec cet email existe déjà"
        )

    password_check = check_password_strength(user_data.password)
    if not password_check["valid"]:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=password_check["issues"][0]
        )

    new_user = User(
        email=email,
        hashed_password=get_password_hash(user_data.password),
        is_active=True,
        is_verified=False,
        **{
            field: user_service.sanitize(getattr(user_data, field), limit) or None
            for field, limit in user_service.FIELD_LIMITS.items()
        }
    )
    db.add(new_user)
    db.commit()
    db.refresh(new_user)

    token = create_email_verification_token(new_user.email)
    link = f"{settings.FRONTEND_URL.rstrip('/')}/verify-email?token={token}"
    _send_quietly(sender, new_user.email, auth_email("signup", link, None))

    logger.info(f"User {new_user.id} registered")
    return new_user


@router.post("/login", response_model=Token)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    OAuth2 compatible login endpoint; the username is the email address.
    """
    user = user_service.get_user_by_email(db, form_data.username)

    if not user or not verify_password(form_data.password, user.hashed_password):
        logger.warning(f"Failed login for {form_data.username}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Email ou mot de passe incorrect",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Compte désactivé"
        )

    user.last_login_at = utcnow()
    db.commit()

    return _issue_token(user)


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: User = Depends(get_current_user)
) -> User:
    return current_user


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    password_data: PasswordChange,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Dict[str, str]:
    """
    Change the caller's password. Clears the first-login change flag.
    """
    if not verify_password(password_data.current_password, current_user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Mot de passe actuel incorrect"
        )

    password_check = check_password_strength(password_data.new_password)
    if not password_check["valid"]:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=password_check["issues"][0]
        )

    current_user.hashed_password = get_password_hash(password_data.new_password)
    current_user.force_password_change = False
    db.commit()

    return {"message": "Mot de passe modifié avec succès"}


@router.post("/verify-email", response_model=MessageResponse)
async def verify_email(
    verification: EmailVerification,
    db: Session = Depends(get_db)
) -> Dict[str, str]:
    email = verify_email_token(verification.token)
    if not email:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Lien de vérification invalide ou expiré"
        )

    user = user_service.get_user_by_email(db, email)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Utilisateur introuvable"
        )

    if user.is_verified:
        return {"message": "Email déjà vérifié"}

    user.is_verified = True
    user.email_verified_at = utcnow()
    db.commit()

    return {"message": "Email vérifié avec succès"}


@router.post("/request-password-reset", response_model=MessageResponse)
def request_password_reset(
    request_data: PasswordResetRequest,
    request: Request,
    db: Session = Depends(get_db),
    sender: Optional[EmailSender] = Depends(get_email_sender)
) -> Dict[str, str]:
    """
    Email a reset link. The answer is the same whether the email exists.
    """
    user = user_service.get_user_by_email(db, request_data.email)

    if user and user.is_active:
        reset_token = create_password_reset_token(user.email)
        user.password_reset_token = reset_token
        user.password_reset_at = utcnow()
        db.commit()

        base_url = (request.headers.get("origin") or settings.FRONTEND_URL).rstrip("/")
        _send_quietly(sender, user.email, password_reset_email(f"{base_url}/set-password?token={reset_token}"))

    return {"message": "Si cet email existe, un lien de réinitialisation a été envoyé"}


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    reset_data: PasswordReset,
    db: Session = Depends(get_db)
) -> Dict[str, str]:
    """
    Set a new password from a reset token; each token works once.
    """
    email = verify_password_reset_token(reset_data.token)
    if not email:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Lien de réinitialisation invalide ou expiré"
        )

    user = user_service.get_user_by_email(db, email)
    if not user or user.password_reset_token != reset_data.token:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Lien de réinitialisation invalide ou expiré"
        )

    password_check = check_password_strength(reset_data.new_password)
    if not password_check["valid"]:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=password_check["issues"][0]
        )

    user.hashed_password = get_password_hash(reset_data.new_password)
    user.password_reset_token = None
    user.force_password_change = False
    db.commit()

    logger.info(f"Password reset for user {user.id}")
    return {"message": "Mot de passe réinitialisé avec succès"}
