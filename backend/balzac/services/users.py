"""
Account management performed by administrators.

Covers adding a single learner, bulk invitations, deletion, password
resets and administrator invitations.
"""

from typing import Any, Dict, List, Optional
import logging
import re

from sqlalchemy.orm import Session

from balzac.core.config import settings
from balzac.core.database import utcnow
from balzac.core.exceptions import BalzacError, ConflictError, NotFoundError, ValidationFailed
from balzac.core.security import (
    PASSWORD_MAX_LENGTH,
    PASSWORD_MIN_LENGTH,
    create_password_reset_token,
    generate_invite_password,
    generate_temp_password,
    get_password_hash,
)
from balzac.models.admin import AdminAction, AdminLog, Administrator
from balzac.models.user import User
from balzac.services.email import (
    ADMIN_SENDER,
    EmailMessage,
    EmailSender,
    admin_invitation_email,
    password_reset_email,
)

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
EMAIL_MAX_LENGTH = 255

# Column widths of the profile fields
FIELD_LIMITS = {
    "first_name": 100,
    "last_name": 100,
    "school": 200,
    "class_name": 100,
    "city": 100,
}


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def sanitize(value: Optional[str], max_length: int) -> str:
    """Trim a free-text field and cut it to the column width."""
    return (value or "").strip()[:max_length]


def check_email(email: Optional[str]) -> str:
    """
    Validate and normalize an email address.

    Raises:
        ValidationFailed: Missing, malformed or too long
    """
    normalized = normalize_email(email)
    if not normalized:
        raise ValidationFailed("Email requis")
    if len(normalized) > EMAIL_MAX_LENGTH or not EMAIL_PATTERN.match(normalized):
        raise ValidationFailed("Format d'email invalide")
    return normalized


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == normalize_email(email)).first()


def _profile(data: Dict[str, Any]) -> Dict[str, str]:
    return {
        field: sanitize(data.get(field), limit)
        for field, limit in FIELD_LIMITS.items()
    }


def add_learner(
    db: Session,
    admin: User,
    email: Optional[str],
    password: Optional[str] = None,
    profile: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Create one learner account.

    Without a password a temporary one is generated and the learner must
    change it at first login.

    Raises:
        ValidationFailed: Bad email or password length
        ConflictError: Email already registered
    """
    normalized = check_email(email)
    if password and not (PASSWORD_MIN_LENGTH <= len(password) <= PASSWORD_MAX_LENGTH):
        raise ValidationFailed(
            f"Le mot de passe doit contenir entre {PASSWORD_MIN_LENGTH} "
            f"et {PASSWORD_MAX_LENGTH} caractères"
        )

    if get_user_by_email(db, normalized):
        raise ConflictError("Un utilisateur avec cet email existe déjà")

    user = User(
        email=normalized,
        hashed_password=get_password_hash(password or generate_temp_password()),
        is_active=True,
        is_verified=True,
        email_verified_at=utcnow(),
        force_password_change=not password,
        **_profile(profile or {})
    )
    db.add(user)
    db.flush()

    db.add(AdminLog.log_action(
        user_id=admin.id,
        action=AdminAction.CREATE,
        entity_type="user",
        entity_id=user.id,
        details={"email": normalized}
    ))
    db.commit()
    db.refresh(user)

    logger.info(f"Learner {user.id} ({normalized}) added by admin {admin.id}")
    return {
        "success": True,
        "user_id": user.id,
        "email": normalized,
        "message": (
            "Utilisateur créé avec mot de passe" if password
            else "Utilisateur créé avec mot de passe temporaire, devra le changer à la première connexion"
        ),
    }


def _invite_one(db: Session, data: Dict[str, Any]) -> Dict[str, Any]:
    email = normalize_email(data.get("email"))
    try:
        email = check_email(email)
    except ValidationFailed as e:
        return {"email": email, "success": False, "error": e.message}

    if get_user_by_email(db, email):
        return {
            "email": email,
            "success": False,
            "error": "Un utilisateur avec cet email existe déjà dans le système",
        }

    profile = _profile(data)
    generated_password = generate_invite_password(profile["first_name"], profile["last_name"])
    user = User(
        email=email,
        hashed_password=get_password_hash(generated_password),
        is_active=True,
        is_verified=True,
        email_verified_at=utcnow(),
        force_password_change=True,
        **profile
    )
    db.add(user)
    db.flush()

    return {
        "email": email,
        "success": True,
        "user_id": user.id,
        "generated_password": generated_password,
        "message": "Utilisateur créé avec mot de passe temporaire",
    }


def invite_users(db: Session, admin: User, users: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Create learner accounts in bulk.

    Each entry is handled on its own; a failing entry is reported in its
    result and does not stop the others.
    """
    if not isinstance(users, list):
        raise ValidationFailed("Format de données invalide")

    results = [_invite_one(db, data) for data in users]
    success_count = sum(1 for result in results if result["success"])

    db.add(AdminLog.log_action(
        user_id=admin.id,
        action=AdminAction.BULK_OPERATION,
        entity_type="user",
        details={"invited": success_count, "requested": len(users)}
    ))
    db.commit()

    logger.info(f"Admin {admin.id} invited {success_count}/{len(users)} users")
    return {
        "results": results,
        "summary": {
            "total": len(users),
            "success": success_count,
            "errors": len(results) - success_count,
        },
    }


def delete_user(db: Session, admin: User, user_id: int) -> Dict[str, Any]:
    """Delete an account with everything it owns. Unknown ids succeed."""
    if user_id == admin.id:
        raise ValidationFailed("Vous ne pouvez pas supprimer votre propre compte")

    user = db.get(User, user_id)
    if user is None:
        logger.info(f"User {user_id} not found, already deleted")
    else:
        db.delete(user)

    db.add(AdminLog.log_action(
        user_id=admin.id,
        action=AdminAction.DELETE,
        entity_type="user",
        entity_id=user_id,
        details={"found": user is not None}
    ))
    db.commit()

    logger.info(f"User {user_id} deleted by admin {admin.id}")
    return {"success": True, "message": "User deleted successfully"}


def admin_reset_password(
    db: Session,
    admin: User,
    sender: EmailSender,
    email: Optional[str],
    origin: Optional[str] = None
) -> Dict[str, Any]:
    """
    Email a password reset link to a user on an administrator's request.

    Raises:
        ValidationFailed: Missing email
        NotFoundError: Unknown user
    """
    normalized = normalize_email(email)
    if not normalized:
        raise ValidationFailed("Email requis")

    user = get_user_by_email(db, normalized)
    if user is None:
        raise NotFoundError("Utilisateur introuvable")

    token = create_password_reset_token(user.email)
    user.password_reset_token = token
    user.password_reset_at = utcnow()

    base_url = (origin or settings.FRONTEND_URL).rstrip("/")
    content = password_reset_email(f"{base_url}/set-password?token={token}")
    sender.send(EmailMessage(to=[user.email], subject=content["subject"], html=content["html"]))

    db.add(AdminLog.log_action(
        user_id=admin.id,
        action=AdminAction.RESET_PASSWORD,
        entity_type="user",
        entity_id=user.id
    ))
    db.commit()

    logger.info(f"Password reset sent to {user.email} by admin {admin.id}")
    return {"success": True, "message": f"Email de réinitialisation envoyé à {user.email}"}


def send_admin_invitation(
    db: Session,
    admin: User,
    sender: EmailSender,
    email: Optional[str],
    is_super_admin: bool = False,
    temporary_password: Optional[str] = None
) -> Dict[str, Any]:
    """
    Grant administrator rights to an email address and notify it.

    A missing account is created with the temporary password (or a
    generated one) and must change it at first login.

    Raises:
        BalzacError: 422 when the user is already an administrator
    """
    normalized = check_email(email)
    user = get_user_by_email(db, normalized)
    is_new_user = user is None

    if user is not None and user.administrator is not None:
        raise BalzacError("Cet utilisateur est déjà administrateur", status_code=422)

    password = temporary_password or generate_temp_password()
    if is_new_user:
        user = User(
            email=normalized,
            hashed_password=get_password_hash(password),
            is_active=True,
            is_verified=True,
            email_verified_at=utcnow(),
            force_password_change=True
        )
        db.add(user)
        db.flush()

    db.add(Administrator(user_id=user.id, is_super_admin=is_super_admin))
    db.flush()

    content = admin_invitation_email(normalized, is_super_admin, password, is_new_user)
    response = sender.send(EmailMessage(
        to=[normalized],
        subject=content["subject"],
        html=content["html"],
        sender=ADMIN_SENDER
    ))

    db.add(AdminLog.log_action(
        user_id=admin.id,
        action=AdminAction.INVITE,
        entity_type="administrator",
        entity_id=user.id,
        details={"email": normalized, "is_super_admin": is_super_admin, "new_user": is_new_user}
    ))
    db.commit()

    logger.info(f"Admin invitation sent to {normalized} by {admin.id} (super={is_super_admin})")
    return {
        "success": True,
        "message": "Email d'invitation envoyé avec succès",
        "email_id": (response or {}).get("id"),
    }


def count_users(db: Session) -> int:
    return db.query(User).count()
