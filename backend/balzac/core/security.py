"""
Security utilities for the Balzac backend.

Handles password hashing, JWT token creation/verification, and generated
passwords for accounts created by administrators.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
import re
import secrets
import string

from jose import JWTError, jwt
from passlib.context import CryptContext

from .config import settings


pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_LENGTH = 100


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Compare a submitted password with the stored bcrypt hash."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """bcrypt hash stored in ``users.hashed_password``."""
    return pwd_context.hash(password)


def create_access_token(
    subject: str,
    expires_delta: Optional[timedelta] = None,
    additional_claims: Optional[Dict[str, Any]] = None
) -> str:
    """
    Sign a JWT for ``subject``.

    Access tokens carry the user id as ``sub``. Email verification and
    password reset tokens reuse this with the address as subject and a
    ``type`` claim, see the helpers below.
    """
    now = datetime.now(timezone.utc)
    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode = {"exp": expire, "sub": subject, "iat": now}

    if additional_claims:
        to_encode.update(additional_claims)

    return jwt.encode(
        to_encode,
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM
    )


def verify_token(token: str) -> Optional[Dict[str, Any]]:
    """Decoded claims, or None when the signature or expiry check fails."""
    try:
        return jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM]
        )
    except JWTError:
        return None


def create_email_verification_token(email: str) -> str:
    """Create a token for email verification (valid 24 hours)."""
    return create_access_token(
        subject=email,
        expires_delta=timedelta(hours=24),
        additional_claims={"type": "email_verification"}
    )


def create_password_reset_token(email: str) -> str:
    """Create a token for password reset (valid 1 hour)."""
    return create_access_token(
        subject=email,
        expires_delta=timedelta(hours=1),
        additional_claims={"type": "password_reset"}
    )


def _email_from_token(token: str, token_type: str) -> Optional[str]:
    claims = verify_token(token)
    if not claims or claims.get("type") != token_type:
        return None
    return claims.get("sub")


def verify_email_token(token: str) -> Optional[str]:
    """Return the email address of a valid verification token."""
    return _email_from_token(token, "email_verification")


def verify_password_reset_token(token: str) -> Optional[str]:
    return _email_from_token(token, "password_reset")


def generate_temp_password() -> str:
    """Random password for accounts an administrator creates without one."""
    chars = string.ascii_letters + string.digits
    return "temp_" + "".join(secrets.choice(chars) for _ in range(12))


def generate_invite_password(first_name: Optional[str], last_name: Optional[str]) -> str:
    """
    Build the initial password of a bulk-invited learner.

    The password is the first three letters of the first and last names,
    lower-cased and joined by a dot ("jea.dup"). Missing names fall back to
    "abc" and "xyz"; short names are padded with "a".
    """
    clean_first = re.sub(r"[^a-zA-Z]", "", (first_name or "abc").strip().lower())
    clean_last = re.sub(r"[^a-zA-Z]", "", (last_name or "xyz").strip().lower())

    first_part = clean_first[:3].ljust(3, "a")
    last_part = clean_last[:3].ljust(3, "a")
    return f"{first_part}.{last_part}"


def check_password_strength(password: str) -> Dict[str, Any]:
    """
    Check a chosen password against the platform rules.

    Returns:
        Dict[str, Any]: {"valid": bool, "issues": [messages]}
    """
    issues = []

    if len(password) < PASSWORD_MIN_LENGTH or len(password) > PASSWORD_MAX_LENGTH:
        issues.append(
            f"Le mot de passe doit contenir entre {PASSWORD_MIN_LENGTH} "
            f"et {PASSWORD_MAX_LENGTH} caractères"
        )

    if password.strip() != password:
        issues.append("Le mot de passe ne doit pas commencer ou finir par un espace")

    return {
        "valid": len(issues) == 0,
        "issues": issues
    }
