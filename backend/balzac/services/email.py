"""
Transactional email through the Resend HTTP API.

Templates are static French HTML; only links, codes and the recipient's
role are substituted. Values coming from requests are HTML-escaped.
"""

from dataclasses import dataclass
from html import escape
from typing import Any, Dict, List, Optional
import logging

import httpx

from balzac.core.config import settings
from balzac.core.exceptions import UpstreamError

logger = logging.getLogger(__name__)

BUTTON_STYLE = (
    "background-color: #4F46E5; color: white; padding: 12px 30px; "
    "text-decoration: none; border-radius: 6px; font-weight: bold;"
)
ADMIN_SENDER = "Administration <noreply@balzac.education>"


@dataclass
class EmailMessage:
    to: List[str]
    subject: str
    html: str
    sender: Optional[str] = None


class EmailSender:
    """
    Posts messages to the Resend API.
    """

    def __init__(self, api_key: str, api_url: str, default_sender: str, timeout: float = 10.0):
        self.api_key = api_key
        self.api_url = api_url
        self.default_sender = default_sender
        self.timeout = timeout

    def send(self, message: EmailMessage) -> Dict[str, Any]:
        """
        Send one message and return the provider's response body.

        Raises:
            UpstreamError: The provider refused the message or was unreachable
        """
        payload = {
            "from": message.sender or self.default_sender,
            "to": message.to,
            "subject": message.subject,
            "html": message.html,
        }
        try:
            response = httpx.post(
                self.api_url,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            logger.error(f"Email provider unreachable: {e}")
            raise UpstreamError(f"Erreur lors de l'envoi de l'email: {e}")

        if response.is_error:
            logger.error(f"Error sending email to {message.to}: {response.text}")
            raise UpstreamError(response.text or "Erreur lors de l'envoi de l'email")

        logger.info(f"Email '{message.subject}' sent to {', '.join(message.to)}")
        return response.json()


def get_email_sender() -> Optional[EmailSender]:
    """FastAPI dependency returning the configured sender, or None."""
    if not settings.emails_enabled:
        return None
    return EmailSender(
        api_key=settings.RESEND_API_KEY,
        api_url=settings.RESEND_API_URL,
        default_sender=settings.EMAILS_FROM,
        timeout=settings.EMAIL_TIMEOUT_SECONDS,
    )


def require_sender(sender: Optional[EmailSender]) -> EmailSender:
    if sender is None:
        raise UpstreamError("Service d'email non configuré")
    return sender


def _layout(title: str, body: str) -> str:
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">'
        f'<h1 style="color: #333; text-align: center;">{title}</h1>'
        f"{body}"
        "</div>"
    )


def _button(link: str, label: str) -> str:
    return (
        '<div style="text-align: center; margin: 30px 0;">'
        f'<a href="{escape(link)}" style="{BUTTON_STYLE}">{label}</a>'
        "</div>"
    )


def auth_email(action_type: str, verification_link: str, token: Optional[str]) -> Dict[str, str]:
    """
    Subject and HTML of an authentication email.

    ``action_type`` is the auth provider's email action: signup, recovery,
    magiclink, email_change; anything else gets the generic template.
    """
    code = escape(token or "")

    if action_type == "signup":
        subject = "Confirmez votre inscription"
        html = _layout(
            "Bienvenue !",
            '<p style="color: #666; font-size: 16px;">Merci de vous être inscrit. '
            "Pour activer votre compte, veuillez cliquer sur le bouton ci-dessous :</p>"
            + _button(verification_link, "Confirmer mon inscription")
            + f'<p style="color: #999; font-size: 14px;">Ou copiez ce code de vérification : <strong>{code}</strong></p>'
            '<p style="color: #999; font-size: 12px;">Si vous n\'avez pas créé de compte, vous pouvez ignorer cet email.</p>'
        )
    elif action_type in ("recovery", "magiclink"):
        subject = "Réinitialisez votre mot de passe"
        html = _layout(
            "Réinitialisation du mot de passe",
            '<p style="color: #666; font-size: 16px;">Vous avez demandé à réinitialiser votre mot de passe. '
            "Cliquez sur le bouton ci-dessous pour continuer :</p>"
            + _button(verification_link, "Réinitialiser mon mot de passe")
            + f'<p style="color: #999; font-size: 14px;">Ou copiez ce code : <strong>{code}</strong></p>'
            '<p style="color: #999; font-size: 12px;">Si vous n\'avez pas demandé cette réinitialisation, ignorez cet email.</p>'
        )
    elif action_type == "email_change":
        subject = "Confirmez votre nouvelle adresse email"
        html = _layout(
            "Changement d'email",
            '<p style="color: #666; font-size: 16px;">Cliquez sur le bouton ci-dessous pour confirmer '
            "votre nouvelle adresse email :</p>"
            + _button(verification_link, "Confirmer le changement")
            + '<p style="color: #999; font-size: 12px;">Si vous n\'avez pas demandé ce changement, ignorez cet email.</p>'
        )
    else:
        subject = "Vérification de votre compte"
        html = _layout(
            "Vérification",
            '<p style="color: #666; font-size: 16px;">Cliquez sur le bouton ci-dessous pour vérifier votre compte :</p>'
            + _button(verification_link, "Vérifier")
        )

    return {"subject": subject, "html": html}


def admin_invitation_email(
    email: str,
    is_super_admin: bool,
    temporary_password: Optional[str],
    is_new_user: bool
) -> Dict[str, str]:
    role = "Super Administrateur" if is_super_admin else "Administrateur"
    login_button = _button(f"{settings.FRONTEND_URL.rstrip('/')}/auth", "Se connecter à la plateforme")
    signature = (
        '<p style="color: #6c757d; font-size: 14px;">Équipe technique<br>Plateforme de certification</p>'
    )

    if is_new_user:
        subject = "Accès administrateur - Plateforme de certification"
        html = _layout(
            "Bienvenue sur la plateforme d'administration",
            "<p>Bonjour,</p>"
            f"<p>Vous avez été désigné comme <strong>{role}</strong> sur notre plateforme de certification.</p>"
            '<div style="background-color: #f8f9fa; padding: 20px; border-radius: 8px; margin: 20px 0;">'
            '<h3 style="margin-top: 0; color: #6366f1;">Vos informations de connexion :</h3>'
            f"<p><strong>Email :</strong> {escape(email)}</p>"
            f"<p><strong>Mot de passe temporaire :</strong> <code>{escape(temporary_password or '')}</code></p>"
            "</div>"
            "<p>Pour des raisons de sécurité, vous devrez <strong>changer ce mot de passe</strong> "
            "lors de votre première connexion.</p>"
            + login_button
            + '<p style="color: #6c757d; font-size: 14px;">Si vous n\'avez pas demandé cet accès, veuillez ignorer '
            "ce message ou contacter l'administrateur principal.</p>"
            + signature
        )
    else:
        subject = "Droits d'administration accordés"
        html = _layout(
            "Droits d'administration accordés",
            "<p>Bonjour,</p>"
            f"<p>Votre compte a été promu <strong>{role}</strong> sur notre plateforme de certification.</p>"
            "<p>Vous pouvez désormais accéder à l'interface d'administration avec vos identifiants habituels.</p>"
            + login_button
            + '<p style="color: #6c757d; font-size: 14px;">Si vous n\'avez pas demandé cet accès, veuillez contacter '
            "l'administrateur principal immédiatement.</p>"
            + signature
        )

    return {"subject": subject, "html": html}


def password_reset_email(reset_link: str) -> Dict[str, str]:
    return auth_email("recovery", reset_link, None)


def send_auth_email(sender: EmailSender, email: str, email_data: Dict[str, Any], verify_base_url: str) -> bool:
    """
    Render and send an auth hook email.

    Failures are logged and reported as False; the auth hook contract
    requires a successful response in every case.
    """
    action_type = email_data.get("email_action_type") or ""
    verification_link = (
        f"{verify_base_url.rstrip('/')}/auth/verify"
        f"?token={email_data.get('token_hash') or ''}"
        f"&type={action_type}"
        f"&redirect_to={email_data.get('redirect_to') or ''}"
    )
    content = auth_email(action_type, verification_link, email_data.get("token"))

    try:
        sender.send(EmailMessage(to=[email], subject=content["subject"], html=content["html"]))
    except UpstreamError as e:
        logger.error(f"Error in auth email hook for {email}: {e.message}")
        return False
    return True
