"""
Authentication email hook.

The auth provider posts here whenever it needs a signup, recovery, magic
link or email change message. The hook must answer 200 in every case,
even when the message could not be sent.
"""

from typing import Any, Dict, Optional
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool

from balzac.core.config import settings
from balzac.services.email import EmailSender, get_email_sender, send_auth_email as deliver_auth_email

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/send-auth-email")
async def send_auth_email(
    request: Request,
    sender: Optional[EmailSender] = Depends(get_email_sender)
) -> Dict[str, Any]:
    try:
        data = await request.json()
        email = data["user"]["email"]
        email_data = data["email_data"] or {}
        if not isinstance(email, str) or not isinstance(email_data, dict):
            raise TypeError("user.email and email_data must be a string and an object")
    except (ValueError, KeyError, TypeError) as e:
        logger.error(f"Malformed auth email hook payload: {e}")
        return {}

    if sender is None:
        logger.error("Auth email hook called but no email service is configured")
        return {}

    logger.info(f"Processing {email_data.get('email_action_type')} email for {email}")
    await run_in_threadpool(deliver_auth_email, sender, email, email_data, settings.FRONTEND_URL)
    return {}
