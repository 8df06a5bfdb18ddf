import logging
from email.message import EmailMessage
from typing import Any, Optional

import aiosmtplib
from email_validator import EmailNotValidError, validate_email

from cinebook.core.config import EMAIL_PASSWORD, EMAIL_USER, SENDER_NAME, SMTP_PORT, SMTP_SERVER

logger = logging.getLogger(__name__)


# ---------------- Email ----------------
async def send_email(to_email: str, subject: str, body: str, html: Optional[str] = None) -> Optional[Any]:
    """Send a message over SMTP. Returns None (and logs) on failure."""
    message = EmailMessage()
    message["From"] = f"{SENDER_NAME} <{EMAIL_USER}>"
    message["To"] = to_email
    message["Subject"] = subject
    message.set_content(body)
    if html:
        message.add_alternative(html, subtype="html")

    try:
        response = await aiosmtplib.send(
            message,
            hostname=SMTP_SERVER,
            port=SMTP_PORT,
            start_tls=True,
            username=EMAIL_USER,
            password=EMAIL_PASSWORD,
        )
        logger.info("Email sent response: %s", response)
        return response
    except Exception as e:
        logger.exception("Failed to send email via SMTP: %s", e)
        return None


# ---------------- Email Validation ----------------
def validate_user_email(email: str) -> str:
    try:
        valid = validate_email(email, check_deliverability=False)
        return valid.normalized
    except EmailNotValidError as e:
        raise ValueError(f"Invalid email: {str(e)}")
