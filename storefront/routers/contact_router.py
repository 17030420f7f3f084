import logging
import smtplib

from fastapi import APIRouter, HTTPException

from ..emailer import send_contact_message
from ..errors import ValidationError
from ..schemas import ContactMessage, parse_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/contact", tags=["contact"])


@router.post("/send")
def send_contact_email(body: ContactMessage):
    if not body.name or not body.email or not body.message:
        raise ValidationError("Name, email and message are required")
    email = parse_email(body.email)
    if not email:
        raise ValidationError("Invalid email format")

    try:
        send_contact_message(
            name=body.name,
            email=email,
            message=body.message,
            phone=body.phone,
        )
    except (smtplib.SMTPException, OSError):
        logger.exception("Failed to send contact email from %s", email)
        raise HTTPException(status_code=500, detail="Internal server error while sending the message")

    return {"message": "Message sent successfully! You will receive a confirmation email."}
