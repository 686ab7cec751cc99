"""
Send the premium receipt email after a payment grants premium.
Uses Resend if RESEND_API_KEY is set; otherwise no-op so webhooks never fail.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

import resend

from app.core.config import Settings

logger = logging.getLogger(__name__)


def send_premium_receipt_email(
    settings: Settings,
    to_email: str,
    amount: Decimal,
    currency: str,
    paid_at: Optional[datetime] = None,
) -> bool:
    """
    Returns True if sent, False if skipped (no API key) or failed.
    Does not raise; logs errors so webhook processing is never broken.
    """
    if not settings.resend_api_key or not to_email:
        return False

    resend.api_key = settings.resend_api_key

    amount_str = f"{amount:,.2f}"
    currency_display = currency.upper() if currency else settings.default_currency
    date_str = paid_at.strftime("%B %d, %Y") if paid_at else ""

    subject = f"Your {settings.app_name} premium receipt - {currency_display} {amount_str}"
    html = f"""
    <p>Hi,</p>
    <p>Your payment has been received and premium access is now active.</p>
    <p><strong>Amount:</strong> {currency_display} {amount_str}</p>
    <p><strong>Date:</strong> {date_str}</p>
    <p>Thank you for choosing {settings.app_name}.</p>
    """

    try:
        resend.Emails.send(
            {
                "from": settings.billing_from_email,
                "to": [to_email],
                "subject": subject,
                "html": html.strip(),
            }
        )
        logger.info("[billing_email] Receipt email sent to %s", to_email)
        return True
    except Exception as e:
        logger.warning("[billing_email] Failed to send receipt to %s: %s", to_email, e)
        return False
