"""
Email Service using Resend
Compiles MJML templates to HTML and sends customer notifications.

Notifications are scheduled as background tasks after the triggering
transaction has committed. The ``send_*`` helpers never raise: a failed send
is logged and dropped.
"""

import logging
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from .config import EMAIL_FROM_ADDRESS, RESEND_API_KEY
from .email_templates import (
    order_confirmation_template,
    unit_cancelled_template,
    withdrawal_processed_template,
    withdrawal_requested_template,
)

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


class EmailNotConfigured(Exception):
    pass


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    result = mjml_to_html(mjml_content)
    # mjml_to_html returns a result object/dict with 'html' and 'errors'
    errors = result.get("errors") if isinstance(result, dict) else getattr(result, "errors", None)
    if errors:
        logger.warning(f"MJML compilation warnings: {errors}")
    if isinstance(result, dict):
        return result.get("html", "")
    return getattr(result, "html", str(result))


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    from_address: Optional[str] = None,
) -> dict:
    """
    Send an email through Resend

    Args:
        to: Recipient email(s)
        subject: Email subject line
        mjml_content: MJML template content (will be compiled to HTML)
        from_address: Optional custom from address

    Returns:
        Send response dict
    """
    if not RESEND_API_KEY:
        raise EmailNotConfigured("RESEND_API_KEY missing")

    html_content = compile_mjml_to_html(mjml_content)
    recipients = [to] if isinstance(to, str) else to

    logger.info(f"📧 Sending email via Resend to: {recipients}")
    response = resend.Emails.send(
        {
            "from": from_address or EMAIL_FROM_ADDRESS,
            "to": recipients,
            "subject": subject,
            "html": html_content,
        }
    )
    logger.info(f"✅ Email sent successfully via Resend: {response}")
    return response


async def _deliver(to: Optional[str], subject: str, mjml_content: str) -> Optional[dict]:
    if not to:
        logger.info(f"Skipping '{subject}' email: recipient has no email address")
        return None
    try:
        return await send_email(to=to, subject=subject, mjml_content=mjml_content)
    except Exception as e:
        logger.error(f"❌ Notification '{subject}' to {to} failed: {e}")
        return None


# ============================================
# Notifications for fulfillment and wallet events
# ============================================


async def send_order_confirmation(
    to: Optional[str],
    customer_name: str,
    order_public_id: str,
    order_type: str,
    total_amount: int,
    delivery_summary: str,
    delivery_charge: int,
    wallet_amount_used: int = 0,
) -> Optional[dict]:
    mjml_content = order_confirmation_template(
        customer_name=customer_name,
        order_public_id=order_public_id,
        order_type=order_type,
        total_amount=total_amount,
        delivery_summary=delivery_summary,
        delivery_charge=delivery_charge,
        wallet_amount_used=wallet_amount_used,
    )
    return await _deliver(to, "Your SipDesk order is confirmed", mjml_content)


async def send_unit_cancelled(
    to: Optional[str],
    customer_name: str,
    order_public_id: str,
    delivery_date: str,
    reason: str,
    refunded_amount: int = 0,
) -> Optional[dict]:
    mjml_content = unit_cancelled_template(
        customer_name=customer_name,
        order_public_id=order_public_id,
        delivery_date=delivery_date,
        reason=reason,
        refunded_amount=refunded_amount,
    )
    return await _deliver(to, f"Delivery for {delivery_date} cancelled", mjml_content)


async def send_withdrawal_requested(to: Optional[str], user_name: str, amount: int, upi_id: str) -> Optional[dict]:
    mjml_content = withdrawal_requested_template(user_name, amount, upi_id)
    return await _deliver(to, "Withdrawal request received", mjml_content)


async def send_withdrawal_processed(
    to: Optional[str],
    user_name: str,
    amount: int,
    upi_id: str,
    status: str,
    transfer_note: Optional[str] = None,
) -> Optional[dict]:
    mjml_content = withdrawal_processed_template(user_name, amount, upi_id, status, transfer_note)
    return await _deliver(to, f"Withdrawal {status}", mjml_content)
