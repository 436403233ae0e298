"""
MJML Email Templates
All customer-facing notification templates, compiled to HTML by email_service
"""

from typing import Optional

from .config import FRONTEND_URL

# Fresh juice palette - orange/green
THEME = {
    "primary": "#f97316",
    "primary_dark": "#ea580c",
    "primary_light": "#ffedd5",
    "background": "#fffbf5",
    "card_bg": "#ffffff",
    "text_primary": "#1c1917",
    "text_secondary": "#44403c",
    "text_muted": "#78716c",
    "border": "#e7e5e4",
    "success": "#16a34a",
    "warning": "#f59e0b",
    "danger": "#ef4444",
}


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button
              href="{cta_url}"
              background-color="{THEME['primary']}"
              color="#ffffff"
              font-weight="600"
              border-radius="8px"
              padding="18px 40px"
              font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', 'Helvetica Neue', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="#ffffff" padding="32px 40px 0 40px">
          <mj-column>
            <mj-text font-size="22px" font-weight="700" color="{THEME['primary_dark']}" padding="0">
              SipDesk
            </mj-text>
            <mj-divider border-color="{THEME['border']}" border-width="1px" padding="24px 0 0 0" />
          </mj-column>
        </mj-section>

        <!-- Main Content -->
        <mj-section background-color="#ffffff" padding="24px 40px 48px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>

            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <!-- Footer -->
        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="#a8a29e" padding="0">
              You're receiving this because you ordered from SipDesk.
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def _detail_row(label: str, value: str) -> str:
    return f"""
    <mj-text padding="4px 0">
      <span style="color: {THEME['text_muted']};">{label}:</span>
      <strong style="color: {THEME['text_primary']};">{value}</strong>
    </mj-text>
    """


def order_confirmation_template(
    customer_name: str,
    order_public_id: str,
    order_type: str,
    total_amount: int,
    delivery_summary: str,
    delivery_charge: int,
    wallet_amount_used: int = 0,
) -> str:
    """Order placed (QuickSip or FreshPlan checkout)"""
    label = "FreshPlan" if order_type == "freshplan" else "QuickSip"
    rows = _detail_row("Order", order_public_id[:8].upper())
    rows += _detail_row("Delivery", delivery_summary)
    rows += _detail_row("Delivery charge", "Free" if delivery_charge == 0 else f"₹{delivery_charge}")
    if wallet_amount_used:
        rows += _detail_row("Paid from wallet", f"₹{wallet_amount_used}")
    rows += _detail_row("Total", f"₹{total_amount}")

    content = f"""
    <mj-text>
      Hi {customer_name},
    </mj-text>

    <mj-text>
      Thanks for your {label} order! Our kitchen will start on it in time for your slot.
    </mj-text>

    {rows}
    """

    return get_base_template(
        title="Your order is confirmed",
        preview_text=f"{label} order confirmed - {delivery_summary}",
        content_sections=content,
        cta_url=f"{FRONTEND_URL}/orders/{order_public_id}",
        cta_label="Track Order",
    )


def unit_cancelled_template(
    customer_name: str,
    order_public_id: str,
    delivery_date: str,
    reason: str,
    refunded_amount: int = 0,
) -> str:
    """A QuickSip order or one FreshPlan day was cancelled by the shop"""
    refund_note = ""
    if refunded_amount:
        refund_note = f"""
        <mj-text color="{THEME['success']}">
          ₹{refunded_amount} has been returned to your referral wallet.
        </mj-text>
        """

    content = f"""
    <mj-text>
      Hi {customer_name},
    </mj-text>

    <mj-text>
      We're sorry, your delivery for <strong>{delivery_date}</strong> has been cancelled.
    </mj-text>

    {_detail_row("Reason", reason)}
    {refund_note}
    """

    return get_base_template(
        title="Delivery cancelled",
        preview_text=f"Your delivery for {delivery_date} was cancelled",
        content_sections=content,
        cta_url=f"{FRONTEND_URL}/orders/{order_public_id}",
        cta_label="View Order",
    )


def withdrawal_requested_template(user_name: str, amount: int, upi_id: str) -> str:
    content = f"""
    <mj-text>
      Hi {user_name},
    </mj-text>

    <mj-text>
      We received your withdrawal request. The amount has been held from your referral wallet
      and will be transferred once an admin reviews it.
    </mj-text>

    {_detail_row("Amount", f"₹{amount}")}
    {_detail_row("UPI ID", upi_id)}
    """

    return get_base_template(
        title="Withdrawal requested",
        preview_text=f"Withdrawal of ₹{amount} requested",
        content_sections=content,
        cta_url=f"{FRONTEND_URL}/wallet",
        cta_label="Open Wallet",
    )


def withdrawal_processed_template(
    user_name: str,
    amount: int,
    upi_id: str,
    status: str,
    transfer_note: Optional[str] = None,
) -> str:
    """Withdrawal approved (paid out) or rejected (credited back)"""
    if status == "approved":
        title = "Withdrawal approved"
        message = f"₹{amount} is on its way to <strong>{upi_id}</strong>."
    else:
        title = "Withdrawal rejected"
        message = f"Your withdrawal of ₹{amount} was rejected and the amount is back in your referral wallet."

    note = _detail_row("Note", transfer_note) if transfer_note else ""
    content = f"""
    <mj-text>
      Hi {user_name},
    </mj-text>

    <mj-text>
      {message}
    </mj-text>

    {note}
    """

    return get_base_template(
        title=title,
        preview_text=title,
        content_sections=content,
        cta_url=f"{FRONTEND_URL}/wallet",
        cta_label="Open Wallet",
    )
