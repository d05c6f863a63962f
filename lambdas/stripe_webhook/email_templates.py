# lambdas/stripe_webhook/email_templates.py
from html import escape

EMAIL_SUBJECTS = {
    "team-creation": "Your Team Has Been Created - ProDentHub",
    "scholarship-application": "Scholarship Approved - ProDentHub",
    "discount-purchase": "Purchase Confirmed - ProDentHub",
    "personalized-plan": "Your Personalized Plan is Ready - ProDentHub",
    "mock-exam-registration": "Mock Exam Registration Confirmed - ProDentHub",
}
DEFAULT_SUBJECT = "Purchase Confirmation - ProDentHub"
APP_URL = "https://app.prodenthub.com.au"
SUPPORT_EMAIL = "support@prodenthub.com.au"


def get_email_subject(campaign_id: str) -> str:
    return EMAIL_SUBJECTS.get(campaign_id, DEFAULT_SUBJECT)


def format_amount_paid(session: dict) -> str:
    """Stripe amounts are in minor units, e.g. 29900 AUD -> '$299.00 AUD'."""
    amount = (session.get("amount_total") or 0) / 100
    currency = (session.get("currency") or "").upper()
    return f"${amount:.2f} {currency}".strip()


# HTML Formatting
def _build_html_styles() -> str:
    return """
    <style>
        body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }
        .container { max-width: 600px; margin: 0 auto; padding: 20px; }
        h1 { color: #cf4520; }
        .order-details { background: #f5f5f5; padding: 15px; border-radius: 5px; margin: 20px 0; }
        .order-details h3 { margin-top: 0; }
        hr { border: none; border-top: 1px solid #ddd; margin: 30px 0; }
        .footer { font-size: 12px; color: #666; }
    </style>
    """


def format_html_body(session: dict) -> str:
    """Builds the payment confirmation email sent after a completed checkout."""
    styles = _build_html_styles()
    safe_email = escape(session.get("customer_email") or "")
    safe_order_id = escape(session.get("id") or "")

    return f"""
    <!DOCTYPE html>
    <html><head><meta charset="UTF-8">{styles}</head><body>
        <div class="container">
            <h1>Payment Successful!</h1>
            <p>Your payment has been processed successfully.</p>
            <div class="order-details">
                <h3>Order Details</h3>
                <p><strong>Amount Paid:</strong> {format_amount_paid(session)}</p>
                <p><strong>Email:</strong> {safe_email}</p>
                <p><strong>Order ID:</strong> {safe_order_id}</p>
            </div>
            <p>You can access your account at: <a href="{APP_URL}">app.prodenthub.com.au</a></p>
            <p>If you have any questions, please contact us at {SUPPORT_EMAIL}</p>
            <hr>
            <p class="footer">
                ProDentHub - Helping dentists ace the ADC exam<br>
                &copy; ProDentHub. All rights reserved.
            </p>
        </div>
    </body></html>
    """


# Plain Text Formatting
def format_text_body(session: dict) -> str:
    """Creates a plain text version of the confirmation email."""
    lines = [
        "Payment Successful!",
        "Your payment has been processed successfully.",
        "",
        "Order Details",
        "=============",
        f"Amount Paid: {format_amount_paid(session)}",
        f"Email: {session.get('customer_email') or ''}",
        f"Order ID: {session.get('id') or ''}",
        "",
        f"You can access your account at: {APP_URL}",
        f"If you have any questions, please contact us at {SUPPORT_EMAIL}",
    ]
    return "\n".join(lines)
