# lambdas/stripe_webhook/app.py
import base64
import json

import boto3
import stripe
from botocore.exceptions import ClientError

from lambdas.common.dynamo import build_update_expression, ttl_after, utc_now_iso
from lambdas.common.models import PaymentStatus
from lambdas.common.request_parser import get_header
from lambdas.common.settings import get_settings
from lambdas.stripe_webhook.email_templates import format_html_body, format_text_body, get_email_subject

TEAM_ACCESS_DAYS = 6 * 30

# Initialize clients once for Lambda container reuse
settings = get_settings()
stripe.api_key = settings.stripe_secret_key
DYNAMODB_RESOURCE = boto3.resource('dynamodb', region_name=settings.aws_region)
ses_client = boto3.client('ses', region_name=settings.aws_region)


def _team_updates(session: dict) -> dict:
    return {
        'status': PaymentStatus.FULLY_PAID.value,
        'stripeCheckoutSessionId': session['id'],
        'activatedAt': utc_now_iso(),
        'ttl': ttl_after(TEAM_ACCESS_DAYS),
    }


def _scholarship_updates(session: dict) -> dict:
    return {
        'status': PaymentStatus.PAID.value,
        'stripeCheckoutSessionId': session['id'],
        'approvedAt': utc_now_iso(),
    }


def _purchase_updates(session: dict) -> dict:
    return {
        'status': PaymentStatus.PAID.value,
        'stripeCheckoutSessionId': session['id'],
        'activatedAt': utc_now_iso(),
    }


def _personalized_plan_updates(session: dict) -> dict:
    return {
        'status': PaymentStatus.ACTIVE.value,
        'stripeCheckoutSessionId': session['id'],
        'activatedAt': utc_now_iso(),
    }


def _mock_exam_updates(session: dict) -> dict:
    return {
        'status': PaymentStatus.CONFIRMED.value,
        'stripeCheckoutSessionId': session['id'],
        'registrationType': 'premium',
    }


# campaignId -> (table kind, key attribute carried in the session metadata, update builder)
CAMPAIGN_UPDATES = {
    'team-creation': ('teams', 'teamId', _team_updates),
    'scholarship-application': ('scholarships', 'scholarshipId', _scholarship_updates),
    'discount-purchase': ('discount-purchases', 'purchaseId', _purchase_updates),
    'personalized-plan': ('personalized-plans', 'planId', _personalized_plan_updates),
    'mock-exam-registration': ('mock-registrations', 'registrationId', _mock_exam_updates),
}


def get_campaign_table(kind: str):
    return DYNAMODB_RESOURCE.Table(settings.campaign_table(kind))


def update_campaign_record(campaign_id: str, session: dict) -> bool:
    """Marks the record behind a completed checkout as paid. Returns False when nothing was updated."""
    config = CAMPAIGN_UPDATES.get(campaign_id)
    if not config:
        print(f"Unknown campaign: {campaign_id}")
        return False

    kind, key_name, build_updates = config
    metadata = session.get('metadata') or {}
    record_id = metadata.get(key_name)
    if not record_id:
        print(f"No {key_name} in metadata")
        return False

    get_campaign_table(kind).update_item(
        Key={key_name: record_id},
        **build_update_expression(build_updates(session), touch_updated_at=False)
    )
    print(f"Updated {kind} record {record_id} for campaign {campaign_id}")
    return True


def send_confirmation_email(ses, sender: str, email: str | None, campaign_id: str, session: dict) -> None:
    """Sends the SES confirmation; failures are logged and never fail the webhook."""
    if not (sender and email):
        print("Email sender or recipient missing. Skipping confirmation email.")
        return

    try:
        ses.send_email(
            Destination={'ToAddresses': [email]},
            Message={
                'Body': {
                    'Html': {'Charset': "UTF-8", 'Data': format_html_body(session)},
                    'Text': {'Charset': "UTF-8", 'Data': format_text_body(session)},
                },
                'Subject': {'Charset': "UTF-8", 'Data': get_email_subject(campaign_id)},
            },
            Source=sender,
        )
        print(f"Confirmation email sent for session {session.get('id')}")
    except ClientError as e:
        print(f"Failed to send email: {e.response['Error']['Message']}")


def handle_checkout_completed(session: dict) -> None:
    print(f"Checkout completed: {session.get('id')}")

    campaign_id = (session.get('metadata') or {}).get('campaignId')
    if not campaign_id:
        print("No campaignId in session metadata")
        return

    update_campaign_record(campaign_id, session)
    send_confirmation_email(ses_client, settings.ses_from_email, session.get('customer_email'), campaign_id, session)


def handle_payment_succeeded(payment_intent: dict) -> None:
    print(f"Payment succeeded: {payment_intent.get('id')}")


def handle_payment_failed(payment_intent: dict) -> None:
    print(f"Payment failed: {payment_intent.get('id')}")


def handle_refund(charge: dict) -> None:
    print(f"Refund processed: {charge.get('id')}")


EVENT_HANDLERS = {
    'checkout.session.completed': handle_checkout_completed,
    'payment_intent.succeeded': handle_payment_succeeded,
    'payment_intent.payment_failed': handle_payment_failed,
    'charge.refunded': handle_refund,
}


def _raw_body(event: dict) -> str:
    # The signature covers the exact bytes Stripe sent, so the body is never re-serialized
    body = event.get('body') or ''
    if event.get('isBase64Encoded'):
        body = base64.b64decode(body).decode('utf-8')
    return body


def handler(event, context):
    """
    Stripe webhook endpoint. Verifies the Stripe-Signature header, then
    dispatches on the event type.
    """
    print("Webhook event received")

    try:
        signature = get_header(event, 'stripe-signature')
        if not signature:
            print("No Stripe signature found")
            return {'statusCode': 400, 'body': json.dumps({'error': 'No signature'})}

        payload = _raw_body(event)
        try:
            stripe.WebhookSignature.verify_header(payload, signature, settings.stripe_webhook_secret)
            stripe_event = json.loads(payload)
        except (ValueError, stripe.SignatureVerificationError) as e:
            print(f"Webhook signature verification failed: {e}")
            return {'statusCode': 400, 'body': json.dumps({'error': 'Invalid signature'})}

        event_type = stripe_event['type']
        print(f"Event type: {event_type}")
        print(f"Event ID: {stripe_event['id']}")

        event_handler = EVENT_HANDLERS.get(event_type)
        if event_handler:
            event_handler(stripe_event['data']['object'])
        else:
            print(f"Unhandled event type: {event_type}")

        return {'statusCode': 200, 'body': json.dumps({'received': True})}

    except Exception as e:
        print(f"Webhook handler error: {e}")
        return {'statusCode': 500, 'body': json.dumps({'error': str(e)})}
