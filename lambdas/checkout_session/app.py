# lambdas/checkout_session/app.py
import json

import stripe

from lambdas.common.pricing import to_cents
from lambdas.common.request_parser import InvalidRequestError, parse_json_body, require_fields
from lambdas.common.responses import build_response, public_cors
from lambdas.common.settings import get_settings

PRODUCT_NAMES = {
    'team-creation': 'ProDentHub Full Version - 6 Months (Team Plan)',
    'scholarship-application': 'ProDentHub Scholarship Access - 3 Months',
    'discount-purchase': 'ProDentHub Access Plan',
    'personalized-plan': 'ProDentHub Personalized Study Plan',
    'mock-exam-registration': 'Universal Mock Exam - Premium Access',
}
DEFAULT_PRODUCT_NAME = 'ProDentHub Access'

PRODUCT_DESCRIPTIONS = {
    'team-creation': 'Full access for your study team (6 months)',
    'scholarship-application': 'Scholarship-subsidized access (3 months)',
    'discount-purchase': 'Discounted access to ADC exam preparation',
    'personalized-plan': 'Tailored study plan based on your performance',
    'mock-exam-registration': 'Premium analytics and statistics',
}
DEFAULT_PRODUCT_DESCRIPTION = 'Access to ProDentHub ADC exam preparation'

# Initialize once for Lambda container reuse
settings = get_settings()
stripe.api_key = settings.stripe_secret_key
CORS_HEADERS = public_cors(settings.frontend_url)


def get_product_name(campaign_id: str) -> str:
    return PRODUCT_NAMES.get(campaign_id, DEFAULT_PRODUCT_NAME)


def get_product_description(campaign_id: str) -> str:
    return PRODUCT_DESCRIPTIONS.get(campaign_id, DEFAULT_PRODUCT_DESCRIPTION)


def _parse_amount(amount) -> float:
    try:
        value = float(amount)
    except (TypeError, ValueError):
        raise InvalidRequestError('amount must be a number')
    if value <= 0:
        raise InvalidRequestError('amount must be positive')
    return value


def create_checkout_session(body: dict) -> dict:
    require_fields(body, 'campaignId', 'email', 'amount')
    campaign_id = body['campaignId']
    currency = body.get('currency', 'AUD')
    metadata = {'campaignId': campaign_id, **(body.get('metadata') or {})}
    frontend_url = settings.frontend_url

    session = stripe.checkout.Session.create(
        payment_method_types=['card'],
        line_items=[{
            'price_data': {
                'currency': currency.lower(),
                'product_data': {
                    'name': get_product_name(campaign_id),
                    'description': get_product_description(campaign_id),
                    'metadata': {'campaignId': campaign_id},
                },
                'unit_amount': to_cents(_parse_amount(body['amount'])),
            },
            'quantity': 1,
        }],
        mode='payment',
        success_url=body.get('successUrl')
        or f"{frontend_url}/{campaign_id}/thank-you.html?session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=body.get('cancelUrl') or f"{frontend_url}/{campaign_id}/",
        customer_email=body['email'],
        metadata=metadata,
        billing_address_collection='required',
        payment_intent_data={'metadata': metadata},
    )

    print(f"Created checkout session: {session.id}")
    return build_response(200, {'sessionId': session.id, 'checkoutUrl': session.url}, cors=CORS_HEADERS)


def verify_checkout_session(body: dict) -> dict:
    if not body.get('sessionId'):
        raise InvalidRequestError('Missing sessionId')

    session = stripe.checkout.Session.retrieve(body['sessionId'])
    return build_response(200, {
        'status': session.status,
        'paymentStatus': session.payment_status,
        'customerEmail': session.customer_email,
        'amountTotal': (session.amount_total or 0) / 100,
        'currency': (session.currency or '').upper(),
        'metadata': dict(session.metadata or {}),
    }, cors=CORS_HEADERS)


def handler(event: dict, context: object) -> dict:
    """
    Public checkout endpoints used by every landing page:
    `.../checkout/create` opens a Stripe Checkout Session and
    `.../checkout/verify` reports its status on the thank-you page.
    """
    print(f"Received event: {json.dumps({k: event.get(k) for k in ('httpMethod', 'path')})}")

    try:
        if event.get('httpMethod') == 'OPTIONS':
            return build_response(200, '', cors=CORS_HEADERS)

        path = event.get('path') or ''
        if path.endswith('/checkout/create'):
            return create_checkout_session(parse_json_body(event))
        if path.endswith('/checkout/verify'):
            return verify_checkout_session(parse_json_body(event))
        return build_response(404, {'error': 'Not found'}, cors=CORS_HEADERS)

    except InvalidRequestError as e:
        print(f"Validation Error: {e}")
        return build_response(400, {'error': str(e)}, cors=CORS_HEADERS)

    except Exception as e:
        print(f"Internal Server Error: {e}")
        return build_response(500, {'error': 'Internal server error', 'message': str(e)}, cors=CORS_HEADERS)
