# lambdas/landing_registrations/app.py
"""
Public endpoints behind the campaign landing pages.

Each one prices the request server-side, stores a pending record in the
campaign's table and returns the checkout parameters the page hands to
`.../checkout/create`. The Stripe webhook later marks the record paid using
the id carried in the checkout metadata.
"""
import json
import math
import uuid
from datetime import datetime, timezone

import boto3

from lambdas.common.dynamo import to_item, utc_now_iso
from lambdas.common.models import PaymentStatus
from lambdas.common.pricing import (
    MOCK_EXAM_PRICES,
    PricingError,
    calculate_discount,
    calculate_scholarship,
    determine_cluster,
    get_plan_pricing,
)
from lambdas.common.request_parser import InvalidRequestError, is_valid_email, parse_json_body, require_fields
from lambdas.common.responses import build_response, public_cors
from lambdas.common.settings import get_settings

PARTICIPANT_FIELDS = ('firstName', 'lastName', 'email')

# Initialize resources once for Lambda container reuse
settings = get_settings()
DYNAMODB_RESOURCE = boto3.resource('dynamodb', region_name=settings.aws_region)
COUPONS_TABLE = DYNAMODB_RESOURCE.Table(settings.coupons_table)
SCHOLARSHIPS_TABLE = DYNAMODB_RESOURCE.Table(settings.campaign_table('scholarships'))
PURCHASES_TABLE = DYNAMODB_RESOURCE.Table(settings.campaign_table('discount-purchases'))
PERSONALIZED_PLANS_TABLE = DYNAMODB_RESOURCE.Table(settings.campaign_table('personalized-plans'))
MOCK_REGISTRATIONS_TABLE = DYNAMODB_RESOURCE.Table(settings.campaign_table('mock-registrations'))
CORS_HEADERS = public_cors(settings.frontend_url)


def _as_number(value, field: str, cast=float):
    try:
        number = cast(value)
    except (TypeError, ValueError):
        raise InvalidRequestError(f"{field} must be a number")
    if not math.isfinite(number):
        raise InvalidRequestError(f"{field} must be a number")
    return number


def _participant(body: dict) -> dict:
    require_fields(body, *PARTICIPANT_FIELDS)
    if not is_valid_email(body['email']):
        raise InvalidRequestError(f"Invalid email address: {body['email']}")
    return {
        'firstName': body['firstName'],
        'lastName': body['lastName'],
        'email': body['email'],
        'country': body.get('country'),
    }


def _checkout(campaign_id: str, amount: float, key_name: str, record_id: str) -> dict:
    """Parameters for the checkout endpoint; Stripe metadata values must be strings."""
    return {
        'campaignId': campaign_id,
        'amount': amount,
        'currency': 'AUD',
        'metadata': {key_name: record_id},
    }


def _is_past(timestamp: str | None) -> bool:
    """True when `timestamp` is in the past. An unparseable timestamp counts as past."""
    if not timestamp:
        return False
    try:
        moment = datetime.fromisoformat(str(timestamp).replace('Z', '+00:00'))
    except ValueError:
        print(f"⚠️ Unparseable coupon expiry: {timestamp}")
        return True
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment < datetime.now(timezone.utc)


def apply_coupon(coupon_code: str, plan_type: str, original_price: float) -> dict:
    """
    Looks the coupon up and applies it to `original_price`.
    Unknown, inactive, expired or plan-restricted coupons come back as `valid` False.
    """
    code = coupon_code.strip().upper()
    coupon = COUPONS_TABLE.get_item(Key={'couponCode': code}).get('Item')

    if not coupon or coupon.get('status', 'active') != 'active':
        return {'valid': False, 'error': 'Invalid coupon code'}
    if _is_past(coupon.get('expiresAt')):
        return {'valid': False, 'error': 'Coupon has expired'}
    applicable_plans = coupon.get('applicablePlans')
    if applicable_plans and plan_type not in applicable_plans:
        return {'valid': False, 'error': 'Coupon does not apply to the selected plan'}

    max_discount = coupon.get('maxDiscount')
    result = calculate_discount(
        original_price,
        coupon.get('discountType'),
        float(coupon.get('discountValue', 0)),
        max_discount=float(max_discount) if max_discount is not None else None,
        min_purchase=float(coupon.get('minPurchase', 0)),
    )
    if result['valid']:
        result['couponCode'] = code
    return result


def _plan_price(plan_type: str | None) -> float:
    plan = get_plan_pricing(plan_type) if plan_type else None
    if not plan:
        raise InvalidRequestError(f"Unknown plan type: {plan_type}")
    return plan['price']


def validate_coupon(body: dict) -> dict:
    require_fields(body, 'couponCode', 'planType')
    result = apply_coupon(body['couponCode'], body['planType'], _plan_price(body['planType']))
    print(f"Coupon validation for plan {body['planType']}: valid={result['valid']}")
    return build_response(200, result, cors=CORS_HEADERS)


def apply_scholarship(body: dict) -> dict:
    participant = _participant(body)
    require_fields(body, 'examAttempts', 'financialNeed')
    if body.get('lastScore') is None:
        raise InvalidRequestError('Missing required fields: lastScore')

    try:
        calculation = calculate_scholarship(
            _as_number(body['examAttempts'], 'examAttempts', int),
            _as_number(body['lastScore'], 'lastScore'),
            body['financialNeed'],
        )
    except PricingError as e:
        raise InvalidRequestError(str(e))

    scholarship_id = f"scholarship_{uuid.uuid4()}"
    record = {
        'scholarshipId': scholarship_id,
        'campaignId': 'scholarship-application',
        **participant,
        'phone': body.get('phone'),
        'examAttempts': int(body['examAttempts']),
        'lastScore': float(body['lastScore']),
        'lastExamDate': body.get('lastExamDate'),
        'financialNeed': body['financialNeed'],
        'scholarshipReason': body.get('scholarshipReason'),
        'scholarshipPercent': calculation['scholarshipPercent'],
        'scholarshipAmount': calculation['scholarshipAmount'],
        'finalPrice': calculation['finalPrice'],
        'status': PaymentStatus.PENDING_PAYMENT.value,
        'createdAt': utc_now_iso(),
    }
    SCHOLARSHIPS_TABLE.put_item(Item=to_item(record))
    print(f"Scholarship application stored: {scholarship_id}")

    return build_response(200, {
        'scholarshipId': scholarship_id,
        'scholarship': calculation,
        'checkout': _checkout('scholarship-application', calculation['finalPrice'], 'scholarshipId', scholarship_id),
    }, cors=CORS_HEADERS)


def recommend_personalized_plan(body: dict) -> dict:
    participant = _participant(body)
    require_fields(body, 'clinicalScore', 'theoryScore', 'timeScore')

    scores = {
        name: _as_number(body[name], name, int)
        for name in ('clinicalScore', 'theoryScore', 'timeScore')
    }
    exam_score = _as_number(body.get('examScore') or 65, 'examScore')

    try:
        recommendation = determine_cluster(scores['clinicalScore'], scores['theoryScore'],
                                           scores['timeScore'], exam_score)
    except PricingError as e:
        raise InvalidRequestError(str(e))

    plan_id = f"plan_{uuid.uuid4()}"
    record = {
        'planId': plan_id,
        'campaignId': 'personalized-plan',
        **participant,
        'examDate': body.get('examDate'),
        'examScore': exam_score,
        **scores,
        'cluster': recommendation['cluster'],
        'clusterName': recommendation['name'],
        'duration': recommendation['duration'],
        'price': recommendation['price'],
        'status': PaymentStatus.PENDING_PAYMENT.value,
        'createdAt': utc_now_iso(),
    }
    PERSONALIZED_PLANS_TABLE.put_item(Item=to_item(record))
    print(f"Personalized plan stored: {plan_id} (cluster {recommendation['cluster']})")

    return build_response(200, {
        'planId': plan_id,
        'recommendation': recommendation,
        'checkout': _checkout('personalized-plan', recommendation['price'], 'planId', plan_id),
    }, cors=CORS_HEADERS)


def create_purchase(body: dict) -> dict:
    participant = _participant(body)
    require_fields(body, 'planType')
    plan_type = body['planType']
    original_price = _plan_price(plan_type)

    discount_amount = 0
    final_price = original_price
    coupon_code = None
    if body.get('couponCode'):
        discount = apply_coupon(body['couponCode'], plan_type, original_price)
        if not discount['valid']:
            raise InvalidRequestError(discount['error'])
        discount_amount = discount['discountAmount']
        final_price = discount['finalPrice']
        coupon_code = discount['couponCode']

    purchase_id = f"purchase_{uuid.uuid4()}"
    record = {
        'purchaseId': purchase_id,
        'campaignId': 'discount-purchase',
        **participant,
        'planType': plan_type,
        'originalPrice': original_price,
        'couponCode': coupon_code,
        'discountAmount': discount_amount,
        'finalPrice': final_price,
        'status': PaymentStatus.PENDING_PAYMENT.value,
        'createdAt': utc_now_iso(),
    }
    PURCHASES_TABLE.put_item(Item=to_item(record))
    print(f"Discount purchase stored: {purchase_id}")

    return build_response(200, {
        'purchaseId': purchase_id,
        'originalPrice': original_price,
        'discountAmount': discount_amount,
        'finalPrice': final_price,
        'checkout': _checkout('discount-purchase', final_price, 'purchaseId', purchase_id),
    }, cors=CORS_HEADERS)


def register_mock_exam(body: dict) -> dict:
    """Free registrations are complete immediately; premium ones wait for payment."""
    participant = _participant(body)
    require_fields(body, 'mockExamId', 'registrationType')
    registration_type = body['registrationType']
    if registration_type not in MOCK_EXAM_PRICES:
        raise InvalidRequestError(f"Invalid registrationType: {registration_type}")

    is_premium = registration_type == 'premium'
    price = MOCK_EXAM_PRICES[registration_type]
    registration_id = f"registration_{uuid.uuid4()}"
    record = {
        'registrationId': registration_id,
        'campaignId': 'mock-exam-registration',
        **participant,
        'timezone': body.get('timezone'),
        'mockExamId': body['mockExamId'],
        'examType': body.get('examType'),
        'registrationType': registration_type,
        'price': price,
        'status': (PaymentStatus.PENDING_PAYMENT if is_premium else PaymentStatus.REGISTERED).value,
        'createdAt': utc_now_iso(),
    }
    MOCK_REGISTRATIONS_TABLE.put_item(Item=to_item(record))
    print(f"Mock exam registration stored: {registration_id} ({registration_type})")

    response_body = {'registrationId': registration_id, 'status': record['status'], 'price': price}
    if is_premium:
        response_body['checkout'] = _checkout('mock-exam-registration', price, 'registrationId', registration_id)
    return build_response(200, response_body, cors=CORS_HEADERS)


ROUTES = {
    '/coupons/validate': validate_coupon,
    '/scholarships/apply': apply_scholarship,
    '/personalized-plans/recommend': recommend_personalized_plan,
    '/purchases/create': create_purchase,
    '/mock-exams/register': register_mock_exam,
}


def handler(event: dict, context: object) -> dict:
    print(f"Received event: {json.dumps({k: event.get(k) for k in ('httpMethod', 'path')})}")

    try:
        if event.get('httpMethod') == 'OPTIONS':
            return build_response(200, '', cors=CORS_HEADERS)

        path = event.get('path') or ''
        action = next((fn for suffix, fn in ROUTES.items() if path.endswith(suffix)), None)
        if not action:
            return build_response(404, {'error': 'Not found'}, cors=CORS_HEADERS)
        if event.get('httpMethod') != 'POST':
            return build_response(405, {'error': 'Method not allowed'}, cors=CORS_HEADERS)

        return action(parse_json_body(event))

    except InvalidRequestError as e:
        print(f"Validation Error: {e}")
        return build_response(400, {'error': str(e)}, cors=CORS_HEADERS)

    except Exception as e:
        print(f"Internal Server Error: {e}")
        return build_response(500, {'error': str(e)}, cors=CORS_HEADERS)
