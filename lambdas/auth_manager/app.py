# lambdas/auth_manager/app.py
import hmac
import json
import secrets
from datetime import datetime, timedelta, timezone

import boto3
from boto3.dynamodb.conditions import Key

from lambdas.common.dynamo import build_update_expression, log_action, new_id, to_item, utc_now_iso
from lambdas.common.models import ApiKey, ApiKeyStatus, build_record
from lambdas.common.request_parser import (
    InvalidRequestError,
    get_api_key,
    get_header,
    get_query_params,
    parse_json_body,
    require_fields,
)
from lambdas.common.responses import ADMIN_API_CORS, build_response
from lambdas.common.settings import get_settings

API_KEY_PREFIX = 'pdh_live_'
USAGE_LOG_TTL_DAYS = 90
ADMIN_USER_AGENT = 'ProDentHub-Admin/1.0'
LISTED_FIELDS = ('keyId', 'name', 'description', 'status', 'permissions', 'createdAt', 'lastUsedAt', 'expiresAt')

# Initialize resources once for Lambda container reuse
settings = get_settings()
DYNAMODB_RESOURCE = boto3.resource('dynamodb', region_name=settings.aws_region)
API_KEYS_TABLE = DYNAMODB_RESOURCE.Table(settings.api_keys_table)
AUDIT_LOGS_TABLE = DYNAMODB_RESOURCE.Table(settings.audit_logs_table)


def generate_policy(principal_id: str, effect: str, resource: str | None, context: dict | None = None) -> dict:
    """Builds the IAM policy document API Gateway expects back from a Lambda authorizer."""
    auth_response = {'principalId': principal_id}

    if effect and resource:
        auth_response['policyDocument'] = {
            'Version': '2012-10-17',
            'Statement': [{
                'Action': 'execute-api:Invoke',
                'Effect': effect,
                'Resource': resource,
            }]
        }

    if context:
        auth_response['context'] = context

    return auth_response


def _is_expired(expires_at: str | None, now: datetime) -> bool:
    if not expires_at:
        return False
    expiry = datetime.fromisoformat(expires_at.replace('Z', '+00:00'))
    if expiry.tzinfo is None:
        expiry = expiry.replace(tzinfo=timezone.utc)
    return expiry < now


def validate_api_key(api_key: str) -> dict | None:
    """
    Returns the stored key record when `api_key` is known, active and unexpired.
    A successful lookup also stamps lastUsedAt.
    """
    items = API_KEYS_TABLE.query(
        IndexName='apiKey-index',
        KeyConditionExpression=Key('apiKey').eq(api_key)
    ).get('Items', [])
    if not items:
        return None

    key_data = items[0]
    if key_data.get('status') != ApiKeyStatus.ACTIVE.value:
        return None
    if _is_expired(key_data.get('expiresAt'), datetime.now(timezone.utc)):
        return None

    API_KEYS_TABLE.update_item(
        Key={'keyId': key_data['keyId']},
        UpdateExpression='SET #lastUsedAt = :lastUsedAt',
        ExpressionAttributeNames={'#lastUsedAt': 'lastUsedAt'},
        ExpressionAttributeValues={':lastUsedAt': utc_now_iso()}
    )
    return key_data


def check_rate_limits(key_data: dict) -> bool:
    """Always permits; the configured rateLimit is stored on the key but not enforced."""
    return True


def log_api_key_usage(key_id: str, event: dict) -> None:
    request_context = event.get('requestContext') or {}
    source_ip = (request_context.get('identity') or {}).get('sourceIp')
    log_action(
        AUDIT_LOGS_TABLE, 'api_key_used', key_id, 'api', request_context.get('requestId'),
        {'path': event.get('path'), 'method': event.get('httpMethod'), 'sourceIp': source_ip},
        user_agent=get_header(event, 'user-agent'),
        ttl_days=USAGE_LOG_TTL_DAYS,
        ip=source_ip,
    )


def authorize(event: dict, context: object) -> dict:
    """
    API Gateway Lambda authorizer validating the X-Api-Key header.
    Any failure, including an unexpected error, denies the request.
    """
    print(f"Authorization request: {event.get('httpMethod')} {event.get('path')}")
    method_arn = event.get('methodArn')

    api_key = get_api_key(event)
    if not api_key:
        return generate_policy('user', 'Deny', method_arn)

    try:
        key_data = validate_api_key(api_key)
        if not key_data:
            return generate_policy('user', 'Deny', method_arn)

        if not check_rate_limits(key_data):
            return generate_policy(key_data['keyId'], 'Deny', method_arn, {'error': 'Rate limit exceeded'})

        log_api_key_usage(key_data['keyId'], event)

        # Authorizer context values must be strings, numbers or booleans
        return generate_policy(key_data['keyId'], 'Allow', method_arn, {
            'keyId': key_data['keyId'],
            'permissions': ','.join(key_data.get('permissions') or []),
        })

    except Exception as e:
        print(f"Authorization error: {e}")
        return generate_policy('user', 'Deny', method_arn)


def generate_secure_api_key() -> str:
    return f"{API_KEY_PREFIX}{secrets.token_urlsafe(32)}"


def _audit(action: str, key_id: str, details: dict) -> None:
    log_action(AUDIT_LOGS_TABLE, action, 'admin', 'api_key', key_id, details, user_agent=ADMIN_USER_AGENT)


def create_api_key(params: dict) -> dict:
    require_fields(params, 'name')
    try:
        expires_in_days = int(params.get('expiresInDays', 365))
    except (TypeError, ValueError):
        raise InvalidRequestError('expiresInDays must be an integer')

    data = {
        'keyId': new_id(),
        'apiKey': generate_secure_api_key(),
        'name': params['name'],
        'description': params.get('description') or '',
        'expiresAt': (datetime.now(timezone.utc) + timedelta(days=expires_in_days)).isoformat(),
        'ipWhitelist': params.get('ipWhitelist') or [],
    }
    if params.get('permissions'):
        data['permissions'] = params['permissions']

    key_data = build_record(ApiKey, data).to_document()
    API_KEYS_TABLE.put_item(Item=to_item(key_data))
    _audit('api_key_created', key_data['keyId'], {'name': key_data['name']})
    print(f"Created API key {key_data['keyId']}")

    return build_response(201, {
        'success': True,
        'keyId': key_data['keyId'],
        'apiKey': key_data['apiKey'],  # Only returned once at creation
        'expiresAt': key_data['expiresAt'],
    }, cors=ADMIN_API_CORS)


def list_api_keys(params: dict) -> dict:
    status = params.get('status', ApiKeyStatus.ACTIVE.value)
    result = API_KEYS_TABLE.query(
        IndexName='status-index',
        KeyConditionExpression=Key('status').eq(status)
    )
    items = [{field: item.get(field) for field in LISTED_FIELDS} for item in result.get('Items', [])]
    return build_response(200, {'items': items, 'count': len(items)}, cors=ADMIN_API_CORS)


def revoke_api_key(key_id: str | None) -> dict:
    if not key_id:
        raise InvalidRequestError('Missing keyId')

    API_KEYS_TABLE.update_item(
        Key={'keyId': key_id},
        UpdateExpression='SET #status = :status',
        ExpressionAttributeNames={'#status': 'status'},
        ExpressionAttributeValues={':status': ApiKeyStatus.REVOKED.value}
    )
    _audit('api_key_revoked', key_id, {})
    return build_response(200, {'success': True, 'keyId': key_id, 'status': ApiKeyStatus.REVOKED.value},
                          cors=ADMIN_API_CORS)


def update_api_key(params: dict) -> dict:
    updates = dict(params)
    key_id = updates.pop('keyId', None)
    if not key_id:
        raise InvalidRequestError('Missing keyId')

    # The secret itself is immutable
    updates.pop('apiKey', None)
    if not updates:
        raise InvalidRequestError('No fields to update')

    API_KEYS_TABLE.update_item(Key={'keyId': key_id}, **build_update_expression(updates, touch_updated_at=False))
    _audit('api_key_updated', key_id, {'updates': updates})
    return build_response(200, {'success': True, 'keyId': key_id}, cors=ADMIN_API_CORS)


def is_master_key_valid(event: dict) -> bool:
    provided = get_header(event, 'x-master-key')
    if not settings.master_key or not provided:
        return False
    return hmac.compare_digest(provided, settings.master_key)


ROUTES = {
    '/api-keys/create': ('POST', lambda body, query: create_api_key(body)),
    '/api-keys/list': ('GET', lambda body, query: list_api_keys(query)),
    '/api-keys/revoke': ('POST', lambda body, query: revoke_api_key(body.get('keyId'))),
    '/api-keys/update': ('PUT', lambda body, query: update_api_key(body)),
}


def handler(event: dict, context: object) -> dict:
    """
    Admin API for API key management, guarded by the X-Master-Key header.
    """
    print(f"Received event: {json.dumps({k: event.get(k) for k in ('httpMethod', 'path', 'queryStringParameters')})}")

    try:
        if not is_master_key_valid(event):
            return build_response(401, {'error': 'Unauthorized'}, cors=ADMIN_API_CORS)

        route = ROUTES.get(event.get('path'))
        if not route:
            return build_response(404, {'error': 'Not found'}, cors=ADMIN_API_CORS)

        method, action = route
        if event.get('httpMethod') != method:
            return build_response(405, {'error': 'Method not allowed'}, cors=ADMIN_API_CORS)

        return action(parse_json_body(event), get_query_params(event))

    except InvalidRequestError as e:
        print(f"Validation Error: {e}")
        return build_response(400, {'error': str(e)}, cors=ADMIN_API_CORS)

    except Exception as e:
        print(f"Internal Server Error: {e}")
        return build_response(500, {'error': str(e)}, cors=ADMIN_API_CORS)
