# lambdas/facebook_integration/app.py
import json
import uuid
from datetime import datetime

import boto3
from boto3.dynamodb.conditions import Key

from lambdas.common import facebook_client
from lambdas.common.dynamo import build_update_expression, log_action, new_id, to_item, utc_now_iso
from lambdas.common.models import ContentStatus, SocialTarget, TargetType, build_record
from lambdas.common.request_parser import (
    InvalidRequestError,
    get_api_key,
    get_query_params,
    parse_json_body,
    require_fields,
)
from lambdas.common.responses import build_response
from lambdas.common.settings import get_settings

# Initialize resources once for Lambda container reuse
settings = get_settings()
DYNAMODB_RESOURCE = boto3.resource('dynamodb', region_name=settings.aws_region)
CONTENT_TABLE = DYNAMODB_RESOURCE.Table(settings.content_table)
PUBLISHING_HISTORY_TABLE = DYNAMODB_RESOURCE.Table(settings.publishing_history_table)
SOCIAL_TARGETS_TABLE = DYNAMODB_RESOURCE.Table(settings.social_targets_table)
ANALYTICS_TABLE = DYNAMODB_RESOURCE.Table(settings.analytics_table)
AUDIT_LOGS_TABLE = DYNAMODB_RESOURCE.Table(settings.audit_logs_table)

PUBLISHERS = {
    TargetType.GROUP.value: facebook_client.publish_to_group,
    TargetType.PAGE.value: facebook_client.publish_to_page,
}


def _audit(action: str, resource_id: str, details: dict) -> None:
    log_action(AUDIT_LOGS_TABLE, action, 'agent', 'content', resource_id, details)


def to_unix_seconds(timestamp: str) -> int:
    """Converts an ISO-8601 timestamp into the epoch seconds Graph expects for scheduled posts."""
    try:
        return int(datetime.fromisoformat(timestamp.replace('Z', '+00:00')).timestamp())
    except (AttributeError, ValueError):
        raise InvalidRequestError(f"Invalid scheduledPublishTime: {timestamp}")


def build_post_data(content: dict, access_token: str, message: str | None = None,
                    link: str | None = None, scheduled_publish_time: str | None = None) -> dict:
    post_data = {
        'message': message or content.get('body'),
        'access_token': access_token,
    }

    cta_url = link or (content.get('metadata') or {}).get('ctaUrl')
    if cta_url:
        post_data['link'] = cta_url

    if scheduled_publish_time:
        post_data['scheduled_publish_time'] = to_unix_seconds(scheduled_publish_time)
        post_data['published'] = 'false'

    return post_data


def publish_content(params: dict) -> dict:
    require_fields(params, 'contentId', 'targetId')
    content_id = params['contentId']
    target_id = params['targetId']
    scheduled_publish_time = params.get('scheduledPublishTime')

    content = CONTENT_TABLE.get_item(Key={'contentId': content_id}).get('Item')
    if not content:
        return build_response(404, {'error': 'Content not found'})

    target = SOCIAL_TARGETS_TABLE.get_item(Key={'targetId': target_id}).get('Item')
    if not target:
        return build_response(404, {'error': 'Target not found'})

    publisher = PUBLISHERS.get(target.get('type'))
    if not publisher:
        return build_response(400, {'error': 'Invalid target type'})

    credentials = facebook_client.get_facebook_credentials()
    post_data = build_post_data(content, credentials['accessToken'], params.get('message'),
                                params.get('link'), scheduled_publish_time)

    print(f"Publishing content {content_id} to {target['type']} {target['externalId']}")
    result = publisher(target['externalId'], post_data)

    publish_id = new_id()
    now = utc_now_iso()
    PUBLISHING_HISTORY_TABLE.put_item(Item=to_item({
        'publishId': publish_id,
        'contentId': content_id,
        'platform': 'facebook',
        'publishedAt': now,
        'publishedBy': 'agent',
        'target': {
            'type': target['type'],
            'id': target['externalId'],
            'name': target.get('name'),
        },
        'externalId': result['id'],
        'url': result['url'],
        'status': 'success',
        'metadata': {
            'scheduledTime': scheduled_publish_time,
            'actualTime': now,
            'apiVersion': facebook_client.FB_API_VERSION,
            'responseCode': 200,
        },
        'error': None,
    }))

    status = ContentStatus.SCHEDULED if scheduled_publish_time else ContentStatus.PUBLISHED
    content_updates = {
        'status': status.value,
        'publishedAt': scheduled_publish_time or now,
    }
    # Drafts have no scheduledAt; without one they are invisible to status-scheduledAt-index
    if not content.get('scheduledAt'):
        content_updates['scheduledAt'] = content_updates['publishedAt']
    CONTENT_TABLE.update_item(Key={'contentId': content_id}, **build_update_expression(content_updates))

    _audit('content_published', content_id, {
        'platform': 'facebook',
        'targetId': target_id,
        'externalId': result['id'],
    })
    return build_response(200, {
        'success': True,
        'publishId': publish_id,
        'externalId': result['id'],
        'url': result['url'],
    })


def schedule_content(params: dict) -> dict:
    require_fields(params, 'contentId', 'targetId', 'scheduledAt')
    content_id = params['contentId']

    CONTENT_TABLE.update_item(Key={'contentId': content_id}, **build_update_expression({
        'status': ContentStatus.SCHEDULED.value,
        'scheduledAt': params['scheduledAt'],
        'targetGroupId': params['targetId'],
    }))

    _audit('content_scheduled', content_id, {
        'scheduledAt': params['scheduledAt'],
        'targetId': params['targetId'],
    })
    return build_response(200, {'success': True, 'contentId': content_id, 'scheduledAt': params['scheduledAt']})


def get_analytics(content_id: str | None) -> dict:
    if not content_id:
        raise InvalidRequestError('Missing contentId')

    items = ANALYTICS_TABLE.query(
        IndexName='contentId-date-index',
        KeyConditionExpression=Key('contentId').eq(content_id),
        ScanIndexForward=False
    ).get('Items', [])
    return build_response(200, {'contentId': content_id, 'analytics': items, 'count': len(items)})


def list_targets(params: dict) -> dict:
    platform = params.get('platform', 'facebook')
    status = params.get('status', 'active')
    target_type = params.get('type')

    items = SOCIAL_TARGETS_TABLE.query(
        IndexName='platform-status-index',
        KeyConditionExpression=Key('platform').eq(platform) & Key('status').eq(status)
    ).get('Items', [])

    if target_type:
        items = [item for item in items if item.get('type') == target_type]

    return build_response(200, {'items': items, 'count': len(items)})


def add_target(params: dict) -> dict:
    require_fields(params, 'platform', 'type', 'name', 'externalId')
    platform = params['platform']
    target_type = params['type']

    data = {
        'targetId': f"target_{platform}_{target_type}_{uuid.uuid4().hex[:8]}",
        'platform': platform,
        'type': target_type,
        'name': params['name'],
        'externalId': params['externalId'],
        'postingSchedule': params.get('postingSchedule') or {},
        'audience': params.get('audience') or {},
    }
    if params.get('accessToken'):
        data['credentials'] = {'accessToken': params['accessToken']}

    target = build_record(SocialTarget, data).to_document()
    SOCIAL_TARGETS_TABLE.put_item(Item=to_item(target))

    _audit('target_added', target['targetId'], {
        'platform': platform,
        'type': target_type,
        'name': params['name'],
    })
    print(f"Added social target {target['targetId']}")
    return build_response(201, {'success': True, 'target': target})


def update_target(params: dict) -> dict:
    updates = dict(params)
    target_id = updates.pop('targetId', None)
    if not target_id:
        raise InvalidRequestError('Missing targetId')

    SOCIAL_TARGETS_TABLE.update_item(Key={'targetId': target_id}, **build_update_expression(updates))
    _audit('target_updated', target_id, {'updates': updates})
    return build_response(200, {'success': True, 'targetId': target_id})


ROUTES = {
    '/facebook/publish': ('POST', lambda event, body, query: publish_content(body)),
    '/facebook/schedule': ('POST', lambda event, body, query: schedule_content(body)),
    '/facebook/analytics': ('GET', lambda event, body, query: get_analytics(query.get('contentId'))),
    '/facebook/targets/list': ('GET', lambda event, body, query: list_targets(query)),
    '/facebook/targets/add': ('POST', lambda event, body, query: add_target(body)),
    '/facebook/targets/update': ('PUT', lambda event, body, query: update_target(body)),
}


def handler(event: dict, context: object) -> dict:
    """
    API Gateway handler for publishing content to Facebook groups/pages and
    managing the social targets the agent posts to.
    """
    print(f"Received event: {json.dumps({k: event.get(k) for k in ('httpMethod', 'path', 'queryStringParameters')})}")

    try:
        if not get_api_key(event):
            return build_response(401, {'error': 'Missing API key'})

        route = ROUTES.get(event.get('path'))
        if not route:
            return build_response(404, {'error': 'Not found'})

        method, action = route
        if event.get('httpMethod') != method:
            return build_response(405, {'error': 'Method not allowed'})

        return action(event, parse_json_body(event), get_query_params(event))

    except InvalidRequestError as e:
        print(f"Validation Error: {e}")
        return build_response(400, {'error': str(e)})

    except Exception as e:
        print(f"Internal Server Error: {e}")
        return build_response(500, {'error': str(e)})
