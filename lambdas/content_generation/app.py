# lambdas/content_generation/app.py
import json

import boto3
from boto3.dynamodb.conditions import Key

from lambdas.common.ai_client import ContentAIClient
from lambdas.common.dynamo import build_update_expression, log_action, new_id, to_item, ttl_after, utc_now_iso
from lambdas.common.models import Content, ContentStatus, build_record
from lambdas.common.request_parser import (
    InvalidRequestError,
    get_api_key,
    get_query_params,
    parse_json_body,
    parse_limit,
    require_fields,
)
from lambdas.common.responses import build_response
from lambdas.common.settings import get_settings
from lambdas.content_generation.prompts import build_prompt, parse_generated_content

CONTENT_TTL_DAYS = 180

# Initialize resources once for Lambda container reuse
settings = get_settings()
DYNAMODB_RESOURCE = boto3.resource('dynamodb', region_name=settings.aws_region)
CONTENT_TABLE = DYNAMODB_RESOURCE.Table(settings.content_table)
TEMPLATES_TABLE = DYNAMODB_RESOURCE.Table(settings.templates_table)
CAMPAIGNS_TABLE = DYNAMODB_RESOURCE.Table(settings.campaigns_table)
AUDIT_LOGS_TABLE = DYNAMODB_RESOURCE.Table(settings.audit_logs_table)
AI_CLIENT = ContentAIClient()


def _audit(action: str, content_id: str, details: dict) -> None:
    log_action(AUDIT_LOGS_TABLE, action, 'agent', 'content', content_id, details)


def _get_template(template_id: str | None) -> dict | None:
    if not template_id:
        return None
    return TEMPLATES_TABLE.get_item(Key={'templateId': template_id}).get('Item')


def _initial_status(auto_publish: bool, scheduled_at: str | None) -> ContentStatus:
    if auto_publish:
        return ContentStatus.PUBLISHED
    if scheduled_at:
        return ContentStatus.SCHEDULED
    return ContentStatus.DRAFT


def mark_content_generated(campaign_id: str, generated_at: str) -> None:
    """Records on the campaign when content was last generated for it."""
    CAMPAIGNS_TABLE.update_item(
        Key={'campaignId': campaign_id},
        UpdateExpression='SET #lastContentGenerated = :generatedAt',
        ExpressionAttributeNames={'#lastContentGenerated': 'lastContentGenerated'},
        ExpressionAttributeValues={':generatedAt': generated_at}
    )


def generate_content(params: dict) -> dict:
    require_fields(params, 'campaignId', 'type')
    campaign_id = params['campaignId']
    content_type = params['type']
    template_id = params.get('templateId')
    variables = params.get('variables') or {}
    scheduled_at = params.get('scheduledAt')
    auto_publish = bool(params.get('autoPublish', False))

    campaign = CAMPAIGNS_TABLE.get_item(Key={'campaignId': campaign_id}).get('Item')
    if not campaign:
        return build_response(404, {'error': 'Campaign not found'})

    prompt = build_prompt(campaign, _get_template(template_id), params.get('customPrompt'),
                          variables, content_type)

    print(f"Generating {content_type} for campaign {campaign_id}")
    generated_text = AI_CLIENT.generate(prompt)
    parsed = parse_generated_content(generated_text, content_type)

    now = utc_now_iso()
    status = _initial_status(auto_publish, scheduled_at)
    content = build_record(Content, {
        'contentId': new_id(),
        'type': content_type,
        'campaignId': campaign_id,
        'title': parsed['title'] or f"{content_type} for {campaign.get('name')}",
        'body': parsed['body'],
        'status': status,
        'platform': params.get('platform', 'facebook'),
        'scheduledAt': scheduled_at or (now if auto_publish else None),
        'publishedAt': now if auto_publish else None,
        'createdAt': now,
        'updatedAt': now,
        'metadata': {
            **parsed['metadata'],
            'templateId': template_id,
            'aiModel': AI_CLIENT.model_id,
            'promptTokens': len(generated_text),
            'variables': variables,
        },
        'ttl': ttl_after(CONTENT_TTL_DAYS),
    }).to_document()

    # Index keys (scheduledAt on drafts) must be absent, not NULL
    CONTENT_TABLE.put_item(Item=to_item({k: v for k, v in content.items() if v is not None}))
    mark_content_generated(campaign_id, now)

    _audit('content_created', content['contentId'], {
        'contentType': content_type,
        'campaignId': campaign_id,
        'status': content['status'],
    })
    print(f"Stored content {content['contentId']} with status {content['status']}")
    return build_response(201, {'success': True, 'content': content})


def list_content(params: dict) -> dict:
    limit = parse_limit(params)

    if params.get('campaignId'):
        query_kwargs = {
            'IndexName': 'campaignId-index',
            'KeyConditionExpression': Key('campaignId').eq(params['campaignId']),
        }
    elif params.get('type'):
        query_kwargs = {
            'IndexName': 'type-createdAt-index',
            'KeyConditionExpression': Key('type').eq(params['type']),
            'ScanIndexForward': False,
        }
    elif params.get('status'):
        query_kwargs = {
            'IndexName': 'status-scheduledAt-index',
            'KeyConditionExpression': Key('status').eq(params['status']),
            'ScanIndexForward': False,
        }
    else:
        raise InvalidRequestError('At least one filter required: campaignId, type, or status')

    items = CONTENT_TABLE.query(Limit=limit, **query_kwargs).get('Items', [])
    return build_response(200, {'items': items, 'count': len(items)})


def get_content(content_id: str | None) -> dict:
    if not content_id:
        raise InvalidRequestError('Missing contentId')

    item = CONTENT_TABLE.get_item(Key={'contentId': content_id}).get('Item')
    if not item:
        return build_response(404, {'error': 'Content not found'})
    return build_response(200, item)


def _update_content(content_id: str | None, updates: dict, action: str, details: dict) -> dict:
    if not content_id:
        raise InvalidRequestError('Missing contentId')

    CONTENT_TABLE.update_item(Key={'contentId': content_id}, **build_update_expression(updates))
    _audit(action, content_id, details)
    return build_response(200, {'success': True, 'contentId': content_id})


def update_content(params: dict) -> dict:
    updates = dict(params)
    content_id = updates.pop('contentId', None)
    return _update_content(content_id, updates, 'content_updated', {'updates': updates})


def delete_content(content_id: str | None) -> dict:
    """Soft delete: the item stays in the table with status 'archived'."""
    return _update_content(content_id, {'status': ContentStatus.ARCHIVED.value}, 'content_deleted', {})


def approve_content(params: dict) -> dict:
    reviewer = params.get('reviewedBy', 'admin')
    updates = {
        'status': ContentStatus.APPROVED.value,
        'reviewedBy': reviewer,
        'reviewedAt': utc_now_iso(),
    }
    return _update_content(params.get('contentId'), updates, 'content_approved', {'reviewedBy': reviewer})


def reject_content(params: dict) -> dict:
    require_fields(params, 'contentId', 'reason')
    reviewer = params.get('reviewedBy', 'admin')
    updates = {
        'status': ContentStatus.REJECTED.value,
        'rejectionReason': params['reason'],
        'reviewedBy': reviewer,
        'reviewedAt': utc_now_iso(),
    }
    return _update_content(params['contentId'], updates, 'content_rejected', {
        'reviewedBy': reviewer,
        'reason': params['reason'],
    })


ROUTES = {
    '/content/generate': ('POST', lambda event, body, query: generate_content(body)),
    '/content/list': ('GET', lambda event, body, query: list_content(query)),
    '/content/get': ('GET', lambda event, body, query: get_content(query.get('contentId'))),
    '/content/update': ('PUT', lambda event, body, query: update_content(body)),
    '/content/delete': ('DELETE', lambda event, body, query: delete_content(query.get('contentId'))),
    '/content/approve': ('POST', lambda event, body, query: approve_content(body)),
    '/content/reject': ('POST', lambda event, body, query: reject_content(body)),
}


def handler(event: dict, context: object) -> dict:
    """
    API Gateway handler for AI content generation and the content review queue.
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
