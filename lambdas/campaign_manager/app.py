# lambdas/campaign_manager/app.py
import json

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

from lambdas.common.dynamo import build_update_expression, log_action, to_item, utc_now_iso
from lambdas.common.models import Campaign, CampaignStatus
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

# Initialize resources once for Lambda container reuse
settings = get_settings()
DYNAMODB_RESOURCE = boto3.resource('dynamodb', region_name=settings.aws_region)
CAMPAIGNS_TABLE = DYNAMODB_RESOURCE.Table(settings.campaigns_table)
AUDIT_LOGS_TABLE = DYNAMODB_RESOURCE.Table(settings.audit_logs_table)


def _audit(action: str, campaign_id: str, details: dict) -> None:
    log_action(AUDIT_LOGS_TABLE, action, 'agent', 'campaign', campaign_id, details)


def create_campaign(params: dict) -> dict:
    require_fields(params, 'name', 'description', 'type')
    campaign = Campaign.from_request(params).to_document()

    try:
        CAMPAIGNS_TABLE.put_item(
            Item=to_item(campaign),
            ConditionExpression='attribute_not_exists(campaignId)'  # Prevent overwrite
        )
    except ClientError as e:
        if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
            return build_response(409, {'error': 'Campaign already exists'})
        raise

    _audit('campaign_created', campaign['campaignId'], {
        'name': campaign['name'],
        'type': campaign['type'],
        'status': campaign['status'],
    })
    print(f"Created campaign {campaign['campaignId']}")
    return build_response(201, {'success': True, 'campaign': campaign})


def list_campaigns(params: dict) -> dict:
    status = params.get('status')
    campaign_type = params.get('type')
    limit = parse_limit(params)

    if status:
        result = CAMPAIGNS_TABLE.query(
            IndexName='status-createdAt-index',
            KeyConditionExpression=Key('status').eq(status),
            ScanIndexForward=False,
            Limit=limit
        )
        items = result.get('Items', [])
        if campaign_type:
            items = [item for item in items if item.get('type') == campaign_type]
    else:
        scan_kwargs = {'Limit': limit}
        if campaign_type:
            scan_kwargs['FilterExpression'] = Attr('type').eq(campaign_type)
        items = CAMPAIGNS_TABLE.scan(**scan_kwargs).get('Items', [])

    return build_response(200, {'items': items, 'count': len(items)})


def get_campaign(campaign_id: str | None) -> dict:
    if not campaign_id:
        raise InvalidRequestError('Missing campaignId')

    item = CAMPAIGNS_TABLE.get_item(Key={'campaignId': campaign_id}).get('Item')
    if not item:
        return build_response(404, {'error': 'Campaign not found'})
    return build_response(200, item)


def update_campaign(params: dict) -> dict:
    updates = dict(params)
    campaign_id = updates.pop('campaignId', None)
    if not campaign_id:
        raise InvalidRequestError('Missing campaignId')

    CAMPAIGNS_TABLE.update_item(Key={'campaignId': campaign_id}, **build_update_expression(updates))
    _audit('campaign_updated', campaign_id, {'updates': updates})
    return build_response(200, {'success': True, 'campaignId': campaign_id})


def set_campaign_status(campaign_id: str | None, status: CampaignStatus, action: str) -> dict:
    """Archive and activate are both unguarded status writes."""
    if not campaign_id:
        raise InvalidRequestError('Missing campaignId')

    CAMPAIGNS_TABLE.update_item(
        Key={'campaignId': campaign_id},
        UpdateExpression='SET #status = :status, #updatedAt = :updatedAt',
        ExpressionAttributeNames={'#status': 'status', '#updatedAt': 'updatedAt'},
        ExpressionAttributeValues={':status': status.value, ':updatedAt': utc_now_iso()}
    )
    _audit(action, campaign_id, {})
    return build_response(200, {'success': True, 'campaignId': campaign_id, 'status': status.value})


ROUTES = {
    '/campaigns/create': ('POST', lambda event, body, query: create_campaign(body)),
    '/campaigns/list': ('GET', lambda event, body, query: list_campaigns(query)),
    '/campaigns/get': ('GET', lambda event, body, query: get_campaign(query.get('campaignId'))),
    '/campaigns/update': ('PUT', lambda event, body, query: update_campaign(body)),
    '/campaigns/archive': ('POST', lambda event, body, query: set_campaign_status(
        body.get('campaignId'), CampaignStatus.ARCHIVED, 'campaign_archived')),
    '/campaigns/activate': ('POST', lambda event, body, query: set_campaign_status(
        body.get('campaignId'), CampaignStatus.ACTIVE, 'campaign_activated')),
}


def handler(event: dict, context: object) -> dict:
    """
    API Gateway handler for campaign CRUD.
    Every route requires an X-Api-Key header; the authorizer validates its value.
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
