# lambdas/analytics_collector/app.py
import json
from datetime import datetime, timedelta, timezone
from urllib.parse import urlencode

import boto3
from boto3.dynamodb.conditions import Key

from lambdas.common import facebook_client
from lambdas.common.dynamo import build_update_expression, to_item, utc_now_iso
from lambdas.common.models import ContentStatus
from lambdas.common.settings import get_settings

RECENT_CONTENT_DAYS = 30
RECENT_CONTENT_LIMIT = 100

# Initialize resources once for Lambda container reuse
settings = get_settings()
DYNAMODB_RESOURCE = boto3.resource('dynamodb', region_name=settings.aws_region)
CONTENT_TABLE = DYNAMODB_RESOURCE.Table(settings.content_table)
ANALYTICS_TABLE = DYNAMODB_RESOURCE.Table(settings.analytics_table)
PUBLISHING_HISTORY_TABLE = DYNAMODB_RESOURCE.Table(settings.publishing_history_table)


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def get_recent_content(days: int = RECENT_CONTENT_DAYS, now: datetime | None = None) -> list:
    """Published content whose publishedAt falls within the last `days` days."""
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(days=days)

    items = CONTENT_TABLE.query(
        IndexName='status-scheduledAt-index',
        KeyConditionExpression=Key('status').eq(ContentStatus.PUBLISHED.value),
        Limit=RECENT_CONTENT_LIMIT
    ).get('Items', [])

    recent = []
    for item in items:
        published_at = _parse_timestamp(item.get('publishedAt'))
        if published_at and published_at >= cutoff:
            recent.append(item)
    return recent


def get_latest_publish_record(content_id: str) -> dict | None:
    items = PUBLISHING_HISTORY_TABLE.query(
        IndexName='contentId-publishedAt-index',
        KeyConditionExpression=Key('contentId').eq(content_id),
        ScanIndexForward=False,
        Limit=1
    ).get('Items', [])
    return items[0] if items else None


def store_daily_metrics(content_id: str, metrics: dict, today: str) -> dict:
    """Writes one analytics row per content item per day; a rerun on the same day overwrites it."""
    item = {
        'analyticsId': f"{content_id}_{today}",
        'contentId': content_id,
        'platform': 'facebook',
        'date': today,
        'metrics': {
            'impressions': metrics.get('impressions', 0),
            'reach': metrics.get('reach', 0),
            'engagement': metrics.get('engagement', 0),
            'clicks': metrics.get('clicks', 0),
            'likes': (metrics.get('reactions') or {}).get('like', 0),
            'comments': metrics.get('comments', 0),
            'shares': metrics.get('shares', 0),
        },
        'timestamp': utc_now_iso(),
    }
    ANALYTICS_TABLE.put_item(Item=to_item(item))
    return item


def aggregate_totals(rows: list) -> dict:
    totals = {'impressions': 0, 'clicks': 0, 'engagement': 0, 'conversions': 0}
    for row in rows:
        metrics = row.get('metrics') or {}
        totals['impressions'] += int(metrics.get('impressions', 0))
        totals['clicks'] += int(metrics.get('clicks', 0))
        totals['engagement'] += int(metrics.get('engagement', 0))
    return totals


def update_content_analytics(content_id: str) -> dict:
    rows = ANALYTICS_TABLE.query(
        IndexName='contentId-date-index',
        KeyConditionExpression=Key('contentId').eq(content_id)
    ).get('Items', [])

    totals = aggregate_totals(rows)
    CONTENT_TABLE.update_item(Key={'contentId': content_id}, **build_update_expression({'analytics': totals}))
    return totals


def collect_for_content(content: dict, today: str) -> None:
    content_id = content['contentId']
    print(f"Collecting analytics for: {content_id}")

    publish_record = get_latest_publish_record(content_id)
    if not publish_record:
        print(f"No publishing history found for: {content_id}")
        return

    if content.get('platform') == 'facebook':
        external_id = publish_record.get('externalId')
        if not external_id:
            print(f"No external ID found for: {content_id}")
        else:
            credentials = facebook_client.get_facebook_credentials()
            data = facebook_client.fetch_post_insights(external_id, credentials['accessToken'])
            store_daily_metrics(content_id, facebook_client.parse_metrics(data), today)
            print(f"Analytics collected for {content_id}")

    update_content_analytics(content_id)


def generate_utm_params(campaign: dict, platform: str, content_type: str) -> str:
    """Landing-page URL tagged so conversions can be attributed to the post that drove them."""
    params = urlencode({
        'utm_source': platform,
        'utm_medium': 'paid' if content_type == 'ad_copy' else 'organic',
        'utm_campaign': campaign['campaignId'],
        'utm_content': content_type,
    })
    return f"{campaign['landingPageUrl']}?{params}"


def handler(event: dict, context: object) -> dict:
    """
    Scheduled (EventBridge) collector: pulls insights for recently published
    content and rolls them up into each content item's analytics totals.
    """
    print(f"Received event: {json.dumps(event, default=str)}")

    try:
        recent_content = get_recent_content()
        print(f"Found {len(recent_content)} recent content items")

        today = datetime.now(timezone.utc).date().isoformat()
        for content in recent_content:
            try:
                collect_for_content(content, today)
            except Exception as e:
                # One bad post must not stop the rest of the batch
                print(f"Error collecting analytics for {content.get('contentId')}: {e}")

        return {
            'statusCode': 200,
            'body': json.dumps({'success': True, 'itemsProcessed': len(recent_content)})
        }

    except Exception as e:
        print(f"Error in analytics collection: {e}")
        return {
            'statusCode': 500,
            'body': json.dumps({'error': str(e)})
        }
