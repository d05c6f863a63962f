# lambdas/common/facebook_client.py
"""
Thin wrapper over the Facebook Graph API calls the agent needs: publishing a
feed post to a group or page, and reading post insights.
"""
import json

import boto3
import requests
from botocore.exceptions import ClientError

from lambdas.common.settings import get_settings

FB_API_VERSION = "v18.0"
FB_BASE_URL = f"https://graph.facebook.com/{FB_API_VERSION}"
INSIGHT_METRICS = "post_impressions,post_engaged_users,post_clicks,post_reactions_by_type_total"
REQUEST_TIMEOUT_SECONDS = 10

settings = get_settings()
SECRETS_CLIENT = boto3.client('secretsmanager', region_name=settings.aws_region)


class FacebookAPIError(RuntimeError):
    pass


def get_facebook_credentials(secrets_client=None) -> dict:
    """Reads the Graph API credentials JSON from Secrets Manager."""
    client = secrets_client or SECRETS_CLIENT
    try:
        result = client.get_secret_value(SecretId=settings.facebook_secret_name)
        secret = json.loads(result['SecretString'])
    except (ClientError, KeyError, json.JSONDecodeError) as e:
        print(f"Error retrieving Facebook credentials: {e}")
        raise RuntimeError('Failed to retrieve Facebook credentials') from e

    return {
        'accessToken': secret.get('access_token'),
        'appId': secret.get('app_id'),
        'appSecret': secret.get('app_secret'),
    }


def _error_message(error: requests.exceptions.RequestException) -> str:
    """Prefers the Graph API's own error message over the HTTP status text."""
    response = getattr(error, 'response', None)
    if response is not None:
        try:
            return response.json()['error']['message']
        except (ValueError, KeyError, TypeError):
            pass
    return str(error)


def _post_to_feed(node_id: str, post_data: dict) -> str:
    url = f"{FB_BASE_URL}/{node_id}/feed"
    try:
        response = requests.post(url, data=post_data, timeout=REQUEST_TIMEOUT_SECONDS)
        response.raise_for_status()
        return response.json()['id']
    except requests.exceptions.RequestException as e:
        message = _error_message(e)
        print(f"Facebook API error: {message}")
        raise FacebookAPIError(f"Facebook API error: {message}") from e


def _post_number(post_id: str) -> str:
    # Graph post ids look like '<node id>_<post number>'.
    parts = post_id.split('_', 1)
    return parts[1] if len(parts) == 2 else parts[0]


def publish_to_group(group_id: str, post_data: dict) -> dict:
    post_id = _post_to_feed(group_id, post_data)
    return {
        'id': post_id,
        'url': f"https://www.facebook.com/groups/{group_id}/posts/{_post_number(post_id)}/",
    }


def publish_to_page(page_id: str, post_data: dict) -> dict:
    post_id = _post_to_feed(page_id, post_data)
    return {
        'id': post_id,
        'url': f"https://www.facebook.com/{page_id}/posts/{_post_number(post_id)}/",
    }


def fetch_post_insights(post_id: str, access_token: str) -> list:
    """Returns the raw `data` list of the post's insights."""
    url = f"{FB_BASE_URL}/{post_id}/insights"
    try:
        response = requests.get(
            url,
            params={'access_token': access_token, 'metric': INSIGHT_METRICS},
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
        return response.json().get('data', [])
    except requests.exceptions.RequestException as e:
        message = _error_message(e)
        print(f"Facebook API error: {message}")
        raise FacebookAPIError(f"Facebook API error: {message}") from e


def parse_metrics(data: list) -> dict:
    """Flattens Graph insight entries into impressions/engagement/clicks/reactions."""
    metrics = {
        'impressions': 0,
        'reach': 0,
        'engagement': 0,
        'clicks': 0,
        'reactions': {},
    }
    field_by_metric = {
        'post_impressions': 'impressions',
        'post_engaged_users': 'engagement',
        'post_clicks': 'clicks',
    }

    for entry in data:
        values = entry.get('values') or [{}]
        value = values[0].get('value')
        name = entry.get('name')
        if name in field_by_metric:
            metrics[field_by_metric[name]] = value or 0
        elif name == 'post_reactions_by_type_total':
            metrics['reactions'] = value or {}

    return metrics
