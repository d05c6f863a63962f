# lambdas/agent_orchestrator/app.py
import json
from datetime import datetime, timezone

import requests

from lambdas.agent_orchestrator.api_client import AgentAPIClient
from lambdas.agent_orchestrator.scheduler import due_scheduled_content, recently_published, should_generate_content
from lambdas.common.settings import get_settings

ANALYTICS_WINDOW_DAYS = 7
PUBLISHED_CONTENT_LIMIT = 100

settings = get_settings()
api_client = AgentAPIClient(settings.api_base_url, settings.agent_api_key)


def generate_for_due_campaigns(client: AgentAPIClient, now: datetime) -> dict:
    """Generates content for every active campaign that is due, auto-publishing where configured."""
    summary = {'campaigns': 0, 'generated': 0, 'published': 0, 'queuedForReview': 0, 'errors': 0}

    campaigns = client.get_active_campaigns()
    summary['campaigns'] = len(campaigns)
    print(f"Found {len(campaigns)} active campaigns")

    for campaign in campaigns:
        campaign_id = campaign.get('campaignId')
        if not should_generate_content(campaign, now):
            continue

        try:
            print(f"Generating content for campaign: {campaign_id}")
            content = client.generate_for_campaign(campaign)
            summary['generated'] += 1
            print(f"Generated content: {content['contentId']}")

            if (campaign.get('contentSchedule') or {}).get('autoPublish'):
                for target in client.get_targets_for_campaign(campaign):
                    client.publish(content, target)
                    summary['published'] += 1
                    print(f"Published to {target.get('platform')} {target.get('type')}: {target.get('name')}")
            else:
                summary['queuedForReview'] += 1
                print(f"Content queued for review: {content['contentId']}")

        except (requests.exceptions.RequestException, KeyError) as e:
            summary['errors'] += 1
            print(f"❌ Error processing campaign {campaign_id}: {e}")

    return summary


def publish_scheduled(client: AgentAPIClient, now: datetime) -> dict:
    summary = {'due': 0, 'published': 0, 'errors': 0}

    due = due_scheduled_content(client.list_content('scheduled'), now)
    summary['due'] = len(due)
    print(f"Found {len(due)} scheduled content items due")

    for content in due:
        target = client.get_target(content.get('targetGroupId'))
        if not target:
            print(f"No active target for scheduled content: {content.get('contentId')}")
            continue
        try:
            client.publish(content, target)
            summary['published'] += 1
            print(f"Published scheduled content: {content.get('contentId')}")
        except requests.exceptions.RequestException as e:
            summary['errors'] += 1
            print(f"❌ Error publishing {content.get('contentId')}: {e}")

    return summary


def collect_analytics(client: AgentAPIClient, now: datetime, days: int = ANALYTICS_WINDOW_DAYS) -> dict:
    published = client.list_content('published', limit=PUBLISHED_CONTENT_LIMIT)
    recent = recently_published(published, days, now)
    print(f"Collecting analytics for {len(recent)} content items")

    records = 0
    for content in recent:
        records += len(client.get_analytics(content['contentId']))
    return {'contentItems': len(recent), 'analyticsRecords': records}


def run_agent_workflow(client: AgentAPIClient, now: datetime) -> dict:
    print("Starting agent workflow...")
    result = {
        'generation': generate_for_due_campaigns(client, now),
        'scheduled': publish_scheduled(client, now),
        'analytics': collect_analytics(client, now),
    }
    print("✅ Agent workflow completed")
    return result


TASKS = {
    'workflow': run_agent_workflow,
    'publish_scheduled': publish_scheduled,
    'collect_analytics': collect_analytics,
}


def handler(event, context):
    """
    Entry point for the scheduled agent runs (EventBridge rules).
    The event's `task` picks the job: workflow (default), publish_scheduled or collect_analytics.
    """
    event = event or {}
    task = event.get('task', 'workflow')
    print(f"Agent task requested: {task}")

    task_fn = TASKS.get(task)
    if not task_fn:
        return {'statusCode': 400, 'body': json.dumps({'error': f"Unknown task: {task}"})}

    try:
        result = task_fn(api_client, datetime.now(timezone.utc))
        return {'statusCode': 200, 'body': json.dumps({'success': True, 'task': task, 'result': result})}
    except Exception as e:
        print(f"❌ Error in agent task {task}: {e}")
        return {'statusCode': 500, 'body': json.dumps({'error': str(e)})}
