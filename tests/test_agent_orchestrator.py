# tests/test_agent_orchestrator.py
import json
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
import requests

from lambdas.agent_orchestrator import app
from lambdas.agent_orchestrator.api_client import AgentAPIClient
from lambdas.agent_orchestrator.scheduler import (
    determine_content_types,
    due_scheduled_content,
    recently_published,
    should_generate_content,
)

# A Wednesday
NOW = datetime(2025, 3, 12, 9, 0, tzinfo=timezone.utc)


def campaign(**schedule) -> dict:
    return {
        'campaignId': 'campaign-adc',
        'name': 'ADC Prep',
        'description': 'Pass the ADC',
        'landingPageUrl': 'https://campaigns.prodenthub.com.au/adc/',
        'contentSchedule': {'autoGenerate': True, **schedule},
    }


# Scheduling rules
@pytest.mark.parametrize('schedule, expected', [
    ({'frequency': 'daily'}, True),
    ({'frequency': 'weekly', 'daysOfWeek': ['Wednesday']}, True),
    ({'frequency': 'weekly', 'daysOfWeek': ['Monday']}, False),
    ({'frequency': 'weekly'}, False),
    ({'frequency': '3_times_per_week'}, True),
    ({'frequency': '3_times_per_week', 'daysOfWeek': ['Tuesday']}, False),
    ({'frequency': 'monthly'}, False),
    ({'frequency': 'daily', 'autoGenerate': False}, False),
])
def test_should_generate_content(schedule, expected):
    assert should_generate_content(campaign(**schedule), NOW) is expected


def test_generates_at_most_once_per_day():
    item = campaign(frequency='daily')
    item['lastContentGenerated'] = '2025-03-12T01:00:00+00:00'
    assert should_generate_content(item, NOW) is False

    item['lastContentGenerated'] = '2025-03-11T23:00:00+00:00'
    assert should_generate_content(item, NOW) is True


def test_determine_content_types():
    assert determine_content_types(campaign(platforms=['email', 'facebook'])) == ['facebook_post', 'email']
    assert determine_content_types(campaign(platforms=['tiktok'])) == ['facebook_post']
    assert determine_content_types({}) == ['facebook_post']


def test_due_and_recent_filters():
    items = [
        {'contentId': 'past', 'scheduledAt': '2025-03-12T08:00:00Z', 'publishedAt': '2025-03-10T00:00:00Z'},
        {'contentId': 'now', 'scheduledAt': '2025-03-12T09:00:00+00:00', 'publishedAt': '2025-02-01T00:00:00Z'},
        {'contentId': 'future', 'scheduledAt': '2025-03-12T10:00:00+00:00'},
        {'contentId': 'none'},
    ]
    assert [i['contentId'] for i in due_scheduled_content(items, NOW)] == ['past', 'now']
    assert [i['contentId'] for i in recently_published(items, 7, NOW)] == ['past']


# API client
def http_response(payload: dict) -> MagicMock:
    response = MagicMock()
    response.json.return_value = payload
    return response


@patch('lambdas.agent_orchestrator.api_client.requests.get')
def test_client_lists_with_api_key(mock_get):
    mock_get.return_value = http_response({'items': [{'campaignId': 'c1'}], 'count': 1})
    client = AgentAPIClient('https://api.example.com/v1/', 'pdh_live_agent')

    assert client.get_active_campaigns() == [{'campaignId': 'c1'}]
    args, kwargs = mock_get.call_args
    assert args[0] == 'https://api.example.com/v1/campaigns/list'
    assert kwargs['params'] == {'status': 'active'}
    assert kwargs['headers']['X-Api-Key'] == 'pdh_live_agent'


@patch('lambdas.agent_orchestrator.api_client.requests.get')
def test_client_list_errors_become_empty(mock_get):
    mock_get.side_effect = requests.exceptions.ConnectionError('offline')
    client = AgentAPIClient('https://api.example.com/v1', 'key')

    assert client.list_content('scheduled') == []
    assert client.get_analytics('c1') == []


@patch('lambdas.agent_orchestrator.api_client.requests.post')
def test_client_generate_for_campaign(mock_post):
    mock_post.return_value = http_response({'success': True, 'content': {'contentId': 'c9'}})
    client = AgentAPIClient('https://api.example.com/v1', 'key')

    content = client.generate_for_campaign(campaign(platforms=['facebook']))

    assert content == {'contentId': 'c9'}
    args, kwargs = mock_post.call_args
    assert args[0] == 'https://api.example.com/v1/content/generate'
    payload = json.loads(kwargs['data'])
    assert payload['type'] == 'facebook_post'
    assert payload['variables']['ctaUrl'] == 'https://campaigns.prodenthub.com.au/adc/'
    assert kwargs['timeout'] == 60


@patch('lambdas.agent_orchestrator.api_client.requests.get')
def test_client_get_target(mock_get):
    mock_get.return_value = http_response({'items': [{'targetId': 't1'}, {'targetId': 't2'}]})
    client = AgentAPIClient('https://api.example.com/v1', 'key')

    assert client.get_target('t2') == {'targetId': 't2'}
    assert client.get_target('t3') is None
    assert client.get_target(None) is None


# Workflow
@pytest.fixture
def client():
    mock_client = MagicMock(spec=AgentAPIClient)
    mock_client.list_content.return_value = []
    mock_client.get_analytics.return_value = []
    return mock_client


def test_generate_auto_publishes_to_every_target(client):
    client.get_active_campaigns.return_value = [campaign(frequency='daily', autoPublish=True)]
    client.generate_for_campaign.return_value = {'contentId': 'c1'}
    client.get_targets_for_campaign.return_value = [{'targetId': 't1'}, {'targetId': 't2'}]

    summary = app.generate_for_due_campaigns(client, NOW)

    assert summary == {'campaigns': 1, 'generated': 1, 'published': 2, 'queuedForReview': 0, 'errors': 0}
    assert client.publish.call_count == 2


def test_generate_queues_for_review_without_auto_publish(client):
    client.get_active_campaigns.return_value = [
        campaign(frequency='daily'),
        campaign(frequency='weekly', daysOfWeek=['Sunday']),
    ]
    client.generate_for_campaign.return_value = {'contentId': 'c1'}

    summary = app.generate_for_due_campaigns(client, NOW)

    assert summary['generated'] == 1
    assert summary['queuedForReview'] == 1
    client.publish.assert_not_called()


def test_one_failing_campaign_does_not_stop_the_rest(client):
    client.get_active_campaigns.return_value = [campaign(frequency='daily'), campaign(frequency='daily')]
    client.generate_for_campaign.side_effect = [
        requests.exceptions.HTTPError('500 Server Error'),
        {'contentId': 'c2'},
    ]

    summary = app.generate_for_due_campaigns(client, NOW)

    assert summary['errors'] == 1
    assert summary['generated'] == 1


def test_publish_scheduled(client):
    client.list_content.return_value = [
        {'contentId': 'due', 'scheduledAt': '2025-03-12T08:00:00Z', 'targetGroupId': 't1'},
        {'contentId': 'orphan', 'scheduledAt': '2025-03-12T08:00:00Z', 'targetGroupId': 'gone'},
        {'contentId': 'later', 'scheduledAt': '2025-03-13T08:00:00Z', 'targetGroupId': 't1'},
    ]
    client.get_target.side_effect = lambda target_id: {'targetId': 't1'} if target_id == 't1' else None

    summary = app.publish_scheduled(client, NOW)

    assert summary == {'due': 2, 'published': 1, 'errors': 0}
    client.list_content.assert_called_once_with('scheduled')
    client.publish.assert_called_once_with(
        {'contentId': 'due', 'scheduledAt': '2025-03-12T08:00:00Z', 'targetGroupId': 't1'}, {'targetId': 't1'})


def test_collect_analytics(client):
    client.list_content.return_value = [
        {'contentId': 'recent', 'publishedAt': '2025-03-10T00:00:00Z'},
        {'contentId': 'old', 'publishedAt': '2025-01-10T00:00:00Z'},
    ]
    client.get_analytics.return_value = [{'date': '2025-03-11'}, {'date': '2025-03-10'}]

    assert app.collect_analytics(client, NOW) == {'contentItems': 1, 'analyticsRecords': 2}
    client.get_analytics.assert_called_once_with('recent')


def test_handler_runs_requested_task(client):
    with patch.object(app, 'api_client', client):
        response = app.handler({'task': 'publish_scheduled'}, None)
        assert response['statusCode'] == 200
        assert json.loads(response['body']) == {
            'success': True, 'task': 'publish_scheduled', 'result': {'due': 0, 'published': 0, 'errors': 0}}

        client.get_active_campaigns.return_value = []
        workflow = json.loads(app.handler({}, None)['body'])
        assert workflow['task'] == 'workflow'
        assert set(workflow['result']) == {'generation', 'scheduled', 'analytics'}

        assert app.handler({'task': 'dance'}, None)['statusCode'] == 400

        client.list_content.side_effect = RuntimeError('boom')
        failed = app.handler({'task': 'collect_analytics'}, None)
        assert failed['statusCode'] == 500
        assert json.loads(failed['body']) == {'error': 'boom'}
