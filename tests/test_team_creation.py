# tests/test_team_creation.py
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from lambdas.team_creation import app

LEADER = {'firstName': 'Priya', 'lastName': 'Shah', 'email': 'priya@example.com', 'country': 'India'}
MEMBERS = [
    {'name': 'Ana Lima', 'email': 'ana@example.com'},
    {'name': 'Tom Reid', 'email': 'tom@example.com'},
]


@pytest.fixture
def teams_table():
    with patch.object(app, 'TEAMS_TABLE') as table:
        yield table


def team_event(api_event, body):
    return api_event('POST', '/v1/teams/create', body=body, api_key=None)


def test_create_team_prices_server_side(api_event, body_of, teams_table):
    response = app.handler(team_event(api_event, {
        'leader': LEADER,
        'members': MEMBERS,
        'pricing': {'totalPrice': 1, 'pricePerMember': 0.33},
    }), None)

    assert response['statusCode'] == 200
    body = body_of(response)
    assert body['message'] == 'Team created successfully'
    assert body['teamId'].startswith('team_')

    team = body['team']
    assert team['totalMembers'] == 3
    assert team['totalAmount'] == 299
    assert team['pricePerMember'] == 99.67
    assert team['status'] == 'created'
    assert team['planType'] == 'full-6months'
    assert [m['status'] for m in team['members']] == ['pending', 'pending']
    assert all(m['shareAmount'] == 99.67 for m in team['members'])

    created = datetime.fromisoformat(team['createdAt'])
    expires = datetime.fromisoformat(team['expiresAt'])
    assert (expires.year * 12 + expires.month) - (created.year * 12 + created.month) == 6

    assert teams_table.put_item.call_args.kwargs['Item']['teamId'] == body['teamId']


@pytest.mark.parametrize('members, message', [
    ([], '1-4 members'),
    ([{'name': f'M{i}', 'email': f'm{i}@example.com'} for i in range(5)], '1-4 members'),
    ([{'name': 'Ana', 'email': 'PRIYA@example.com'}], 'unique email'),
    ([{'name': 'Ana', 'email': 'not-an-email'}], 'Invalid email'),
    ([{'email': 'ana@example.com'}], 'Member 1 requires name and email'),
])
def test_create_team_validation(api_event, body_of, teams_table, members, message):
    response = app.handler(team_event(api_event, {'leader': LEADER, 'members': members}), None)

    assert response['statusCode'] == 400
    assert message in body_of(response)['error']
    teams_table.put_item.assert_not_called()


def test_create_team_requires_leader_fields(api_event, body_of, teams_table):
    response = app.handler(team_event(api_event, {
        'leader': {'firstName': 'Priya', 'email': 'priya@example.com'}, 'members': MEMBERS}), None)

    assert response['statusCode'] == 400
    assert body_of(response) == {'error': 'Missing leader field: lastName'}


def test_get_team(api_event, body_of, teams_table):
    event = api_event('GET', '/v1/teams/team_abc', api_key=None)
    event['pathParameters'] = {'teamId': 'team_abc'}
    teams_table.get_item.return_value = {'Item': {'teamId': 'team_abc', 'status': 'fully_paid'}}

    response = app.handler(event, None)

    assert body_of(response) == {'teamId': 'team_abc', 'status': 'fully_paid'}
    teams_table.get_item.assert_called_once_with(Key={'teamId': 'team_abc'})

    teams_table.get_item.return_value = {}
    assert app.handler(event, None)['statusCode'] == 404

    event['pathParameters'] = None
    assert app.handler(event, None)['statusCode'] == 400


def test_options_and_unknown_routes(api_event, teams_table):
    preflight = app.handler(api_event('OPTIONS', '/v1/teams/create', api_key=None), None)
    assert preflight['statusCode'] == 200
    assert preflight['headers']['Access-Control-Allow-Methods'] == 'POST, GET, OPTIONS'

    assert app.handler(api_event('DELETE', '/v1/teams/create', api_key=None), None)['statusCode'] == 404


@pytest.mark.parametrize('start, expected', [
    (datetime(2025, 1, 15, tzinfo=timezone.utc), datetime(2025, 7, 15, tzinfo=timezone.utc)),
    (datetime(2025, 8, 31, tzinfo=timezone.utc), datetime(2026, 2, 28, tzinfo=timezone.utc)),
    (datetime(2023, 8, 31, tzinfo=timezone.utc), datetime(2024, 2, 29, tzinfo=timezone.utc)),
])
def test_add_months(start, expected):
    assert app.add_months(start, 6) == expected
