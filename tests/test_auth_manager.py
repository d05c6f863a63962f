# tests/test_auth_manager.py
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from lambdas.auth_manager import app

METHOD_ARN = 'arn:aws:execute-api:ap-southeast-2:123456789012:abc123/prod/GET/campaigns/list'


def future(days: int = 30) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


@pytest.fixture
def tables():
    with patch.object(app, 'API_KEYS_TABLE') as keys, patch.object(app, 'AUDIT_LOGS_TABLE') as audit:
        yield keys, audit


def authorizer_event(api_key='pdh_live_abc'):
    headers = {'User-Agent': 'agent-test'}
    if api_key:
        headers['X-Api-Key'] = api_key
    return {
        'methodArn': METHOD_ARN,
        'httpMethod': 'GET',
        'path': '/campaigns/list',
        'headers': headers,
        'requestContext': {'requestId': 'req-1', 'identity': {'sourceIp': '203.0.113.9'}},
    }


def admin_event(api_event, method, path, body=None, query=None, master_key='master-test-key'):
    headers = {'X-Master-Key': master_key} if master_key else {}
    return api_event(method, path, body=body, query=query, headers=headers, api_key=None)


# Authorizer
def test_authorize_allows_active_key(tables):
    keys, audit = tables
    keys.query.return_value = {'Items': [{
        'keyId': 'k1', 'status': 'active', 'expiresAt': future(), 'permissions': ['content:read', 'content:write'],
    }]}

    policy = app.authorize(authorizer_event(), None)

    assert policy['principalId'] == 'k1'
    assert policy['policyDocument']['Statement'][0] == {
        'Action': 'execute-api:Invoke', 'Effect': 'Allow', 'Resource': METHOD_ARN}
    assert policy['context'] == {'keyId': 'k1', 'permissions': 'content:read,content:write'}
    assert keys.update_item.call_args.kwargs['Key'] == {'keyId': 'k1'}

    usage = audit.put_item.call_args.kwargs['Item']
    assert usage['action'] == 'api_key_used'
    assert usage['ip'] == '203.0.113.9'
    assert usage['userAgent'] == 'agent-test'


@pytest.mark.parametrize('stored', [
    [],
    [{'keyId': 'k1', 'status': 'revoked', 'expiresAt': future()}],
    [{'keyId': 'k1', 'status': 'active', 'expiresAt': future(-1)}],
])
def test_authorize_denies_unusable_keys(tables, stored):
    keys, audit = tables
    keys.query.return_value = {'Items': stored}

    policy = app.authorize(authorizer_event(), None)

    assert policy['principalId'] == 'user'
    assert policy['policyDocument']['Statement'][0]['Effect'] == 'Deny'
    keys.update_item.assert_not_called()
    audit.put_item.assert_not_called()


def test_authorize_denies_missing_header(tables):
    keys, _ = tables
    policy = app.authorize(authorizer_event(api_key=None), None)

    assert policy['policyDocument']['Statement'][0]['Effect'] == 'Deny'
    keys.query.assert_not_called()


def test_authorize_denies_on_error(tables):
    keys, _ = tables
    keys.query.side_effect = RuntimeError('dynamo down')

    assert app.authorize(authorizer_event(), None)['policyDocument']['Statement'][0]['Effect'] == 'Deny'


def test_generate_secure_api_key():
    first, second = app.generate_secure_api_key(), app.generate_secure_api_key()
    assert first.startswith('pdh_live_')
    assert len(first) > len('pdh_live_') + 40
    assert first != second


# Admin API
def test_admin_requires_master_key(api_event, body_of, tables):
    for master_key in (None, 'wrong-key'):
        response = app.handler(admin_event(api_event, 'GET', '/api-keys/list', master_key=master_key), None)
        assert response['statusCode'] == 401
        assert body_of(response) == {'error': 'Unauthorized'}
        assert 'X-Master-Key' in response['headers']['Access-Control-Allow-Headers']


def test_admin_denies_everything_without_configured_master_key(api_event, tables):
    with patch.object(app.settings, 'master_key', ''):
        response = app.handler(admin_event(api_event, 'GET', '/api-keys/list', master_key=''), None)
    assert response['statusCode'] == 401


def test_create_api_key_returns_secret_once(api_event, body_of, tables):
    keys, audit = tables
    response = app.handler(admin_event(api_event, 'POST', '/api-keys/create', body={
        'name': 'agent', 'permissions': ['content:write'], 'expiresInDays': 30}), None)

    assert response['statusCode'] == 201
    body = body_of(response)
    assert body['apiKey'].startswith('pdh_live_')

    stored = keys.put_item.call_args.kwargs['Item']
    assert stored['apiKey'] == body['apiKey']
    assert stored['permissions'] == ['content:write']
    assert stored['status'] == 'active'
    assert stored['rateLimit'] == {'requestsPerMinute': 60, 'requestsPerDay': 10000}
    assert audit.put_item.call_args.kwargs['Item']['userAgent'] == 'ProDentHub-Admin/1.0'


def test_create_api_key_validates_input(api_event, tables):
    assert app.handler(admin_event(api_event, 'POST', '/api-keys/create', body={}), None)['statusCode'] == 400
    assert app.handler(admin_event(api_event, 'POST', '/api-keys/create', body={
        'name': 'x', 'expiresInDays': 'soon'}), None)['statusCode'] == 400


def test_list_api_keys_hides_secrets(api_event, body_of, tables):
    keys, _ = tables
    keys.query.return_value = {'Items': [{
        'keyId': 'k1', 'apiKey': 'pdh_live_secret', 'name': 'agent', 'status': 'active',
    }]}

    response = app.handler(admin_event(api_event, 'GET', '/api-keys/list'), None)

    item = body_of(response)['items'][0]
    assert 'apiKey' not in item
    assert item['keyId'] == 'k1'
    assert keys.query.call_args.kwargs['IndexName'] == 'status-index'


def test_revoke_api_key(api_event, body_of, tables):
    keys, _ = tables
    response = app.handler(admin_event(api_event, 'POST', '/api-keys/revoke', body={'keyId': 'k1'}), None)

    assert body_of(response) == {'success': True, 'keyId': 'k1', 'status': 'revoked'}
    assert keys.update_item.call_args.kwargs['ExpressionAttributeValues'] == {':status': 'revoked'}


def test_update_api_key_never_changes_secret(api_event, body_of, tables):
    keys, _ = tables
    response = app.handler(admin_event(api_event, 'PUT', '/api-keys/update', body={
        'keyId': 'k1', 'apiKey': 'pdh_live_stolen', 'name': 'renamed'}), None)

    assert response['statusCode'] == 200
    kwargs = keys.update_item.call_args.kwargs
    assert kwargs['ExpressionAttributeNames'] == {'#field0': 'name'}
    assert 'pdh_live_stolen' not in kwargs['ExpressionAttributeValues'].values()

    response = app.handler(admin_event(api_event, 'PUT', '/api-keys/update', body={
        'keyId': 'k1', 'apiKey': 'pdh_live_stolen'}), None)
    assert response['statusCode'] == 400
