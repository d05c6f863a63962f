# tests/conftest.py
import json
import os

import pytest

# Handler modules read settings and build boto3 clients at import time,
# so the environment must be in place before any test module imports them.
os.environ.update({
    "AWS_DEFAULT_REGION": "ap-southeast-2",
    "AWS_REGION": "ap-southeast-2",
    "AWS_ACCESS_KEY_ID": "testing",
    "AWS_SECRET_ACCESS_KEY": "testing",
    "AI_PROVIDER": "bedrock",
    "AI_MODEL": "anthropic.claude-3-5-sonnet-20241022-v2:0",
    "STRIPE_SECRET_KEY": "sk_test_dummy",
    "STRIPE_WEBHOOK_SECRET": "whsec_test_secret",
    "FRONTEND_URL": "https://campaigns.example.com",
    "SES_FROM_EMAIL": "noreply@example.com",
    "PROJECT_NAME": "prodenthub",
    "ENVIRONMENT": "test",
    "MASTER_KEY": "master-test-key",
    "API_BASE_URL": "https://api.example.com/v1",
    "API_KEY": "pdh_live_agent",
})


@pytest.fixture
def api_event():
    """Factory for API Gateway (REST v1 proxy) events."""
    def _make(method: str, path: str, body=None, query=None, headers=None, api_key="pdh_live_test"):
        event_headers = {"Content-Type": "application/json"}
        if api_key:
            event_headers["X-Api-Key"] = api_key
        event_headers.update(headers or {})
        return {
            "httpMethod": method,
            "path": path,
            "headers": event_headers,
            "queryStringParameters": query,
            "body": json.dumps(body) if isinstance(body, (dict, list)) else body,
        }
    return _make


def response_body(response: dict):
    return json.loads(response["body"]) if response["body"] else None


@pytest.fixture
def body_of():
    return response_body
