# lambdas/common/responses.py
import json
from decimal import Decimal

# CORS profiles for the three API surfaces
AGENT_API_CORS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Headers': 'Content-Type,X-Api-Key',
    'Access-Control-Allow-Methods': 'GET,POST,PUT,DELETE,OPTIONS'
}

ADMIN_API_CORS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Headers': 'Content-Type,X-Api-Key,X-Master-Key',
    'Access-Control-Allow-Methods': 'GET,POST,PUT,DELETE,OPTIONS'
}


def public_cors(frontend_url: str | None, methods: str = 'POST, OPTIONS') -> dict:
    """CORS headers for the landing-page endpoints, locked to the frontend origin."""
    return {
        'Access-Control-Allow-Origin': frontend_url or '*',
        'Access-Control-Allow-Headers': 'Content-Type',
        'Access-Control-Allow-Methods': methods
    }


def json_default(value):
    """DynamoDB hands back every number as Decimal; render whole numbers as int."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def build_response(status_code: int, body, cors: dict | None = None) -> dict:
    """Helper function to build the API Gateway proxy response."""
    headers = {'Content-Type': 'application/json'}
    headers.update(AGENT_API_CORS if cors is None else cors)
    return {
        'statusCode': status_code,
        'headers': headers,
        'body': body if isinstance(body, str) else json.dumps(body, default=json_default)
    }
