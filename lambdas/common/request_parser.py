# lambdas/common/request_parser.py
import json
import re


class InvalidRequestError(ValueError):
    """Custom exception for validation errors."""
    pass


def parse_json_body(event: dict) -> dict:
    """
    Parses the JSON body of an API Gateway event.

    Returns:
        The decoded body, or an empty dict when the request has no body.

    Raises:
        InvalidRequestError: If the body is not a JSON object.
    """
    body = event.get('body')
    if not body:
        return {}
    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        raise InvalidRequestError('Request body must be valid JSON.')
    if not isinstance(data, dict):
        raise InvalidRequestError('Request body must be a JSON object.')
    return data


def get_query_params(event: dict) -> dict:
    return event.get('queryStringParameters') or {}


def get_header(event: dict, name: str) -> str | None:
    """Case-insensitive header lookup; API Gateway preserves the client's casing."""
    headers = event.get('headers') or {}
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


def get_api_key(event: dict) -> str | None:
    return get_header(event, 'x-api-key')


def require_fields(data: dict, *names: str) -> None:
    """Raises InvalidRequestError naming the required set when any of `names` is missing or empty."""
    if any(not data.get(name) for name in names):
        raise InvalidRequestError(f"Missing required fields: {', '.join(names)}")


def parse_limit(params: dict, default: int = 50) -> int:
    try:
        limit = int(params.get('limit', default))
    except (TypeError, ValueError):
        raise InvalidRequestError('Invalid query parameter: limit must be an integer.')
    if limit < 1:
        raise InvalidRequestError('Invalid query parameter: limit must be positive.')
    return limit


EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_email(value) -> bool:
    return isinstance(value, str) and bool(EMAIL_PATTERN.match(value))
