# lambdas/team_creation/app.py
import calendar
import json
import uuid
from datetime import datetime, timezone

import boto3

from lambdas.common.dynamo import to_item
from lambdas.common.models import Team, build_record
from lambdas.common.pricing import TEAM_MAX_MEMBERS, TEAM_MIN_MEMBERS, PricingError, calculate_team_price
from lambdas.common.request_parser import InvalidRequestError, is_valid_email, parse_json_body
from lambdas.common.responses import build_response, public_cors
from lambdas.common.settings import get_settings

TEAM_ACCESS_MONTHS = 6

# Initialize resources once for Lambda container reuse
settings = get_settings()
DYNAMODB_RESOURCE = boto3.resource('dynamodb', region_name=settings.aws_region)
TEAMS_TABLE = DYNAMODB_RESOURCE.Table(settings.campaign_table('teams'))
CORS_HEADERS = public_cors(settings.frontend_url, methods='POST, GET, OPTIONS')


def add_months(moment: datetime, months: int) -> datetime:
    """Calendar month arithmetic; the day is clamped to the target month's length."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def validate_team(leader, members) -> None:
    """
    A team is a leader plus 1-4 members, each with a name and a valid email.
    Emails must be unique across the whole team, leader included.
    """
    if not isinstance(leader, dict) or not isinstance(members, list):
        raise InvalidRequestError('Invalid team data. Must have 1-4 members plus leader.')

    total = len(members) + 1
    if total < TEAM_MIN_MEMBERS or total > TEAM_MAX_MEMBERS:
        raise InvalidRequestError('Invalid team data. Must have 1-4 members plus leader.')

    for field in ('firstName', 'lastName', 'email'):
        if not leader.get(field):
            raise InvalidRequestError(f"Missing leader field: {field}")

    emails = [leader['email']]
    for index, member in enumerate(members, start=1):
        if not isinstance(member, dict) or not member.get('name') or not member.get('email'):
            raise InvalidRequestError(f"Member {index} requires name and email")
        emails.append(member['email'])

    for email in emails:
        if not is_valid_email(email):
            raise InvalidRequestError(f"Invalid email address: {email}")

    normalized = [email.strip().lower() for email in emails]
    if len(set(normalized)) != len(normalized):
        raise InvalidRequestError('Each team member must have a unique email address')


def create_team(body: dict) -> dict:
    leader = body.get('leader')
    members = body.get('members')
    validate_team(leader, members)

    try:
        # Client-supplied pricing is ignored; the split is always recomputed here
        pricing = calculate_team_price(len(members) + 1)
    except PricingError as e:
        raise InvalidRequestError(str(e))

    now = datetime.now(timezone.utc)
    team = build_record(Team, {
        'teamId': f"team_{uuid.uuid4()}",
        'leaderEmail': leader['email'],
        'leaderFirstName': leader['firstName'],
        'leaderLastName': leader['lastName'],
        'country': leader.get('country'),
        'members': [
            {'name': m['name'], 'email': m['email'], 'shareAmount': pricing['pricePerMember']}
            for m in members
        ],
        'totalMembers': pricing['memberCount'],
        'planType': body.get('planType') or 'full-6months',
        'totalAmount': pricing['totalPrice'],
        'pricePerMember': pricing['pricePerMember'],
        'createdAt': now.isoformat(),
        'expiresAt': add_months(now, TEAM_ACCESS_MONTHS).isoformat(),
    }).to_document()

    TEAMS_TABLE.put_item(Item=to_item(team))
    print(f"Team created: {team['teamId']}")

    return build_response(200, {
        'teamId': team['teamId'],
        'message': 'Team created successfully',
        'team': team,
    }, cors=CORS_HEADERS)


def get_team(team_id: str | None) -> dict:
    if not team_id:
        raise InvalidRequestError('Missing teamId')

    item = TEAMS_TABLE.get_item(Key={'teamId': team_id}).get('Item')
    if not item:
        return build_response(404, {'error': 'Team not found'}, cors=CORS_HEADERS)
    return build_response(200, item, cors=CORS_HEADERS)


def handler(event: dict, context: object) -> dict:
    """
    Public team endpoints: POST `.../teams/create` and GET `.../teams/{teamId}`.
    """
    print(f"Received event: {json.dumps({k: event.get(k) for k in ('httpMethod', 'path')})}")

    try:
        method = event.get('httpMethod')
        path = event.get('path') or ''

        if method == 'OPTIONS':
            return build_response(200, '', cors=CORS_HEADERS)
        if method == 'POST' and path.endswith('/teams/create'):
            return create_team(parse_json_body(event))
        if method == 'GET' and '/teams/' in path:
            return get_team((event.get('pathParameters') or {}).get('teamId'))
        return build_response(404, {'error': 'Not found'}, cors=CORS_HEADERS)

    except InvalidRequestError as e:
        print(f"Validation Error: {e}")
        return build_response(400, {'error': str(e)}, cors=CORS_HEADERS)

    except Exception as e:
        print(f"Internal Server Error: {e}")
        return build_response(500, {'error': str(e)}, cors=CORS_HEADERS)
