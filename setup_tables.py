# setup_tables.py
import boto3
from botocore.exceptions import ClientError

from lambdas.common.settings import AppSettings, get_settings

THROUGHPUT = {'ReadCapacityUnits': 1, 'WriteCapacityUnits': 1}


def table_definitions(settings: AppSettings) -> list[dict]:
    """
    Every table the handlers read or write, with the key and the secondary
    indexes their queries use. Index keys are given as (hash, range-or-None).
    """
    return [
        {'name': settings.campaigns_table, 'key': 'campaignId',
         'indexes': {'status-createdAt-index': ('status', 'createdAt')}},
        {'name': settings.content_table, 'key': 'contentId',
         'indexes': {
             'campaignId-index': ('campaignId', None),
             'type-createdAt-index': ('type', 'createdAt'),
             'status-scheduledAt-index': ('status', 'scheduledAt'),
         }},
        {'name': settings.templates_table, 'key': 'templateId', 'indexes': {}},
        {'name': settings.audit_logs_table, 'key': 'logId', 'indexes': {}},
        {'name': settings.api_keys_table, 'key': 'keyId',
         'indexes': {
             'apiKey-index': ('apiKey', None),
             'status-index': ('status', None),
         }},
        {'name': settings.publishing_history_table, 'key': 'publishId',
         'indexes': {'contentId-publishedAt-index': ('contentId', 'publishedAt')}},
        {'name': settings.social_targets_table, 'key': 'targetId',
         'indexes': {'platform-status-index': ('platform', 'status')}},
        {'name': settings.analytics_table, 'key': 'analyticsId',
         'indexes': {'contentId-date-index': ('contentId', 'date')}},
        {'name': settings.coupons_table, 'key': 'couponCode', 'indexes': {}},
        {'name': settings.campaign_table('teams'), 'key': 'teamId', 'indexes': {}},
        {'name': settings.campaign_table('scholarships'), 'key': 'scholarshipId', 'indexes': {}},
        {'name': settings.campaign_table('discount-purchases'), 'key': 'purchaseId', 'indexes': {}},
        {'name': settings.campaign_table('personalized-plans'), 'key': 'planId', 'indexes': {}},
        {'name': settings.campaign_table('mock-registrations'), 'key': 'registrationId', 'indexes': {}},
    ]


def _key_schema(hash_key: str, range_key: str | None) -> list[dict]:
    schema = [{'AttributeName': hash_key, 'KeyType': 'HASH'}]
    if range_key:
        schema.append({'AttributeName': range_key, 'KeyType': 'RANGE'})
    return schema


def build_create_table_kwargs(definition: dict) -> dict:
    """Translates one table definition into keyword arguments for create_table."""
    attributes = {definition['key']}
    indexes = []
    for index_name, (hash_key, range_key) in definition['indexes'].items():
        attributes.add(hash_key)
        if range_key:
            attributes.add(range_key)
        indexes.append({
            'IndexName': index_name,
            'KeySchema': _key_schema(hash_key, range_key),
            'Projection': {'ProjectionType': 'ALL'},
            'ProvisionedThroughput': THROUGHPUT,
        })

    kwargs = {
        'TableName': definition['name'],
        'KeySchema': _key_schema(definition['key'], None),
        'AttributeDefinitions': [{'AttributeName': name, 'AttributeType': 'S'} for name in sorted(attributes)],
        'ProvisionedThroughput': THROUGHPUT,
    }
    if indexes:
        kwargs['GlobalSecondaryIndexes'] = indexes
    return kwargs


def ensure_table(dynamodb, definition: dict) -> bool:
    """Creates the table if it is missing. Returns True when a table was created."""
    table_name = definition['name']
    try:
        dynamodb.meta.client.describe_table(TableName=table_name)
        print(f"DynamoDB table '{table_name}' already exists.")
        return False
    except ClientError as e:
        if e.response['Error']['Code'] != 'ResourceNotFoundException':
            raise

    print(f"DynamoDB table '{table_name}' not found. Creating it now...")
    dynamodb.create_table(**build_create_table_kwargs(definition))
    dynamodb.Table(table_name).wait_until_exists()
    print(f"Table '{table_name}' created successfully.")
    return True


def setup_dynamodb_tables(dynamodb=None, settings: AppSettings | None = None) -> list[str]:
    """Checks for and creates all required DynamoDB tables. Returns the names it created."""
    settings = settings or get_settings()
    dynamodb = dynamodb or boto3.resource('dynamodb', region_name=settings.aws_region)
    return [d['name'] for d in table_definitions(settings) if ensure_table(dynamodb, d)]


if __name__ == "__main__":
    created = setup_dynamodb_tables()
    print(f"\nDone. {len(created)} table(s) created.")
