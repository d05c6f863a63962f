# lambdas/common/dynamo.py
"""
Small helpers around the boto3 DynamoDB resource API: number conversion,
SET expression building, ids/timestamps and the shared audit log.
"""
import json
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from lambdas.common.responses import json_default


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def ttl_after(days: int) -> int:
    """Epoch seconds `days` from now, for DynamoDB Time-to-Live attributes."""
    return int((datetime.now(timezone.utc) + timedelta(days=days)).timestamp())


def new_id() -> str:
    return str(uuid.uuid4())


def to_item(data):
    """
    Converts a plain Python structure into something the DynamoDB resource accepts.
    The resource API rejects floats, so every float becomes a Decimal.
    """
    return json.loads(json.dumps(data, default=json_default), parse_float=Decimal)


def from_item(item):
    """Converts a DynamoDB item back into plain JSON types (Decimal -> int/float)."""
    if item is None:
        return None
    return json.loads(json.dumps(item, default=json_default))


def build_update_expression(updates: dict, touch_updated_at: bool = True) -> dict:
    """
    Builds the keyword arguments for Table.update_item that SET every key in `updates`.

    Placeholder names (#field0, :value0, ...) keep reserved words such as
    'status' or 'name' safe to update.
    """
    expressions = []
    names = {}
    values = {}

    if touch_updated_at:
        updates = {k: v for k, v in updates.items() if k != 'updatedAt'}

    for index, (key, value) in enumerate(updates.items()):
        expressions.append(f"#field{index} = :value{index}")
        names[f"#field{index}"] = key
        values[f":value{index}"] = value

    if touch_updated_at:
        expressions.append("#updatedAt = :updatedAt")
        names['#updatedAt'] = 'updatedAt'
        values[':updatedAt'] = utc_now_iso()

    if not expressions:
        raise ValueError("No fields to update.")

    return {
        'UpdateExpression': f"SET {', '.join(expressions)}",
        'ExpressionAttributeNames': names,
        'ExpressionAttributeValues': to_item(values),
    }


def log_action(table, action: str, user_id: str, resource_type: str, resource_id,
               details: dict, user_agent: str = 'ProDentHub-Agent/1.0',
               ttl_days: int = 365, **extra) -> str:
    """
    Writes one entry to the audit log table and returns its id.

    Entries expire after `ttl_days` (one year by default).
    """
    log_id = new_id()
    item = {
        'logId': log_id,
        'action': action,
        'userId': user_id,
        'timestamp': utc_now_iso(),
        'resource': {'type': resource_type, 'id': resource_id},
        'details': details,
        'userAgent': user_agent,
        'result': 'success',
        'ttl': ttl_after(ttl_days),
        **extra,
    }
    table.put_item(Item=to_item(item))
    return log_id
