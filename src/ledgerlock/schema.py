"""DynamoDB schema definitions and key builders."""

from typing import Any

# Attribute names
KEY_CHANGE_ID = "changeId"
KEY_AUTHOR = "author"
KEY_TIMESTAMP = "timestamp"
KEY_CHANGE_LOG_CLASS = "changeLogClass"
KEY_CHANGE_SET_METHOD = "changeSetMethod"

# Reserved partition key value of the process lock record
LOCK_ID = "LOCK"

# Holder identity used when the hostname cannot be resolved
UNKNOWN_HOST = "UnknownHost"


def key(change_id: str, partition_key: str = KEY_CHANGE_ID) -> dict[str, Any]:
    """Build the primary key for a ledger entry or the lock record."""
    return {partition_key: {"S": change_id}}


def lock_key(partition_key: str = KEY_CHANGE_ID) -> dict[str, Any]:
    """Build the primary key of the process lock record."""
    return key(LOCK_ID, partition_key)


def condition_not_exists(partition_key: str = KEY_CHANGE_ID) -> str:
    """Condition expression that rejects a put when the key already exists."""
    return f"attribute_not_exists({partition_key})"


def epoch_ms_attr(epoch_ms: int) -> dict[str, str]:
    """Epoch milliseconds as a DynamoDB string attribute."""
    return {"S": str(epoch_ms)}


def parse_epoch_ms_attr(attr: dict[str, str]) -> int:
    """Parse an epoch-millis attribute, accepting both S and N encodings."""
    raw = attr.get("S", attr.get("N"))
    if raw is None:
        raise ValueError(f"Unsupported timestamp attribute: {attr!r}")
    return int(raw)


def hash_key_name(table_description: dict[str, Any]) -> str | None:
    """Return the HASH key attribute name of a DescribeTable ``Table`` block."""
    for element in table_description.get("KeySchema", []):
        if element.get("KeyType") == "HASH":
            name: str = element["AttributeName"]
            return name
    return None


def get_table_definition(table_name: str, partition_key: str = KEY_CHANGE_ID) -> dict[str, Any]:
    """
    Get the DynamoDB table definition for CreateTable.

    Returns a dictionary suitable for boto3 create_table().
    """
    return {
        "TableName": table_name,
        "BillingMode": "PAY_PER_REQUEST",
        "AttributeDefinitions": [
            {"AttributeName": partition_key, "AttributeType": "S"},
        ],
        "KeySchema": [
            {"AttributeName": partition_key, "KeyType": "HASH"},
        ],
    }
