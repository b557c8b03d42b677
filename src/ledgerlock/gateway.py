"""DynamoDB store gateway for the changelog table."""

import logging
from typing import Any

import aioboto3  # type: ignore[import-untyped]
from botocore.exceptions import BotoCoreError, ClientError

from . import schema
from .exceptions import ConfigurationError, DuplicateChangeError, StoreConnectionError

logger = logging.getLogger(__name__)


def error_code(exc: ClientError) -> str:
    """Extract the DynamoDB error code from a botocore ClientError."""
    code: str = exc.response.get("Error", {}).get("Code", "")
    return code


class StoreGateway:
    """
    Async DynamoDB gateway bound to one changelog table.

    Exposes only what the coordinator needs: describe-table, strongly
    consistent get-item, conditional put-item and delete-item. Store
    failures other than a failed condition check are raised as
    StoreConnectionError.
    """

    def __init__(
        self,
        table_name: str,
        region: str | None = None,
        endpoint_url: str | None = None,
    ) -> None:
        self._table_name = table_name
        self.region = region
        self.endpoint_url = endpoint_url
        self._session: aioboto3.Session | None = None
        self._client: Any = None

    @property
    def table_name(self) -> str:
        return self._table_name

    async def _get_client(self) -> Any:
        """Get or create the DynamoDB client."""
        if self._client is None:
            self._session = aioboto3.Session()
            self._client = await self._session.client(
                "dynamodb",
                region_name=self.region,
                endpoint_url=self.endpoint_url,
            ).__aenter__()
        return self._client

    async def close(self) -> None:
        """Close the DynamoDB client."""
        if self._client is not None:
            await self._client.__aexit__(None, None, None)
            self._client = None
            self._session = None

    async def __aenter__(self) -> "StoreGateway":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    def _unavailable(self, operation: str, exc: Exception) -> StoreConnectionError:
        return StoreConnectionError(
            f"DynamoDB {operation} failed: {exc}",
            cause=exc,
            table_name=self._table_name,
            operation=operation,
        )

    # -------------------------------------------------------------------------
    # Table operations
    # -------------------------------------------------------------------------

    async def describe_table(self) -> dict[str, Any]:
        """
        Describe the changelog table.

        Raises:
            ConfigurationError: If the table does not exist
            StoreConnectionError: If DynamoDB could not be reached
        """
        client = await self._get_client()
        try:
            response = await client.describe_table(TableName=self._table_name)
        except ClientError as e:
            if error_code(e) == "ResourceNotFoundException":
                raise ConfigurationError(
                    "Could not find the specified migrations table", table_name=self._table_name
                ) from e
            raise self._unavailable("DescribeTable", e) from e
        except BotoCoreError as e:
            raise self._unavailable("DescribeTable", e) from e

        table: dict[str, Any] = response["Table"]
        return table

    async def create_table(self, partition_key: str = schema.KEY_CHANGE_ID) -> None:
        """
        Create the changelog table if it doesn't exist.

        Intended for local development and tests; production tables are
        expected to be provisioned ahead of time.
        """
        client = await self._get_client()
        definition = schema.get_table_definition(self._table_name, partition_key)

        try:
            await client.create_table(**definition)
            # Wait for table to be active
            waiter = client.get_waiter("table_exists")
            await waiter.wait(TableName=self._table_name)
            logger.info("Created changelog table %s", self._table_name)
        except ClientError as e:
            if error_code(e) != "ResourceInUseException":
                raise self._unavailable("CreateTable", e) from e

    async def delete_table(self) -> None:
        """Delete the changelog table."""
        client = await self._get_client()
        try:
            await client.delete_table(TableName=self._table_name)
        except ClientError as e:
            if error_code(e) != "ResourceNotFoundException":
                raise self._unavailable("DeleteTable", e) from e

    # -------------------------------------------------------------------------
    # Item operations
    # -------------------------------------------------------------------------

    async def get_item(
        self, key: dict[str, Any], consistent_read: bool = True
    ) -> dict[str, Any] | None:
        """Get an item by primary key, or None if absent."""
        client = await self._get_client()
        try:
            response = await client.get_item(
                TableName=self._table_name,
                Key=key,
                ConsistentRead=consistent_read,
            )
        except (ClientError, BotoCoreError) as e:
            raise self._unavailable("GetItem", e) from e

        item: dict[str, Any] | None = response.get("Item")
        return item or None

    async def put_item_if_absent(self, item: dict[str, Any], key_attribute: str) -> None:
        """
        Put an item unless one with the same key already exists.

        Raises:
            DuplicateChangeError: If the key is already present
            StoreConnectionError: On any other DynamoDB failure
        """
        client = await self._get_client()
        try:
            await client.put_item(
                TableName=self._table_name,
                Item=item,
                ConditionExpression=schema.condition_not_exists(key_attribute),
            )
        except ClientError as e:
            if error_code(e) == "ConditionalCheckFailedException":
                raise DuplicateChangeError(item[key_attribute]["S"]) from e
            raise self._unavailable("PutItem", e) from e
        except BotoCoreError as e:
            raise self._unavailable("PutItem", e) from e

    async def delete_item(self, key: dict[str, Any]) -> None:
        """Delete an item by primary key (no error if absent)."""
        client = await self._get_client()
        try:
            await client.delete_item(TableName=self._table_name, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise self._unavailable("DeleteItem", e) from e
