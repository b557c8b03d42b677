"""Store gateway protocol for changelog backends.

This module defines the StoreGatewayProtocol: the four store operations the
coordinator and lock manager rely on. The protocol uses Python's
typing.Protocol with @runtime_checkable, so any backend offering a
conditional put with key-absence semantics can be plugged in by duck typing.
"""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class StoreGatewayProtocol(Protocol):
    """
    Protocol for changelog store backends.

    Items and keys use the DynamoDB attribute-value format
    (``{"changeId": {"S": "..."}}``).

    Example:
        class InMemoryGateway:
            table_name = "dbchangelog"

            async def describe_table(self) -> dict[str, Any]:
                ...

        assert isinstance(InMemoryGateway(), StoreGatewayProtocol)
    """

    @property
    def table_name(self) -> str:
        """Name of the changelog table this gateway is bound to."""
        ...

    async def describe_table(self) -> dict[str, Any]:
        """
        Describe the changelog table.

        Returns:
            The table description (DescribeTable ``Table`` block)

        Raises:
            ConfigurationError: If the table does not exist
            StoreConnectionError: On any other store failure
        """
        ...

    async def get_item(
        self, key: dict[str, Any], consistent_read: bool = True
    ) -> dict[str, Any] | None:
        """
        Point read.

        Args:
            key: Primary key of the item
            consistent_read: Use a strongly consistent read

        Returns:
            The item, or None if absent
        """
        ...

    async def put_item_if_absent(self, item: dict[str, Any], key_attribute: str) -> None:
        """
        Write an item only if no item with the same key exists.

        This must be atomic at the store; it is the only mutual exclusion
        primitive the coordinator relies on.

        Raises:
            DuplicateChangeError: If an item with the same key already exists
            StoreConnectionError: On any other store failure
        """
        ...

    async def delete_item(self, key: dict[str, Any]) -> None:
        """
        Unconditional delete.

        Deleting an absent key is not an error.
        """
        ...

    async def close(self) -> None:
        """
        Release backend resources.

        Safe to call multiple times.
        """
        ...
