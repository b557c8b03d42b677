"""Pytest fixtures for ledgerlock tests."""

import asyncio
import os
from collections.abc import Awaitable
from unittest.mock import patch

import boto3
import pytest
from moto import mock_aws

from ledgerlock import (
    CoordinatorConfig,
    MigrationCoordinator,
    StoreGateway,
    SyncMigrationCoordinator,
)
from ledgerlock.schema import get_table_definition
from tests.fixtures.names import REGION, TABLE_NAME
from tests.fixtures.names import unique_table_name  # noqa: F401


# Pytest hooks for --run-localstack flag


def pytest_addoption(parser):
    """Add --run-localstack pytest option."""
    parser.addoption(
        "--run-localstack",
        action="store_true",
        default=False,
        help="Run tests against LocalStack (requires AWS_ENDPOINT_URL)",
    )


def pytest_collection_modifyitems(config, items):
    """Skip LocalStack tests unless --run-localstack flag is provided."""
    if not config.getoption("--run-localstack"):
        skip_localstack = pytest.mark.skip(reason="Need --run-localstack option to run")
        for item in items:
            if "localstack" in item.keywords:
                item.add_marker(skip_localstack)


@pytest.fixture
def aws_credentials(monkeypatch):
    """Mock AWS credentials for moto."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", REGION)
    # Unset AWS_ENDPOINT_URL to ensure moto intercepts requests
    # (LocalStack tests use localstack_endpoint fixture which reads from env)
    monkeypatch.delenv("AWS_ENDPOINT_URL", raising=False)


@pytest.fixture
def mock_dynamodb(aws_credentials):
    """Mock DynamoDB for tests."""
    with mock_aws(), _patch_aiobotocore_response():
        yield


def _patch_aiobotocore_response():
    """
    Patch aiobotocore to work with moto's sync responses.

    Moto returns botocore.awsrequest.AWSResponse which has sync content,
    but aiobotocore expects async content. This patch wraps the response
    handling to convert sync content to async.

    See: https://github.com/aio-libs/aiobotocore/discussions/1300
    """
    from aiobotocore import endpoint

    original_convert = endpoint.convert_to_response_dict

    async def patched_convert(http_response, operation_model):
        # If content is not awaitable (moto's sync response), wrap it
        if hasattr(http_response, "_content") and not isinstance(http_response._content, Awaitable):
            # Create a future that returns the content
            fut: asyncio.Future[bytes] = asyncio.Future()
            fut.set_result(http_response.content)
            http_response._content = fut
        return await original_convert(http_response, operation_model)

    return patch.object(endpoint, "convert_to_response_dict", patched_convert)


@pytest.fixture
def config():
    """Coordinator config pointing at the mocked changelog table."""
    return CoordinatorConfig(table_name=TABLE_NAME, region=REGION)


@pytest.fixture
async def gateway(mock_dynamodb):
    """StoreGateway with the changelog table created."""
    gateway = StoreGateway(TABLE_NAME, region=REGION)
    await gateway.create_table()
    yield gateway
    await gateway.close()


@pytest.fixture
async def coordinator(gateway, config):
    """Connected MigrationCoordinator with mocked DynamoDB."""
    coordinator = MigrationCoordinator(config, holder="host-a")
    await coordinator.connect(gateway)
    yield coordinator
    await coordinator.close()


@pytest.fixture
async def make_coordinator(gateway):
    """
    Factory for additional coordinators, each with its own gateway.

    Simulates separate application instances sharing one changelog table.
    """
    created: list[MigrationCoordinator] = []

    async def factory(holder: str, **overrides) -> MigrationCoordinator:
        cfg = CoordinatorConfig(table_name=TABLE_NAME, region=REGION, **overrides)
        coordinator = MigrationCoordinator(cfg, holder=holder)
        await coordinator.connect()
        created.append(coordinator)
        return coordinator

    yield factory

    for coordinator in created:
        await coordinator.close()


@pytest.fixture
def sync_coordinator(mock_dynamodb, config):
    """SyncMigrationCoordinator with mocked DynamoDB."""
    client = boto3.client("dynamodb", region_name=REGION)
    client.create_table(**get_table_definition(TABLE_NAME))

    coordinator = SyncMigrationCoordinator(config, holder="host-sync")
    with coordinator:
        yield coordinator


# LocalStack fixtures for integration testing


@pytest.fixture
def localstack_endpoint():
    """LocalStack endpoint URL from environment."""
    endpoint = os.getenv("AWS_ENDPOINT_URL")
    if not endpoint:
        pytest.skip("AWS_ENDPOINT_URL not set - LocalStack not available")
    return endpoint
