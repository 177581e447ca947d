"""Tests for S3ObjectStore."""

from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from orgpipe.errors import PersistenceFailure
from orgpipe.storage import S3ObjectStore


@pytest.fixture
def s3_client() -> MagicMock:
    return MagicMock()


class TestS3ObjectStore:
    @pytest.mark.asyncio
    async def test_put_object(self, s3_client):
        store = S3ObjectStore("results", client=s3_client)

        address = await store.put("155/ts/data.csv", "a\n1", "text/csv")

        assert address == "s3://results/155/ts/data.csv"
        s3_client.put_object.assert_called_once_with(
            Bucket="results",
            Key="155/ts/data.csv",
            Body=b"a\n1",
            ContentType="text/csv",
        )

    @pytest.mark.asyncio
    async def test_client_error_is_persistence_failure(self, s3_client):
        s3_client.put_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "Access Denied"}}, "PutObject"
        )
        store = S3ObjectStore("results", client=s3_client)

        with pytest.raises(PersistenceFailure, match="AccessDenied - Access Denied"):
            await store.put("155/ts/data.json", "{}", "application/json")

    @pytest.mark.asyncio
    async def test_botocore_error_is_persistence_failure(self, s3_client):
        s3_client.put_object.side_effect = EndpointConnectionError(endpoint_url="https://s3")
        store = S3ObjectStore("results", client=s3_client)

        with pytest.raises(PersistenceFailure, match="AWS service error"):
            await store.put("155/ts/data.json", "{}", "application/json")

    def test_location(self, s3_client):
        assert S3ObjectStore("results", client=s3_client).location == "s3://results"

    def test_requires_bucket(self, s3_client):
        with pytest.raises(ValueError, match="bucket_name is required"):
            S3ObjectStore("", client=s3_client)

    @patch("orgpipe.storage.s3.boto3")
    def test_builds_client_for_region(self, mock_boto3):
        S3ObjectStore("results", region="eu-west-1")
        mock_boto3.client.assert_called_once_with("s3", region_name="eu-west-1")
