import boto3
import pytest
from botocore.exceptions import ClientError

from tests.consts import TEST_BUCKET_NAME
from wallet_api.s3.delete_objects import delete_s3_object
from wallet_api.s3.read_objects import (
    generate_presigned_get_url,
    get_s3_object_size,
    object_exists_in_s3,
)
from wallet_api.s3.write_objects import upload_s3_object

TEST_KEY = "user-1/1700000000000_note.pdf"


def test_upload_then_stat(mocked_aws):
    upload_s3_object(
        TEST_BUCKET_NAME,
        TEST_KEY,
        b"12345",
        content_type="application/pdf",
        metadata={"uploadedBy": "user-1"},
    )

    s3_client = boto3.client("s3")
    head = s3_client.head_object(Bucket=TEST_BUCKET_NAME, Key=TEST_KEY)
    assert head["ContentType"] == "application/pdf"
    assert {k.lower(): v for k, v in head["Metadata"].items()} == {"uploadedby": "user-1"}
    assert get_s3_object_size(TEST_BUCKET_NAME, TEST_KEY) == 5
    assert object_exists_in_s3(TEST_BUCKET_NAME, TEST_KEY)


def test_upload_defaults_content_type(mocked_aws):
    upload_s3_object(TEST_BUCKET_NAME, TEST_KEY, b"x", s3_client=mocked_aws)
    head = mocked_aws.head_object(Bucket=TEST_BUCKET_NAME, Key=TEST_KEY)
    assert head["ContentType"] == "application/octet-stream"


def test_missing_object_has_no_size(mocked_aws):
    assert get_s3_object_size(TEST_BUCKET_NAME, "nope", s3_client=mocked_aws) is None
    assert not object_exists_in_s3(TEST_BUCKET_NAME, "nope", s3_client=mocked_aws)


class DeniedS3Client:
    def head_object(self, **kwargs):
        raise ClientError({"Error": {"Code": "403", "Message": "Forbidden"}}, "HeadObject")


def test_stat_propagates_other_errors():
    with pytest.raises(ClientError):
        get_s3_object_size(TEST_BUCKET_NAME, TEST_KEY, s3_client=DeniedS3Client())


def test_delete_object(mocked_aws):
    upload_s3_object(TEST_BUCKET_NAME, TEST_KEY, b"x", s3_client=mocked_aws)

    delete_s3_object(TEST_BUCKET_NAME, TEST_KEY, s3_client=mocked_aws)

    assert not object_exists_in_s3(TEST_BUCKET_NAME, TEST_KEY, s3_client=mocked_aws)
    # deleting an absent key is not an error for S3
    delete_s3_object(TEST_BUCKET_NAME, TEST_KEY, s3_client=mocked_aws)


def test_presigned_url_points_at_object(mocked_aws):
    url = generate_presigned_get_url(TEST_BUCKET_NAME, TEST_KEY, expires_in=600, s3_client=mocked_aws)

    assert TEST_BUCKET_NAME in url
    assert "1700000000000_note.pdf" in url
    assert "Expires=600" in url or "X-Amz-Expires=600" in url
