"""Functions for reading objects from an S3 bucket--the "R" in CRUD."""

from typing import Optional

import boto3
from botocore.exceptions import ClientError

try:
    from mypy_boto3_s3 import S3Client
except ImportError:
    ...


def object_exists_in_s3(bucket_name: str, object_key: str, s3_client: Optional["S3Client"] = None) -> bool:
    """
    Check if an object exists in the S3 bucket using head_object.

    :param bucket_name: Name of the S3 bucket.
    :param object_key: Key of the object to check.
    :param s3_client: Optional S3 client to use. If not provided, a new client will be created.

    :return: True if the object exists, False otherwise.
    """
    return get_s3_object_size(bucket_name, object_key, s3_client=s3_client) is not None


def get_s3_object_size(bucket_name: str, object_key: str, s3_client: Optional["S3Client"] = None) -> Optional[int]:
    """
    Return the stored size of an object in bytes, or None if it does not exist.

    :param bucket_name: Name of the S3 bucket.
    :param object_key: Key of the object to stat.
    :param s3_client: Optional S3 client to use. If not provided, a new client will be created.
    """
    s3_client = s3_client or boto3.client("s3")
    try:
        response = s3_client.head_object(Bucket=bucket_name, Key=object_key)
    except ClientError as err:
        error_code = err.response.get("Error", {}).get("Code")
        if error_code in ("404", "NoSuchKey", "NotFound"):
            return None
        raise
    return int(response["ContentLength"])


def generate_presigned_get_url(
    bucket_name: str,
    object_key: str,
    expires_in: int,
    s3_client: Optional["S3Client"] = None,
) -> str:
    """
    Generate a time-bounded URL granting read access to one object.

    :param bucket_name: Name of the S3 bucket.
    :param object_key: Key of the object to expose.
    :param expires_in: Lifetime of the URL in seconds.
    :param s3_client: Optional S3 client to use. If not provided, a new client will be created.
    """
    s3_client = s3_client or boto3.client("s3")
    return s3_client.generate_presigned_url(
        ClientMethod="get_object",
        Params={"Bucket": bucket_name, "Key": object_key},
        ExpiresIn=expires_in,
    )
