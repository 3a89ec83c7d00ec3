"""
Process-wide handles to the external collaborators.

``init_backend`` is called once by ``create_app`` (or the CLI) and the
resulting ``Backend`` is threaded through request handling via
``app.state.backend`` and the ``get_backend`` dependency.
"""

import logging
from dataclasses import dataclass

import boto3
from botocore.config import Config

from wallet_api.services.identity import IdentityProvider
from wallet_api.settings import Settings
from wallet_api.signed_access import SignedAccessIssuer
from wallet_db.local import init_db
from wallet_db.nosql_adapter import NoSQLAdapter

try:
    from mypy_boto3_s3 import S3Client
except ImportError:
    ...

logger = logging.getLogger(__name__)


@dataclass
class Backend:
    settings: Settings
    db: NoSQLAdapter
    s3_client: "S3Client"
    identity: IdentityProvider
    signed_access: SignedAccessIssuer

    @property
    def bucket_name(self) -> str:
        return self.settings.s3_bucket_name


def create_s3_client(settings: Settings) -> "S3Client":
    """S3 client with bounded timeouts and no automatic retries."""
    config = Config(
        connect_timeout=settings.external_call_timeout_seconds,
        read_timeout=settings.external_call_timeout_seconds,
        retries={"total_max_attempts": 1},
        signature_version="s3v4",
    )
    return boto3.client(
        "s3",
        region_name=settings.aws_region,
        endpoint_url=settings.aws_endpoint_url,
        aws_access_key_id=settings.aws_access_key_id,
        aws_secret_access_key=settings.aws_secret_access_key,
        config=config,
    )


def init_backend(settings: Settings) -> Backend:
    """Open the document store (creating collections) and build the clients."""
    logger.info(
        f"Initializing backend: mode={settings.deployment_mode} "
        f"db={settings.database_path} bucket={settings.s3_bucket_name}"
    )
    db = init_db(settings.database_path, timeout=settings.external_call_timeout_seconds)
    s3_client = create_s3_client(settings)
    return Backend(
        settings=settings,
        db=db,
        s3_client=s3_client,
        identity=IdentityProvider(
            db,
            secret=settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            token_ttl_seconds=settings.token_ttl_seconds,
        ),
        signed_access=SignedAccessIssuer(
            bucket_name=settings.s3_bucket_name,
            ttl_seconds=settings.signed_url_ttl_seconds,
            s3_client=s3_client,
        ),
    )
