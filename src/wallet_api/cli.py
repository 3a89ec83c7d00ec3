# cli.py
import json
import logging

import click

from wallet_api.backend import init_backend
from wallet_api.services.reconciliation import Reconciler
from wallet_api.settings import get_settings
from wallet_db.local import init_db

# Configure logging
logger = logging.getLogger(__name__)


@click.group()
@click.option("--log-level", default=None, help="Override the configured log level")
def cli(log_level):
    """CLI commands for the Wallet API"""
    settings = get_settings()
    logging.basicConfig(level=(log_level or settings.log_level).upper())


@cli.command()
def show_config():
    """Show current configuration"""
    settings = get_settings()

    click.echo("Current Configuration:")
    click.echo(f"  Environment: {settings.environment}")
    click.echo(f"  Deployment Mode: {settings.deployment_mode}")
    click.echo(f"  AWS Region: {settings.aws_region}")
    click.echo(f"  AWS Endpoint: {settings.aws_endpoint_url}")
    click.echo(f"  S3 Bucket: {settings.s3_bucket_name}")
    click.echo(f"  Database Path: {settings.database_path}")
    click.echo(f"  Storage Quota: {settings.max_storage_bytes} bytes")
    click.echo(f"  Document Cap: {settings.max_document_bytes} bytes")
    click.echo(f"  Profile Picture Cap: {settings.max_profile_picture_bytes} bytes")
    click.echo(f"  Signed URL TTL: {settings.signed_url_ttl_seconds}s")


@cli.command(name="init-db")
def init_db_command():
    """Create the document store collections"""
    settings = get_settings()
    init_db(settings.database_path, timeout=settings.external_call_timeout_seconds)
    click.echo(f"Initialized document store at {settings.database_path}")


@cli.command()
@click.option("--host", default="0.0.0.0", help="Bind address")
@click.option("--port", default=8000, type=int, help="Bind port")
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve(host, port, reload):
    """Run the API with uvicorn"""
    import uvicorn

    settings = get_settings()
    logger.info(f"Starting Wallet API in {settings.deployment_mode} mode on {host}:{port}")
    uvicorn.run(
        "wallet_api.main:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@cli.command()
@click.option("--user-id", default=None, help="Only check this user")
@click.option("--apply", is_flag=True, help="Write the recomputed totalSize back")
@click.option("--json", "as_json", is_flag=True, help="Print the full report as JSON")
def reconcile(user_id, apply, as_json):
    """Recompute totalSize from document records and the profile picture"""
    backend = init_backend(get_settings())
    reconciler = Reconciler(backend.db, backend.bucket_name, s3_client=backend.s3_client)
    reports = reconciler.run(user_id=user_id, apply=apply)

    if as_json:
        click.echo(json.dumps([report.to_dict() for report in reports], indent=2))
        return

    if user_id and not reports:
        raise click.ClickException(f"User {user_id} not found")

    for report in reports:
        if report.consistent:
            continue
        status = "corrected" if report.applied else "drift"
        click.echo(
            f"{report.uid}: {status} recorded={report.recorded_total} "
            f"computed={report.computed_total} ({report.drift:+d})"
        )
        for doc_id in report.dangling_descriptors:
            click.echo(f"  descriptor without record: {doc_id}")
        for doc_id in report.unindexed_records:
            click.echo(f"  record missing from index: {doc_id}")

    inconsistent = sum(1 for report in reports if not report.consistent)
    click.echo(f"Checked {len(reports)} users, {inconsistent} inconsistent")


if __name__ == "__main__":
    cli()
