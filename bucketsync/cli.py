"""CLI interface for bucketsync."""

import logging
from typing import Any, Optional

import click

from .config import (
    ENV_COMPARATOR,
    ENV_DEFAULT_BUCKET,
    ENV_ENDPOINT_URL,
    ENV_PROFILE,
    ENV_REGION,
    config,
)
from .exceptions import BucketSyncError, SyncCancelledError, describe_error
from .output import OutputFormatter
from .store import S3ObjectStore
from .sync.comparator import COMPARATORS
from .sync.patterns import PatternMatcher
from .utils import format_size, normalize_prefix, parse_s3_url

logger = logging.getLogger(__name__)


def _make_store(ctx: Any) -> S3ObjectStore:
    return S3ObjectStore(
        region=ctx.obj.get("region"),
        endpoint_url=ctx.obj.get("endpoint_url"),
        profile=ctx.obj.get("profile"),
    )


def _parse_destination(ctx: Any, out: OutputFormatter, dest: str) -> tuple[str, str]:
    try:
        return parse_s3_url(dest, default_bucket=config.default_bucket)
    except ValueError as e:
        out.error(str(e))
        ctx.exit(1)
        return "", ""  # Unreachable, but helps type checker


@click.group()
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.option("--region", envvar=ENV_REGION, help="AWS region")
@click.option(
    "--endpoint-url",
    envvar=ENV_ENDPOINT_URL,
    help="Custom S3 endpoint (MinIO, LocalStack, ...)",
)
@click.option("--profile", envvar=ENV_PROFILE, help="AWS credentials profile")
@click.version_option(package_name="bucketsync")
@click.pass_context
def main(
    ctx: Any,
    quiet: bool,
    json: bool,
    verbose: bool,
    region: Optional[str],
    endpoint_url: Optional[str],
    profile: Optional[str],
) -> None:
    """bucketsync - Mirror local directories to S3 buckets."""
    ctx.ensure_object(dict)
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose
    ctx.obj["region"] = region
    ctx.obj["endpoint_url"] = endpoint_url
    ctx.obj["profile"] = profile

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("bucketsync").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.option("--region", "-r", default=None, help="Default AWS region")
@click.option("--endpoint-url", "-e", default=None, help="Default S3 endpoint")
@click.option("--profile", "-p", default=None, help="Default credentials profile")
@click.option("--bucket", "-b", default=None, help="Default bucket")
@click.option(
    "--comparator",
    type=click.Choice(sorted(COMPARATORS)),
    default=None,
    help="Default comparator",
)
@click.pass_context
def init(
    ctx: Any,
    region: Optional[str],
    endpoint_url: Optional[str],
    profile: Optional[str],
    bucket: Optional[str],
    comparator: Optional[str],
) -> None:
    """Save default settings.

    Stores them in ~/.config/bucketsync/config for future use.
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        path = config.save_settings(
            **{
                ENV_REGION: region,
                ENV_ENDPOINT_URL: endpoint_url,
                ENV_PROFILE: profile,
                ENV_DEFAULT_BUCKET: bucket,
                ENV_COMPARATOR: comparator,
            }
        )
    except (BucketSyncError, OSError) as e:
        out.error(f"Initialization failed: {e}")
        ctx.exit(1)
        return

    if out.json_output:
        out.output_json({"config_file": str(path)})
    else:
        out.success(f"✓ Configuration saved to {path}")


@main.command()
@click.argument("local_path", type=click.Path(file_okay=False))
@click.argument("dest", type=str)
@click.option(
    "--delete",
    "delete_extra",
    is_flag=True,
    help="Delete remote objects that do not exist locally",
)
@click.option(
    "--dry-run", is_flag=True, help="Show what would be synced without syncing"
)
@click.option(
    "--workers",
    "-j",
    type=int,
    default=0,
    help="Number of parallel transfers (default: from config, 5)",
)
@click.option(
    "--include",
    "include_patterns",
    multiple=True,
    help="Only sync paths matching this pattern (repeatable)",
)
@click.option(
    "--exclude",
    "exclude_patterns",
    multiple=True,
    help="Skip paths matching this pattern (repeatable, wins over --include)",
)
@click.option(
    "--comparator",
    type=click.Choice(sorted(COMPARATORS)),
    default=None,
    help="How to detect modified files (default: smart)",
)
@click.option(
    "--no-progress",
    is_flag=True,
    help="Disable progress bars",
)
@click.pass_context
def sync(
    ctx: Any,
    local_path: str,
    dest: str,
    delete_extra: bool,
    dry_run: bool,
    workers: int,
    include_patterns: tuple[str, ...],
    exclude_patterns: tuple[str, ...],
    comparator: Optional[str],
    no_progress: bool,
) -> None:
    """Mirror LOCAL_PATH to DEST.

    DEST is s3://bucket/prefix, or a prefix inside the configured default
    bucket.

    Examples:
        bucketsync sync ./site s3://my-bucket/site
        bucketsync sync ./site s3://my-bucket/site --delete --dry-run
        bucketsync sync ./docs docs --exclude "*.tmp" --exclude "build/"
        bucketsync sync ./data s3://archive/data -j 16 --comparator checksum
    """
    from .cli_progress import run_sync_with_progress
    from .sync import CancelToken, SyncEngine

    out: OutputFormatter = ctx.obj["out"]
    bucket, prefix = _parse_destination(ctx, out, dest)
    cancel_token = CancelToken()

    engine = SyncEngine(_make_store(ctx), output=out)
    kwargs: dict[str, Any] = {
        "dry_run": dry_run,
        "delete_extra": delete_extra,
        "include_patterns": include_patterns,
        "exclude_patterns": exclude_patterns,
        "comparator": comparator,
        "parallelism": workers,
        "cancel_token": cancel_token,
    }

    try:
        if no_progress or out.quiet or out.json_output:
            result = engine.sync(local_path, bucket, prefix, **kwargs)
        else:
            result = run_sync_with_progress(engine, local_path, bucket, prefix, **kwargs)
    except KeyboardInterrupt:
        cancel_token.cancel()
        out.warning("\nSync cancelled by user")
        ctx.exit(130)
        return
    except SyncCancelledError as e:
        out.error(f"Sync aborted: {e}")
        ctx.exit(1)
        return
    except BucketSyncError as e:
        out.error(f"Sync failed: {e}")
        ctx.exit(1)
        return

    if out.json_output:
        stats = result.stats
        out.output_json(
            {
                "dry_run": result.dry_run,
                "files_uploaded": result.files_uploaded,
                "files_deleted": result.files_deleted,
                "files_skipped": result.files_skipped,
                "bytes_uploaded": result.bytes_uploaded,
                "duration": round(result.duration, 3),
                "planned": {
                    "uploads": stats.uploads,
                    "deletes": stats.deletes,
                    "skips": stats.skips,
                    "bytes_to_upload": stats.bytes_to_upload,
                    "bytes_to_delete": stats.bytes_to_delete,
                },
                "operations": [
                    {
                        "type": op.type.value,
                        "key": op.remote_key,
                        "size": op.size,
                        "reason": op.reason,
                    }
                    for op in result.operations
                ],
                "results": [
                    {
                        "type": outcome.operation.type.value,
                        "key": outcome.operation.remote_key,
                        "success": outcome.success,
                        "duration": round(outcome.duration, 3),
                        "error": describe_error(outcome.error),
                    }
                    for outcome in result.outcomes
                ],
                "errors": [str(error) for error in result.errors],
            }
        )

    if result.errors:
        ctx.exit(1)


@main.command()
@click.argument("dest", type=str)
@click.pass_context
def ls(ctx: Any, dest: str) -> None:
    """List objects under DEST (s3://bucket/prefix)."""
    from .sync.scanner import Scanner

    out: OutputFormatter = ctx.obj["out"]
    bucket, prefix = _parse_destination(ctx, out, dest)
    prefix = normalize_prefix(prefix)

    try:
        objects = Scanner(_make_store(ctx)).scan_remote(bucket, prefix)
    except BucketSyncError as e:
        out.error(f"Listing failed: {e}")
        ctx.exit(1)
        return

    if not objects and not out.json_output:
        out.info("No objects found.")
        return

    rows = [
        [obj.relative_to(prefix), format_size(obj.size), obj.etag]
        for obj in sorted(objects, key=lambda o: o.key)
    ]
    out.output_table(["Key", "Size", "ETag"], rows, title=f"s3://{bucket}/{prefix}")


@main.command("check-patterns")
@click.argument("patterns", nargs=-1, required=True)
@click.pass_context
def check_patterns(ctx: Any, patterns: tuple[str, ...]) -> None:
    """Validate include/exclude PATTERNS."""
    out: OutputFormatter = ctx.obj["out"]
    errors = PatternMatcher().validate_patterns(patterns)

    if out.json_output:
        out.output_json(
            [
                {"index": e.index, "pattern": e.pattern, "error": e.detail}
                for e in errors
            ]
        )
    elif not errors:
        out.success(f"✓ {len(patterns)} pattern(s) valid")
    else:
        for error in errors:
            out.error(str(error))

    if errors:
        ctx.exit(1)


if __name__ == "__main__":
    main()
