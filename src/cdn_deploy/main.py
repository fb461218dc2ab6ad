"""
Command-line entry point for CDN Deploy.

This module wires configuration, structured logging, the S3 blob store and
the deployment pipeline together for a single deployment of a directory.
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import Dict, List, Optional

import structlog

from .config import Config, load_config
from .errors import ConfigError, PreparationError, TransientConflictError
from .pipeline import DeploymentPipeline, DeploymentReport
from .sources import iter_directory

logger = structlog.get_logger(__name__)

EXIT_OK = 0
EXIT_FILES_FAILED = 1
EXIT_CONFIG_ERROR = 2
EXIT_PREPARATION_FAILED = 3
EXIT_RETRY_LATER = 75


def configure_logging(log_level: str = "INFO", log_format: str = "json") -> None:
    """Configure structlog on top of the standard library logger."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(message)s",
        stream=sys.stderr
    )
    renderer = (
        structlog.dev.ConsoleRenderer()
        if log_format == "console"
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def parse_metadata(pairs: Optional[List[str]]) -> Optional[Dict[str, str]]:
    """Parse repeated KEY=VALUE options into a metadata mapping."""
    if not pairs:
        return None
    metadata = {}
    for pair in pairs:
        key, separator, value = pair.partition("=")
        if not separator or not key.strip():
            raise ConfigError(f"Metadata must be given as KEY=VALUE, got: {pair!r}")
        metadata[key.strip().replace("-", "_").lower()] = value.strip()
    return metadata


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cdn-deploy",
        description="Deploy a directory of static files to a CDN origin container"
    )
    parser.add_argument("source", help="Directory whose files are deployed")
    parser.add_argument(
        "--container",
        dest="container_name",
        help="Target container name (env: CDN_DEPLOY_CONTAINER_NAME)"
    )
    parser.add_argument("--prefix", dest="destination_prefix", help="Key prefix inside the container")
    parser.add_argument(
        "--delete-existing-blobs",
        action="store_true",
        default=None,
        help="Delete everything under the prefix before uploading"
    )
    parser.add_argument(
        "--concurrency",
        dest="concurrent_uploads",
        type=int,
        help="Maximum number of concurrent uploads (default: 10)"
    )
    parser.add_argument(
        "--gzip",
        action="store_true",
        default=None,
        help="Gzip files when that makes them smaller"
    )
    parser.add_argument(
        "--metadata",
        action="append",
        metavar="KEY=VALUE",
        help="Metadata for every uploaded file, replaces the default (repeatable)"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=None,
        help="Log what would be deleted and uploaded without doing it"
    )
    parser.add_argument("--endpoint-url", help="S3 endpoint URL")
    parser.add_argument("--region", dest="region_name", help="S3 region")
    parser.add_argument("--profile", dest="profile_name", help="AWS profile name")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)"
    )
    parser.add_argument("--log-format", choices=["json", "console"], help="Log format (default: json)")
    return parser


async def deploy(config: Config, source: str, pipeline: Optional[DeploymentPipeline] = None) -> DeploymentReport:
    """Deploy every file below source with the given configuration."""
    files = iter_directory(source)
    pipeline = pipeline or DeploymentPipeline.from_config(config)

    def signal_handler(signum, frame):
        logger.info("Received shutdown signal", signal=signum)
        pipeline.request_stop()

    previous_handlers = {
        signum: signal.signal(signum, signal_handler)
        for signum in (signal.SIGINT, signal.SIGTERM)
    }
    try:
        return await pipeline.run(files)
    finally:
        for signum, handler in previous_handlers.items():
            signal.signal(signum, handler)


def main(argv: Optional[List[str]] = None) -> int:
    """Run one deployment and return the process exit code."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(
            container_name=args.container_name,
            destination_prefix=args.destination_prefix,
            delete_existing_blobs=args.delete_existing_blobs,
            concurrent_uploads=args.concurrent_uploads,
            gzip=args.gzip,
            metadata=parse_metadata(args.metadata),
            dry_run=args.dry_run,
            endpoint_url=args.endpoint_url,
            region_name=args.region_name,
            profile_name=args.profile_name,
            log_level=args.log_level,
            log_format=args.log_format
        )
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    configure_logging(config.log_level, config.log_format)

    try:
        report = asyncio.run(deploy(config, args.source))
    except TransientConflictError as e:
        logger.error("Deployment failed, retry later", error=str(e))
        return EXIT_RETRY_LATER
    except PreparationError as e:
        logger.error("Deployment failed", error=str(e))
        return EXIT_PREPARATION_FAILED
    except NotADirectoryError as e:
        logger.error("Deployment failed", error=str(e))
        return EXIT_CONFIG_ERROR

    if not report.succeeded:
        for outcome in report.failed:
            logger.error(
                "File was not deployed",
                file_path=outcome.source_path,
                destination=outcome.destination,
                error=outcome.error_message
            )
        return EXIT_FILES_FAILED
    return EXIT_OK


def cli():
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    cli()
