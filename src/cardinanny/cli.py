"""
Command line entry point.

Wires settings, the Prometheus client, the control loop and the status
server together and serves until interrupted.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Sequence

import structlog
import uvicorn
from pydantic import ValidationError

from cardinanny.api import create_app
from cardinanny.cleaner import SeriesCleaner
from cardinanny.config import Settings, get_settings
from cardinanny.errors import ConfigurationError, ExitCode, ProviderError, main_with_error_handling
from cardinanny.logging import configure_logging
from cardinanny.nanny import Cardinanny
from cardinanny.prometheus import PrometheusClient
from cardinanny.rewriter import PrometheusConfigRewriter
from cardinanny.scanner import CardinalityScanner

logger = structlog.get_logger()


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cardinanny",
        description="Drop high-cardinality labels from Prometheus scrape jobs",
    )
    parser.add_argument(
        "--prometheus-config-file",
        default=settings.prometheus_config_file,
        help="path to the prometheus config file",
    )
    parser.add_argument(
        "--prometheus-url",
        default=settings.prometheus_url,
        help="the base URL to use to connect to prometheus",
    )
    parser.add_argument(
        "--cardinality-label-limit",
        type=int,
        default=settings.cardinality_label_limit,
        help="the max number of values a label can have",
    )
    parser.add_argument(
        "--scan-interval",
        type=float,
        default=settings.scan_interval_seconds,
        help="seconds between remediation passes",
    )
    parser.add_argument("--host", default=settings.status_host, help="status server host")
    parser.add_argument("--port", type=int, default=settings.status_port, help="status server port")
    parser.add_argument("--log-level", default=settings.log_level, help="log level")
    return parser


def build_nanny(args: argparse.Namespace, *, timeout: float = 30.0) -> Cardinanny:
    if args.cardinality_label_limit <= 0:
        raise ConfigurationError(
            "cardinality label limit must be a positive integer",
            {"limit": args.cardinality_label_limit},
        )
    if args.scan_interval <= 0:
        raise ConfigurationError(
            "scan interval must be positive",
            {"interval": args.scan_interval},
        )

    client = PrometheusClient(args.prometheus_url, timeout=timeout)
    return Cardinanny(
        scanner=CardinalityScanner(client, args.cardinality_label_limit),
        rewriter=PrometheusConfigRewriter(client),
        cleaner=SeriesCleaner(client),
        config_path=args.prometheus_config_file,
        interval=args.scan_interval,
    )


@main_with_error_handling()
def main(argv: Sequence[str] | None = None) -> int:
    try:
        settings = get_settings()
    except ValidationError as exc:
        raise ConfigurationError(f"invalid settings: {exc}") from exc

    args = build_parser(settings).parse_args(argv)
    configure_logging(args.log_level)

    nanny = build_nanny(args, timeout=settings.http_timeout)

    client = PrometheusClient(args.prometheus_url, timeout=settings.http_timeout)
    if not asyncio.run(client.health_check()):
        raise ProviderError(
            "prometheus is not reachable",
            {"prometheus_url": args.prometheus_url},
        )

    logger.info(
        "starting_cardinanny",
        config_path=args.prometheus_config_file,
        prometheus_url=args.prometheus_url,
        cardinality_label_limit=args.cardinality_label_limit,
        interval=args.scan_interval,
    )

    uvicorn.run(
        create_app(nanny),
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower(),
    )
    return ExitCode.SUCCESS


def run() -> None:
    sys.exit(main())
