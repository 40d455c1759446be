"""
Prometheus config rewriter.

Adds a labeldrop rule for the offending labels of each affected job, writes
the full document back to disk and asks Prometheus to reload it.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Mapping, Sequence

import structlog

from cardinanny.errors import (
    ConfigFetchError,
    NoScrapeJobsError,
    ReloadFailedError,
    ReloadUnreachableError,
)
from cardinanny.prometheus import PrometheusAPIError, PrometheusClient, PrometheusTransportError
from cardinanny.scrape_config import ScrapeConfigDocument, label_drop_regex


def to_regex_map(job_to_labels: Mapping[str, Sequence[str]]) -> dict[str, str]:
    """One alternation regex per job."""
    return {job: label_drop_regex(labels) for job, labels in job_to_labels.items()}


class PrometheusConfigRewriter:
    """Rewrites the Prometheus config file to drop labels per job."""

    def __init__(
        self,
        client: PrometheusClient,
        *,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._client = client
        self._log = logger or structlog.get_logger()

    async def drop_labels_in_jobs(
        self,
        job_to_labels: Mapping[str, Sequence[str]],
        config_path: str | Path,
    ) -> None:
        """
        Drop the given labels from future scrapes of their jobs.

        The live config is fetched from Prometheus rather than read from
        ``config_path``, so edits made on disk but never loaded are lost.

        Raises:
            ConfigFetchError: the live config could not be retrieved
            ConfigParseError: the live config is not a valid document
            NoScrapeJobsError: the config has no scrape jobs at all
            OSError: the config file could not be written
            ReloadFailedError: Prometheus rejected the reload
            ReloadUnreachableError: the reload request got no response
        """
        if not job_to_labels:
            return

        try:
            raw = await self._client.config()
        except PrometheusAPIError as exc:
            raise ConfigFetchError(
                f"error retrieving the latest config from the prometheus API, {exc}"
            ) from exc

        document = ScrapeConfigDocument.parse(raw)

        if not document.scrape_configs:
            raise NoScrapeJobsError(
                f"had labels to drop {dict(job_to_labels)}, "
                f"but no scrape_configs in config file at {config_path}",
                {"config_path": str(config_path)},
            )

        for job, regex in to_regex_map(job_to_labels).items():
            if document.append_label_drop(job, regex):
                self._log.debug("label_drop_rule_added", job=job, regex=regex)
            else:
                self._log.warning("job_not_in_config_skipped", job=job, regex=regex)

        await asyncio.to_thread(
            Path(config_path).write_text, document.to_yaml(), encoding="utf-8"
        )
        self._log.debug("config_file_written", path=str(config_path))

        await self._reload()

    async def _reload(self) -> None:
        try:
            resp = await self._client.reload()
        except PrometheusTransportError as exc:
            raise ReloadUnreachableError(
                f"error when reloading prometheus config, {exc}"
            ) from exc

        if resp.status_code != 200:
            raise ReloadFailedError(resp.status_code, resp.text)

        self._log.debug("prometheus_config_reloaded")
