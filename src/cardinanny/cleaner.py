"""Deletes already-ingested series that carry dropped labels."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Sequence

import structlog

from cardinanny.errors import CompactionFailedError, DeleteFailedError
from cardinanny.prometheus import PrometheusAPIError, PrometheusClient

LOOKBACK = timedelta(hours=1)


def series_selector(label_name: str) -> str:
    """Selector for any series with a non-empty ``label_name``."""
    return f'{{{label_name}=~".+"}}'


def _fmt(items: Sequence[str]) -> str:
    return "[" + " ".join(items) + "]"


class SeriesCleaner:
    """Removes offending series and compacts the resulting tombstones."""

    def __init__(
        self,
        client: PrometheusClient,
        *,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._client = client
        self._log = logger or structlog.get_logger()

    async def clean(self, labels: Sequence[str]) -> None:
        selectors = [series_selector(label) for label in labels]

        self._log.debug("deleting_series", series=selectors)

        end = datetime.now(timezone.utc)
        try:
            await self._client.delete_series(selectors, end - LOOKBACK, end)
        except PrometheusAPIError as exc:
            raise DeleteFailedError(
                f"error while deleting label data {_fmt(labels)} "
                f"for query {_fmt(selectors)}, error {exc}",
            ) from exc

        try:
            await self._client.clean_tombstones()
        except PrometheusAPIError as exc:
            raise CompactionFailedError(
                f"error while cleaning tombstones for label data {_fmt(labels)}, error {exc}",
            ) from exc

        self._log.debug("series_deleted", series=selectors)
