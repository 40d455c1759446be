"""
Cardinality scanner.

Finds labels whose number of distinct values exceeds the configured limit
and works out which scrape jobs emit them.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog

from cardinanny.errors import QueryFailedError, SourceUnavailableError
from cardinanny.prometheus import PrometheusAPIError, PrometheusClient

JOB_LABEL = "job"


def query_by_job(label_name: str) -> str:
    """PromQL summing every series carrying ``label_name``, grouped by job."""
    return f'sum({{{label_name}=~".+"}}) by ({JOB_LABEL})'


class CardinalityScanner:
    """Maps scrape jobs to the high-cardinality labels they produce."""

    def __init__(
        self,
        client: PrometheusClient,
        label_count_limit: int,
        *,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        if label_count_limit <= 0:
            raise ValueError("label_count_limit must be a positive integer")
        self._client = client
        self.label_count_limit = label_count_limit
        self._log = logger or structlog.get_logger()

    async def scan(self) -> dict[str, list[str]]:
        """
        Run one scan against the TSDB statistics.

        Returns:
            Mapping of job name to offending label names in discovery order.
            An empty mapping means there is nothing to remediate.

        Raises:
            SourceUnavailableError: TSDB statistics could not be fetched
            QueryFailedError: a follow-up query for a flagged label failed
        """
        try:
            stats = await self._client.tsdb_stats()
        except PrometheusAPIError as exc:
            raise SourceUnavailableError(
                f"error retrieving TSDB stats from the prometheus API, {exc}"
            ) from exc

        job_to_labels: dict[str, list[str]] = {}

        for stat in stats:
            if stat.value <= self.label_count_limit:
                continue

            self._log.info(
                "high_cardinality_label_found",
                label=stat.name,
                value_count=stat.value,
                limit=self.label_count_limit,
            )

            query = query_by_job(stat.name)
            try:
                result = await self._client.query(query, datetime.now(timezone.utc))
            except PrometheusAPIError as exc:
                raise QueryFailedError(
                    f"error querying the prometheus API, {exc}",
                    {"label": stat.name, "query": query},
                ) from exc

            if not result.is_vector:
                self._log.debug(
                    "non_vector_result_ignored",
                    label=stat.name,
                    result_type=result.result_type,
                )
                continue

            for sample in result.samples:
                job = sample.metric.get(JOB_LABEL)
                if job is None:
                    self._log.warning("label_without_job_skipped", label=stat.name)
                    continue

                self._log.info("bad_label_found_in_job", label=stat.name, job=job)
                job_to_labels.setdefault(job, []).append(stat.name)

        return job_to_labels
