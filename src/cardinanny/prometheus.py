"""
Prometheus HTTP API client.

Covers the read and admin endpoints cardinanny needs: TSDB statistics,
instant queries, series deletion, tombstone cleanup, the live config and
the lifecycle reload hook.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Sequence

import httpx

from cardinanny import __version__

DEFAULT_USER_AGENT = f"cardinanny/{__version__}"

VECTOR = "vector"


class PrometheusAPIError(RuntimeError):
    """Raised when Prometheus returns an error or an unusable response."""


class PrometheusTransportError(PrometheusAPIError):
    """Raised when no response was received from Prometheus."""


@dataclass(frozen=True)
class LabelStat:
    """Number of distinct values observed for a label name."""

    name: str
    value: int


@dataclass(frozen=True)
class Sample:
    """One element of an instant vector."""

    metric: dict[str, str]
    value: float
    timestamp: float


@dataclass(frozen=True)
class QueryResult:
    """Result of an instant query.

    ``samples`` is only populated for the ``vector`` result type; scalar,
    string and matrix results keep their type but carry no samples.
    """

    result_type: str
    samples: list[Sample] = field(default_factory=list)

    @property
    def is_vector(self) -> bool:
        return self.result_type == VECTOR


class PrometheusClient:
    """Async client for the Prometheus HTTP API."""

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 30.0,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self._base_url = url.rstrip("/")
        self._timeout = timeout
        self._user_agent = user_agent

    @property
    def base_url(self) -> str:
        return self._base_url

    async def health_check(self) -> bool:
        """Return True if Prometheus answers its health endpoint."""
        try:
            resp = await self._send("GET", "/-/healthy")
        except PrometheusTransportError:
            return False
        return resp.status_code == 200

    async def tsdb_stats(self) -> list[LabelStat]:
        """Fetch label value counts from the TSDB status endpoint."""
        data = await self._request("GET", "/api/v1/status/tsdb")
        stats = data.get("data", {}).get("labelValueCountByLabelName") or []
        try:
            return [LabelStat(name=s["name"], value=int(s["value"])) for s in stats]
        except (KeyError, TypeError, ValueError) as exc:
            raise PrometheusAPIError(f"malformed TSDB stats entry: {exc!r}") from exc

    async def query(self, query: str, time: datetime | None = None) -> QueryResult:
        """
        Execute instant query at a specific time.

        Args:
            query: PromQL query string
            time: Query evaluation time (defaults to now on the server)

        Returns:
            QueryResult holding the parsed samples when the result is a vector
        """
        params: dict[str, Any] = {"query": query}
        if time is not None:
            params["time"] = time.timestamp()

        data = await self._request("GET", "/api/v1/query", params=params)
        payload = data.get("data", {})
        result_type = payload.get("resultType", "")

        if result_type != VECTOR:
            return QueryResult(result_type=result_type)

        samples = []
        for item in payload.get("result", []):
            ts, value = item.get("value", [0, "NaN"])
            samples.append(
                Sample(
                    metric=dict(item.get("metric", {})),
                    value=float(value),
                    timestamp=float(ts),
                )
            )
        return QueryResult(result_type=result_type, samples=samples)

    async def delete_series(
        self,
        matchers: Sequence[str],
        start: datetime,
        end: datetime,
    ) -> None:
        """Delete all series matching any of the selectors within [start, end]."""
        params: list[tuple[str, Any]] = [("match[]", m) for m in matchers]
        params.append(("start", start.timestamp()))
        params.append(("end", end.timestamp()))
        await self._request("POST", "/api/v1/admin/tsdb/delete_series", params=params)

    async def clean_tombstones(self) -> None:
        """Remove deleted data from disk."""
        await self._request("POST", "/api/v1/admin/tsdb/clean_tombstones")

    async def config(self) -> str:
        """Return the currently loaded configuration as YAML text."""
        data = await self._request("GET", "/api/v1/status/config")
        return data.get("data", {}).get("yaml", "")

    async def reload(self) -> httpx.Response:
        """Trigger a config reload; the caller inspects the response."""
        return await self._send("POST", "/-/reload")

    async def _send(
        self,
        method: str,
        path: str,
        params: Any = None,
    ) -> httpx.Response:
        url = f"{self._base_url}{path}"
        headers = {"User-Agent": self._user_agent}
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                return await client.request(method, url, headers=headers, params=params)
        except httpx.TransportError as exc:
            raise PrometheusTransportError(str(exc)) from exc

    async def _request(
        self,
        method: str,
        path: str,
        params: Any = None,
    ) -> dict[str, Any]:
        """Execute an API request and unwrap the Prometheus JSON envelope."""
        resp = await self._send(method, path, params=params)

        if not resp.content:
            if resp.is_success:
                return {}
            raise PrometheusAPIError(f"HTTP {resp.status_code}")

        try:
            data = resp.json()
        except ValueError as exc:
            raise PrometheusAPIError(f"HTTP {resp.status_code}: {resp.text}") from exc

        if data.get("status") != "success":
            error_type = data.get("errorType", "error")
            error = data.get("error", "Unknown error")
            raise PrometheusAPIError(f"{error_type}: {error}")

        if not resp.is_success:
            raise PrometheusAPIError(f"HTTP {resp.status_code}: {resp.text}")

        return data
