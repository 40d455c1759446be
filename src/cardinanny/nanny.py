"""
Control loop tying the scanner, rewriter and cleaner together.

Each pass runs Scanning -> Remediating -> Cleaning and returns to Idle. A
scan or rewrite failure ends the pass early; a cleanup failure is logged
but the already-applied config change stands. Nothing here retries: the
next pass starts again from a full scan.
"""

from __future__ import annotations

import asyncio
import contextlib
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

import structlog

from cardinanny.cleaner import SeriesCleaner
from cardinanny.rewriter import PrometheusConfigRewriter
from cardinanny.scanner import CardinalityScanner
from cardinanny.summary import RemediationSummary

DEFAULT_INTERVAL_SECONDS = 120.0


class LoopState(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    REMEDIATING = "remediating"
    CLEANING = "cleaning"


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PassResult:
    """Outcome of a single remediation pass."""

    started_at: datetime
    finished_at: datetime | None = None
    dropped: dict[str, list[str]] = field(default_factory=dict)
    furthest_state: LoopState = LoopState.IDLE
    error: Exception | None = None
    cleanup_error: Exception | None = None

    @property
    def remediated(self) -> bool:
        """Whether the config was rewritten and reloaded."""
        return bool(self.dropped) and self.error is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "dropped": {job: list(labels) for job, labels in self.dropped.items()},
            "furthest_state": self.furthest_state.value,
            "remediated": self.remediated,
            "error": str(self.error) if self.error else None,
            "cleanup_error": str(self.cleanup_error) if self.cleanup_error else None,
        }


class Cardinanny:
    """Runs remediation passes sequentially on a fixed period."""

    def __init__(
        self,
        scanner: CardinalityScanner,
        rewriter: PrometheusConfigRewriter,
        cleaner: SeriesCleaner,
        config_path: str | Path,
        *,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        summary: RemediationSummary | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._scanner = scanner
        self._rewriter = rewriter
        self._cleaner = cleaner
        self.config_path = config_path
        self.interval = interval
        self.summary = summary if summary is not None else RemediationSummary()
        self._log = logger or structlog.get_logger()
        self._state = LoopState.IDLE
        self._task: asyncio.Task[None] | None = None
        self.passes_run = 0
        self.last_pass: PassResult | None = None

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _enter(self, state: LoopState, result: PassResult) -> None:
        self._state = state
        result.furthest_state = state

    async def run_pass(self) -> PassResult:
        """Run one scan/remediate/clean pass. Component errors are not raised."""
        result = PassResult(started_at=_now())
        try:
            await self._run_pass(result)
        finally:
            self._state = LoopState.IDLE
            result.finished_at = _now()
            self.passes_run += 1
            self.last_pass = result
        return result

    async def _run_pass(self, result: PassResult) -> None:
        self._enter(LoopState.SCANNING, result)
        self._log.info(
            "starting_cardinality_scan",
            limit=self._scanner.label_count_limit,
        )
        try:
            job_to_labels = await self._scanner.scan()
        except Exception as exc:
            result.error = exc
            self._log.error("scan_failed", error=str(exc), error_type=type(exc).__name__)
            return

        if not job_to_labels:
            self._log.info("cardinality_scan_done", config_changed=False)
            return

        self._log.info("high_cardinality_labels_found", labels=job_to_labels)

        self._enter(LoopState.REMEDIATING, result)
        try:
            await self._rewriter.drop_labels_in_jobs(job_to_labels, self.config_path)
        except Exception as exc:
            result.error = exc
            self._log.error(
                "config_update_failed",
                error=str(exc),
                error_type=type(exc).__name__,
                config_path=str(self.config_path),
            )
            return

        result.dropped = {job: list(labels) for job, labels in job_to_labels.items()}
        self.summary.record(job_to_labels)

        # TODO: scope deletion to the affected jobs once selectors carry the job label
        labels_to_drop = [label for labels in job_to_labels.values() for label in labels]

        self._enter(LoopState.CLEANING, result)
        try:
            await self._cleaner.clean(labels_to_drop)
        except Exception as exc:
            result.cleanup_error = exc
            self._log.error(
                "cleanup_failed",
                error=str(exc),
                error_type=type(exc).__name__,
            )

        self._log.info("cardinality_averted", labels=result.dropped)

    async def run_forever(self) -> None:
        """Run a pass now, then one per interval until cancelled."""
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while True:
            await self.run_pass()

            next_tick += self.interval
            now = loop.time()
            if next_tick < now:
                missed = math.ceil((now - next_tick) / self.interval)
                self._log.warning("pass_overran_interval", ticks_skipped=missed)
                next_tick += missed * self.interval
            await asyncio.sleep(next_tick - now)

    def start(self) -> asyncio.Task[None]:
        """Schedule the loop on the running event loop."""
        if not self.running:
            self._task = asyncio.create_task(self.run_forever(), name="cardinanny-loop")
            self._log.info("cardinanny_started", interval=self.interval)
        assert self._task is not None
        return self._task

    async def stop(self) -> None:
        """Cancel the loop, aborting any request in flight."""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        self._log.info("cardinanny_stopped")
