from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI, status
from pydantic import BaseModel

from cardinanny import __version__
from cardinanny.nanny import Cardinanny


class PingResponse(BaseModel):
    message: str


class SummaryResponse(BaseModel):
    summary: dict[str, list[str]]


class StatusResponse(BaseModel):
    state: str
    running: bool
    passes_run: int
    interval_seconds: float
    last_pass: dict[str, Any] | None = None
    version: str = __version__


def create_app(nanny: Cardinanny, *, manage_loop: bool = True) -> FastAPI:
    """Build the read-only status API; optionally own the loop's lifetime."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if manage_loop:
            nanny.start()
        try:
            yield
        finally:
            if manage_loop:
                await nanny.stop()

    app = FastAPI(title="Cardinanny", version=__version__, lifespan=lifespan)

    @app.get("/ping", response_model=PingResponse, status_code=status.HTTP_200_OK)
    async def ping() -> PingResponse:
        return PingResponse(message="pong")

    @app.get("/summary", response_model=SummaryResponse, status_code=status.HTTP_200_OK)
    async def summary() -> SummaryResponse:
        """Labels dropped per job since the process started."""
        return SummaryResponse(summary=nanny.summary.snapshot())

    @app.get("/status", response_model=StatusResponse, status_code=status.HTTP_200_OK)
    async def loop_status() -> StatusResponse:
        last = nanny.last_pass
        return StatusResponse(
            state=nanny.state.value,
            running=nanny.running,
            passes_run=nanny.passes_run,
            interval_seconds=nanny.interval,
            last_pass=last.to_dict() if last else None,
        )

    return app
