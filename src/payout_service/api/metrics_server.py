import asyncio
import contextlib

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest


logger = structlog.get_logger()


def create_metrics_app() -> FastAPI:
    """Create FastAPI application for metrics endpoint."""
    app = FastAPI(
        title="Payout Service Metrics",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    @app.get("/metrics", response_class=PlainTextResponse)
    async def metrics() -> PlainTextResponse:
        """Prometheus metrics endpoint."""
        return PlainTextResponse(
            content=generate_latest(),
            media_type=CONTENT_TYPE_LATEST,
        )

    return app


class UvicornServer:
    """Runs an ASGI application on uvicorn inside the current event loop."""

    def __init__(self, app: FastAPI, name: str, host: str, port: int) -> None:
        self._app = app
        self._name = name
        self._host = host
        self._port = port
        self._server: uvicorn.Server | None = None
        self._task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        """Start serving in the background."""
        config = uvicorn.Config(
            self._app,
            host=self._host,
            port=self._port,
            log_level="warning",
            access_log=False,
        )
        self._server = uvicorn.Server(config)
        self._task = asyncio.create_task(self._server.serve())
        logger.info("server_started", server=self._name, host=self._host, port=self._port)

    async def wait_for_termination(self) -> None:
        if self._task:
            await self._task

    async def stop(self, grace: float = 5.0) -> None:
        """Ask uvicorn to exit, cancelling it after ``grace`` seconds."""
        if self._server:
            self._server.should_exit = True

        if self._task:
            try:
                await asyncio.wait_for(self._task, timeout=grace)
            except TimeoutError:
                self._task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._task

        logger.info("server_stopped", server=self._name)


class MetricsServer(UvicornServer):
    def __init__(self, host: str = "0.0.0.0", port: int = 9090) -> None:
        super().__init__(create_metrics_app(), name="metrics", host=host, port=port)
