"""Unit tests for the metrics server and the shared uvicorn runner."""

import asyncio
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from payout_service.api.metrics_server import MetricsServer, UvicornServer, create_metrics_app


class TestCreateMetricsApp:
    def test_disables_docs(self) -> None:
        app = create_metrics_app()

        assert app.title == "Payout Service Metrics"
        assert app.docs_url is None
        assert app.openapi_url is None

    def test_metrics_endpoint(self) -> None:
        from payout_service.infrastructure import metrics  # noqa: F401

        response = TestClient(create_metrics_app()).get("/metrics")

        assert response.status_code == 200
        assert "text/plain" in response.headers["content-type"]
        assert "payout_requests_total" in response.text


class TestUvicornServer:
    @pytest.mark.asyncio
    async def test_start_and_stop(self) -> None:
        served = asyncio.Event()

        async def serve() -> None:
            served.set()
            while not server_mock.should_exit:
                await asyncio.sleep(0.01)

        server_mock = MagicMock()
        server_mock.should_exit = False
        server_mock.serve = serve

        with patch("payout_service.api.metrics_server.uvicorn.Server", return_value=server_mock):
            server = MetricsServer(host="127.0.0.1", port=0)
            await server.start()
            await served.wait()
            await server.stop(grace=1.0)

        assert server_mock.should_exit is True
        assert server._task is not None and server._task.done()

    @pytest.mark.asyncio
    async def test_stop_cancels_after_grace(self) -> None:
        async def serve() -> None:
            await asyncio.sleep(60)

        server_mock = MagicMock()
        server_mock.serve = serve

        with patch("payout_service.api.metrics_server.uvicorn.Server", return_value=server_mock):
            server = UvicornServer(create_metrics_app(), name="test", host="127.0.0.1", port=0)
            await server.start()
            await server.stop(grace=0.05)

        assert server._task is not None and server._task.cancelled()

    @pytest.mark.asyncio
    async def test_stop_before_start(self) -> None:
        server = MetricsServer(host="127.0.0.1", port=0)

        await server.stop()
