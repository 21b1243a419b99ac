"""Tests for the /transformations endpoints."""

from __future__ import annotations

import pytest
from httpx import AsyncClient

from clipflow.services.container import FlowServices


@pytest.mark.asyncio
class TestTransformationsApi:
    async def test_lists_registered_strategies(self, async_client: AsyncClient) -> None:
        response = await async_client.get("/api/v1/transformations")

        assert response.status_code == 200
        items = {item["id"]: item for item in response.json()["data"]}
        assert set(items) == {
            "identity",
            "whitespace-strip",
            "smart-unwrap",
            "clean-terminal-text",
        }
        assert items["clean-terminal-text"]["kind"] == "pipeline"
        assert items["clean-terminal-text"]["stages"] == [
            "whitespace-strip",
            "smart-unwrap",
        ]
        assert items["identity"]["stages"] == []

    async def test_run_single_transformation(self, async_client: AsyncClient) -> None:
        response = await async_client.post(
            "/api/v1/transformations/whitespace-strip/test",
            json={"text": "    a\n    b"},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["transformation_id"] == "whitespace-strip"
        assert data["output"] == "a\nb"
        assert data["duration_ms"] >= 0

    async def test_run_pipeline_leaves_buffer_alone(
        self, async_client: AsyncClient, flow_services: FlowServices
    ) -> None:
        flow_services.buffer.set_text("untouched")
        version = flow_services.buffer.current_version()

        response = await async_client.post(
            "/api/v1/transformations/clean-terminal-text/test",
            json={"text": "  hi  "},
        )

        assert response.json()["data"]["output"] == "hi"
        assert flow_services.buffer.current_version() == version

    async def test_unknown_id_is_404(self, async_client: AsyncClient) -> None:
        response = await async_client.post(
            "/api/v1/transformations/nope/test", json={"text": "x"}
        )
        assert response.status_code == 404

    async def test_strategy_error_is_422(self, async_client: AsyncClient) -> None:
        response = await async_client.post(
            "/api/v1/transformations/clean-terminal-text/test",
            json={"text": "   "},
        )

        assert response.status_code == 422
        data = response.json()
        assert data["error"]["type"] == "transformation_error"
        assert data["message"] == "Empty input"
