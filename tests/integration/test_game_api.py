"""Integration tests for API endpoints.

The process-wide engine dependency is overridden with an engine wired to
the fake oracles from conftest, so no request leaves the process.
"""

import pytest
from httpx import AsyncClient, ASGITransport


@pytest.fixture
def app_with_fake_engine(engine):
    """App whose game routes use the fake-oracle engine."""
    from taletype.api.dependencies import get_game_engine
    from taletype.main import app

    app.dependency_overrides[get_game_engine] = lambda: engine
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def client(app_with_fake_engine):
    transport = ASGITransport(app=app_with_fake_engine)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.mark.asyncio
async def test_root_endpoint(client):
    """Root endpoint returns basic info."""
    response = await client.get("/")

    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "TaleType"
    assert data["status"] == "running"
    assert "X-Request-ID" in response.headers


@pytest.mark.asyncio
async def test_health_endpoint(client):
    response = await client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert set(data["components"]) == {"gemini", "anthropic", "openai"}


@pytest.mark.asyncio
async def test_liveness_endpoint(client):
    response = await client.get("/health/live")

    assert response.status_code == 200
    assert response.json()["status"] == "alive"


class TestGameFlow:
    """Start, type and read back a play-through."""

    @pytest.mark.asyncio
    async def test_initial_state_is_idle(self, client):
        response = await client.get("/game")

        assert response.status_code == 200
        data = response.json()
        assert data["phase"] == "idle"
        assert data["lives"] == 3
        assert data["max_lives"] == 5

    @pytest.mark.asyncio
    async def test_start_returns_loading_then_ready(self, client, engine):
        response = await client.post("/game/start")

        assert response.status_code == 200
        assert response.json()["phase"] == "loading"
        assert response.json()["generation"] == 1

        await engine.settle()
        data = (await client.get("/game")).json()

        assert data["phase"] == "ready"
        assert data["target_text"] == "The cat sat."
        assert [q["state"] for q in data["quests"]] == ["active", "active"]

    @pytest.mark.asyncio
    async def test_type_segment_to_completion(self, client, engine):
        await client.post("/game/start")
        await engine.settle()

        response = await client.post("/game/type", json={"text": "The cat sat."})

        assert response.status_code == 200
        data = response.json()
        assert data["segments_completed"] == 1
        assert data["flawless_streak"] == 1
        assert data["phase"] == "loading"

        await engine.settle()
        history = (await client.get("/game/history")).json()

        assert history["total"] == 1
        assert history["text"] == "The cat sat."
        assert history["segments"][0]["typed_text"] == "The cat sat."

    @pytest.mark.asyncio
    async def test_input_reports_char_states(self, client, engine):
        await client.post("/game/start")
        await engine.settle()

        response = await client.post("/game/input", json={"value": "Tx"})

        assert response.status_code == 200
        data = response.json()
        assert data["phase"] == "typing"
        assert data["lives"] == 2
        assert data["char_states"][:3] == ["correct", "incorrect", "current"]

    @pytest.mark.asyncio
    async def test_game_over_after_three_mistakes(self, client, engine):
        await client.post("/game/start")
        await engine.settle()

        response = await client.post("/game/type", json={"text": "xxxxx"})

        data = response.json()
        assert data["phase"] == "game_over"
        assert data["lives"] == 0
        assert data["typed_text"] == "xxx"


class TestGameErrors:
    """Error mapping for game routes."""

    @pytest.mark.asyncio
    async def test_input_before_start_is_conflict(self, client):
        response = await client.post("/game/input", json={"value": "T"})

        assert response.status_code == 409
        assert response.json()["error"]["type"] == "GameNotStartedError"

    @pytest.mark.asyncio
    async def test_typing_after_game_over_is_conflict(self, client, engine):
        await client.post("/game/start")
        await engine.settle()
        await client.post("/game/type", json={"text": "xxx"})

        response = await client.post("/game/type", json={"text": "T"})

        assert response.status_code == 409
        assert response.json()["error"]["type"] == "GameOverError"

    @pytest.mark.asyncio
    async def test_deletion_is_rejected(self, client, engine):
        await client.post("/game/start")
        await engine.settle()
        await client.post("/game/input", json={"value": "The"})

        response = await client.post("/game/input", json={"value": "Th"})

        assert response.status_code == 400
        assert response.json()["error"]["type"] == "InputRejectedError"
        assert (await client.get("/game")).json()["typed_text"] == "The"

    @pytest.mark.asyncio
    async def test_empty_type_request_is_validation_error(self, client):
        response = await client.post("/game/type", json={"text": ""})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_restart_clears_progress(self, client, engine):
        await client.post("/game/start")
        await engine.settle()
        await client.post("/game/type", json={"text": "xxx"})

        response = await client.post("/game/start")

        data = response.json()
        assert data["generation"] == 2
        assert data["lives"] == 3
        assert data["segments_completed"] == 0
