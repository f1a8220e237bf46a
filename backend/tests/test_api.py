"""
Tests for the HTTP API.
"""

import httpx
import pytest
from fastapi.testclient import TestClient

from playoff_odds.api.routes import simulations_routes
from playoff_odds.api.schemas import SeasonInput
from playoff_odds.core.config import SimulationSettings
from playoff_odds.main import app
from playoff_odds.simulator import fallback_odds
from playoff_odds.tasks import SimulationTaskStore, get_task_store


@pytest.fixture
def store():
    """Fresh task store per test."""
    task_store = SimulationTaskStore()
    app.dependency_overrides[get_task_store] = lambda: task_store
    yield task_store
    app.dependency_overrides.clear()


@pytest.fixture
def client(store):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def season_payload():
    """One East division per conference, a played week and an open week."""
    teams = [
        {"id": "BUF", "name": "Bills", "conference": "AFC", "division": "East", "wins": 1, "conference_wins": 1, "division_wins": 1},
        {"id": "MIA", "name": "Dolphins", "conference": "AFC", "division": "East", "losses": 1, "conference_losses": 1, "division_losses": 1},
        {"id": "DAL", "name": "Cowboys", "conference": "NFC", "division": "East", "wins": 1, "conference_wins": 1, "division_wins": 1},
        {"id": "PHI", "name": "Eagles", "conference": "NFC", "division": "East", "losses": 1, "conference_losses": 1, "division_losses": 1},
    ]
    games = [
        {"id": "w1a", "week": 1, "home_team_id": "BUF", "away_team_id": "MIA", "is_finished": True, "winner_id": "BUF"},
        {"id": "w1n", "week": 1, "home_team_id": "DAL", "away_team_id": "PHI", "is_finished": True, "winner_id": "DAL"},
        {"id": "w2a", "week": 2, "home_team_id": "MIA", "away_team_id": "BUF"},
        {"id": "w2n", "week": 2, "home_team_id": "PHI", "away_team_id": "DAL"},
    ]
    return {
        "teams": teams,
        "games": games,
        "market_odds": {"w2a": 0.4},
        "seed_ratings": {"BUF": 1550, "MIA": 1480, "DAL": 1520, "PHI": 1530},
        "seed": 17,
    }


class TestHealth:
    """Tests for service endpoints."""

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_root(self, client):
        assert client.get("/").json()["health"] == "/api/health"

    @pytest.mark.asyncio
    async def test_health_async(self):
        """The app serves requests over an async client as well."""
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as async_client:
            response = await async_client.get("/api/health")

        assert response.status_code == 200
        assert response.json()["version"] == "1.0.0"


class TestSimulationRoutes:
    """Tests for /api/simulations."""

    def test_run_status_results(self, client, season_payload):
        """A queued simulation completes and its results can be fetched."""
        response = client.post("/api/simulations/run", json={**season_payload, "n_simulations": 200})
        assert response.status_code == 202
        task_id = response.json()["task_id"]

        status_response = client.get(f"/api/simulations/{task_id}/status")
        assert status_response.json()["status"] == "completed"
        assert status_response.json()["progress"] == 100

        results = client.get(f"/api/simulations/{task_id}/results").json()
        assert results["n_simulations"] == 200
        assert {t["id"] for t in results["teams"]} == {"BUF", "MIA", "DAL", "PHI"}
        assert set(results["simulated_odds"]) == {"w2a", "w2n"}
        # Only the unpriced open game gets display odds
        assert set(results["fallback_odds"]) == {"w2n"}
        # Each conference sends all of its clubs with three wild cards available
        assert all(t["playoff_pct"] == 1.0 for t in results["teams"])

    def test_missing_rating_is_bad_request(self, client, season_payload):
        del season_payload["seed_ratings"]["PHI"]

        response = client.post("/api/simulations/run", json=season_payload)

        assert response.status_code == 400
        assert "Eagles" in response.json()["detail"]

    def test_bad_forced_outcome_is_bad_request(self, client, season_payload):
        season_payload["forced_outcomes"] = {"w2a": "DAL"}

        response = client.post("/api/simulations/run", json=season_payload)

        assert response.status_code == 400

    def test_trial_count_validated(self, client, season_payload):
        response = client.post("/api/simulations/run", json={**season_payload, "n_simulations": 0})
        assert response.status_code == 422

    def test_trial_cap_comes_from_settings(self, client, season_payload, monkeypatch):
        monkeypatch.setattr(simulations_routes, "get_settings", lambda: SimulationSettings(max_trials=100))

        over = client.post("/api/simulations/run", json={**season_payload, "n_simulations": 101})
        at_cap = client.post("/api/simulations/run", json={**season_payload, "n_simulations": 100})

        assert over.status_code == 400
        assert "100" in over.json()["detail"]
        assert at_cap.status_code == 202

    def test_fallback_odds_use_configured_settings(self, client, season_payload, monkeypatch):
        """Display odds follow the configured home field advantage."""
        settings = SimulationSettings(home_field_advantage=0.0)
        monkeypatch.setattr(simulations_routes, "get_settings", lambda: settings)
        teams, games = SeasonInput(**season_payload).to_domain()
        expected = fallback_odds(games, teams, season_payload["market_odds"], settings)["w2n"]
        default = fallback_odds(games, teams, season_payload["market_odds"])["w2n"]

        response = client.post("/api/simulations/run", json={**season_payload, "n_simulations": 100})
        results = client.get(f"/api/simulations/{response.json()['task_id']}/results").json()

        assert results["fallback_odds"]["w2n"] == pytest.approx(expected)
        assert expected != pytest.approx(default)

    def test_unknown_task(self, client):
        assert client.get("/api/simulations/nope/status").status_code == 404
        assert client.get("/api/simulations/nope/results").status_code == 404
        assert client.post("/api/simulations/nope/cancel").status_code == 404

    def test_results_while_pending(self, client, store):
        task = store.create(100)

        response = client.get(f"/api/simulations/{task.id}/results")

        assert response.status_code == 400

    def test_cancel_pending_task(self, client, store):
        task = store.create(100)

        response = client.post(f"/api/simulations/{task.id}/cancel")

        assert response.json()["status"] == "cancelled"
        assert client.get(f"/api/simulations/{task.id}/results").status_code == 409

    def test_failed_task_results(self, client, store):
        task = store.create(100)
        store.fail(task, "boom")

        response = client.get(f"/api/simulations/{task.id}/results")

        assert response.status_code == 500
        assert "boom" in response.json()["detail"]

    def test_stream_finished_task(self, client, store):
        task = store.create(100)
        store.complete(task, {"n_simulations": 100, "teams": [], "simulated_odds": {}})

        response = client.get(f"/api/simulations/{task.id}/stream")

        assert response.status_code == 200
        assert '"status": "completed"' in response.text

    def test_calibrate(self, client, season_payload):
        payload = {
            **season_payload,
            "target_playoff_probs": {"Bills": 1.0},
            "iterations": 2,
            "batch_trials": 50,
        }

        response = client.post("/api/simulations/calibrate", json=payload)

        assert response.status_code == 200
        body = response.json()
        assert set(body["ratings"]) == {"BUF", "MIA", "DAL", "PHI"}
        assert body["iterations"] == 2


class TestTaskStore:
    """Tests for the in-memory task store."""

    def test_cleanup_only_drops_finished_tasks(self):
        task_store = SimulationTaskStore()
        old_done = task_store.create(10)
        old_running = task_store.create(10)
        task_store.complete(old_done, {})
        task_store.update_progress(old_running, 50)

        removed = task_store.cleanup_old_tasks(hours=0)

        assert removed == 1
        assert task_store.get_by_id(old_done.id) is None
        assert task_store.get_by_id(old_running.id) is old_running

    def test_cancel_running_task_sets_flag(self):
        task_store = SimulationTaskStore()
        task = task_store.create(10)
        task_store.update_progress(task, 10)

        task_store.cancel(task.id)

        assert task.status == "running"
        assert task.cancel_requested()
