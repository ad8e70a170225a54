"""Tests for the sample weather API."""

import random
from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient

from weatherstack.config.settings import Settings
from weatherstack.core.exceptions import CircuitOpenError
from weatherstack.weather_api.app import FORECAST_DAYS, SUMMARIES, create_app, make_forecasts


@pytest.fixture
def app(pipelines):
    app = create_app(Settings(grafana_url="http://localhost:3000", environment="development"))
    pipelines.append(app.state.telemetry)
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


class TestMakeForecasts:
    def test_five_consecutive_days(self):
        today = date(2024, 6, 1)
        forecasts = make_forecasts(today=today, rng=random.Random(7))
        assert len(forecasts) == FORECAST_DAYS
        assert [f.date for f in forecasts] == [today + timedelta(days=d) for d in range(1, 6)]

    def test_values_in_range(self):
        for forecast in make_forecasts(days=50, rng=random.Random(1)):
            assert -20 <= forecast.temperature_c <= 54
            assert forecast.temperature_f == 32 + int(forecast.temperature_c / 0.5556)
            assert forecast.summary in SUMMARIES


class TestRoutes:
    def test_weatherforecast(self, client):
        response = client.get("/weatherforecast")
        assert response.status_code == 200
        body = response.json()
        assert len(body) == FORECAST_DAYS
        assert set(body[0]) == {"date", "temperature_c", "temperature_f", "summary"}

    def test_forecasts_are_counted(self, client):
        client.get("/weatherforecast")
        metrics = client.get("/metrics").text
        assert "weather_forecasts_served" in metrics

    def test_service_info_includes_grafana_url(self, client):
        body = client.get("/").json()
        assert body["grafana_url"] == "http://localhost:3000"
        assert body["environment"] == "development"
        assert body["service"] == "weatherapi"

    def test_default_routes(self, client):
        assert client.get("/health").status_code == 200
        assert client.get("/alive").status_code == 200

    def test_circuit_open_maps_to_503(self, app):
        @app.get("/upstream")
        async def upstream():
            raise CircuitOpenError("weather.gov", "Circuit open for weather.gov",
                                   details={"reset_timeout": 30})

        with TestClient(app) as client:
            response = client.get("/upstream")
        assert response.status_code == 503
        assert response.json()["error"]["code"] == "circuit_open"
        assert response.headers["retry-after"] == "30"
