"""
Weather API
===========

Sample service wired through the shared service defaults: it is traced,
exposes /metrics, /health and /alive, and counts the forecasts it serves
on the ``weather.api`` meter.
"""

import random
from datetime import date, timedelta

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from weatherstack.config.settings import Settings
from weatherstack.core.exceptions import CircuitOpenError
from weatherstack.core.structured_logger import configure_logging, get_logger
from weatherstack.service_defaults import ServiceBuilder, install_defaults, map_default_routes

logger = get_logger("WeatherApi")

METER_NAME = "weather.api"
FORECAST_DAYS = 5
SUMMARIES = [
    "Freezing", "Bracing", "Chilly", "Cool", "Mild",
    "Warm", "Balmy", "Hot", "Sweltering", "Scorching",
]


class WeatherForecast(BaseModel):
    date: date
    temperature_c: int
    temperature_f: int
    summary: str


def make_forecasts(days: int = FORECAST_DAYS, today: date | None = None,
                   rng: random.Random | None = None) -> list[WeatherForecast]:
    today = today or date.today()
    rng = rng or random.Random()
    forecasts = []
    for offset in range(1, days + 1):
        temperature_c = rng.randint(-20, 54)
        forecasts.append(WeatherForecast(
            date=today + timedelta(days=offset),
            temperature_c=temperature_c,
            temperature_f=32 + int(temperature_c / 0.5556),
            summary=rng.choice(SUMMARIES),
        ))
    return forecasts


def create_app(settings: Settings | None = None) -> FastAPI:
    """Application factory (uvicorn --factory weatherstack.weather_api.app:create_app)."""
    builder = install_defaults(ServiceBuilder(settings))
    configure_logging(builder.settings.logging)
    app = map_default_routes(builder.build(title="Weather API"))

    meter = builder.telemetry.get_meter(METER_NAME, builder.settings.version)
    forecasts_served = meter.create_counter(
        "weather.forecasts.served",
        unit="{forecast}",
        description="Forecasts returned by /weatherforecast",
    )

    @app.exception_handler(CircuitOpenError)
    async def circuit_open_handler(request: Request, exc: CircuitOpenError):
        return JSONResponse(
            status_code=503,
            content={"error": {"message": exc.message, "type": "server_error", "code": "circuit_open"}},
            headers={"Retry-After": str(exc.details.get('reset_timeout', 30))},
        )

    @app.get("/weatherforecast", response_model=list[WeatherForecast])
    async def weather_forecast() -> list[WeatherForecast]:
        forecasts = make_forecasts()
        forecasts_served.add(len(forecasts))
        logger.debug("Served forecasts", count=len(forecasts))
        return forecasts

    @app.get("/")
    async def service_info(request: Request) -> dict:
        settings = request.app.state.settings
        return {
            "service": request.app.state.service_name,
            "version": settings.version,
            "environment": settings.environment,
            "grafana_url": settings.grafana_url,
            "endpoints": ["/weatherforecast", "/metrics", "/health", "/alive"],
        }

    return app
