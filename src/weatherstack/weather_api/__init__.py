"""Sample instrumented weather forecast service."""

from .app import WeatherForecast, create_app, make_forecasts

__all__ = ['WeatherForecast', 'create_app', 'make_forecasts']
