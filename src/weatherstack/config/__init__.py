from .settings import (
    DEVELOPMENT,
    HttpClientConfig,
    LoggingConfig,
    Settings,
    load_settings,
)

__all__ = [
    'DEVELOPMENT',
    'HttpClientConfig',
    'LoggingConfig',
    'Settings',
    'load_settings',
]
