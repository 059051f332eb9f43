"""Dependency wiring helpers."""

from fastapi import FastAPI

from .api.errors import ApiError, api_error_handler, engine_error_handler
from .api.generation_api import router as generation_router
from .config import AppConfig
from .exceptions import EngineError
from .services.container import build_engine


def include_routers(app: FastAPI, config: AppConfig) -> None:
    """Mount routers, attach the engine and register error handlers."""
    app.state.config = config
    app.state.engine = build_engine(config)

    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(EngineError, engine_error_handler)
    app.include_router(generation_router)
