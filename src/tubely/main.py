"""FastAPI application entry point."""

from typing import Any

from fastapi import FastAPI

from .config import AppConfig, load_config
from .dependencies import include_routers
from .logging import configure_logging
from .media.media_tooling import MediaToolkit


def create_app(
    config: AppConfig | None = None,
    *,
    s3_client: Any | None = None,
    toolkit: MediaToolkit | None = None,
) -> FastAPI:
    """Build FastAPI instance with configured dependencies."""
    configure_logging()
    cfg = config or load_config()
    app = FastAPI(title="Tubely")
    include_routers(app, cfg, s3_client=s3_client, toolkit=toolkit)
    return app
