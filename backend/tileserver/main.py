"""FastAPI application entrypoint and configuration.

This module provides the application factory. Server capabilities are
assembled before the application object exists, so a malformed
configuration stops the process at startup instead of surfacing on the
first request. The capabilities live on ``app.state.capabilities`` and
their client handles are closed when the application shuts down.

Example:
    The application can be run with uvicorn:
        $ CONFIG_FILE=layers.yml uvicorn tileserver.main:app

    Or built from explicit options:
        >>> from tileserver.core import options
        >>> app = create_app([options.ConfigFile(pathlib.Path("layers.yml"))])
"""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING

import fastapi
from fastapi.middleware import cors

from tileserver.api import layers
from tileserver.core import config, logging_utils, options

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable

logger = logging.getLogger(__name__)


def create_app(
    opts: Iterable[options.ConfigOption] | None = None,
) -> fastapi.FastAPI:
    """Create and configure the FastAPI application.

    Args:
        opts: Assembly options. Defaults to the options derived from the
            environment settings, in which case logging is configured too.

    Returns:
        Configured FastAPI application instance ready for ASGI server.

    Raises:
        ConfigParseError: If the configuration document is invalid.
        OptionApplicationError: If any other assembly step fails.
    """
    if opts is None:
        settings = config.get_settings()
        logging_utils.configure_logging(settings.log_level, settings.log_json)
        opts = config.build_options(settings)

    capabilities = options.assemble(opts)
    logger.info(
        "Assembled server with %d layers on port %d",
        len(capabilities.layers),
        capabilities.port,
    )

    @contextlib.asynccontextmanager
    async def lifespan(_app: fastapi.FastAPI) -> AsyncIterator[None]:
        try:
            yield
        finally:
            logger.info("Releasing server clients")
            capabilities.close()

    app = fastapi.FastAPI(title="Tile Server", version="0.1.0", lifespan=lifespan)
    app.state.capabilities = capabilities
    app.include_router(layers.router)

    if capabilities.enable_cors:
        app.add_middleware(
            cors.CORSMiddleware,  # type: ignore[arg-type]
            allow_origins=["*"],
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.get("/health")
    async def health() -> dict[str, str]:  # type: ignore[misc]
        """Health check endpoint for monitoring and load balancers."""
        return {"status": "ok"}

    return app


app = create_app()
