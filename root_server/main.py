import argparse
import logging
import random
from typing import Optional, Sequence

import uvicorn
from fastapi import FastAPI

from root_server.api.routes import cdn, files
from root_server.core.config import Settings, settings
from root_server.services.roster import Roster

logger = logging.getLogger(__name__)


def create_app(
    app_settings: Optional[Settings] = None,
    rng: Optional[random.Random] = None,
) -> FastAPI:
    app_settings = app_settings or settings

    # No docs routes: every other path belongs to the served directory
    app = FastAPI(
        title=app_settings.PROJECT_NAME,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.settings = app_settings
    app.state.roster = Roster()
    app.state.rng = rng

    # include routers, catch-all file route last
    app.include_router(cdn.router)
    app.include_router(files.router)
    return app


app = create_app()


def run(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        description="Serve a directory and spread clients over registered CDN servers.",
    )
    parser.add_argument("--host", default=None, help=f"Listen host (default: {settings.HOST})")
    parser.add_argument("--port", type=int, default=None, help=f"Listen port (default: {settings.PORT})")
    parser.add_argument(
        "--serve-dir",
        default=None,
        help=(
            f"Filesystem path to be served (default: {settings.SERVE_DIR}). "
            "Paths below /_distrihttp/ and POST /cdn_register are reserved."
        ),
    )
    parser.add_argument(
        "--self-serve",
        default=None,
        help=(
            "Comma separated list of file types that are always served by the root server "
            "itself, e.g. .html so the browser's url bar does not show a CDN server."
        ),
    )
    parser.add_argument("--log-level", default=None, help=f"Log level (default: {settings.LOG_LEVEL})")
    args = parser.parse_args(argv)

    overrides = {
        "HOST": args.host,
        "PORT": args.port,
        "SERVE_DIR": args.serve_dir,
        "SELF_SERVE": args.self_serve,
        "LOG_LEVEL": args.log_level,
    }
    app_settings = Settings(**{k: v for k, v in overrides.items() if v is not None})

    logging.basicConfig(
        level=app_settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not app_settings.SERVE_DIR.is_dir():
        parser.error(f"serve dir {app_settings.SERVE_DIR} is not a directory")

    logger.debug("Config:")
    logger.debug("  listen: %s:%s", app_settings.HOST, app_settings.PORT)
    logger.debug("  serve dir: %s", app_settings.SERVE_DIR)
    logger.debug("  self served suffixes: %s", app_settings.self_served_suffixes)

    logger.info("Listening on %s:%s", app_settings.HOST, app_settings.PORT)
    uvicorn.run(
        create_app(app_settings),
        host=app_settings.HOST,
        port=app_settings.PORT,
        log_level=app_settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
