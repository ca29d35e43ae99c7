import argparse
import asyncio
import logging
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional, Sequence

import httpx
import uvicorn
from fastapi import FastAPI

from cdn_server.api.routes import files
from cdn_server.core.config import Settings, settings
from cdn_server.services.cache_fill import CacheFiller
from cdn_server.services.cache_store import CacheStore
from cdn_server.services.origin_client import OriginClient
from cdn_server.services.registration import (
    RegistrationState,
    keep_registering,
    register_once,
)

logger = logging.getLogger(__name__)


def create_cache_dir(cache_dir: Optional[Path]) -> Path:
    """
    Create the directory for files cached from the root server.
    """
    if cache_dir is None:
        path = Path(tempfile.mkdtemp(prefix="distrihttp_data"))
    else:
        path = Path(cache_dir)
        path.mkdir(parents=True, exist_ok=True)
    logger.info("Data cache location is %s", path)
    return path


def remove_cache(store: CacheStore) -> None:
    try:
        store.destroy()
    except OSError as e:
        logger.error("Deleting cache %s failed: %s", store.root, e)
    else:
        logger.debug("Deleted cache %s", store.root)


def create_app(
    app_settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Build the cdn server app. transport replaces the network transport used
    to reach the root server.
    """
    app_settings = app_settings or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store = CacheStore(create_cache_dir(app_settings.CACHE_DIR))
        store.create()

        client = httpx.AsyncClient(
            timeout=app_settings.ORIGIN_TIMEOUT,
            follow_redirects=False,
            transport=transport,
        )
        origin = OriginClient(app_settings.ROOT_ADDR, client)
        registration = RegistrationState()

        app.state.store = store
        app.state.registration = registration
        app.state.filler = CacheFiller(store, origin, registration)

        retry_task = None
        if not await register_once(origin, app_settings.REMOTE_ADDR, registration):
            logger.warning("Serving cached files only until registration succeeds")
            retry_task = asyncio.create_task(
                keep_registering(
                    origin,
                    app_settings.REMOTE_ADDR,
                    registration,
                    initial_delay=app_settings.REGISTER_INITIAL_DELAY,
                    max_delay=app_settings.REGISTER_MAX_DELAY,
                    max_attempts=app_settings.REGISTER_MAX_ATTEMPTS,
                )
            )

        try:
            yield
        finally:
            logger.info("Shutting down")
            if retry_task is not None and not retry_task.done():
                retry_task.cancel()
                try:
                    await retry_task
                except asyncio.CancelledError:
                    pass
            await client.aclose()
            remove_cache(store)

    app = FastAPI(
        title=app_settings.PROJECT_NAME,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    app.state.settings = app_settings
    app.include_router(files.router)
    return app


app = create_app()


def run(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        description="Cache and serve the files of a root server.",
    )
    parser.add_argument("--host", default=None, help=f"Listen host (default: {settings.HOST})")
    parser.add_argument("--port", type=int, default=None, help=f"Listen port (default: {settings.PORT})")
    parser.add_argument(
        "--remote-addr",
        default=None,
        help=(
            "The address this server is reachable at for clients redirected by the "
            f"root server (default: {settings.REMOTE_ADDR})"
        ),
    )
    parser.add_argument(
        "--root-addr",
        default=None,
        help=f"Address of the root server that should be mirrored (default: {settings.ROOT_ADDR})",
    )
    parser.add_argument(
        "--cache-dir",
        default=None,
        help="Cache directory, deleted on shutdown (default: a new temporary directory)",
    )
    parser.add_argument("--log-level", default=None, help=f"Log level (default: {settings.LOG_LEVEL})")
    args = parser.parse_args(argv)

    overrides = {
        "HOST": args.host,
        "PORT": args.port,
        "REMOTE_ADDR": args.remote_addr,
        "ROOT_ADDR": args.root_addr,
        "CACHE_DIR": args.cache_dir,
        "LOG_LEVEL": args.log_level,
    }
    app_settings = Settings(**{k: v for k, v in overrides.items() if v is not None})

    logging.basicConfig(
        level=app_settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    logger.debug("Config:")
    logger.debug("  listen: %s:%s", app_settings.HOST, app_settings.PORT)
    logger.debug("  remote addr: %s", app_settings.REMOTE_ADDR)
    logger.debug("  root addr: %s", app_settings.ROOT_ADDR)

    logger.info("Listening on %s:%s", app_settings.HOST, app_settings.PORT)
    # uvicorn turns SIGINT/SIGTERM into a lifespan shutdown, which removes the cache
    uvicorn.run(
        create_app(app_settings),
        host=app_settings.HOST,
        port=app_settings.PORT,
        log_level=app_settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
