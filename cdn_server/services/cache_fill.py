import asyncio
import functools
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

import aiofiles.os
import httpx
from fastapi import HTTPException, status

from cdn_server.services.cache_store import CacheStore, IncompleteTransfer, InvalidCachePath
from cdn_server.services.origin_client import OriginClient
from cdn_server.services.registration import RegistrationState

logger = logging.getLogger(__name__)


@dataclass
class _InFlightFill:
    task: "asyncio.Task[Path]"
    waiters: int = 0


class CacheFiller:
    """
    Serves request paths from the cache store, loading misses from the
    root server.

    At most one fill runs per path. Requests for a path that is already
    being filled wait for that fill and share its result or error. A fill
    is cancelled once every request waiting for it has gone away.
    """

    def __init__(
        self,
        store: CacheStore,
        origin: OriginClient,
        registration: Optional[RegistrationState] = None,
    ):
        self.store = store
        self.origin = origin
        self.registration = registration or RegistrationState(registered=True)
        self._in_flight: Dict[Path, _InFlightFill] = {}

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    async def ensure_cached(self, request_path: str) -> Path:
        try:
            path = self.store.path_for(request_path)
        except InvalidCachePath:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Could not find {request_path}",
            )

        if await aiofiles.os.path.isfile(path):
            logger.debug("%s exists in local cache", request_path)
            return path

        if not self.registration.registered:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Not registered at root server yet",
            )

        fill = self._in_flight.get(path)
        if fill is None:
            logger.debug("%s not in local cache, requesting it from root server", request_path)
            fill = _InFlightFill(asyncio.create_task(self._fill(request_path)))
            self._in_flight[path] = fill
            fill.task.add_done_callback(functools.partial(self._fill_done, path, fill))

        fill.waiters += 1
        try:
            return await asyncio.shield(fill.task)
        finally:
            fill.waiters -= 1
            if fill.waiters == 0 and not fill.task.done():
                logger.info("All clients waiting for %s went away, cancelling fill", request_path)
                # New requests must start a fresh fill, not join this one
                if self._in_flight.get(path) is fill:
                    del self._in_flight[path]
                fill.task.cancel()

    def _fill_done(self, path: Path, fill: _InFlightFill, task: "asyncio.Task[Path]") -> None:
        if self._in_flight.get(path) is fill:
            del self._in_flight[path]

    async def _fill(self, request_path: str) -> Path:
        async with self.origin.fetch(request_path) as response:
            expected_size = None
            content_length = response.headers.get("Content-Length")
            # aiter_bytes() decodes, so only compare against identity bodies
            if content_length and content_length.isdigit() and "Content-Encoding" not in response.headers:
                expected_size = int(content_length)

            try:
                path = await self.store.write(request_path, response.aiter_bytes(), expected_size)
            except (httpx.HTTPError, IncompleteTransfer) as e:
                logger.warning("Transfer of %s from root server broke off: %s", request_path, e)
                raise HTTPException(
                    status_code=status.HTTP_502_BAD_GATEWAY,
                    detail=f"Incomplete transfer of {request_path} from root server",
                )
            except OSError as e:
                logger.error("Could not write cache file for %s: %s", request_path, e)
                raise HTTPException(
                    status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                    detail=f"Could not write cache file for {request_path}",
                )

        logger.info("Cached %s from root server", request_path)
        return path
