import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator
from urllib.parse import quote

import httpx
from fastapi import HTTPException, status

logger = logging.getLogger(__name__)

# Tells the root server not to redirect us to another cdn server
CDN_REQUEST_HEADER = "X-Cdn-Request"

# Set by the root server on directory listings and index pages
DIRECTORY_HEADER = "X-Cdn-Directory"


class OriginClient:
    """
    Talks to the root server this cdn server mirrors.
    """

    def __init__(self, root_addr: str, client: httpx.AsyncClient):
        self.root_addr = root_addr.rstrip("/")
        self._client = client

    def url_for(self, request_path: str) -> str:
        return self.root_addr + quote(request_path)

    @asynccontextmanager
    async def fetch(self, request_path: str) -> AsyncIterator[httpx.Response]:
        """
        GET request_path from the root server and yield the streaming response.

        Unreachable root server, 404 or a directory answer -> HTTPException(404),
        any other unsuccessful status -> HTTPException(502).
        """
        request = self._client.build_request(
            "GET",
            self.url_for(request_path),
            headers={CDN_REQUEST_HEADER: "true"},
        )

        try:
            response = await self._client.send(request, stream=True)
        except httpx.RequestError as e:
            logger.warning("Could not reach root server for %s: %s", request_path, e)
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Could not find {request_path} on root server",
            )

        try:
            if response.status_code == status.HTTP_404_NOT_FOUND:
                logger.debug("Root server has no %s", request_path)
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail=f"Could not find {request_path} on root server",
                )
            if not response.is_success:
                logger.warning(
                    "Root server returned %s for %s", response.status_code, request_path
                )
                raise HTTPException(
                    status_code=status.HTTP_502_BAD_GATEWAY,
                    detail=f"Root server returned {response.status_code} for {request_path}",
                )
            if DIRECTORY_HEADER in response.headers:
                logger.debug("%s is a directory on the root server", request_path)
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail=f"{request_path} is a directory",
                )
            yield response
        finally:
            await response.aclose()

    async def register(self, remote_addr: str) -> None:
        """
        POST our public address to the root server. Raises httpx.HTTPError
        if the root server is unreachable or rejects the registration.
        """
        resp = await self._client.post(
            f"{self.root_addr}/cdn_register",
            content=remote_addr.encode("utf-8"),
            headers={"Content-Type": "text/plain; charset=utf-8"},
        )
        resp.raise_for_status()
