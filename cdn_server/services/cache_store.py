import logging
import posixpath
import shutil
import uuid
from pathlib import Path
from typing import AsyncIterable, Optional

import aiofiles
import aiofiles.os

logger = logging.getLogger(__name__)


class InvalidCachePath(ValueError):
    pass


class IncompleteTransfer(Exception):
    def __init__(self, request_path: str, expected: int, received: int):
        super().__init__(f"{request_path}: expected {expected} bytes, received {received}")
        self.expected = expected
        self.received = received


class CacheStore:
    """
    Files cached from the root server, stored on local disk.

    Layout below root:
      files/<request path>   complete cache entries
      tmp/<uuid>.part        fills in progress

    An entry only appears under files/ by renaming a fully written temp
    file, so the existence of a file is a reliable hit signal.
    """

    def __init__(self, root: Path):
        self.root = Path(root)
        self.files_dir = self.root / "files"
        self.tmp_dir = self.root / "tmp"

    def create(self) -> None:
        self.files_dir.mkdir(parents=True, exist_ok=True)
        self.tmp_dir.mkdir(parents=True, exist_ok=True)

    def destroy(self) -> None:
        shutil.rmtree(self.root)

    def path_for(self, request_path: str) -> Path:
        # '..' can never climb above the files/ directory
        relative = posixpath.normpath("/" + request_path.lstrip("/")).lstrip("/")
        if not relative:
            raise InvalidCachePath(request_path)
        return self.files_dir / relative

    def exists(self, request_path: str) -> bool:
        try:
            return self.path_for(request_path).is_file()
        except InvalidCachePath:
            return False

    async def write(
        self,
        request_path: str,
        chunks: AsyncIterable[bytes],
        expected_size: Optional[int] = None,
    ) -> Path:
        """
        Stream chunks into the cache entry for request_path.

        The data goes to a temp file first and is renamed into place once
        complete (and, if expected_size is given, of the right length). On
        any error the temp file is removed and the error re-raised.
        """
        dest = self.path_for(request_path)
        tmp = self.tmp_dir / f"{uuid.uuid4().hex}.part"
        received = 0

        try:
            async with aiofiles.open(tmp, "wb") as f:
                async for chunk in chunks:
                    await f.write(chunk)
                    received += len(chunk)

            if expected_size is not None and received != expected_size:
                raise IncompleteTransfer(request_path, expected_size, received)

            await aiofiles.os.makedirs(dest.parent, exist_ok=True)
            await aiofiles.os.replace(tmp, dest)
        except BaseException:
            if tmp.exists():
                await aiofiles.os.remove(tmp)
            raise

        logger.debug("Stored %d bytes for %s at %s", received, request_path, dest)
        return dest
