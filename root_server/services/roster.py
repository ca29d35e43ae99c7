import logging
import random
import threading
from typing import List, Optional

logger = logging.getLogger(__name__)


class Roster:
    """
    Addresses of all cdn servers registered at this root server.

    Entries are kept verbatim in registration order. Nothing is ever
    removed, so a cdn server that went away stays selectable until the
    root server restarts.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._cdn_servers: List[str] = []

    def add(self, address: str) -> int:
        with self._lock:
            self._cdn_servers.append(address)
            size = len(self._cdn_servers)
        logger.info("Added %s as CDN server", address)
        return size

    def snapshot(self) -> List[str]:
        with self._lock:
            return list(self._cdn_servers)

    def choose(self, rng: Optional[random.Random] = None) -> Optional[str]:
        """
        Pick one cdn server uniformly at random, or None if none registered.
        """
        rng = rng or random
        with self._lock:
            if not self._cdn_servers:
                return None
            return rng.choice(self._cdn_servers)

    def __len__(self) -> int:
        with self._lock:
            return len(self._cdn_servers)
