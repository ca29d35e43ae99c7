import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterator

import httpx

from cdn_server.services.origin_client import OriginClient

logger = logging.getLogger(__name__)


@dataclass
class RegistrationState:
    registered: bool = False
    attempts: int = 0


def backoff_delays(initial: float, maximum: float) -> Iterator[float]:
    """
    initial, 2*initial, 4*initial, ... capped at maximum.
    """
    delay = min(initial, maximum)
    while True:
        yield delay
        delay = min(delay * 2, maximum)


async def register_once(
    origin: OriginClient,
    remote_addr: str,
    state: RegistrationState,
) -> bool:
    state.attempts += 1
    try:
        await origin.register(remote_addr)
    except httpx.HTTPError as e:
        logger.warning(
            "Registration at root server %s failed (attempt %d): %s",
            origin.root_addr,
            state.attempts,
            e,
        )
        return False

    state.registered = True
    logger.info("Successfully registered %s at root server %s", remote_addr, origin.root_addr)
    return True


async def keep_registering(
    origin: OriginClient,
    remote_addr: str,
    state: RegistrationState,
    *,
    initial_delay: float,
    max_delay: float,
    max_attempts: int = 0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> bool:
    """
    Retry registration with exponential backoff until it succeeds.

    max_attempts counts every attempt including ones made before this was
    called; 0 means no limit. Returns whether the cdn server is registered.
    """
    for delay in backoff_delays(initial_delay, max_delay):
        if state.registered:
            return True
        if max_attempts and state.attempts >= max_attempts:
            logger.error(
                "Giving up registration at root server %s after %d attempts, "
                "cache misses stay disabled",
                origin.root_addr,
                state.attempts,
            )
            return False

        logger.info("Retrying registration in %.1fs", delay)
        await sleep(delay)
        await register_once(origin, remote_addr, state)
