import random
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Sequence
from urllib.parse import quote

from root_server.services.files import local_path
from root_server.services.roster import Roster


class RouteAction(str, Enum):
    SELF_SERVE = "self_serve"
    REDIRECT = "redirect"


@dataclass(frozen=True)
class RouteDecision:
    action: RouteAction
    reason: str
    target: Optional[str] = None

    @property
    def is_redirect(self) -> bool:
        return self.action is RouteAction.REDIRECT


def matching_suffix(request_path: str, suffixes: Sequence[str]) -> Optional[str]:
    for suffix in suffixes:
        if suffix and request_path.endswith(suffix):
            return suffix
    return None


def decide_route(
    request_path: str,
    *,
    cdn_request: bool,
    roster: Roster,
    serve_dir: Path,
    self_served_suffixes: Sequence[str] = (),
    rng: Optional[random.Random] = None,
) -> RouteDecision:
    """
    Decide whether the root server serves request_path itself or redirects
    the client to one of the registered cdn servers.

    Checked in order, the first match wins:
      - the request comes from a cdn server filling its cache
      - no cdn server is registered
      - the path is a directory (cdn servers do not serve listings)
      - the path ends with one of the self served suffixes
    Otherwise a random cdn server is picked.
    """
    if cdn_request:
        # Never bounce a cache fill back to a cdn server
        return RouteDecision(RouteAction.SELF_SERVE, "cdn_request")

    if len(roster) == 0:
        return RouteDecision(RouteAction.SELF_SERVE, "no_cdn_servers")

    if local_path(serve_dir, request_path).is_dir():
        return RouteDecision(RouteAction.SELF_SERVE, "directory")

    suffix = matching_suffix(request_path, self_served_suffixes)
    if suffix is not None:
        return RouteDecision(RouteAction.SELF_SERVE, f"self_served_suffix {suffix}")

    cdn_server = roster.choose(rng)
    if cdn_server is None:
        return RouteDecision(RouteAction.SELF_SERVE, "no_cdn_servers")

    return RouteDecision(
        RouteAction.REDIRECT,
        "cdn_server",
        target=cdn_server + quote(request_path),
    )
