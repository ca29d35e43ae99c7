import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import RedirectResponse

from root_server.api.deps import get_roster, get_settings
from root_server.core.config import Settings
from root_server.services.files import serve_path
from root_server.services.roster import Roster
from root_server.services.routing import decide_route

logger = logging.getLogger(__name__)

router = APIRouter(tags=["files"])

# Set by cdn servers when filling their cache from this server
CDN_REQUEST_HEADER = "X-Cdn-Request"


@router.get("/_distrihttp/health")
async def health():
    return {"status": "ok"}


@router.api_route("/{request_path:path}", methods=["GET", "HEAD"])
def serve_file(
    request_path: str,
    request: Request,
    roster: Roster = Depends(get_roster),
    settings: Settings = Depends(get_settings),
):
    path = "/" + request_path
    logger.info("Request to %s", path)

    decision = decide_route(
        path,
        cdn_request=CDN_REQUEST_HEADER in request.headers,
        roster=roster,
        serve_dir=settings.SERVE_DIR,
        self_served_suffixes=settings.self_served_suffixes,
        rng=request.app.state.rng,
    )

    if decision.is_redirect:
        logger.debug("Redirecting %s to cdn server %s", path, decision.target)
        return RedirectResponse(
            url=decision.target,
            status_code=status.HTTP_307_TEMPORARY_REDIRECT,
        )

    logger.debug("Serve %s myself, because %s", path, decision.reason)
    return serve_path(settings.SERVE_DIR, path)
