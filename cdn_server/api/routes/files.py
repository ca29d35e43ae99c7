import logging
import mimetypes

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import FileResponse

from cdn_server.api.deps import get_filler, get_registration
from cdn_server.services.cache_fill import CacheFiller
from cdn_server.services.registration import RegistrationState

logger = logging.getLogger(__name__)

router = APIRouter(tags=["files"])


@router.api_route("/_distrihttp/health", methods=["GET", "HEAD"])
async def health(registration: RegistrationState = Depends(get_registration)):
    return {"status": "ok", "registered": registration.registered}


@router.api_route("/{request_path:path}", methods=["GET", "HEAD"])
async def serve_file(request_path: str, filler: CacheFiller = Depends(get_filler)):
    """
    Stream a file from the local cache, loading it from the root server
    first if it is not cached yet.
    """
    path = "/" + request_path
    logger.info("Request to %s", path)

    # Directory listings are only served by the root server
    if not request_path or request_path.endswith("/"):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Could not find {path}",
        )

    cached = await filler.ensure_cached(path)

    mime_type, _ = mimetypes.guess_type(str(cached))
    media_type = mime_type or "application/octet-stream"
    return FileResponse(cached, media_type=media_type)
