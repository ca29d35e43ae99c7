from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, status

from root_server.api.deps import get_roster
from root_server.schemas.cdn_server import CdnServerRegistered
from root_server.services.roster import Roster

router = APIRouter(tags=["cdn"])


@router.post("/cdn_register", response_model=CdnServerRegistered)
async def register_cdn_server(request: Request, roster: Roster = Depends(get_roster)):
    """
    Register the cdn server whose address is the raw request body.
    """
    body = await request.body()
    try:
        address = body.decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="CDN server address must be UTF-8 text",
        )

    # An empty entry would redirect clients back to this server
    if not address:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing CDN server address",
        )

    size = roster.add(address)
    return CdnServerRegistered(address=address, cdn_servers=size)


@router.get("/_distrihttp/cdn_servers", response_model=List[str])
def list_cdn_servers(roster: Roster = Depends(get_roster)):
    return roster.snapshot()
