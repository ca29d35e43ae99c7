from fastapi import Request

from root_server.core.config import Settings
from root_server.services.roster import Roster


def get_roster(request: Request) -> Roster:
    return request.app.state.roster


def get_settings(request: Request) -> Settings:
    return request.app.state.settings
