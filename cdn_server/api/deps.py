from fastapi import Request

from cdn_server.services.cache_fill import CacheFiller
from cdn_server.services.registration import RegistrationState


def get_filler(request: Request) -> CacheFiller:
    return request.app.state.filler


def get_registration(request: Request) -> RegistrationState:
    return request.app.state.registration
