from pydantic import BaseModel


class CdnServerRegistered(BaseModel):
    address: str
    cdn_servers: int
