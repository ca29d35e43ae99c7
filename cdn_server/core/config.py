from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    PROJECT_NAME: str = "CDN Server"
    HOST: str = "0.0.0.0"
    PORT: int = 8193
    # Address clients get redirected to by the root server
    REMOTE_ADDR: str = "http://localhost:8193"
    ROOT_ADDR: str = "http://localhost:8192"
    # Unset -> fresh temp dir per process. Deleted on shutdown either way.
    CACHE_DIR: Optional[Path] = None
    ORIGIN_TIMEOUT: float = 30.0
    REGISTER_INITIAL_DELAY: float = Field(0.5, gt=0)
    REGISTER_MAX_DELAY: float = Field(30.0, gt=0)
    REGISTER_MAX_ATTEMPTS: int = Field(0, ge=0)  # 0 = retry forever
    LOG_LEVEL: str = "INFO"

    class Config:
        env_prefix = "CDN_SERVER_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
