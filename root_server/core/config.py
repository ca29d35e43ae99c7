from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    PROJECT_NAME: str = "Root Server"
    HOST: str = "0.0.0.0"
    PORT: int = 8192
    SERVE_DIR: Path = Path(".")
    # Comma separated, e.g. ".html,.htm". Matching files are never redirected
    # so the browser's url bar keeps showing the root server.
    SELF_SERVE: str = ""
    LOG_LEVEL: str = "INFO"

    class Config:
        env_prefix = "ROOT_SERVER_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def self_served_suffixes(self) -> List[str]:
        return [s.strip() for s in self.SELF_SERVE.split(",") if s.strip()]


settings = Settings()
