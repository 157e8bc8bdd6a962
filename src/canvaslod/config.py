"""Configuration management for canvaslod"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Service settings loaded from environment variables.

    The LOD engine itself takes everything as constructor arguments; only
    the HTTP service reads these.
    """

    database_url: str | None = None
    db_connect_timeout: int = 5
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False
    log_level: str = "INFO"
    viewport_width: float = 1920.0
    viewport_height: float = 1080.0
    level_preset: str = "physics"
    level_cache_size: int = 4096
    slow_request_threshold: float = 1.0

    model_config = {
        "env_prefix": "CANVASLOD_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }


settings = Settings()
