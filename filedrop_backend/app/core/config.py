"""Application configuration settings.

Values can be overridden via environment variables.
"""
import os
from typing import List, Optional


def _int_env(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


class Settings:
    # Destination root applied at startup; can be changed later via POST /set-path
    DESTINATION: Optional[str] = os.getenv("FILEDROP_DESTINATION")

    # Upload limits (0 disables a limit)
    MAX_FILE_SIZE_BYTES: int = _int_env("FILEDROP_MAX_FILE_SIZE", 4 * 1024 * 1024 * 1024)
    MAX_FILES_PER_BATCH: int = _int_env("FILEDROP_MAX_FILES", 1000)

    # Write pipeline
    UPLOAD_WORKERS: int = _int_env("FILEDROP_UPLOAD_WORKERS", 8)
    CHUNK_SIZE: int = _int_env("FILEDROP_CHUNK_SIZE", 1024 * 1024)

    LOG_LEVEL: str = os.getenv("FILEDROP_LOG_LEVEL", "INFO")
    CORS_ORIGINS: List[str] = [
        origin.strip()
        for origin in os.getenv("FILEDROP_CORS_ORIGINS", "*").split(",")
        if origin.strip()
    ]


settings = Settings()
