"""
Runtime configuration read from environment variables.
"""

import os
from typing import NamedTuple

from app.logger import logger

DEFAULT_SECRET_KEY = "dev-secret"
DEFAULT_TOKEN_MAX_AGE = 7 * 24 * 3600


class Settings(NamedTuple):
    postgres_uri: str
    secret_key: str
    token_max_age: int


def get_cors_origins() -> list[str]:
    origins = os.environ.get("CORS_ORIGINS") or "*"
    return [origin.strip() for origin in origins.split(",") if origin.strip()]


def get_settings() -> Settings:
    secret_key = os.environ.get("SECRET_KEY")
    if not secret_key:
        logger.warning("SECRET_KEY is not set, using an insecure development key")
        secret_key = DEFAULT_SECRET_KEY
    return Settings(
        postgres_uri=os.environ["POSTGRES_URI"],
        secret_key=secret_key,
        token_max_age=int(os.environ.get("TOKEN_MAX_AGE") or DEFAULT_TOKEN_MAX_AGE),
    )
