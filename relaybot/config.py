from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    DISCORD_KEY: str = Field(default="")

    # Zipline instance used by members who saved their own token
    ZIPLINE_BASE_URL: str = Field(default="http://localhost:3000")

    # Guest instance, used when a member has no token saved.
    ANON_ZIPLINE_BASE_URL: str | None = Field(default=None)
    ANON_ZIPLINE_TOKEN: str | None = Field(default=None)
    ANON_UPLOAD_EXPIRY: str | None = Field(default=None)

    # Files at or above the threshold go through the partial (chunked) endpoint
    CHUNK_THRESHOLD_BYTES: int = 100 * 1024 * 1024
    CHUNK_SIZE_BYTES: int = 8 * 1024 * 1024

    # Chunks are staged here between slicing and sending
    STAGING_DIR: str = Field(default="./tmp")

    # Upper bound for one whole relay (download + upload)
    TRANSFER_TIMEOUT_SECONDS: float = 3600.0

    # Minimum gap between progress edits in Discord
    PROGRESS_INTERVAL_SECONDS: float = 3.0

    # Postgres connection URL, set automatically by Heroku Postgres add-on.
    # For local dev, set DATABASE_URL in .env (e.g. postgresql://localhost/relaybot)
    DATABASE_URL: str = Field(default="postgresql://localhost/relaybot")

    # Web server
    PORT: int = Field(default=8000)

    LOG_LEVEL: str = Field(default="INFO")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
