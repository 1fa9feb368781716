"""
Persists each member's Zipline token and default upload settings.

Persistence:
  Heroku Postgres via asyncpg. The DATABASE_URL env var is set automatically
  by Heroku when the Postgres add-on is attached. Tokens survive deploys and
  dyno restarts.
"""

import asyncpg

from relaybot.services.models import UploadSettings


class UserStore:
    def __init__(self, database_url: str):
        self.database_url = database_url
        self.pool: asyncpg.Pool | None = None

    async def init(self):
        # Heroku Postgres requires SSL; skip SSL only for local connections.
        is_local = any(h in self.database_url for h in ("localhost", "127.0.0.1"))
        ssl = None if is_local else "require"
        self.pool = await asyncpg.create_pool(self.database_url, ssl=ssl)
        await self.pool.execute("""
            CREATE TABLE IF NOT EXISTS user_tokens (
                user_id    BIGINT PRIMARY KEY,
                token      TEXT   NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
            )
        """)
        await self.pool.execute("""
            CREATE TABLE IF NOT EXISTS user_settings (
                user_id     BIGINT PRIMARY KEY,
                expiry      TEXT,
                compression TEXT,
                updated_at  TIMESTAMPTZ NOT NULL DEFAULT now()
            )
        """)

    async def close(self):
        if self.pool is not None:
            await self.pool.close()

    async def get_token(self, user_id: int) -> str | None:
        row = await self.pool.fetchrow(
            "SELECT token FROM user_tokens WHERE user_id = $1", user_id
        )
        return row["token"] if row else None

    async def set_token(self, user_id: int, token: str):
        await self.pool.execute(
            """
            INSERT INTO user_tokens (user_id, token, updated_at)
            VALUES ($1, $2, now())
            ON CONFLICT (user_id) DO UPDATE SET
                token      = EXCLUDED.token,
                updated_at = now()
            """,
            user_id,
            token,
        )

    async def delete_token(self, user_id: int):
        await self.pool.execute("DELETE FROM user_tokens WHERE user_id = $1", user_id)

    async def get_settings(self, user_id: int) -> UploadSettings:
        row = await self.pool.fetchrow(
            "SELECT expiry, compression FROM user_settings WHERE user_id = $1", user_id
        )
        if not row:
            return UploadSettings()
        return UploadSettings(expiry=row["expiry"], compression=row["compression"])

    async def set_settings(self, user_id: int, upload_settings: UploadSettings):
        await self.pool.execute(
            """
            INSERT INTO user_settings (user_id, expiry, compression, updated_at)
            VALUES ($1, $2, $3, now())
            ON CONFLICT (user_id) DO UPDATE SET
                expiry      = EXCLUDED.expiry,
                compression = EXCLUDED.compression,
                updated_at  = now()
            """,
            user_id,
            upload_settings.expiry,
            upload_settings.compression,
        )

    async def count(self) -> int:
        row = await self.pool.fetchrow("SELECT COUNT(*) FROM user_tokens")
        return row["count"] if row else 0
