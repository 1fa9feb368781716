"""Zipline account and instance endpoints used by the /zipline commands."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import aiohttp

from relaybot.logging_config import get_logger
from relaybot.services.errors import AccountError

logger = get_logger(__name__)


@dataclass
class TokenValidation:
    valid: bool
    user: str = "Unknown"
    role: str = "Unknown"
    quota: dict = field(default_factory=lambda: {"used": 0, "max": "∞"})
    error: str | None = None


@dataclass
class InstanceStatus:
    online: bool
    status_code: int
    version: str | None = None
    error: str | None = None


class AccountService:
    def __init__(self, session: aiohttp.ClientSession, base_url: str):
        self.session = session
        self.base_url = base_url.rstrip("/")

    async def validate_token(self, token: str) -> TokenValidation:
        """Check a token against /api/user. Never raises."""
        try:
            async with self.session.get(
                f"{self.base_url}/api/user", headers={"Authorization": token}
            ) as resp:
                if not resp.ok:
                    return TokenValidation(
                        valid=False, error=f"HTTP {resp.status} - Invalid token or unauthorized"
                    )
                data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.warning(f"Token validation request failed: {e}")
            return TokenValidation(valid=False, error="Network error or invalid Zipline URL")

        user = data.get("user", data) if isinstance(data, dict) else {}
        return TokenValidation(
            valid=True,
            user=user.get("username") or "Unknown",
            role=user.get("role") or "Unknown",
            quota=user.get("quota") or {"used": 0, "max": "∞"},
        )

    async def get_me(self, token: str) -> dict:
        try:
            async with self.session.get(
                f"{self.base_url}/api/user", headers={"Authorization": token}
            ) as resp:
                if not resp.ok:
                    raise AccountError(f"Zipline /api/user error {resp.status}")
                data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise AccountError(f"Zipline /api/user unreachable: {e}") from e
        return data.get("user", data) if isinstance(data, dict) else {}

    async def get_version(self, token: str | None = None) -> InstanceStatus:
        """Reachability and version of the instance via /api/version. Never raises."""
        headers = {"Authorization": token} if token else {}
        try:
            async with self.session.get(f"{self.base_url}/api/version", headers=headers) as resp:
                # 500 means Zipline answered but its own upstream version check failed
                if resp.status == 500:
                    return InstanceStatus(
                        online=True, status_code=500, version="Unknown (Upstream Check Failed)"
                    )
                if not resp.ok:
                    return InstanceStatus(online=False, status_code=resp.status)
                data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.warning(f"Version check against {self.base_url} failed: {e}")
            return InstanceStatus(online=False, status_code=0, error=str(e) or "request timed out")

        version = None
        if isinstance(data, dict):
            details = data.get("details")
            tag = data.get("version")
            if isinstance(details, dict):
                version = details.get("version")
            if not version and isinstance(tag, dict):
                version = tag.get("tag")
            elif not version and isinstance(tag, str):
                version = tag
        return InstanceStatus(online=True, status_code=resp.status, version=version or "Unknown")
