"""
Discord bot factory.

Cogs are added in setup_hook so the command tree (slash commands plus the
"Upload with Zipline" message menu) is synced once the bot has logged in.
"""

import discord
from discord.ext import commands

from relaybot.cogs import account, upload
from relaybot.logging_config import get_logger
from relaybot.services.account_service import AccountService
from relaybot.services.relay import RelayService
from relaybot.services.user_store import UserStore

logger = get_logger(__name__)


class RelayBot(commands.Bot):
    def __init__(self, relay: RelayService, users: UserStore, accounts: AccountService):
        # Slash commands and context menus only; no message content needed
        intents = discord.Intents.default()
        super().__init__(command_prefix=commands.when_mentioned, intents=intents)
        self.relay = relay
        self.users = users
        self.accounts = accounts

    async def setup_hook(self):
        await account.setup(self, self.users, self.accounts)
        await upload.setup(self, self.relay, self.users)
        synced = await self.tree.sync()
        logger.info(f"Synced {len(synced)} application commands")

    async def on_ready(self):
        logger.info(f"Logged in as {self.user} (id={self.user.id})")


def create_bot(relay: RelayService, users: UserStore, accounts: AccountService) -> RelayBot:
    return RelayBot(relay, users, accounts)
