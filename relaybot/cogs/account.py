"""
AccountCog: the /zipline command group.

/zipline settoken <token>   validate and save a Zipline API token.
/zipline logout             forget the saved token.
/zipline me                 show the account behind the saved token.
/zipline settings           show or change default expiry / compression.
/zipline status             is the Zipline instance up, and which version.
/zipline about              bot version and command list.
/zipline help               documentation links.
/zipline invite             bot invite link.
"""

from importlib import metadata

import discord
from discord import app_commands
from discord.ext import commands

from relaybot.config import Settings, settings as default_settings
from relaybot.logging_config import get_logger
from relaybot.services.account_service import AccountService
from relaybot.services.errors import AccountError
from relaybot.services.models import UploadSettings
from relaybot.services.user_store import UserStore

logger = get_logger(__name__)

ZIPLINE_DOCS_URL = "https://zipline.diced.sh/docs"

COMMANDS = [
    ("📤", "/upload", "Upload a file"),
    ("📎", "Upload with Zipline", "Upload from any message (right-click → Apps)"),
    ("🔐", "/zipline settoken", "Set your Zipline API token"),
    ("🚪", "/zipline logout", "Delete token (logout)"),
    ("👤", "/zipline me", "Show your account info"),
    ("⚙️", "/zipline settings", "Manage your default upload settings"),
    ("📶", "/zipline status", "Check whether Zipline is online"),
    ("🤖", "/zipline invite", "Show bot invite link"),
    ("ℹ️", "/zipline about", "Info about the bot and its commands"),
    ("📚", "/zipline help", "Documentation links"),
]


def bot_version() -> str:
    try:
        return metadata.version("zipline-relay-bot")
    except metadata.PackageNotFoundError:
        return "unknown"


class AccountCog(commands.GroupCog, group_name="zipline", group_description="Zipline account and uploads"):
    def __init__(
        self,
        bot: commands.Bot,
        users: UserStore,
        accounts: AccountService,
        config: Settings = default_settings,
    ):
        self.bot = bot
        self.users = users
        self.accounts = accounts
        self.config = config
        super().__init__()

    @app_commands.command(name="settoken", description="Set your Zipline API token.")
    @app_commands.describe(token="Token from your Zipline dashboard")
    async def settoken(self, interaction: discord.Interaction, token: str):
        await interaction.response.defer(ephemeral=True)
        validation = await self.accounts.validate_token(token)

        if not validation.valid:
            embed = discord.Embed(
                title="❌ Invalid Token",
                description=f"**Error:** {validation.error}",
                color=discord.Color.red(),
            )
            embed.add_field(
                name="💡 Tip",
                value=f"Get your token from {self.config.ZIPLINE_BASE_URL}/dashboard",
                inline=False,
            )
            await interaction.followup.send(embed=embed, ephemeral=True)
            return

        await self.users.set_token(interaction.user.id, token)
        quota = validation.quota
        embed = discord.Embed(
            title="✅ Token Valid & Saved!",
            description=(
                f"**User:** {validation.user}\n"
                f"**Role:** {validation.role}\n"
                f"**Storage:** {quota.get('used', 0)}/{quota.get('max', '∞')}"
            ),
            color=discord.Color.green(),
        )
        embed.add_field(
            name="🔗 Zipline", value=f"[Open Dashboard]({self.config.ZIPLINE_BASE_URL})", inline=True
        )
        await interaction.followup.send(embed=embed, ephemeral=True)

    @app_commands.command(name="logout", description="Delete your saved token.")
    async def logout(self, interaction: discord.Interaction):
        await self.users.delete_token(interaction.user.id)
        await interaction.response.send_message("🚪 You have been logged out.", ephemeral=True)

    @app_commands.command(name="me", description="Show your Zipline account info.")
    async def me(self, interaction: discord.Interaction):
        token = await self.users.get_token(interaction.user.id)
        if not token:
            await interaction.response.send_message(
                "🔐 No token saved. Use `/zipline settoken` first.", ephemeral=True
            )
            return

        await interaction.response.defer(ephemeral=True)
        try:
            user = await self.accounts.get_me(token)
        except AccountError as e:
            logger.warning(f"/zipline me failed for {interaction.user.id}: {e}")
            await interaction.followup.send(f"❌ {e}", ephemeral=True)
            return

        embed = discord.Embed(title="👤 Your Zipline Account", color=discord.Color.blurple())
        embed.add_field(name="Username", value=str(user.get("username", "Unknown")), inline=True)
        embed.add_field(name="Role", value=str(user.get("role", "Unknown")), inline=True)
        embed.add_field(name="ID", value=str(user.get("id", "?")), inline=False)
        await interaction.followup.send(embed=embed, ephemeral=True)

    @app_commands.command(name="settings", description="Manage your default upload settings.")
    @app_commands.describe(
        expiry="Delete uploads after this long (e.g. 1d, 7d); leave blank to keep",
        compression="Image compression level (e.g. 50); leave blank to keep",
    )
    async def settings(
        self,
        interaction: discord.Interaction,
        expiry: str | None = None,
        compression: str | None = None,
    ):
        current = await self.users.get_settings(interaction.user.id)
        if expiry is not None or compression is not None:
            current = UploadSettings(
                expiry=expiry if expiry is not None else current.expiry,
                compression=compression if compression is not None else current.compression,
            )
            await self.users.set_settings(interaction.user.id, current)
            title = "⚙️ Settings Updated"
        else:
            title = "⚙️ Your Upload Settings"

        embed = discord.Embed(title=title, color=discord.Color.blurple())
        embed.add_field(name="Expiry", value=current.expiry or "none", inline=True)
        embed.add_field(name="Compression", value=current.compression or "none", inline=True)
        await interaction.response.send_message(embed=embed, ephemeral=True)

    @app_commands.command(name="status", description="Check whether the Zipline instance is online.")
    async def status(self, interaction: discord.Interaction):
        await interaction.response.defer(ephemeral=True)
        token = await self.users.get_token(interaction.user.id) or self.config.ANON_ZIPLINE_TOKEN
        info = await self.accounts.get_version(token)

        if not info.online:
            title, color = "❌ Zipline Offline", discord.Color.red()
        elif info.status_code == 200:
            title, color = "✅ Zipline Online", discord.Color.green()
        else:
            title, color = "✅ Zipline Online", discord.Color.orange()

        embed = discord.Embed(title=title, color=color)
        embed.add_field(name="Status Code", value=str(info.status_code or "N/A"), inline=True)
        embed.add_field(name="Version", value=str(info.version or "N/A"), inline=True)
        if info.error:
            embed.add_field(name="Error", value=info.error, inline=False)
        await interaction.followup.send(embed=embed, ephemeral=True)

    @app_commands.command(name="about", description="Info about the bot and its commands.")
    async def about(self, interaction: discord.Interaction):
        lines = [f"{label} `{name}` {desc}" for label, name, desc in COMMANDS]
        await interaction.response.send_message(
            f"💡 **Zipline Relay Bot v{bot_version()}**\n\n" + "\n".join(lines),
            ephemeral=True,
        )

    @app_commands.command(name="help", description="Where to find documentation.")
    async def help(self, interaction: discord.Interaction):
        view = discord.ui.View()
        view.add_item(discord.ui.Button(label="Zipline Docs", url=ZIPLINE_DOCS_URL, emoji="📚"))
        view.add_item(
            discord.ui.Button(label="Your Zipline", url=self.config.ZIPLINE_BASE_URL, emoji="🔗")
        )
        await interaction.response.send_message(
            "Need help? Check out the documentation below, or run `/zipline about` "
            "for the list of commands.",
            view=view,
            ephemeral=True,
        )

    @app_commands.command(name="invite", description="Show the bot invite link.")
    async def invite(self, interaction: discord.Interaction):
        link = f"https://discord.com/oauth2/authorize?client_id={self.bot.user.id}"
        await interaction.response.send_message(
            f"🤖 Invite me using this link:\n{link}", ephemeral=True
        )


async def setup(bot: commands.Bot, users: UserStore, accounts: AccountService):
    await bot.add_cog(AccountCog(bot, users, accounts))
