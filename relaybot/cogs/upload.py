"""
UploadCog: moves files from Discord into Zipline.

Triggers:
  /upload <attachment>            relay an attachment from the command itself.
  "Upload with Zipline" (menu)    relay the attachment, embed image or first
                                  URL of any message.

Members with a saved token upload to their own account with their saved
settings; everyone else goes to the guest instance.
"""

import time

import discord
from discord import app_commands
from discord.ext import commands

from relaybot.config import Settings, settings
from relaybot.logging_config import get_logger
from relaybot.services.errors import RelayError
from relaybot.services.models import UploadResult, UploadSettings
from relaybot.services.relay import RelayService
from relaybot.services.user_store import UserStore
from relaybot.utils import filename_from_url, find_url, progress_bar, truncate

logger = get_logger(__name__)


class ProgressReporter:
    """Edits the deferred reply with a progress bar, at most once per interval."""

    def __init__(self, interaction: discord.Interaction, interval: float, clock=time.monotonic):
        self.interaction = interaction
        self.interval = interval
        self.clock = clock
        self._last = float("-inf")

    async def __call__(self, sent: int, total: int):
        now = self.clock()
        # The final update always goes through
        if now - self._last < self.interval and sent < total:
            return
        self._last = now
        try:
            await self.interaction.edit_original_response(
                content=f"⏳ Uploading... {progress_bar(sent, total)}"
            )
        except discord.HTTPException:
            # Interaction token may have expired on very long relays
            pass


def resolve_source(message: discord.Message) -> tuple[str, str] | None:
    """
    Pick what to upload from a message: attachment, then embed, then a URL.

    Returns:
        (url, filename) or None when the message has nothing uploadable.
    """
    if message.attachments:
        attachment = message.attachments[0]
        return attachment.url, attachment.filename or filename_from_url(attachment.url)

    for embed in message.embeds:
        url = (embed.image and embed.image.url) or (embed.thumbnail and embed.thumbnail.url) or embed.url
        if url:
            return url, filename_from_url(url)

    url = find_url(message.content)
    if url:
        return url, filename_from_url(url)
    return None


class UploadCog(commands.Cog):
    def __init__(
        self,
        bot: commands.Bot,
        relay: RelayService,
        users: UserStore,
        config: Settings = settings,
    ):
        self.bot = bot
        self.relay = relay
        self.users = users
        self.config = config
        self.ctx_menu = app_commands.ContextMenu(
            name="Upload with Zipline", callback=self.upload_message
        )
        self.bot.tree.add_command(self.ctx_menu)

    async def cog_unload(self):
        self.bot.tree.remove_command(self.ctx_menu.name, type=self.ctx_menu.type)

    async def destination(self, user_id: int) -> tuple[str, str, UploadSettings, bool]:
        """Returns (base_url, credential, upload settings, is_guest)."""
        token = await self.users.get_token(user_id)
        if token:
            return self.config.ZIPLINE_BASE_URL, token, await self.users.get_settings(user_id), False

        if not self.config.ANON_ZIPLINE_BASE_URL or not self.config.ANON_ZIPLINE_TOKEN:
            raise RelayError("Guest Zipline instance or token not configured")
        return (
            self.config.ANON_ZIPLINE_BASE_URL,
            self.config.ANON_ZIPLINE_TOKEN,
            UploadSettings(expiry=self.config.ANON_UPLOAD_EXPIRY),
            True,
        )

    def result_embed(self, result: UploadResult, base_url: str, guest: bool) -> discord.Embed:
        links = "\n".join(result.links(base_url))
        embed = discord.Embed(
            title="✅ Guest Upload Successful" if guest else "✅ Upload Successful",
            description=f"**[Click the link to view your upload]({links})**",
            color=discord.Color.green(),
        )
        if guest:
            expiry = self.config.ANON_UPLOAD_EXPIRY
            embed.add_field(
                name="⏱ Expiry",
                value=f"This file is set to expire after: `{expiry}`" if expiry
                else "No default expiry configured.",
                inline=False,
            )
        return embed

    async def _relay_and_reply(self, interaction: discord.Interaction, url: str, filename: str):
        await interaction.response.defer(ephemeral=True, thinking=True)
        try:
            base_url, credential, upload_settings, guest = await self.destination(interaction.user.id)
            result = await self.relay.relay(
                url,
                filename,
                base_url=base_url,
                credential=credential,
                upload_settings=upload_settings,
                on_progress=ProgressReporter(interaction, self.config.PROGRESS_INTERVAL_SECONDS),
            )
        except RelayError as e:
            logger.exception(f"Upload of {filename} for {interaction.user.id} failed")
            await interaction.edit_original_response(content=f"❌ Upload failed: {truncate(str(e))}")
            return

        await interaction.edit_original_response(
            content=None, embed=self.result_embed(result, base_url, guest)
        )

    # ------------------------------------------------------------------
    # Slash: /upload
    # ------------------------------------------------------------------

    @app_commands.command(name="upload", description="Upload a file to Zipline.")
    @app_commands.describe(attachment="The file to upload")
    async def upload(self, interaction: discord.Interaction, attachment: discord.Attachment):
        await self._relay_and_reply(interaction, attachment.url, attachment.filename)

    # ------------------------------------------------------------------
    # Context menu: Upload with Zipline
    # ------------------------------------------------------------------

    async def upload_message(self, interaction: discord.Interaction, message: discord.Message):
        source = resolve_source(message)
        if source is None:
            await interaction.response.send_message(
                "❗️ This message has no attachments or recognised URLs to upload.",
                ephemeral=True,
            )
            return
        await self._relay_and_reply(interaction, *source)


async def setup(bot: commands.Bot, relay: RelayService, users: UserStore):
    await bot.add_cog(UploadCog(bot, relay, users))
