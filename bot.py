import os
import sys

import discord
from discord.ext import commands
from dotenv import load_dotenv

from config.config_loader import BotSettings, ConfigLoader
from helpers.discord_api import DiscordGateway
from helpers.task_queue import start_task_workers, stop_task_workers
from services.service_container import ServiceContainer
from utils.errors import ConfigError, ConfigTemplateCreated
from utils.logging import get_logger, setup_logging

# Initialize logger
logger = get_logger(__name__)

# Configure intents - start from none and enable only what's required
intents = discord.Intents.none()
intents.guilds = True  # Required: Guild events, channels
intents.voice_states = True  # Required: Voice channel join/leave for voice system
intents.guild_messages = True  # Required: Chat commands
intents.message_content = True  # Required: Reading command text

# List of initial extensions to load
initial_extensions = [
    "cogs.voice.commands",
    "cogs.voice.events",
]


class PrivateVoiceBot(commands.Bot):
    """Bot with project-specific attributes and helpers."""

    def __init__(self, settings: BotSettings, *args, **kwargs) -> None:
        # Chat commands are parsed by the voice commands cog, not discord.ext
        kwargs.setdefault("command_prefix", commands.when_mentioned)
        kwargs.setdefault("intents", intents)
        super().__init__(*args, **kwargs)

        self.settings = settings
        self.services: ServiceContainer | None = None

    async def setup_hook(self) -> None:
        """Start the task queue, initialize services, and load cogs."""
        # Start the task queue workers
        await start_task_workers(num_workers=2)

        self.services = ServiceContainer(self.settings, DiscordGateway(self))
        await self.services.initialize()
        logger.info("ServiceContainer initialized")

        for ext in initial_extensions:
            await self.load_extension(ext)
            logger.info(f"Loaded extension: {ext}")

    async def on_ready(self) -> None:
        """Called when the bot is ready."""
        if not self.user:
            logger.warning("Bot user is not initialized")
            return
        logger.info(f"Logged in as {self.user} (ID: {self.user.id})")
        logger.info("Bot is ready and online!")

        for guild in self.guilds:
            await self.check_bot_permissions(guild)

    async def check_bot_permissions(self, guild: discord.Guild) -> None:
        """Verify required guild-level permissions and log any missing ones."""
        required_permissions = [
            "manage_channels",
            "manage_roles",
            "view_channel",
            "send_messages",
            "read_message_history",
            "connect",
            "speak",
            "mute_members",
            "deafen_members",
            "move_members",
            "use_voice_activation",
        ]

        if not guild or not guild.me:
            logger.warning(
                "Bot permissions cannot be checked because the bot is not in the guild or the guild is None."
            )
            return

        bot_member = guild.me
        if missing_permissions := [
            perm
            for perm in required_permissions
            if not getattr(bot_member.guild_permissions, perm, False)
        ]:
            logger.warning(
                f"Missing permissions in guild '{guild.name}': {', '.join(missing_permissions)}"
            )
        else:
            logger.info(
                f"All required permissions are present in guild '{guild.name}'."
            )

    async def close(self) -> None:
        """
        Closes the bot and cleans up all resources.
        """
        logger.info("Shutting down the bot.")

        # Cleanup services
        if self.services:
            try:
                await self.services.cleanup()
                logger.info("Services cleaned up")
            except Exception as e:
                logger.exception("Error cleaning up services", exc_info=e)

        # Stop task queue workers
        await stop_task_workers()

        # Call parent close
        await super().close()


def main() -> int:
    """Load settings, configure logging and run the bot until it stops."""
    # Load environment variables
    load_dotenv()

    try:
        settings = ConfigLoader.load_settings(env_token=os.getenv("DISCORD_TOKEN"))
    except ConfigTemplateCreated as e:
        print(f"{e}. Fill in the settings and restart the bot.")
        return 0
    except ConfigError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1

    setup_logging(settings.log_level)
    logger.info(
        "Starting bot with prefix '%s' and voice channel prefix '%s'",
        settings.command_prefix,
        settings.voice_channel_prefix,
    )

    bot = PrivateVoiceBot(settings)
    # Only run when not in explicit dry-run context (TESTBOT_DRY_RUN)
    if os.getenv("TESTBOT_DRY_RUN") == "1":
        logger.info("Dry run requested; not connecting to Discord")
        return 0
    bot.run(settings.token, log_handler=None)
    return 0


if __name__ == "__main__":
    sys.exit(main())
