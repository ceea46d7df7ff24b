"""Discord bot entry point for MeWoai."""
from __future__ import annotations

import asyncio
import atexit
import logging
import os
from typing import Optional

import discord
import uvicorn
from discord import app_commands
from discord.ext import commands
from dotenv import load_dotenv

from .adapters.discord.gateway import DiscordGateway
from .adapters.discord.handlers import handle_activity
from .config import PlatformConfig, Settings, get_settings
from .dashboard import create_app
from .scheduler import ExpiryScheduler
from .service import MemberService
from .state import MemberState

logger = logging.getLogger(__name__)


def default_intents() -> discord.Intents:
    intents = discord.Intents.default()
    intents.members = True
    intents.message_content = True
    intents.voice_states = True
    return intents


def build_bot(
    settings: Settings,
    config: PlatformConfig,
    intents: Optional[discord.Intents] = None,
) -> commands.Bot:
    bot = commands.Bot(
        command_prefix="/",
        intents=intents or default_intents(),
        application_id=config.application_id,
    )
    gateway = DiscordGateway(bot, config.guild_id, brand=settings.brand)
    service = MemberService(
        MemberState(config.db_path),
        gateway,
        settings=settings,
        roles=config.roles,
    )
    setattr(bot, "member_service", service)
    scheduler: Optional[ExpiryScheduler] = None

    def _shutdown_scheduler() -> None:  # pragma: no cover - process shutdown hook
        if scheduler is not None:
            scheduler.shutdown()

    atexit.register(_shutdown_scheduler)

    @bot.event
    async def on_ready() -> None:
        nonlocal scheduler
        logger.info("MeWoai bot connected as %s", bot.user)
        try:
            if config.guild_id is not None:
                guild = discord.Object(id=config.guild_id)
                bot.tree.copy_global_to(guild=guild)
                synced = await bot.tree.sync(guild=guild)
            else:
                synced = await bot.tree.sync()
            logger.info("Synced %d commands", len(synced))
        except Exception as exc:  # pragma: no cover - logging only
            logger.exception("Failed to sync commands: %s", exc)
        if scheduler is None:
            scheduler = ExpiryScheduler(service)
            scheduler.start()

    @bot.event
    async def on_message(message: discord.Message) -> None:
        if message.guild is None:
            return
        await handle_activity(service, message)

    @app_commands.command(name="register", description="Register with the MeWoai community")
    async def register(interaction: discord.Interaction) -> None:
        try:
            await service.register(str(interaction.user.id), interaction.user.name)
        except MemberService.AlreadyRegisteredError:
            await interaction.response.send_message("❌ You are already registered!", ephemeral=True)
            return
        await interaction.response.send_message(
            "✅ Registered! The member role has been granted.",
            ephemeral=True,
        )

    @app_commands.command(name="request-leave", description="Request leave for the next attendance check")
    @app_commands.describe(reason="Why you will be absent")
    async def request_leave(interaction: discord.Interaction, reason: str) -> None:
        try:
            service.request_leave(str(interaction.user.id), interaction.user.name, reason)
        except ValueError as exc:
            await interaction.response.send_message(str(exc), ephemeral=True)
            return
        await interaction.response.send_message(f'✅ Leave recorded: "{reason.strip()}".', ephemeral=True)

    @app_commands.command(name="ban", description="Ban a member from the server (admin only)")
    @app_commands.default_permissions(administrator=True)
    @app_commands.describe(target="Member to ban")
    async def ban(interaction: discord.Interaction, target: discord.Member) -> None:
        if interaction.guild is None or not interaction.user.guild_permissions.administrator:
            await interaction.response.send_message(
                "This command requires administrator permissions.",
                ephemeral=True,
            )
            return
        try:
            await interaction.guild.ban(target, reason=f"Banned by {interaction.user.name}")
        except discord.HTTPException:
            logger.exception("Failed to ban %s", target.id)
            await interaction.response.send_message(f"Could not ban {target.display_name}.", ephemeral=True)
            return
        logger.info("%s banned %s", interaction.user.name, target.name)
        await interaction.response.send_message(f"🔨 {target.display_name} has been banned.", ephemeral=True)

    bot.tree.add_command(register)
    bot.tree.add_command(request_leave)
    bot.tree.add_command(ban)
    return bot


async def _serve(bot: commands.Bot, token: str, port: int) -> None:
    app = create_app(getattr(bot, "member_service"))
    server = uvicorn.Server(
        uvicorn.Config(app, host="0.0.0.0", port=port, log_level=os.environ.get("LOG_LEVEL", "info").lower())
    )
    async with bot:
        bot_task = asyncio.create_task(bot.start(token))
        logger.info("Dashboard listening on port %d", port)
        try:
            await server.serve()
        finally:
            await bot.close()
            await asyncio.gather(bot_task, return_exceptions=True)


def main() -> None:
    load_dotenv()
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO").upper())
    token = os.environ.get("DISCORD_TOKEN")
    if not token:
        raise RuntimeError("DISCORD_TOKEN environment variable must be set")
    settings = get_settings()
    bot = build_bot(settings, PlatformConfig.from_env())
    asyncio.run(_serve(bot, token, settings.dashboard_port))


__all__ = ["build_bot", "default_intents", "main"]
