import asyncio
import logging
from collections.abc import Sequence

import discord
from discord.ext import commands
from sqlalchemy.ext.asyncio import AsyncEngine

from config import HearsayConfig, get_config
from utils.error_handling import setup_global_exception_handler
from utils.logging import init_logging
from utils.service_container import ServiceContainer, build_container
from utils.sqlalchemy_db import create_engine, create_session_maker, init_models

EXTENSIONS = ["cogs.quotes"]


class Hearsay(commands.Bot):
    def __init__(
            self,
            *args,
            initial_extensions: Sequence[str],
            engine: AsyncEngine,
            config: HearsayConfig,
            **kwargs
    ):
        super().__init__(*args, **kwargs)
        self.initial_extensions = initial_extensions
        self.engine = engine
        self.config = config
        self.session_maker = create_session_maker(engine)
        self.container: ServiceContainer = build_container(self.session_maker, config)

    async def setup_hook(self) -> None:
        await init_models(self.engine)
        await self.load_extensions()
        setup_global_exception_handler(self)

        if self.config.guild_id:
            guild = discord.Object(id=self.config.guild_id)
            self.tree.copy_global_to(guild=guild)
            synced = await self.tree.sync(guild=guild)
        else:
            synced = await self.tree.sync()
        logging.info(f"Synced {len(synced)} application command(s)")

    async def load_extensions(self):
        for extension in self.initial_extensions:
            await self.load_extension(extension)
            logging.info(f"Loaded extension {extension}")

    async def on_ready(self):
        logging.info(f"Logged in as {self.user.name} (ID: {self.user.id})")

    async def close(self) -> None:
        await super().close()
        await self.engine.dispose()


async def main():
    config = get_config()
    logger = init_logging(config.logging_level, config.logfile, config.log_format.value)
    logger.info("logging_started", environment=config.environment.value)

    engine = create_engine(config)
    intents = discord.Intents.default()
    intents.members = True

    async with Hearsay(
            commands.when_mentioned,
            initial_extensions=EXTENSIONS,
            engine=engine,
            config=config,
            intents=intents
    ) as bot:
        await bot.start(config.bot_token)


if __name__ == "__main__":
    asyncio.run(main())
