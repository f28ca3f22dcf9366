"""Application wiring: builds every component from config and runs them."""

import logging

from personabook.booking.catalog import PersonaCatalog
from personabook.booking.lifecycle import BookingService
from personabook.booking.payments import PaymentReconciler
from personabook.channels.base import ChannelAdapter
from personabook.channels.commands import CommandRouter
from personabook.channels.commands.handlers import get_builtin_commands
from personabook.core.config import Config
from personabook.db.database import DatabaseManager
from personabook.llm.client import ChatClient
from personabook.runtime.conversation import ConversationHandler
from personabook.runtime.scheduling.sweeper import SessionSweeper
from personabook.stores.cache import TTLCache
from personabook.stores.state import UserStateStore

logger = logging.getLogger(__name__)


def create_channel(config: Config) -> ChannelAdapter:
    """Create the channel adapter named in the config.

    Raises:
        ValueError: If the channel type is unsupported.
    """
    if config.channel.type == "telegram":
        from personabook.channels.telegram import TelegramChannel

        return TelegramChannel(
            token=config.channel.token,
            allowed_users=config.channel.allowed_users,
            allow_all=config.channel.allow_all,
            concurrent_updates=config.channel.concurrent_updates,
            provider_token=config.payments.provider_token,
        )
    raise ValueError(f"Unsupported channel type: {config.channel.type}")


class PersonaBookApp:
    """Owns the database, state layer, services, channel and sweeper.

    Start order is database, catalog seed, channel, sweeper; stop runs in
    reverse.
    """

    def __init__(self, config: Config, channel: ChannelAdapter | None = None):
        self.config = config
        self.db = DatabaseManager(config.database.path, config.database.timeout_seconds)
        self.states = UserStateStore(self.db, TTLCache(config.cache.ttl_seconds), config.limits)
        self.catalog = PersonaCatalog(self.db, config.personas, config.default_persona)
        self.bookings = BookingService(self.db, hold_minutes=config.booking.hold_minutes)
        self.channel = channel or create_channel(config)
        self.payments = PaymentReconciler(
            self.bookings,
            self.states,
            self.catalog,
            channel=self.channel,
            config=config.payments,
            timezone=config.booking.timezone,
        )

        self.router = CommandRouter()
        for handler in get_builtin_commands():
            self.router.register(handler)

        self.conversation = ConversationHandler(
            channel=self.channel,
            states=self.states,
            bookings=self.bookings,
            catalog=self.catalog,
            payments=self.payments,
            llm=ChatClient(config.llm),
            router=self.router,
            limits=config.limits,
            timezone=config.booking.timezone,
        )
        self.sweeper = SessionSweeper(
            self.states,
            self.bookings,
            self.catalog,
            channel=self.channel,
            config=config.sweeper,
            cache_config=config.cache,
        )

    async def start(self) -> None:
        logger.info(f"Starting PersonaBook (database: {self.db.db_path})")
        await self.db.init_db()
        await self.catalog.seed()

        self.conversation.attach()
        await self.channel.start()
        await self.channel.register_commands(self.router.list_commands())
        await self.sweeper.start()
        logger.info("PersonaBook started")

    async def stop(self) -> None:
        """Stop everything, logging failures so every component gets its turn."""
        logger.info("Stopping PersonaBook...")
        for name, stop in (
            ("sweeper", self.sweeper.stop),
            ("channel", self.channel.stop),
            ("database", self.db.close),
        ):
            try:
                await stop()
            except Exception as e:
                logger.error(f"Error stopping {name}: {e}")
        logger.info("PersonaBook stopped")
