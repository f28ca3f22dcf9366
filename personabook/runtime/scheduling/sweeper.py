"""Background sweeper for bookings and sessions."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from personabook.booking.catalog import PersonaCatalog
from personabook.booking.lifecycle import BookingService
from personabook.booking.sessions import close_session, open_session
from personabook.channels.base import ChannelAdapter
from personabook.core.config import CacheConfig, SweeperConfig
from personabook.core.errors import PersonaBookError, error_kind
from personabook.core.timezone import utc_now
from personabook.stores.state import UserStateStore

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    """What one sweep tick changed."""

    expired: int = 0
    started: int = 0
    ended: int = 0


class SessionSweeper:
    """Periodically expires unpaid bookings and opens or closes sessions.

    Two interval jobs run on one AsyncIOScheduler: the sweep itself and a
    slower cache eviction. APScheduler never runs two instances of the same
    job at once, so a slow tick delays the next one instead of overlapping it.
    """

    def __init__(
        self,
        states: UserStateStore,
        bookings: BookingService,
        catalog: PersonaCatalog,
        channel: ChannelAdapter | None = None,
        config: SweeperConfig | None = None,
        cache_config: CacheConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.states = states
        self.bookings = bookings
        self.catalog = catalog
        self.channel = channel
        self.config = config or SweeperConfig()
        self.cache_config = cache_config or CacheConfig()
        self._clock = clock
        self._scheduler: AsyncIOScheduler | None = None

    async def start(self) -> None:
        """Start the sweep and cache-eviction jobs."""
        self._scheduler = AsyncIOScheduler()

        if self.config.enabled:
            self._scheduler.add_job(
                func=self.run_once,
                trigger=IntervalTrigger(seconds=self.config.interval_seconds),
                id="session_sweep",
                name="Booking and session sweep",
                replace_existing=True,
                coalesce=True,
            )
        else:
            logger.info("Session sweep disabled")

        self._scheduler.add_job(
            func=self.cleanup_cache,
            trigger=IntervalTrigger(seconds=self.cache_config.cleanup_interval_seconds),
            id="cache_cleanup",
            name="State cache eviction",
            replace_existing=True,
            coalesce=True,
        )

        self._scheduler.start()
        logger.info(
            f"Sweeper started (sweep: {self.config.interval_seconds}s, "
            f"cache cleanup: {self.cache_config.cleanup_interval_seconds}s)"
        )

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""
        if self._scheduler and self._scheduler.running:
            self._scheduler.shutdown(wait=True)
            logger.info("Sweeper stopped")

    async def run_once(self, now: datetime | None = None) -> SweepReport:
        """Run one sweep tick."""
        now = now or self._clock()
        report = SweepReport()

        try:
            report.expired = await self.bookings.expire(now)
        except PersonaBookError as e:
            logger.error(f"Booking expiry failed (kind={e.kind}): {e}")
        if report.expired:
            logger.info(f"Removed {report.expired} expired unpaid bookings")

        try:
            states = await self.states.list_all()
        except PersonaBookError as e:
            logger.error(f"Session scan failed (kind={e.kind}): {e}")
            return report

        for user_id, state in states.items():
            session = state.current_session
            if session is None:
                continue
            try:
                if session.is_due_to_start(now):
                    if now >= session.paid_until:
                        # the whole window passed before a sweep saw it
                        await close_session(self.states, self.bookings, user_id, state, now)
                        report.ended += 1
                        continue
                    await open_session(self.states, user_id, state, now)
                    report.started += 1
                    name = self.catalog.resolve(session.persona_id).persona.name
                    await self._notify(
                        user_id,
                        f"Your scheduled session with {name} has started. Send a message to begin!",
                    )
                elif session.is_elapsed(now):
                    await close_session(self.states, self.bookings, user_id, state, now)
                    report.ended += 1
                    await self._notify(
                        user_id,
                        "Your paid session time has ended. Thank you! Send /personas to book another one.",
                    )
            except PersonaBookError as e:
                logger.error(f"Sweep failed for user {user_id} (kind={e.kind}): {e}")

        if report.started or report.ended:
            logger.info(f"Sweep: {report.started} sessions started, {report.ended} ended")
        return report

    async def cleanup_cache(self) -> int:
        evicted = await self.states.evict_stale()
        if evicted:
            logger.info(f"Evicted {evicted} stale state cache entries")
        return evicted

    async def _notify(self, user_id: int, text: str) -> None:
        if self.channel is None:
            return
        try:
            await self.channel.send_message(user_id, text)
        except Exception as e:
            logger.warning(f"Notification to user {user_id} failed (kind={error_kind(e)}): {e}")
