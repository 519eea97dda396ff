"""The hourly scheduler loop.

State machine::

    IDLE --tick--> RUNNING --pass done--> IDLE
      \\                                     /
       `---------- stop event ----------> STOPPED

A pass runs immediately on start (not aligned), then on every top-of-hour
tick. Passes are strictly single-flight and sequential: sweep first, then
guild by guild, member by member. Stopping is cooperative; an in-flight
pass always completes.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from cakeday.clock import Clock, SystemClock
from cakeday.errors import CakedayError, StoreUnavailable
from cakeday.localtime import LocalTimeResolver
from cakeday.models.birthday import GuildSettings, MemberBirthday
from cakeday.scheduler.dispatcher import AnnouncementDispatcher
from cakeday.scheduler.evaluator import BirthdayEvaluator
from cakeday.scheduler.interfaces import (
    BirthdayRecordProvider,
    ConfigurationProvider,
    RoleLifecycleStore,
    RolePlatform,
)
from cakeday.scheduler.sweeper import ExpirySweeper, SweepResult

logger = logging.getLogger(__name__)

DEFAULT_TICK_SECONDS = 3600


class SchedulerState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass
class PassReport:
    started_at: datetime
    finished_at: datetime | None = None
    guilds: int = 0
    announced: int = 0
    errors: int = 0
    sweep: SweepResult = field(default_factory=SweepResult)

    @property
    def revoked(self) -> int:
        return self.sweep.revoked


def seconds_until_next_tick(now: datetime, tick_seconds: int = DEFAULT_TICK_SECONDS) -> float:
    """Seconds from *now* to the next multiple of *tick_seconds* past midnight UTC."""
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    elapsed = (now - midnight).total_seconds()
    remaining = tick_seconds - (elapsed % tick_seconds)
    return remaining if remaining > 0 else float(tick_seconds)


def next_tick_at(now: datetime, tick_seconds: int = DEFAULT_TICK_SECONDS) -> datetime:
    return now + timedelta(seconds=seconds_until_next_tick(now, tick_seconds))


class BirthdayScheduler:
    def __init__(
        self,
        config: ConfigurationProvider,
        birthdays: BirthdayRecordProvider,
        store: RoleLifecycleStore,
        platform: RolePlatform,
        clock: Clock | None = None,
        tick_seconds: int = DEFAULT_TICK_SECONDS,
    ) -> None:
        self.config = config
        self.birthdays = birthdays
        self.store = store
        self.clock = clock or SystemClock()
        self.tick_seconds = tick_seconds

        self.evaluator = BirthdayEvaluator(LocalTimeResolver(self.clock))
        self.dispatcher = AnnouncementDispatcher(platform, store, self.clock)
        self.sweeper = ExpirySweeper(store, config, platform, self.clock)

        self.state = SchedulerState.IDLE
        self.last_report: PassReport | None = None
        self._pass_lock = asyncio.Lock()
        self._stop = asyncio.Event()
        self._task: asyncio.Task | None = None

    # ==================== Lifecycle ====================

    def start(self) -> asyncio.Task:
        """Spawn the loop task. Calling again while it runs returns the same task."""
        if self._task is None or self._task.done():
            self._stop.clear()
            self._task = asyncio.create_task(self.run(self._stop), name="birthday-scheduler")
        return self._task

    async def stop(self) -> None:
        """Signal the loop and wait for any in-flight pass to finish."""
        self._stop.set()
        if self._task is not None:
            await self._task
            self._task = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run(self, stop: asyncio.Event) -> None:
        logger.info("Starting birthday loop")
        try:
            await self._guarded_pass()
            while not stop.is_set():
                delay = seconds_until_next_tick(self.clock.now(), self.tick_seconds)
                logger.debug(f"Next birthday check in {delay:.0f}s")
                try:
                    await asyncio.wait_for(stop.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    await self._guarded_pass()
        finally:
            self.state = SchedulerState.STOPPED
            logger.info("Birthday loop stopped")

    async def _guarded_pass(self) -> None:
        # A failed pass must never end the loop; the next tick retries
        try:
            await self.run_pass()
        except Exception:
            logger.exception("Birthday pass failed, retrying on the next tick")

    # ==================== Pass ====================

    async def run_pass(self) -> PassReport:
        """Sweep expired roles, then evaluate every set-up guild."""
        async with self._pass_lock:
            self.state = SchedulerState.RUNNING
            report = PassReport(started_at=self.clock.now())
            logger.info(f"Processing birthdays at {report.started_at:%Y-%m-%d %H:%M:%S} UTC")
            try:
                try:
                    report.sweep = await self.sweeper.sweep(report.started_at)
                    report.errors += report.sweep.errors
                except Exception:
                    report.errors += 1
                    logger.exception("Error sweeping expired birthday roles")

                try:
                    guilds = await self.config.list_setup_guilds()
                except StoreUnavailable as e:
                    logger.error(f"Failed to get guilds for birthday processing: {e}")
                    report.errors += 1
                    guilds = []
                except Exception:
                    logger.exception("Unexpected error listing guilds for birthday processing")
                    report.errors += 1
                    guilds = []

                for settings in guilds:
                    try:
                        await self.process_guild(settings, report)
                    except Exception:
                        report.errors += 1
                        logger.exception(
                            f"Error processing birthdays for guild {settings.guild_id}"
                        )
            finally:
                report.finished_at = self.clock.now()
                self.last_report = report
                if self.state is SchedulerState.RUNNING:
                    self.state = SchedulerState.IDLE

            logger.info(
                f"Birthday pass done: guilds={report.guilds} announced={report.announced} "
                f"revoked={report.revoked} errors={report.errors}"
            )
            return report

    async def process_guild(self, settings: GuildSettings, report: PassReport) -> None:
        if not settings.is_schedulable:
            logger.debug(
                f"Guild {settings.guild_id} missing channel or role "
                f"(channel={settings.channel_id}, role={settings.role_id})"
            )
            return

        try:
            birthdays = await self.birthdays.list_guild_birthdays(settings.guild_id)
            active = await self.store.list_active_user_ids(settings.guild_id)
        except StoreUnavailable as e:
            logger.error(f"Failed to load birthdays for guild {settings.guild_id}: {e}")
            report.errors += 1
            return

        report.guilds += 1
        logger.debug(f"Found {len(birthdays)} birthday(s) in guild {settings.guild_id}")

        for record in birthdays:
            try:
                if await self.process_member(settings, record, record.user_id in active):
                    report.announced += 1
            except CakedayError as e:
                report.errors += 1
                logger.error(
                    f"Failed to process birthday of {record.user_id} "
                    f"in guild {settings.guild_id}: {e}"
                )
            except Exception:
                report.errors += 1
                logger.exception(
                    f"Unexpected error processing birthday of {record.user_id} "
                    f"in guild {settings.guild_id}"
                )

    async def process_member(
        self, settings: GuildSettings, record: MemberBirthday, has_active_assignment: bool
    ) -> bool:
        """Evaluate one member and announce if due. Returns True if the role was granted."""
        evaluation = self.evaluator.evaluate(
            record,
            settings.announcement_hour,
            has_active_assignment,
            settings.default_timezone,
        )
        if not evaluation.trigger:
            return False

        logger.info(
            f"Processing birthday announcement for {record.user_id} in guild {settings.guild_id}"
        )
        outcome = await self.dispatcher.announce(settings, record, evaluation.local)
        return outcome.granted

