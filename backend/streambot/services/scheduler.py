"""Hourly and daily report fan-out across guilds."""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Protocol

from shared.errors import ReportGenerationFailure
from shared.models.guild_config import GuildConfig
from shared.models.report import ReportKind
from shared.periods import daily_window, ensure_utc, get_zone, hourly_window

from .notifications import NotificationSink
from .reports import ReportAggregator

logger = logging.getLogger(__name__)

DEFAULT_GUILD_TIMEOUT = 60.0

Job = Callable[[], Awaitable[None]]


class ReportTargets(Protocol):
    async def list_report_targets(self, kind: ReportKind | str) -> list[GuildConfig]: ...

    async def record_daily_report(self, guild_id: int, report_date: date) -> None: ...


@dataclass
class ScheduleRun:
    kind: ReportKind
    ran_at: datetime
    delivered: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)
    skipped: int = 0


class ReportScheduler:
    """Builds and delivers reports for every guild that asked for them.

    Guilds run concurrently, each bounded by ``guild_timeout``. A failing or
    stalled guild is logged and skipped without holding up the others.
    """

    def __init__(
        self,
        aggregator: ReportAggregator,
        targets: ReportTargets,
        sink: NotificationSink,
        guild_timeout: float = DEFAULT_GUILD_TIMEOUT,
    ) -> None:
        self.aggregator = aggregator
        self.targets = targets
        self.sink = sink
        self.guild_timeout = guild_timeout
        self.last_runs: dict[ReportKind, ScheduleRun] = {}

    async def run_hourly(self, now: datetime) -> ScheduleRun:
        """Report the hour that just elapsed to every hourly-enabled guild."""
        now = ensure_utc(now)
        run = ScheduleRun(ReportKind.HOURLY, now)
        window = hourly_window(now)
        configs = await self.targets.list_report_targets(ReportKind.HOURLY)

        jobs = [
            (config, functools.partial(self._deliver, config, ReportKind.HOURLY, window))
            for config in configs
            if config.reports_enabled(ReportKind.HOURLY)
        ]
        await self._fan_out(run, jobs)
        self.last_runs[ReportKind.HOURLY] = run
        return run

    async def run_daily(self, now: datetime) -> ScheduleRun:
        """Send yesterday's report to guilds where it is now local midnight.

        Called every few minutes so half-hour offsets are covered; the
        ``last_daily_report`` date keeps each guild at one report per day.
        """
        now = ensure_utc(now)
        run = ScheduleRun(ReportKind.DAILY, now)
        configs = await self.targets.list_report_targets(ReportKind.DAILY)

        jobs = []
        for config in configs:
            if not config.reports_enabled(ReportKind.DAILY):
                continue
            local_now = now.astimezone(get_zone(config.timezone))
            report_day = local_now.date() - timedelta(days=1)
            if local_now.hour != 0 or config.last_daily_report == report_day:
                run.skipped += 1
                continue
            window = daily_window(now, config.timezone)
            jobs.append(
                (config, functools.partial(self._deliver, config, ReportKind.DAILY, window, report_day))
            )

        await self._fan_out(run, jobs)
        self.last_runs[ReportKind.DAILY] = run
        return run

    async def _deliver(
        self,
        config: GuildConfig,
        kind: ReportKind,
        window: tuple[datetime, datetime],
        report_day: date | None = None,
    ) -> None:
        report = await self.aggregator.build_report(
            config.guild_id, window[0], window[1], kind, config.timezone
        )
        await self.sink.deliver_report(config.guild_id, config.notification_channel_id, report)
        if report_day is not None:
            await self.targets.record_daily_report(config.guild_id, report_day)

    async def _fan_out(self, run: ScheduleRun, jobs: list[tuple[GuildConfig, Job]]) -> None:
        if not jobs:
            logger.debug(f"No guilds due for {run.kind.value} report")
            return

        results = await asyncio.gather(*(self._guarded(run.kind, config, job) for config, job in jobs))
        for (config, _), ok in zip(jobs, results):
            (run.delivered if ok else run.failed).append(config.guild_id)

        logger.info(
            f"{run.kind.value.capitalize()} reports: {len(run.delivered)} delivered, "
            f"{len(run.failed)} failed"
        )

    async def _guarded(self, kind: ReportKind, config: GuildConfig, job: Job) -> bool:
        try:
            await asyncio.wait_for(job(), timeout=self.guild_timeout)
            return True
        except asyncio.TimeoutError:
            failure = ReportGenerationFailure(
                config.guild_id, kind.value, f"timed out after {self.guild_timeout}s"
            )
        except ReportGenerationFailure as e:
            failure = e
        except Exception as e:
            failure = ReportGenerationFailure(config.guild_id, kind.value, f"{type(e).__name__}: {e}")
            logger.debug("Report failure details", exc_info=e)
        logger.warning(str(failure))
        return False
