"""Startup reconciliation of sessions left open by a previous run."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum

from shared.errors import NotificationSinkFailure, ReconciliationFailure, StreamTrackerError
from shared.models.stream_activity import StreamActivity

from .notifications import NotificationSink
from .presence import PresenceOracle, VoiceSnapshot
from .tracker import StreamTracker

logger = logging.getLogger(__name__)

DEFAULT_LOOKUP_TIMEOUT = 10.0


class Outcome(str, Enum):
    RESUMED = "resumed"
    INTERRUPTED = "interrupted"
    SKIPPED = "skipped"


@dataclass
class RecoveryResult:
    checked: int = 0
    resumed: int = 0
    interrupted: int = 0
    failed: int = 0


class SessionRecovery:
    """Close or keep each open session depending on the member's live voice state.

    A session survives only if the member is still streaming in the exact
    channel recorded on it. A channel switch during downtime is recorded as
    an interruption, never as a continuation.
    """

    def __init__(
        self,
        tracker: StreamTracker,
        oracle: PresenceOracle,
        sink: NotificationSink | None = None,
        lookup_timeout: float = DEFAULT_LOOKUP_TIMEOUT,
    ) -> None:
        self.tracker = tracker
        self.oracle = oracle
        self.sink = sink
        self.lookup_timeout = lookup_timeout
        self.last_result: RecoveryResult | None = None

    async def reconcile(self) -> RecoveryResult:
        """Run one pass over every open session.

        Failures for one member are logged and counted; the pass continues.
        ``StoreUnavailable`` while listing open sessions propagates.
        """
        result = RecoveryResult()
        activities = await self.tracker.store.list_open()
        logger.info(f"Recovering {len(activities)} open stream session(s)")

        for activity in activities:
            result.checked += 1
            try:
                outcome = await self._reconcile_one(activity)
            except StreamTrackerError as e:
                result.failed += 1
                logger.warning(
                    f"Recovery failed for {activity.user_id} in {activity.guild_id}: {e}"
                )
                continue
            except Exception:
                result.failed += 1
                logger.exception(
                    f"Unexpected error recovering {activity.user_id} in {activity.guild_id}"
                )
                continue

            if outcome is Outcome.RESUMED:
                result.resumed += 1
            elif outcome is Outcome.INTERRUPTED:
                result.interrupted += 1

        logger.info(
            f"Recovery complete: checked={result.checked}, resumed={result.resumed}, "
            f"interrupted={result.interrupted}, failed={result.failed}"
        )
        self.last_result = result
        return result

    async def _reconcile_one(self, activity: StreamActivity) -> Outcome:
        session = activity.open_session
        if session is None:
            return Outcome.SKIPPED

        if not self.oracle.is_guild_known(activity.guild_id):
            # Nowhere to announce it
            await self.tracker.mark_interrupted(
                activity.user_id, activity.guild_id, started_at=session.start_time
            )
            logger.info(f"Guild {activity.guild_id} is gone, interrupted session of {activity.user_id}")
            return Outcome.INTERRUPTED

        snapshot = await self._lookup(activity)
        if snapshot is not None and snapshot.is_streaming and snapshot.channel_id == session.channel_id:
            logger.info(f"{activity.username} ({activity.user_id}) is still streaming, keeping session")
            return Outcome.RESUMED

        ended = await self.tracker.mark_interrupted(
            activity.user_id, activity.guild_id, started_at=session.start_time
        )
        if ended is None:
            # Closed or replaced by a live event while we were looking
            return Outcome.SKIPPED

        if self.sink is not None:
            try:
                await self.sink.session_ended(
                    activity.guild_id, activity.user_id, activity.username, ended.closed
                )
            except NotificationSinkFailure as e:
                logger.warning(f"Could not announce interrupted session of {activity.user_id}: {e}")
        return Outcome.INTERRUPTED

    async def _lookup(self, activity: StreamActivity) -> VoiceSnapshot | None:
        """Resolve live voice state; any failure reads as "not streaming"."""
        try:
            return await asyncio.wait_for(
                self.oracle.resolve_current_voice_state(activity.user_id, activity.guild_id),
                timeout=self.lookup_timeout,
            )
        except asyncio.TimeoutError:
            failure = ReconciliationFailure(activity.user_id, activity.guild_id, "lookup timed out")
        except ReconciliationFailure as e:
            failure = e
        except Exception as e:
            failure = ReconciliationFailure(activity.user_id, activity.guild_id, f"{type(e).__name__}: {e}")
        logger.warning(str(failure))
        return None
