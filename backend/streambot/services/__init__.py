"""Stream tracking services: lifecycle, recovery, reports and scheduling."""

from .notifications import DiscordNotificationSink, NotificationSink
from .presence import DiscordPresenceOracle, PresenceOracle, VoiceSnapshot
from .recovery import RecoveryResult, SessionRecovery
from .reports import ReportAggregator
from .scheduler import ReportScheduler, ScheduleRun
from .tracker import (
    CloseResult,
    PresenceChange,
    SessionTransition,
    StartResult,
    StreamTracker,
    TransitionKind,
)

__all__ = [
    "CloseResult",
    "DiscordNotificationSink",
    "DiscordPresenceOracle",
    "NotificationSink",
    "PresenceChange",
    "PresenceOracle",
    "RecoveryResult",
    "ReportAggregator",
    "ReportScheduler",
    "ScheduleRun",
    "SessionRecovery",
    "SessionTransition",
    "StartResult",
    "StreamTracker",
    "TransitionKind",
    "VoiceSnapshot",
]
