"""Report scheduling constants."""

from datetime import time, timezone

# Top of every UTC hour
HOURLY_RUN_TIMES = [time(hour=h, tzinfo=timezone.utc) for h in range(24)]

# Local midnight is checked this often so half-hour offsets are not missed
DAILY_CHECK_MINUTES = 5
