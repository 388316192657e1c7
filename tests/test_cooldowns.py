"""Tests for per-user cooldowns and the per-guild command budget."""

import pytest

from streambot.core.cooldowns import CommandCooldowns, CooldownActive


class FakeTimer:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def timer() -> FakeTimer:
    return FakeTimer()


class TestUserCooldown:
    """Tests for the per-user, per-command cooldown."""

    def test_second_call_within_cooldown_is_rejected(self, timer):
        cooldowns = CommandCooldowns(cooldown=3.0, guild_per_minute=0, clock=timer)
        cooldowns.hit(1, 10, "stats")

        timer.now += 1.0
        with pytest.raises(CooldownActive) as exc:
            cooldowns.hit(1, 10, "stats")

        assert exc.value.scope == "user"
        assert exc.value.retry_after == pytest.approx(2.0)
        assert "2 more second(s)" in str(exc.value)

    def test_cooldown_expires(self, timer):
        cooldowns = CommandCooldowns(cooldown=3.0, guild_per_minute=0, clock=timer)
        cooldowns.hit(1, 10, "stats")
        timer.now += 3.5
        cooldowns.hit(1, 10, "stats")

    def test_cooldowns_are_per_command_and_user(self, timer):
        cooldowns = CommandCooldowns(cooldown=3.0, guild_per_minute=0, clock=timer)
        cooldowns.hit(1, 10, "stats")
        cooldowns.hit(1, 10, "leaderboard")
        cooldowns.hit(2, 10, "stats")
        assert cooldowns.tracked_users == 3

    def test_zero_cooldown_disables_user_limit(self, timer):
        cooldowns = CommandCooldowns(cooldown=0, guild_per_minute=0, clock=timer)
        for _ in range(5):
            cooldowns.hit(1, 10, "stats")


class TestGuildBudget:
    """Tests for the fixed-window guild budget."""

    def test_budget_exhaustion(self, timer):
        timer.now = 600.0  # start of a window
        cooldowns = CommandCooldowns(cooldown=0, guild_per_minute=3, clock=timer)
        for user_id in range(3):
            cooldowns.hit(user_id, 10, "stats")

        timer.now += 15
        with pytest.raises(CooldownActive) as exc:
            cooldowns.hit(99, 10, "stats")
        assert exc.value.scope == "guild"
        assert exc.value.retry_after == pytest.approx(45.0)

    def test_budget_resets_next_window(self, timer):
        timer.now = 600.0
        cooldowns = CommandCooldowns(cooldown=0, guild_per_minute=1, clock=timer)
        cooldowns.hit(1, 10, "stats")
        timer.now += 60
        cooldowns.hit(1, 10, "stats")

    def test_guilds_have_separate_budgets(self, timer):
        cooldowns = CommandCooldowns(cooldown=0, guild_per_minute=1, clock=timer)
        cooldowns.hit(1, 10, "stats")
        cooldowns.hit(1, 11, "stats")

    def test_direct_messages_skip_guild_budget(self, timer):
        cooldowns = CommandCooldowns(cooldown=0, guild_per_minute=1, clock=timer)
        cooldowns.hit(1, None, "help")
        cooldowns.hit(1, None, "help")

    def test_rejected_call_does_not_start_user_cooldown(self, timer):
        timer.now = 600.0
        cooldowns = CommandCooldowns(cooldown=3.0, guild_per_minute=1, clock=timer)
        cooldowns.hit(1, 10, "stats")
        with pytest.raises(CooldownActive):
            cooldowns.hit(2, 10, "stats")
        timer.now += 60
        cooldowns.hit(2, 10, "stats")
