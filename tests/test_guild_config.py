"""Tests for guild settings validation and schema migration discovery."""

import pytest

from shared.errors import InvalidTimezone
from shared.migrations.runner import VERSIONS_DIR, MigrationRunner
from shared.models.guild_config import GuildConfig
from shared.repositories.guild_config import GuildConfigRepository


class TestGuildConfig:
    """Tests for GuildConfig.reports_enabled."""

    def test_reports_need_a_channel(self):
        config = GuildConfig(1, hourly_report_enabled=True, daily_report_enabled=True)
        assert not config.reports_enabled("hourly")
        assert not config.reports_enabled("daily")

    def test_flags_are_independent(self):
        config = GuildConfig(1, notification_channel_id=5, hourly_report_enabled=True)
        assert config.reports_enabled("hourly")
        assert not config.reports_enabled("daily")

    def test_unknown_kind_raises(self):
        with pytest.raises(ValueError):
            GuildConfig(1, notification_channel_id=5).reports_enabled("weekly")

    def test_defaults(self):
        config = GuildConfig(1)
        assert (config.prefix, config.timezone, config.track_stream_activity) == ("!", "UTC", True)


class TestUpdateSettingsValidation:
    """Validation that happens before any query is sent."""

    async def test_unknown_field_is_rejected(self):
        repo = GuildConfigRepository(pool=None)
        with pytest.raises(ValueError, match="last_daily_report"):
            await repo.update_settings(1, "guild", last_daily_report=None)

    async def test_invalid_timezone_is_rejected(self):
        repo = GuildConfigRepository(pool=None)
        with pytest.raises(InvalidTimezone):
            await repo.update_settings(1, "guild", timezone="Moon/Base")


class TestMigrationDiscovery:
    """Tests for MigrationRunner.discover."""

    def test_bundled_schema_is_found(self):
        versions = [m.version for m in MigrationRunner(pool=None).discover()]
        assert versions[0] == "000_initial_schema"
        assert (VERSIONS_DIR / "000_initial_schema.sql").exists()

    def test_files_are_ordered_by_name(self, tmp_path):
        for name in ("002_c.sql", "000_a.sql", "001_b.sql", "notes.txt"):
            (tmp_path / name).write_text("SELECT 1;")

        runner = MigrationRunner(pool=None, migrations_dir=tmp_path)
        assert [m.version for m in runner.discover()] == ["000_a", "001_b", "002_c"]
