"""Tests for application wiring and lifecycle."""

from unittest.mock import AsyncMock

import pytest

from personabook.channels.base import ChannelAdapter
from personabook.core.config import ChannelConfig, Config, DatabaseConfig
from personabook.orchestrator import PersonaBookApp, create_channel


@pytest.fixture
def config(tmp_path):
    return Config(database=DatabaseConfig(path=tmp_path / "app.db"))


class TestCreateChannel:
    def test_telegram(self):
        channel = create_channel(Config(channel=ChannelConfig(token="123:abc")))
        assert channel.name == "telegram"

    def test_unsupported(self):
        with pytest.raises(ValueError, match="Unsupported channel type"):
            create_channel(Config(channel=ChannelConfig(type="carrier-pigeon")))


class TestPersonaBookApp:
    async def test_start_and_stop(self, config):
        channel = AsyncMock(spec=ChannelAdapter)
        app = PersonaBookApp(config, channel=channel)

        await app.start()
        try:
            channel.start.assert_awaited_once()
            channel.on_message.assert_called_once_with(app.conversation.handle_message)
            channel.on_payment.assert_called_once_with(app.conversation.handle_payment)
            [commands] = channel.register_commands.call_args.args
            assert "schedule" in [c.name for c in commands]
            assert len(await app.catalog.list_time_slots()) == 3
        finally:
            await app.stop()

        channel.stop.assert_awaited_once()

    async def test_stop_continues_after_failure(self, config):
        channel = AsyncMock(spec=ChannelAdapter)
        channel.stop.side_effect = RuntimeError("boom")
        app = PersonaBookApp(config, channel=channel)
        await app.start()

        await app.stop()

        assert app.sweeper._scheduler.running is False
