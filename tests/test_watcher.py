"""
Tests for Mocker Configuration Watcher

Tests hot reload including:
- Change detection by file signature
- Table swap on a successful reload
- Keeping the previous table when a reload fails
- The polling loop
"""

import asyncio
import logging

import pytest

from mocker.mock.config import load_config
from mocker.mock.routes import ActiveRoutes
from mocker.mock.watcher import ConfigWatcher


FIRST_CONFIG = """
routes:
  /ping:
    get:
      - response: pong
"""

SECOND_CONFIG = """
routes:
  /ping:
    get:
      - response: pong again
  /status:
    get:
      - response: ok
"""


@pytest.fixture
def config_file(tmp_path):
    """Temporary configuration file."""
    path = tmp_path / 'mocker.yaml'
    path.write_text(FIRST_CONFIG)
    return path


@pytest.fixture
def routes(config_file):
    """Active routes loaded from the configuration file."""
    return ActiveRoutes(load_config(config_file))


@pytest.fixture
def watcher(config_file, routes):
    """Watcher over the configuration file."""
    return ConfigWatcher(config_file, routes, interval=0.01)


def ping_response(routes):
    return routes.current.methods('/ping')['get'][0].response


class TestCheck:
    """Test single change checks."""

    def test_unchanged(self, watcher, routes):
        """Test no reload without a change."""
        original = routes.current

        assert watcher.check() is False
        assert routes.current is original
        assert watcher.reloads == 0

    def test_reload_on_change(self, watcher, routes, config_file):
        """Test a changed file replaces the table."""
        config_file.write_text(SECOND_CONFIG)

        assert watcher.check() is True
        assert ping_response(routes) == 'pong again'
        assert routes.current.patterns == ('/ping', '/status')
        assert routes.version == 2
        assert watcher.reloads == 1

        # Same file again: nothing to do
        assert watcher.check() is False
        assert watcher.reloads == 1

    def test_broken_file_keeps_previous_table(self, watcher, routes, config_file, caplog):
        """Test a failed reload leaves the active table in place."""
        original = routes.current
        config_file.write_text('routes: [unclosed\n')

        with caplog.at_level(logging.ERROR, logger="mocker.watcher"):
            assert watcher.check() is False

        assert routes.current is original
        assert watcher.failures == 1
        assert 'Reload failed' in caplog.text

    def test_undecodable_file_keeps_previous_table(self, watcher, routes, config_file):
        """Test a file that is not UTF-8 is a failed reload, not a crash."""
        original = routes.current
        config_file.write_bytes(b'routes:\n  /x\xff:\n    get:\n      - response: x\n')

        assert watcher.check() is False
        assert routes.current is original
        assert watcher.failures == 1

    def test_broken_file_reported_once(self, watcher, config_file):
        """Test an unchanged broken file is not reloaded on every poll."""
        config_file.write_text('routes: [unclosed\n')

        watcher.check()
        watcher.check()

        assert watcher.failures == 1

    def test_recovers_after_fix(self, watcher, routes, config_file):
        """Test a fixed file is picked up after a failed reload."""
        config_file.write_text('port: nope\n')
        assert watcher.check() is False

        config_file.write_text(SECOND_CONFIG)
        assert watcher.check() is True
        assert ping_response(routes) == 'pong again'

    def test_deleted_file_keeps_previous_table(self, watcher, routes, config_file):
        """Test a removed file counts as a failed reload."""
        original = routes.current
        config_file.unlink()

        assert watcher.check() is False
        assert routes.current is original
        assert watcher.failures == 1

    def test_custom_loader(self, config_file, routes):
        """Test the loader is pluggable."""
        loaded = []

        def loader(path):
            loaded.append(path)
            return load_config(path)

        watcher = ConfigWatcher(config_file, routes, loader=loader)
        config_file.write_text(SECOND_CONFIG)

        assert watcher.check() is True
        assert loaded == [config_file]


class TestRun:
    """Test the polling loop."""

    def test_run_picks_up_change(self, watcher, routes, config_file):
        """Test the loop reloads a changed file and stops on cancel."""

        async def scenario():
            task = asyncio.create_task(watcher.run())
            await asyncio.sleep(0.05)
            config_file.write_text(SECOND_CONFIG)
            for _ in range(100):
                if watcher.reloads:
                    break
                await asyncio.sleep(0.02)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(scenario())

        assert watcher.reloads == 1
        assert ping_response(routes) == 'pong again'

    def test_run_survives_unexpected_error(self, config_file, routes, caplog):
        """Test one failing poll does not stop the loop."""
        calls = []

        def loader(path):
            calls.append(path)
            if len(calls) == 1:
                raise RuntimeError("disk on fire")
            return load_config(path)

        watcher = ConfigWatcher(config_file, routes, interval=0.01, loader=loader)

        async def scenario():
            task = asyncio.create_task(watcher.run())
            config_file.write_text(SECOND_CONFIG)
            for _ in range(100):
                if watcher.failures:
                    break
                await asyncio.sleep(0.02)
            config_file.write_text(FIRST_CONFIG + "\n# edited\n")
            for _ in range(100):
                if watcher.reloads:
                    break
                await asyncio.sleep(0.02)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        with caplog.at_level(logging.ERROR, logger="mocker.watcher"):
            asyncio.run(scenario())

        assert watcher.failures == 1
        assert watcher.reloads == 1
        assert ping_response(routes) == 'pong'
        assert 'disk on fire' in caplog.text
