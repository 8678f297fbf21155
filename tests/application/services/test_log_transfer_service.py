"""Tests for logging control and log download."""

import asyncio

import pytest

from remote_events.domain.exceptions import (
    ConnectionLostError,
    DownloadInProgressError,
    InvalidatedSessionError,
    TransportError,
)
from remote_events.domain.value_objects import CommandKind
from tests.doubles.addresses import SWITCH


class DownloadWatcher:
    """Collects progress and completion callbacks in call order."""

    def __init__(self):
        self.events = []
        self.done = asyncio.Event()

    def on_progress(self, fraction):
        self.events.append(("progress", fraction))

    def on_complete(self, entries, error):
        self.events.append(("complete", entries, error))
        self.done.set()

    @property
    def progress(self):
        return [e[1] for e in self.events if e[0] == "progress"]

    @property
    def completions(self):
        return [e[1:] for e in self.events if e[0] == "complete"]


class TestLoggingState:
    """start/stop/is_logging."""

    @pytest.mark.asyncio
    async def test_start_logging(self, switch, transport):
        result = await switch.start_logging()

        assert result.success
        assert switch.logging_state is True
        assert transport.logging_enabled[SWITCH] is True

    @pytest.mark.asyncio
    async def test_start_logging_idempotent(self, switch, transport):
        await switch.start_logging()
        result = await switch.start_logging()

        assert result.success
        assert len(transport.commands_of(CommandKind.LOG_START)) == 1

    @pytest.mark.asyncio
    async def test_failed_start_rolls_back(self, switch, transport):
        transport.fail_next(CommandKind.LOG_START)

        result = await switch.start_logging()

        assert not result.success
        assert isinstance(result.error, TransportError)
        assert switch.logging_state is None

    @pytest.mark.asyncio
    async def test_is_logging_queries_once(self, switch, transport):
        transport.logging_enabled[SWITCH] = True

        first = await switch.is_logging()
        second = await switch.is_logging()

        assert first.value is True and second.value is True
        assert len(transport.commands_of(CommandKind.LOG_QUERY)) == 1

    @pytest.mark.asyncio
    async def test_state_unconfirmed_while_start_in_flight(self, switch, transport):
        transport.pause(CommandKind.LOG_START)
        starting = switch.start_logging()
        query = switch.is_logging()
        while not transport.commands_of(CommandKind.LOG_START):
            await asyncio.sleep(0)

        assert switch.logging_state is None
        assert not query.done()

        transport.fail_next(CommandKind.LOG_START)
        transport.resume(CommandKind.LOG_START)
        started = await starting
        answer = await query

        assert not started.success
        assert answer.success
        assert answer.value is False
        assert switch.logging_state is False
        assert len(transport.commands_of(CommandKind.LOG_QUERY)) == 1

    @pytest.mark.asyncio
    async def test_is_logging_reports_confirmed_start(self, switch, transport):
        transport.pause(CommandKind.LOG_START)
        starting = switch.start_logging()
        query = switch.is_logging()

        assert switch.start_logging() is starting
        transport.resume(CommandKind.LOG_START)

        assert (await query).value is True
        assert (await starting).success
        assert len(transport.commands_of(CommandKind.LOG_START)) == 1
        assert transport.commands_of(CommandKind.LOG_QUERY) == []

    @pytest.mark.asyncio
    async def test_start_then_stop_applied_in_order(self, switch, transport):
        transport.pause(CommandKind.LOG_START)
        starting = switch.start_logging()
        stopping = switch.stop_logging()

        transport.resume(CommandKind.LOG_START)
        results = await asyncio.gather(starting, stopping)

        assert all(result.success for result in results)
        kinds = [command.kind for _, command in transport.commands]
        assert kinds == [CommandKind.LOG_START, CommandKind.LOG_STOP]
        assert switch.logging_state is False
        assert transport.logging_enabled[SWITCH] is False

    @pytest.mark.asyncio
    async def test_uninstalled_derived_event_not_logging(self, switch, transport):
        total = switch.accumulate()

        assert (await total.is_logging()).value is False
        assert (await total.stop_logging()).success
        assert transport.commands == []

    @pytest.mark.asyncio
    async def test_stop_logging(self, switch, transport):
        await switch.start_logging()
        result = await switch.stop_logging()

        assert result.success
        assert (await switch.is_logging()).value is False
        assert transport.logging_enabled[SWITCH] is False

    @pytest.mark.asyncio
    async def test_logging_derived_event_installs_filter(self, switch, transport):
        sampled = switch.accumulate().periodic_sample(1000)

        await sampled.start_logging()

        installs = transport.commands_of(CommandKind.INSTALL_FILTER)
        assert [address for address, _ in installs] == [
            sampled.source.address,
            sampled.address,
        ]
        assert installs[1][1].params["source"] == sampled.source.address
        assert transport.commands[-1][0] == sampled.address
        assert transport.commands[-1][1].kind is CommandKind.LOG_START

    def test_invalidated_event_rejected(self, session, switch):
        session.invalidate()
        with pytest.raises(InvalidatedSessionError):
            switch.start_logging()


class TestDownload:
    """Chunked download with progress."""

    @pytest.mark.asyncio
    async def test_zero_entries(self, switch):
        watcher = DownloadWatcher()

        result = await switch.download_log(False, watcher.on_complete, watcher.on_progress)

        assert result.success
        assert watcher.events == [("progress", 1.0), ("complete", [], None)]

    @pytest.mark.asyncio
    async def test_uninstalled_derived_event_has_empty_log(self, switch, transport):
        total = switch.accumulate()
        watcher = DownloadWatcher()

        result = await total.download_log(
            True, watcher.on_complete, watcher.on_progress, clear_after=True
        )

        assert result.success
        assert watcher.events == [("progress", 1.0), ("complete", [], None)]
        assert transport.commands == []
        assert not total.is_installed
        assert total.logging_state is False

    @pytest.mark.asyncio
    async def test_entries_in_two_chunks(self, switch, transport, settings):
        transport.logs[SWITCH] = list(range(2 * settings.log_chunk_size))
        watcher = DownloadWatcher()

        await switch.download_log(False, watcher.on_complete, watcher.on_progress)

        assert watcher.progress == sorted(watcher.progress)
        assert watcher.progress[-1] == 1.0
        assert watcher.events[-1] == ("complete", list(range(8)), None)
        assert watcher.progress.index(1.0) == len(watcher.progress) - 1
        reads = transport.commands_of(CommandKind.LOG_READ)
        assert [c.params for _, c in reads] == [
            {"start": 0, "count": 4},
            {"start": 4, "count": 4},
        ]

    @pytest.mark.asyncio
    async def test_partial_last_chunk(self, switch, transport):
        transport.logs[SWITCH] = [1, 2, 3, 4, 5]
        watcher = DownloadWatcher()

        await switch.download_log(False, watcher.on_complete, watcher.on_progress)

        assert watcher.completions == [([1, 2, 3, 4, 5], None)]
        assert watcher.progress == [0.0, 0.8, 1.0]

    @pytest.mark.asyncio
    async def test_entries_decoded_by_kind(self, session, transport):
        temperature_event = session.root_event(SWITCH, "temperature")
        transport.logs[SWITCH] = [b"\xf6\xff", b"\x19\x00"]
        watcher = DownloadWatcher()

        await temperature_event.download_log(False, watcher.on_complete)

        assert watcher.completions == [([-10, 25], None)]

    @pytest.mark.asyncio
    async def test_stop_after_success(self, switch, transport):
        await switch.start_logging()
        transport.logs[SWITCH] = [1]
        watcher = DownloadWatcher()

        await switch.download_log(True, watcher.on_complete, watcher.on_progress)

        assert watcher.completions == [([1], None)]
        assert switch.logging_state is False
        assert transport.logging_enabled[SWITCH] is False

    @pytest.mark.asyncio
    async def test_failed_retrieval_keeps_logging(self, switch, transport):
        await switch.start_logging()
        transport.logs[SWITCH] = list(range(6))
        transport.fail_next(CommandKind.LOG_READ)
        watcher = DownloadWatcher()

        result = await switch.download_log(True, watcher.on_complete, watcher.on_progress)

        assert not result.success
        [(entries, error)] = watcher.completions
        assert entries == []
        assert isinstance(error, TransportError)
        assert 1.0 not in watcher.progress
        assert transport.commands_of(CommandKind.LOG_STOP) == []
        assert switch.logging_state is True

    @pytest.mark.asyncio
    async def test_failed_stop_after_still_delivers(self, switch, transport):
        await switch.start_logging()
        transport.logs[SWITCH] = [1, 2]
        transport.fail_next(CommandKind.LOG_STOP)
        watcher = DownloadWatcher()

        result = await switch.download_log(True, watcher.on_complete)

        assert result.success
        assert watcher.completions == [([1, 2], None)]
        assert switch.logging_state is None

    @pytest.mark.asyncio
    async def test_clear_after(self, switch, transport):
        transport.logs[SWITCH] = [1, 2]
        watcher = DownloadWatcher()

        await switch.download_log(False, watcher.on_complete, clear_after=True)

        assert watcher.completions == [([1, 2], None)]
        assert transport.logs[SWITCH] == []

    @pytest.mark.asyncio
    async def test_empty_chunk_is_error(self, switch, transport, monkeypatch):
        transport.logs[SWITCH] = [1, 2]
        original = transport.send_register_command

        async def lying_count(address, command):
            if command.kind is CommandKind.LOG_ENTRY_COUNT:
                return 5
            return await original(address, command)

        monkeypatch.setattr(transport, "send_register_command", lying_count)
        watcher = DownloadWatcher()

        await switch.download_log(False, watcher.on_complete)

        [(entries, error)] = watcher.completions
        assert entries == []
        assert "no log entries" in str(error)


class TestConcurrency:
    """At most one download per event; disconnects complete downloads."""

    @pytest.mark.asyncio
    async def test_second_download_rejected(self, switch, transport):
        transport.logs[SWITCH] = [1, 2, 3]
        transport.pause(CommandKind.LOG_READ)
        first = DownloadWatcher()
        task = switch.download_log(False, first.on_complete, first.on_progress)

        with pytest.raises(DownloadInProgressError):
            switch.download_log(False, DownloadWatcher().on_complete)

        transport.resume(CommandKind.LOG_READ)
        result = await task

        assert result.success
        assert first.completions == [([1, 2, 3], None)]

    @pytest.mark.asyncio
    async def test_download_allowed_again_after_completion(self, switch, transport):
        watcher = DownloadWatcher()
        await switch.download_log(False, watcher.on_complete)

        again = DownloadWatcher()
        await switch.download_log(False, again.on_complete)

        assert again.completions == [([], None)]

    @pytest.mark.asyncio
    async def test_flag_cleared_before_completion_callback(self, session, switch):
        states = []
        await switch.download_log(
            False, lambda entries, error: states.append(session.logs.is_downloading(switch))
        )
        assert states == [False]

    @pytest.mark.asyncio
    async def test_disconnect_mid_download(self, session, switch, transport):
        transport.logs[SWITCH] = list(range(12))
        transport.pause(CommandKind.LOG_READ)
        watcher = DownloadWatcher()
        task = switch.download_log(True, watcher.on_complete, watcher.on_progress)
        while not transport.commands_of(CommandKind.LOG_READ):
            await asyncio.sleep(0)

        transport.drop_connection()
        session.invalidate()
        result = await asyncio.wait_for(task, timeout=1.0)

        assert not result.success
        [(entries, error)] = watcher.completions
        assert entries == []
        assert isinstance(error, ConnectionLostError)
