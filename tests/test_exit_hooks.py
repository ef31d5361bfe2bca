"""Tests for the real process exit-hook facility.

Real signals are never delivered here: `ProcessExitHooks` is built with no
signals and without the `atexit` hook, and its dispatch entry points are
driven directly.
"""

from __future__ import annotations

import asyncio
import signal
import sys
import threading
from collections.abc import Callable

import pytest

from graceful_recovery.lifecycle.exit_hooks import ProcessExitHooks


def _quiet_hooks() -> ProcessExitHooks:
    return ProcessExitHooks(signals=(), on_exit=False)


def test_termination_runs_handlers_then_exits_with_signal_code() -> None:
    hooks = _quiet_hooks()
    order: list[str] = []

    async def handler(done: Callable[[], None]) -> None:
        order.append("dump")
        done()

    hooks.on_termination_requested(handler)

    with pytest.raises(SystemExit) as info:
        hooks._on_signal(signal.SIGTERM)

    assert order == ["dump"]
    assert info.value.code == 128 + int(signal.SIGTERM)
    assert hooks.exit_code == 128 + int(signal.SIGTERM)
    hooks.uninstall()


def test_second_signal_is_ignored_while_terminating() -> None:
    hooks = _quiet_hooks()
    calls: list[int] = []

    async def handler(done: Callable[[], None]) -> None:
        calls.append(1)
        done()

    hooks.on_termination_requested(handler)
    with pytest.raises(SystemExit):
        hooks._on_signal(signal.SIGINT)
    hooks._on_signal(signal.SIGINT)

    assert calls == [1]
    hooks.uninstall()


def test_failing_termination_handler_still_lets_process_exit() -> None:
    hooks = _quiet_hooks()

    async def handler(done: Callable[[], None]) -> None:
        raise RuntimeError("handler bug")

    hooks.on_termination_requested(handler)
    with pytest.raises(SystemExit):
        hooks._on_signal(signal.SIGTERM)
    hooks.uninstall()


def test_excepthook_is_installed_and_restored() -> None:
    original = sys.excepthook
    hooks = _quiet_hooks()
    seen: list[BaseException] = []

    async def on_fault(exc: BaseException) -> None:
        seen.append(exc)
        hooks.request_exit(1)  # recorded, not raised, inside the excepthook

    hooks.on_uncaught_fault(on_fault)
    assert sys.excepthook == hooks._excepthook

    boom = ValueError("boom")
    sys.excepthook(ValueError, boom, None)

    assert seen == [boom]
    assert hooks.exit_code == 1

    hooks.uninstall()
    assert sys.excepthook is original


def test_thread_faults_reach_the_handler() -> None:
    hooks = _quiet_hooks()
    seen: list[str] = []

    async def on_fault(exc: BaseException) -> None:
        seen.append(str(exc))

    hooks.on_uncaught_fault(on_fault)
    try:

        def worker() -> None:
            raise RuntimeError("worker died")

        thread = threading.Thread(target=worker)
        thread.start()
        thread.join()
    finally:
        hooks.uninstall()

    assert seen == ["worker died"]


def test_loop_exception_handler_dispatches_faults() -> None:
    seen: list[BaseException] = []
    boom = LookupError("task failed")

    async def scenario() -> None:
        hooks = _quiet_hooks()

        async def on_fault(exc: BaseException) -> None:
            seen.append(exc)

        hooks.on_uncaught_fault(on_fault)
        loop = asyncio.get_running_loop()
        loop.call_exception_handler({"message": "Task exception", "exception": boom})
        for _ in range(5):
            await asyncio.sleep(0)
        hooks.uninstall()
        assert loop.get_exception_handler() is None

    asyncio.run(scenario())
    assert seen == [boom]


def test_mark_failed_records_code_without_exiting() -> None:
    hooks = _quiet_hooks()
    hooks.mark_failed(1)
    assert hooks.exit_code == 1
