"""
Process exit hooks: termination signals, uncaught faults and normal exit.

The coordinator only sees the :class:`ExitHooks` protocol, so it can be driven
by a fake in tests. :class:`ProcessExitHooks` is the real implementation:

- **Termination**: SIGINT, SIGTERM and SIGHUP (where available) plus normal
  interpreter exit (``atexit``). Each handler receives a ``done`` callable and
  the process only exits once every handler has called it.
- **Faults**: ``sys.excepthook``, ``threading.excepthook`` and the running
  event loop's exception handler.

Handlers are coroutine functions. When an event loop is running in the
current thread they are scheduled on it; otherwise they run to completion
with ``asyncio.run``.
"""

from __future__ import annotations

import asyncio
import atexit
import logging
import os
import signal
import sys
import threading
from collections.abc import Awaitable, Callable, Coroutine
from types import FrameType, TracebackType
from typing import Any, Protocol

from graceful_recovery.core.settings import get_logger

logger = get_logger(__name__)

Done = Callable[[], None]
TerminationHandler = Callable[[Done], Awaitable[None]]
FaultHandler = Callable[[BaseException], Awaitable[None]]


class ExitHooks(Protocol):
    """Contract between the coordinator and the host process."""

    def on_termination_requested(self, handler: TerminationHandler) -> None: ...

    def on_uncaught_fault(self, handler: FaultHandler) -> None: ...

    def request_exit(self, code: int) -> None: ...

    def mark_failed(self, code: int) -> None: ...

    def uninstall(self) -> None: ...


def _default_signals() -> tuple[signal.Signals, ...]:
    names = ("SIGINT", "SIGTERM", "SIGHUP")
    return tuple(getattr(signal, n) for n in names if hasattr(signal, n))


class ProcessExitHooks:
    """Wire termination and fault handlers into the running Python process."""

    def __init__(
        self,
        signals: tuple[signal.Signals, ...] | None = None,
        *,
        on_exit: bool = True,
    ) -> None:
        self.signals = signals if signals is not None else _default_signals()
        self.on_exit = on_exit
        self.exit_code: int | None = None

        self._termination: list[TerminationHandler] = []
        self._faults: list[FaultHandler] = []
        self._terminating = False
        self._in_excepthook = False
        self._tasks: set[asyncio.Task[Any]] = set()

        self._signal_loop: asyncio.AbstractEventLoop | None = None
        self._previous_signals: dict[signal.Signals, Any] = {}
        self._previous_excepthook: Callable[..., Any] | None = None
        self._previous_thread_hook: Callable[..., Any] | None = None
        self._fault_loop: asyncio.AbstractEventLoop | None = None
        self._previous_loop_handler: Callable[..., Any] | None = None
        self._atexit_installed = False

    # ------------------------------ termination -----------------------------

    def on_termination_requested(self, handler: TerminationHandler) -> None:
        first = not self._termination
        self._termination.append(handler)
        if first:
            self._install_signals()
            if self.on_exit and not self._atexit_installed:
                atexit.register(self._on_interpreter_exit)
                self._atexit_installed = True

    def _install_signals(self) -> None:
        try:
            loop: asyncio.AbstractEventLoop | None = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        for sig in self.signals:
            try:
                if loop is not None:
                    try:
                        loop.add_signal_handler(sig, self._on_signal, sig)
                        self._signal_loop = loop
                        continue
                    except NotImplementedError:
                        pass  # Windows event loops
                self._previous_signals[sig] = signal.signal(sig, self._on_signal_frame)
            except (OSError, ValueError, RuntimeError) as e:
                # Off the main thread, signal handlers can't be set
                logger.warning("Could not register signal handler for %s: %s", sig.name, e)

    def _on_signal_frame(self, signum: int, frame: FrameType | None) -> None:
        self._on_signal(signal.Signals(signum))

    def _on_signal(self, sig: signal.Signals) -> None:
        if self._terminating:
            logger.info("Received %s while already shutting down; ignoring", sig.name)
            return
        self._terminating = True
        logger.info("Received termination signal %s", sig.name)
        self._dispatch(self._run_termination, 128 + int(sig))

    def _on_interpreter_exit(self) -> None:
        if self._terminating or not self._termination:
            return
        self._terminating = True
        logger.debug("Interpreter exiting; running shutdown handlers")
        asyncio.run(self._run_termination(None))

    async def _run_termination(self, code: int | None) -> None:
        for handler in list(self._termination):
            finished = asyncio.Event()
            loop = asyncio.get_running_loop()

            def done(
                _loop: asyncio.AbstractEventLoop = loop, _ev: asyncio.Event = finished
            ) -> None:
                _loop.call_soon_threadsafe(_ev.set)

            try:
                await handler(done)
            except Exception:
                logger.exception("Shutdown handler failed")
                done()
            await finished.wait()

        if code is not None:
            self.request_exit(code)

    # --------------------------------- faults -------------------------------

    def on_uncaught_fault(self, handler: FaultHandler) -> None:
        first = not self._faults
        self._faults.append(handler)
        if first:
            self._install_fault_hooks()

    def _install_fault_hooks(self) -> None:
        self._previous_excepthook = sys.excepthook
        sys.excepthook = self._excepthook
        self._previous_thread_hook = threading.excepthook
        threading.excepthook = self._thread_excepthook

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._fault_loop = loop
        self._previous_loop_handler = loop.get_exception_handler()
        loop.set_exception_handler(self._loop_exception_handler)

    def _excepthook(
        self,
        exc_type: type[BaseException],
        exc: BaseException,
        tb: TracebackType | None,
    ) -> None:
        if issubclass(exc_type, KeyboardInterrupt) or self._previous_excepthook is None:
            (self._previous_excepthook or sys.__excepthook__)(exc_type, exc, tb)
            return
        # The interpreter is already on its way out with status 1.
        self._in_excepthook = True
        self._terminating = True
        try:
            asyncio.run(self._run_faults(exc))
        finally:
            self._in_excepthook = False

    def _thread_excepthook(self, args: threading.ExceptHookArgs) -> None:
        if args.exc_value is None or issubclass(args.exc_type, SystemExit):
            if self._previous_thread_hook is not None:
                self._previous_thread_hook(args)
            return
        asyncio.run(self._run_faults(args.exc_value))

    def _loop_exception_handler(
        self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]
    ) -> None:
        exc = context.get("exception")
        if exc is None:
            if self._previous_loop_handler is not None:
                self._previous_loop_handler(loop, context)
            else:
                loop.default_exception_handler(context)
            return
        self._spawn(loop, self._run_faults(exc))

    async def _run_faults(self, exc: BaseException) -> None:
        for handler in list(self._faults):
            try:
                await handler(exc)
            except SystemExit:
                raise
            except Exception:
                logger.exception("Uncaught-fault handler failed")

    # ---------------------------------- exit --------------------------------

    def request_exit(self, code: int) -> None:
        """Terminate the process with ``code``."""
        self.exit_code = code
        if self._in_excepthook:
            return
        if threading.current_thread() is threading.main_thread():
            raise SystemExit(code)
        logging.shutdown()
        os._exit(code)

    def mark_failed(self, code: int) -> None:
        """Record a failure status without terminating.

        The host reads :attr:`exit_code` when it decides to exit.
        """
        self.exit_code = code
        logger.warning("Process marked as failed (exit code %d)", code)

    def uninstall(self) -> None:
        """Restore every hook this instance replaced."""
        if self._signal_loop is not None and not self._signal_loop.is_closed():
            for sig in self.signals:
                self._signal_loop.remove_signal_handler(sig)
        self._signal_loop = None
        for sig, previous in self._previous_signals.items():
            try:
                signal.signal(sig, previous)
            except (OSError, ValueError, TypeError, RuntimeError) as e:
                logger.warning("Could not restore signal handler for %s: %s", sig.name, e)
        self._previous_signals.clear()

        if self._previous_excepthook is not None:
            sys.excepthook = self._previous_excepthook
            self._previous_excepthook = None
        if self._previous_thread_hook is not None:
            threading.excepthook = self._previous_thread_hook
            self._previous_thread_hook = None
        if self._fault_loop is not None and not self._fault_loop.is_closed():
            self._fault_loop.set_exception_handler(self._previous_loop_handler)
        self._fault_loop = None

        if self._atexit_installed:
            atexit.unregister(self._on_interpreter_exit)
            self._atexit_installed = False

        self._termination.clear()
        self._faults.clear()

    # -------------------------------- helpers -------------------------------

    def _dispatch(
        self, fn: Callable[..., Coroutine[Any, Any, None]], *args: Any
    ) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(fn(*args))
            return
        self._spawn(loop, fn(*args))

    def _spawn(
        self, loop: asyncio.AbstractEventLoop, coro: Coroutine[Any, Any, None]
    ) -> None:
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)


__all__ = [
    "Done",
    "ExitHooks",
    "FaultHandler",
    "ProcessExitHooks",
    "TerminationHandler",
]
