"""
Lifecycle coordinator: decides when a session dump happens.

States
------
``idle``
    Nothing in flight; autosave ticks and on-demand dumps may start a dump.
``dumping``
    A dump is in flight. Further autosave ticks are dropped, never queued.
``shutdown-dumped``
    Terminal latch set by the first shutdown signal or uncaught fault. Later
    shutdown signals and autosave ticks are no-ops.

The latch and the in-flight flag are separate booleans read and written
together under a ``threading.Lock``: triggers arrive from the event loop,
from signal handlers and from ``threading.excepthook`` in other threads.

Every dump goes through :meth:`LifecycleCoordinator._execute`, which never
raises for producer or write failures. They are logged and returned as
``Err`` so the triggering event always runs to completion.
"""

from __future__ import annotations

import asyncio
import threading
from enum import Enum
from typing import Any

from graceful_recovery.core.errors import (
    DumpError,
    DumpInFlightError,
    NoProducersError,
    PersistenceError,
    ProducerError,
)
from graceful_recovery.core.result import Result, err
from graceful_recovery.core.session.record import DumpReason, SessionRecord, now_ms
from graceful_recovery.core.session.storage import PersistenceGateway
from graceful_recovery.core.settings import Settings, get_logger, load_settings
from graceful_recovery.core.snapshot.aggregator import NO_STATE, SnapshotAggregator
from graceful_recovery.lifecycle.exit_hooks import Done, ExitHooks

logger = get_logger(__name__)

DumpResult = Result[SessionRecord, DumpError]


class DumpState(str, Enum):
    """Observable coordinator state."""

    IDLE = "idle"
    DUMPING = "dumping"
    SHUTDOWN_DUMPED = "shutdown-dumped"


class LifecycleCoordinator:
    """Single-flight dump state machine fed by timer, signal and fault events."""

    def __init__(
        self,
        aggregator: SnapshotAggregator,
        gateway: PersistenceGateway,
        hooks: ExitHooks,
        *,
        config: Settings | None = None,
    ) -> None:
        self.aggregator = aggregator
        self.gateway = gateway
        self.hooks = hooks
        self.config = config if config is not None else load_settings()

        self._lock = threading.Lock()
        self._dumping = False
        self._shutdown_latched = False
        self._settled = threading.Event()
        self._settled.set()

        self._started = False
        self._autosave_task: asyncio.Task[None] | None = None
        self._ticks: set[asyncio.Task[Any]] = set()

    # ------------------------------- state ----------------------------------

    @property
    def state(self) -> DumpState:
        with self._lock:
            if self._dumping:
                return DumpState.DUMPING
            if self._shutdown_latched:
                return DumpState.SHUTDOWN_DUMPED
            return DumpState.IDLE

    def _try_acquire(self) -> bool:
        """``idle -> dumping``; False when not idle."""
        with self._lock:
            if self._dumping or self._shutdown_latched:
                return False
            self._dumping = True
            self._settled.clear()
            return True

    def _release(self) -> None:
        with self._lock:
            self._dumping = False
            self._settled.set()

    # ----------------------------- lifecycle --------------------------------

    def start(self) -> None:
        """Install exit hooks and, inside a running event loop, the autosave timer."""
        if self._started:
            return
        self._started = True

        self.hooks.on_termination_requested(self.on_shutdown)
        if self.config.catch_exceptions:
            self.hooks.on_uncaught_fault(self.on_uncaught_fault)

        interval = self.config.autosave_seconds
        if not interval:
            logger.debug("Autosave disabled")
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Autosave needs a running event loop; call start() from async code")
            return
        self._autosave_task = loop.create_task(self._autosave_loop(interval))
        logger.info("Autosaving session to %s every %.1fs", self.gateway.path, interval)

    def stop(self) -> None:
        """Cancel the autosave timer and remove exit hooks."""
        if self._autosave_task is not None:
            self._autosave_task.cancel()
            self._autosave_task = None
        if self._started:
            self.hooks.uninstall()
            self._started = False

    async def _autosave_loop(self, interval: float) -> None:
        loop = asyncio.get_running_loop()
        next_at = loop.time()
        while True:
            # Fixed schedule: a slow dump does not push later ticks back.
            next_at += interval
            await asyncio.sleep(max(0.0, next_at - loop.time()))
            if self._shutdown_latched:
                return
            tick = loop.create_task(self.autosave())
            self._ticks.add(tick)
            tick.add_done_callback(self._ticks.discard)

    # ------------------------------ triggers --------------------------------

    async def autosave(self) -> DumpResult:
        """One autosave tick. Dropped when a dump is in flight."""
        return await self.dump(DumpReason.AUTOSAVE)

    async def dump(
        self,
        reason: DumpReason | str = DumpReason.AUTOSAVE,
        error: BaseException | None = None,
    ) -> DumpResult:
        """Dump now unless another dump is running or shutdown already happened."""
        tag = _tag(reason)
        if not self._try_acquire():
            logger.debug("Skipping %s dump: coordinator is %s", tag, self.state.value)
            return err(DumpInFlightError(f"{tag} dump dropped", reason=tag))
        return await self._run(reason, error)

    async def on_shutdown(self, done: Done | None = None) -> None:
        """Handle a termination notice; ``done`` is always called at the end.

        Only the first notice dumps. Later notices, and a notice that arrives
        while another dump is running, wait for that dump to settle instead.
        """
        with self._lock:
            repeated = self._shutdown_latched
            self._shutdown_latched = True
            joined = repeated or self._dumping
            if not joined:
                self._dumping = True
                self._settled.clear()

        try:
            if repeated:
                logger.debug("Shutdown already handled; waiting for any dump in flight")
                await self._bounded(self._wait_settled())
            elif joined:
                logger.info("Shutdown requested during a dump; waiting for it to finish")
                await self._bounded(self._wait_settled())
            else:
                await self._bounded(self._run(DumpReason.SHUTDOWN))
        finally:
            if done is not None:
                done()

    async def on_uncaught_fault(self, exc: BaseException) -> None:
        """Log the fault, dump once if possible, then apply the exit policy."""
        logger.error(
            "Uncaught exception: %s", exc, exc_info=(type(exc), exc, exc.__traceback__)
        )

        with self._lock:
            in_flight = self._dumping
            if not in_flight:
                self._shutdown_latched = True
                self._dumping = True
                self._settled.clear()

        try:
            if in_flight:
                logger.warning("A dump is already in flight; not dumping for this fault")
            else:
                await self._run(DumpReason.UNCAUGHT_EXCEPTION, exc)
        finally:
            if self.config.exit_exceptions:
                self.hooks.request_exit(1)
            else:
                self.hooks.mark_failed(1)

    # ------------------------------ execution -------------------------------

    async def _bounded(self, aw: Any) -> Any:
        timeout = self.config.shutdown_timeout
        if timeout is None:
            return await aw
        try:
            return await asyncio.wait_for(aw, timeout=timeout)
        except TimeoutError:
            logger.error("Shutdown dump exceeded %.1fs; exiting without it", timeout)
            return None

    async def _wait_settled(self, poll: float = 0.05) -> None:
        # The in-flight dump may live on another thread's loop; poll the flag.
        while not self._settled.is_set():
            await asyncio.sleep(poll)

    async def _run(
        self, reason: DumpReason | str, error: BaseException | None = None
    ) -> DumpResult:
        """Execute a dump whose in-flight flag the caller already holds."""
        try:
            return await self._execute(reason, error)
        finally:
            self._release()

    async def _execute(
        self, reason: DumpReason | str, error: BaseException | None = None
    ) -> DumpResult:
        tag = _tag(reason)

        # Keep the previous session if we crashed before anything registered.
        if not len(self.aggregator.registry):
            logger.debug("No snapshot producers registered; skipping %s dump", tag)
            return err(NoProducersError("no snapshot producers registered", reason=tag))

        at = now_ms()
        try:
            state = await self.aggregator.collect(tag)
        except Exception as exc:
            logger.exception("Snapshot producer failed during %s dump", tag)
            failure = ProducerError(f"producer failed: {exc}", reason=tag)
            failure.__cause__ = exc
            return err(failure)

        if state is NO_STATE:
            return err(NoProducersError("no snapshot producers registered", reason=tag))

        try:
            record = SessionRecord.build(reason, state, error, at=at)
        except Exception as exc:
            logger.exception("Could not build the %s session record", tag)
            failure = PersistenceError(f"record could not be built: {exc}", reason=tag)
            failure.__cause__ = exc
            return err(failure)

        written = await self.gateway.write(record)
        if written.is_ok():
            logger.info("Dumped session (%s) to %s", tag, written.unwrap())
        return written.map(lambda _path: record)


def _tag(reason: DumpReason | str) -> str:
    return reason.value if isinstance(reason, DumpReason) else str(reason)


__all__ = ["DumpResult", "DumpState", "LifecycleCoordinator"]
