# scripts/smoke.py
"""
Smoke Test Script for graceful-recovery.

Runs a tiny "service" whose state is a counter plus a list of recent events.
On start it recovers the previous session, then autosaves while it ticks and
dumps once more when interrupted.

Usage
-----
1. Run with defaults (session.json, autosave every 2s):
    $ uv run python scripts/smoke.py

2. Stop with Ctrl-C, run again and watch the counter resume:
    $ uv run python scripts/smoke.py --path /tmp/demo.json --autosave 500

3. Simulate a crash after N ticks:
    $ uv run python scripts/smoke.py --crash-after 5
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from graceful_recovery import GracefulRecovery

# --------------------------------------------------------------------------- #
# Environment Setup
# --------------------------------------------------------------------------- #
env_path = Path(".env")
if env_path.exists():
    load_dotenv(env_path)
    print("✅ Loaded .env file")

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)


async def run(path: str, autosave_ms: int, crash_after: int | None) -> None:
    recovery = GracefulRecovery(path=path, autosave=autosave_ms)

    previous = await recovery.recovery()
    state: dict[str, Any] = {"counter": 0, "events": []}
    if previous is not None and isinstance(previous.state, dict):
        state.update(previous.state)
        print(f"♻️  Resumed from '{previous.meta.reason}' dump: counter={state['counter']}")
    else:
        print("🆕 No previous session, starting fresh")

    def snapshot(reason: str) -> dict[str, Any]:
        return {"counter": state["counter"], "events": state["events"][-5:]}

    recovery.register_snapshot(snapshot)

    async with recovery:
        while True:
            await asyncio.sleep(0.25)
            state["counter"] += 1
            state["events"].append(f"tick {state['counter']}")
            if crash_after is not None and state["counter"] >= crash_after:
                # Escapes the task: reaches the loop's exception handler
                asyncio.get_running_loop().call_soon(_crash)
                await asyncio.sleep(1)


def _crash() -> None:
    raise RuntimeError("simulated crash")


def main() -> None:
    """Execute the smoke test workflow."""
    parser = argparse.ArgumentParser(description="Run graceful-recovery smoke test")
    parser.add_argument("--path", default="session.json", help="Session file location")
    parser.add_argument("--autosave", type=int, default=2000, help="Autosave interval (ms)")
    parser.add_argument("--crash-after", type=int, default=None, help="Raise after N ticks")
    args = parser.parse_args()

    asyncio.run(run(args.path, args.autosave, args.crash_after))


if __name__ == "__main__":
    main()
