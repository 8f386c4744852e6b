"""WebCNC machine agent entry point.

Usage:
    python -m webcnc.agent --uuid cnc-01 [--server ws://host:3000/ws]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal

from webcnc.agent.client import CNCAgentClient
from webcnc.agent.machine import MachineAgent


def main() -> None:
    parser = argparse.ArgumentParser(description="WebCNC machine agent")
    parser.add_argument("--uuid", required=True, help="Device UUID to register under")
    parser.add_argument(
        "--server",
        default="ws://localhost:3000/ws",
        help="WebCNC server WebSocket URL",
    )
    parser.add_argument(
        "--status-interval",
        type=float,
        default=30.0,
        help="Seconds between status reports (default: 30)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    agent = MachineAgent(
        CNCAgentClient(args.server, args.uuid),
        status_interval=args.status_interval,
    )

    loop = asyncio.new_event_loop()
    main_task = loop.create_task(agent.start())

    def _shutdown(sig: int) -> None:
        logging.getLogger(__name__).info("Received signal %d, shutting down", sig)
        main_task.cancel()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _shutdown, sig)

    try:
        loop.run_until_complete(main_task)
    except KeyboardInterrupt:
        pass
    finally:
        loop.run_until_complete(agent.stop())
        loop.close()


if __name__ == "__main__":
    main()
