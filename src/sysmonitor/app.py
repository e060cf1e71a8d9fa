"""sysmonitor - command line entry point."""

import argparse
import dataclasses
import logging
import signal
import sys
import threading
from collections.abc import Sequence
from typing import TextIO

from sysmonitor.config import LOG_LEVELS, Settings
from sysmonitor.hub import BroadcastHub
from sysmonitor.monitor import Consumer, Scheduler
from sysmonitor.sampling import SnapshotBuilder
from sysmonitor.server import ServerThread, create_app
from sysmonitor.source import HostStatsSource, PsutilHostStats
from sysmonitor.terminal import ANSI_RESET, KeyWatcher, TerminalRenderer

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class SystemMonitorApp:
    """
    Wires the sampling scheduler to the terminal dashboard and push channel.

    run() blocks until the shutdown event is set by the quit key, a signal
    handler, or the push server dying, then stops everything it started.
    """

    def __init__(
        self,
        settings: Settings,
        source: HostStatsSource | None = None,
        renderer: TerminalRenderer | None = None,
        stdin: TextIO | None = None,
        period: float | None = None,
    ) -> None:
        self.settings = settings
        self.shutdown = threading.Event()
        self.hub = BroadcastHub(settings.send_timeout)
        self.renderer: TerminalRenderer | None = None
        self.key_watcher: KeyWatcher | None = None
        self.server: ServerThread | None = None

        consumers: list[Consumer] = []
        if settings.terminal:
            self.renderer = renderer or TerminalRenderer()
            self.key_watcher = KeyWatcher(self.shutdown, stdin)
            consumers.append(self.renderer.render)
        if settings.server:
            self.server = ServerThread(
                create_app(self.hub, settings),
                settings.host,
                settings.port,
                on_exit=self.shutdown.set,
            )
            consumers.append(self.hub.broadcast)

        builder = SnapshotBuilder(source or PsutilHostStats())
        if period is None:
            self.scheduler = Scheduler(builder, consumers)
        else:
            self.scheduler = Scheduler(builder, consumers, period=period)

    def request_shutdown(self, signum: int | None = None, frame: object = None) -> None:
        """Ask run() to return; usable as a signal handler."""
        if signum is not None:
            logger.info("Received signal %d, shutting down", signum)
        self.shutdown.set()

    def run(self) -> int:
        """Run until shutdown is requested and return the exit status."""
        if self.server is not None:
            logger.info(
                "Serving snapshots on ws://%s:%d%s",
                self.settings.host,
                self.settings.port,
                self.settings.endpoint,
            )
            self.server.start()
        if self.key_watcher is not None:
            self.key_watcher.start()
        self.scheduler.start()

        try:
            self.shutdown.wait()
        finally:
            self.close()

        if self.server is not None and self.server.failed:
            logger.error("Push server stopped unexpectedly")
            return 1
        return 0

    def close(self) -> None:
        """Stop the scheduler first so no tick runs against stopped consumers."""
        self.scheduler.stop()
        if self.key_watcher is not None:
            self.key_watcher.stop()
        if self.server is not None:
            self.server.stop()


def parse_args(argv: Sequence[str] | None, defaults: Settings) -> Settings:
    """Layer command line options over defaults."""
    parser = argparse.ArgumentParser(
        prog="sysmonitor",
        description="Live host resource monitor with a terminal dashboard and a WebSocket feed.",
    )
    parser.add_argument("--host", default=defaults.host, help="interface for the push channel")
    parser.add_argument("--port", type=int, default=defaults.port, help="port for the push channel")
    parser.add_argument(
        "--no-terminal",
        dest="terminal",
        action="store_false",
        default=defaults.terminal,
        help="do not draw the terminal dashboard",
    )
    parser.add_argument(
        "--no-server",
        dest="server",
        action="store_false",
        default=defaults.server,
        help="do not serve snapshots over WebSocket",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=defaults.log_level,
    )
    parser.add_argument("--log-file", default=defaults.log_file, help="log here instead of stderr")

    args = parser.parse_args(argv)
    if not args.terminal and not args.server:
        parser.error("--no-terminal and --no-server leave nothing to run")
    if not 0 <= args.port <= 65535:
        parser.error(f"port out of range: {args.port}")

    return dataclasses.replace(
        defaults,
        host=args.host,
        port=args.port,
        terminal=args.terminal,
        server=args.server,
        log_level=args.log_level,
        log_file=args.log_file,
    )


def configure_logging(settings: Settings) -> None:
    if settings.log_file:
        logging.basicConfig(
            level=settings.log_level, format=LOG_FORMAT, filename=settings.log_file, force=True
        )
    else:
        logging.basicConfig(
            level=settings.log_level, format=LOG_FORMAT, stream=sys.stderr, force=True
        )


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for sysmonitor."""
    try:
        defaults = Settings.from_env()
    except ValueError as exc:
        print(f"sysmonitor: {exc}", file=sys.stderr)
        return 2

    settings = parse_args(argv, defaults)
    configure_logging(settings)

    app = SystemMonitorApp(settings)
    signal.signal(signal.SIGINT, app.request_shutdown)
    signal.signal(signal.SIGTERM, app.request_shutdown)

    status = app.run()

    if settings.terminal:
        sys.stdout.write(ANSI_RESET + "\n")
    print("System monitor exited.")
    return status


if __name__ == "__main__":
    sys.exit(main())
