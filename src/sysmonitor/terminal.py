"""In-place ANSI terminal dashboard and quit-key watcher."""

import logging
import os
import shutil
import sys
import threading
from typing import TextIO

from sysmonitor.models import ProcessEntry, Snapshot

if sys.platform == "win32":
    import msvcrt
else:
    import select
    import termios
    import tty

logger = logging.getLogger(__name__)

# ANSI escape codes for colors and terminal control
ANSI_RESET = "\x1b[0m"
ANSI_GREEN = "\x1b[32m"
ANSI_YELLOW = "\x1b[33m"
ANSI_BG_BLACK = "\x1b[40m"
ANSI_BG_RED = "\x1b[41m"
ANSI_BG_GREEN = "\x1b[42m"
ANSI_BG_YELLOW = "\x1b[43m"
ANSI_CLEAR_SCREEN = "\x1b[H\x1b[2J"

DEFAULT_SIZE = (80, 24)
NAME_WIDTH = 20
ELLIPSIS = "..."
QUIT_KEYS = frozenset({"q", "Q", "\x1b"})
FOOTER = "Press 'q' or ESC to exit"

# Screen rows, 1-based
MEMORY_ROW = 1
CPU_ROW = 4
NETWORK_ROW = 6
TABLE_TITLE_ROW = 8
TABLE_HEADER_ROW = 9
TABLE_BODY_ROW = 10

TABLE_HEADER = f"{'PID':<6} {'Name':<{NAME_WIDTH}} {'CPU%':>5} {'Mem%':>5}"


def terminal_size(fallback: tuple[int, int] = DEFAULT_SIZE) -> tuple[int, int]:
    """Return (columns, lines) of the controlling terminal, or fallback."""
    size = shutil.get_terminal_size(fallback)
    if size.columns <= 0 or size.lines <= 0:
        return fallback
    return size.columns, size.lines


def move_cursor(x: int, y: int) -> str:
    """Escape sequence moving the cursor to column x, row y (1-based)."""
    return f"\x1b[{y};{x}H"


def truncate_name(name: str, width: int = NAME_WIDTH) -> str:
    """Shorten name to width characters, ending in an ellipsis if cut."""
    if len(name) <= width:
        return name
    return name[: width - len(ELLIPSIS)] + ELLIPSIS


def printable_name(name: str) -> str:
    """Replace control and other non-printable characters with "?"."""
    if name.isprintable():
        return name
    return "".join(ch if ch.isprintable() else "?" for ch in name)


def bar_color(percent: float) -> str:
    """Background color for the filled part of a usage bar."""
    if percent >= 90:
        return ANSI_BG_RED
    if percent >= 70:
        return ANSI_BG_YELLOW
    return ANSI_BG_GREEN


def format_process_row(proc: ProcessEntry) -> str:
    return (
        f"{proc.pid:<6} {truncate_name(printable_name(proc.name)):<{NAME_WIDTH}} "
        f"{proc.cpu_percent:>5.1f} {proc.memory_percent:>5.1f}"
    )


class TerminalRenderer:
    """
    Full-screen dashboard redrawn for every Snapshot.

    Shows memory and CPU usage bars, a network totals line and the top
    processes by memory and by CPU side by side.
    """

    def __init__(
        self,
        stream: TextIO | None = None,
        size: tuple[int, int] | None = None,
    ) -> None:
        """
        Initialize the TerminalRenderer.

        Args:
            stream: Where frames are written. Default sys.stdout.
            size: (columns, lines); detected once if not given.
        """
        self._stream = stream if stream is not None else sys.stdout
        self._width, self._height = size or terminal_size()

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def table_rows(self) -> int:
        """Number of process rows that fit between the table header and the footer."""
        return max(0, self._height - TABLE_BODY_ROW)

    def render(self, snapshot: Snapshot) -> None:
        """Redraw the screen from snapshot in a single write."""
        self._stream.write(self.compose(snapshot))
        self._stream.flush()

    def compose(self, snapshot: Snapshot) -> str:
        """Build the escape-sequence string for one full frame."""
        memory = snapshot.memory_info
        parts = [ANSI_CLEAR_SCREEN]
        parts.append(self._bar(MEMORY_ROW, "Memory", memory.used_percent, str(memory)))
        parts.append(
            self._bar(CPU_ROW, "CPU", snapshot.cpu_usage, f"Usage: {snapshot.cpu_usage:.1f}%")
        )

        if snapshot.network_info is not None:
            parts.append(
                move_cursor(1, NETWORK_ROW) + ANSI_GREEN + str(snapshot.network_info) + ANSI_RESET
            )

        half = self._width // 2
        table_width = half - 1
        parts.append(
            self._table(1, "Top Memory Usage", snapshot.top_processes_by_memory, table_width)
        )
        parts.append(
            self._table(half + 1, "Top CPU Usage", snapshot.top_processes_by_cpu, table_width)
        )

        parts.append(move_cursor(1, self._height) + FOOTER)
        return "".join(parts)

    def _bar(self, y: int, label: str, value: float, stats: str) -> str:
        bar_width = max(0, self._width - 10)
        filled = min(bar_width, max(0, int(bar_width * value / 100)))

        return (
            move_cursor(1, y)
            + ANSI_YELLOW + f"{label}: {stats}" + ANSI_RESET
            + move_cursor(1, y + 1)
            + "["
            + bar_color(value) + " " * filled + ANSI_RESET
            + ANSI_BG_BLACK + " " * (bar_width - filled) + ANSI_RESET
            + "]"
        )

    def _table(
        self, x: int, title: str, processes: tuple[ProcessEntry, ...], width: int
    ) -> str:
        lines = [
            move_cursor(x, TABLE_TITLE_ROW) + ANSI_YELLOW + title[:width] + ANSI_RESET,
            move_cursor(x, TABLE_HEADER_ROW) + ANSI_GREEN + TABLE_HEADER[:width] + ANSI_RESET,
        ]
        # Rows that do not fit are dropped
        for i, proc in enumerate(processes[: self.table_rows]):
            lines.append(move_cursor(x, TABLE_BODY_ROW + i) + format_process_row(proc)[:width])
        return "".join(lines)


class KeyWatcher:
    """
    Watches an input stream for a quit key and sets a shutdown event.

    Runs in a separate daemon thread. A TTY is switched to cbreak mode while
    the watcher runs so single keystrokes arrive without Enter. A stream that
    is not readable, or reaches EOF, leaves the watcher idle until stop().
    """

    def __init__(
        self,
        shutdown: threading.Event,
        stream: TextIO | None = None,
        poll_interval: float = 0.1,
    ) -> None:
        self._shutdown = shutdown
        self._stream = stream if stream is not None else sys.stdin
        self._poll_interval = poll_interval
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._fd: int | None = None
        self._tty_fd: int | None = None
        self._saved_attrs: list | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return

        self._fd = self._stream_fd()
        self._enter_cbreak()
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, daemon=True, name="KeyWatcher")
        self._thread.start()

    def stop(self, timeout: float | None = 1.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        self._restore_terminal()

    def _run(self) -> None:
        while not self._stop_event.is_set() and not self._shutdown.is_set():
            key = self._read_key()
            if key is not None and key in QUIT_KEYS:
                logger.info("Quit key pressed")
                self._shutdown.set()
                return

    def _read_key(self) -> str | None:
        """Wait up to one poll interval for a key."""
        if sys.platform == "win32":
            if msvcrt.kbhit():
                return msvcrt.getwch()
            self._stop_event.wait(self._poll_interval)
            return None

        if self._fd is None:
            self._stop_event.wait(self._poll_interval)
            return None

        ready, _, _ = select.select([self._fd], [], [], self._poll_interval)
        if not ready:
            return None
        data = os.read(self._fd, 1)
        if not data:
            logger.debug("Input stream closed, key watching disabled")
            self._fd = None
            return None
        return data.decode("utf-8", errors="ignore")

    def _stream_fd(self) -> int | None:
        try:
            return self._stream.fileno()
        except (AttributeError, OSError, ValueError):
            logger.debug("Input stream has no file descriptor, key watching disabled")
            return None

    def _enter_cbreak(self) -> None:
        if sys.platform == "win32" or self._fd is None or not os.isatty(self._fd):
            return
        try:
            self._saved_attrs = termios.tcgetattr(self._fd)
            tty.setcbreak(self._fd)
            self._tty_fd = self._fd
        except termios.error as exc:
            logger.debug("Could not enter cbreak mode: %s", exc)
            self._saved_attrs = None

    def _restore_terminal(self) -> None:
        if self._saved_attrs is None or self._tty_fd is None:
            return
        try:
            termios.tcsetattr(self._tty_fd, termios.TCSADRAIN, self._saved_attrs)
        except termios.error as exc:
            logger.debug("Could not restore terminal attributes: %s", exc)
        self._saved_attrs = None
        self._tty_fd = None
