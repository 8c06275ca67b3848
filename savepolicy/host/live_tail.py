"""Read-only live view of a growing file using watchdog.

The watched file is only ever opened for reading. Appended text is
delivered to a callback as it arrives; a file that shrinks is treated
as truncated and followed again from the start.
"""

import argparse
import codecs
import logging
import os
import signal
import sys
import threading
from typing import Callable

from watchdog.observers import Observer
from watchdog.events import FileSystemEventHandler

from savepolicy.config.loader import configure_logging
from savepolicy.host.file_utils import read_tail

logger = logging.getLogger(__name__)


class TailEventHandler(FileSystemEventHandler):
    """Forward events touching one file to its LiveTail."""

    def __init__(self, tail: "LiveTail"):
        super().__init__()
        self.tail = tail

    def _concerns(self, path) -> bool:
        if isinstance(path, bytes):
            path = os.fsdecode(path)
        return os.path.abspath(path) == self.tail.path

    def on_modified(self, event):
        if not event.is_directory and self._concerns(event.src_path):
            self._safe_poll()

    def on_created(self, event):
        if not event.is_directory and self._concerns(event.src_path):
            self.tail.reset()
            self._safe_poll()

    def on_moved(self, event):
        if not event.is_directory and self._concerns(event.dest_path):
            self.tail.reset()
            self._safe_poll()

    def _safe_poll(self):
        try:
            self.tail.poll()
        except Exception:
            logger.exception("Error following %s", self.tail.path)


class LiveTail:
    """Follow ``path`` and pass new text to ``on_data``.

    Usage::

        with LiveTail("/var/log/app.log", print) as tail:
            ...
    """

    def __init__(
        self,
        path: str,
        on_data: Callable[[str], None],
        initial_lines: int = 10,
        encoding: str = "utf-8",
    ):
        self.path = os.path.abspath(path)
        self.on_data = on_data
        self.initial_lines = initial_lines
        self.encoding = encoding
        self._offset = 0
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._lock = threading.Lock()
        self._observer = None

    @property
    def offset(self) -> int:
        return self._offset

    def reset(self):
        with self._lock:
            self._offset = 0
            self._decoder.reset()

    def poll(self) -> str:
        """Read whatever was appended since the last call and deliver it."""
        with self._lock:
            try:
                size = os.path.getsize(self.path)
            except FileNotFoundError:
                return ""
            if size < self._offset:
                logger.info("%s was truncated, following from the start", self.path)
                self._offset = 0
                self._decoder.reset()
            if size == self._offset:
                return ""
            with open(self.path, "rb") as f:
                f.seek(self._offset)
                chunk = f.read()
            self._offset += len(chunk)
            text = self._decoder.decode(chunk)
        if text:
            self.on_data(text)
        return text

    def start(self):
        if self._observer is not None:
            return
        if os.path.isfile(self.path):
            initial = read_tail(self.path, self.initial_lines, self.encoding)
            with self._lock:
                self._offset = os.path.getsize(self.path)
            if initial:
                self.on_data(initial)

        self._observer = Observer()
        self._observer.schedule(
            TailEventHandler(self), os.path.dirname(self.path), recursive=False,
        )
        self._observer.start()
        logger.info("Following %s", self.path)

    def stop(self):
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None
            logger.info("Stopped following %s", self.path)

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, *exc):
        self.stop()


def main():
    parser = argparse.ArgumentParser(description="Follow a growing file (read-only)")
    parser.add_argument("path", help="File to follow")
    parser.add_argument(
        "-n", "--lines",
        default=10,
        type=int,
        help="Number of trailing lines to print first (default: 10)",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "WARNING"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    args = parser.parse_args()

    configure_logging(args.log_level)

    def write(text):
        sys.stdout.write(text)
        sys.stdout.flush()

    tail = LiveTail(args.path, write, initial_lines=args.lines)
    stop_event = threading.Event()

    def handle_signal(signum, frame):
        stop_event.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    tail.start()
    try:
        while not stop_event.is_set():
            stop_event.wait(timeout=1.0)
    finally:
        tail.stop()


if __name__ == "__main__":
    main()
