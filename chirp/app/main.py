from __future__ import annotations

import argparse
import logging
import os
import sys
import time
import traceback

from PySide6.QtCore import QtMsgType, qInstallMessageHandler
from PySide6.QtWidgets import QApplication

from chirp.app import config
from chirp.app.ui.main_window import ChatWindow


# ============================================================================
# DEBUG CONFIGURATION - Environment Variables
# ============================================================================
# CHIRP_LOG_LEVEL   - Python logging level (default WARNING)
# CHIRP_DEBUG_URLS  - Log every url found by the scanner (needs DEBUG level)
# CHIRP_CONFIG      - Alternate path for the global JSON settings file
# ============================================================================


def _qt_message_handler(mode: QtMsgType, context, message: str) -> None:
    """Route Qt messages to stderr; fatal messages exit."""
    if mode == QtMsgType.QtDebugMsg:
        print(f"Qt Debug: {message}", file=sys.stderr)
    elif mode == QtMsgType.QtWarningMsg:
        print(f"Qt Warning: {message}", file=sys.stderr)
    elif mode == QtMsgType.QtCriticalMsg:
        print(f"Qt Critical: {message}", file=sys.stderr)
    elif mode == QtMsgType.QtFatalMsg:
        print(f"Qt Fatal: {message}", file=sys.stderr)
        sys.exit(1)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Chirp chat window.")
    parser.add_argument("--nick", default=os.getenv("CHIRP_NICK", "me"), help="Nick name shown for your messages.")
    parser.add_argument("--sound", help="Wav file played when a message arrives.")
    parser.add_argument("--echo", type=int, metavar="MS", help="Echo sent messages back after MS milliseconds (demo).")
    return parser.parse_args(argv)


def _configure_logging() -> None:
    level_name = os.getenv("CHIRP_LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _diag(msg: str) -> None:
    """Lightweight diagnostic logger for startup/teardown events."""
    timestamp = time.strftime("%Y-%m-%d %H:%M:%S")
    print(f"[ChirpDiag {timestamp}] {msg}", file=sys.stderr)


def main() -> None:
    args = _parse_args(sys.argv[1:])
    start_ts = time.time()
    _configure_logging()
    _diag("Application starting.")
    config.init_settings()
    qInstallMessageHandler(_qt_message_handler)
    qt_app = QApplication(sys.argv)
    window = ChatWindow(nick=args.nick, echo_delay_ms=args.echo)
    qt_app.aboutToQuit.connect(window.shutdown)
    sound_file = args.sound or config.load_sound_file()
    if sound_file:
        window.load_sound(sound_file)
    window.resize(640, 480)
    try:
        window.show()
        rc = qt_app.exec()
        uptime = time.time() - start_ts
        _diag(f"Qt event loop exited with code {rc} after {uptime:.2f}s.")
        sys.exit(rc)
    except BaseException as exc:
        if isinstance(exc, SystemExit):
            raise
        _diag(f"Unhandled exception: {exc}")
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":  # pragma: no cover - manual entry point
    main()
