from __future__ import annotations

import logging
import time
from typing import Optional

from PySide6.QtCore import Qt, QUrl, Signal
from PySide6.QtGui import QDesktopServices, QTextCharFormat, QTextCursor
from PySide6.QtWidgets import QTextEdit, QWidget

from chirp.app import config
from chirp.app.ui.url_document_filter import UrlDocumentFilter


logger = logging.getLogger(__name__)


def to_qurl(url: str) -> QUrl:
    """Turn a highlighted url into something the desktop can open."""
    text = (url or "").strip()
    if "://" in text:
        return QUrl(text)
    if text.startswith("\\\\"):
        unc = text.lstrip("\\").replace("\\", "/")
        return QUrl(f"file://{unc}")
    return QUrl(f"http://{text}")


class ChatTextView(QTextEdit):
    """Read-only message log with clickable url highlighting."""

    linkHovered = Signal(str)
    linkActivated = Signal(str)

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.setReadOnly(True)
        self.setMouseTracking(True)
        self.url_filter = UrlDocumentFilter(self.document(), parent=self)
        self._open_on_click = config.load_url_open_on_click()

    def append_message(
        self, nick: str, text: str, char_format: Optional[QTextCharFormat] = None
    ):
        """Append one chat line at the end of the log. Returns the scan future."""
        line = f"[{time.strftime('%H:%M:%S')}] <{nick}>: {text}\n"
        offset = self.document().characterCount() - 1
        future = self.url_filter.insert_string(offset, line, char_format)
        self.moveCursor(QTextCursor.End)
        self.ensureCursorVisible()
        return future

    def url_at_point(self, pos) -> Optional[str]:
        cursor = self.cursorForPosition(pos)
        return self.url_filter.url_at(cursor.position())

    def mouseMoveEvent(self, event):  # type: ignore[override]
        # Show pointing hand cursor when hovering over a url
        url = self.url_at_point(event.pos())
        if url:
            self.viewport().setCursor(Qt.PointingHandCursor)
            self.linkHovered.emit(url)
        else:
            self.viewport().setCursor(Qt.IBeamCursor)
            self.linkHovered.emit("")
        super().mouseMoveEvent(event)

    def mousePressEvent(self, event):  # type: ignore[override]
        if event.button() == Qt.LeftButton:
            url = self.url_at_point(event.pos())
            if url:
                self.linkActivated.emit(url)
                if self._open_on_click:
                    self.open_url(url)
                event.accept()
                return
        super().mousePressEvent(event)

    def open_url(self, url: str) -> bool:
        target = to_qurl(url)
        if not target.isValid():
            logger.warning("Not opening invalid url %r", url)
            return False
        return QDesktopServices.openUrl(target)
