"""Underline urls as text is inserted into a chat document.

Text goes into the document right away. Scanning for urls happens on a
small worker pool and the resulting styles are applied back on the GUI thread
through a queued signal, so inserting a message never waits for the scan.

There is no cancellation. A scan that finishes after later edits still
styles the offsets it computed from its own snapshot of the text.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional

from PySide6.QtCore import QObject, Signal
from PySide6.QtGui import QTextCharFormat, QTextCursor, QTextDocument, QTextFormat

from chirp.app import config
from chirp.app.url_scanner import UrlMatch, UrlScanner

logger = logging.getLogger(__name__)

# The url is saved as a property on the character format, so it can be
# retrieved later from any position inside the highlighted text.
URL_ATTRIBUTE = "url.attribute"
URL_PROPERTY = int(QTextFormat.UserProperty) + 1


def _utf16_positions(text: str) -> list[int]:
    """Map each str index of ``text`` (plus its end) to a QTextDocument offset."""
    positions = [0] * (len(text) + 1)
    pos = 0
    for idx, ch in enumerate(text):
        positions[idx] = pos
        pos += 2 if ord(ch) > 0xFFFF else 1
    positions[len(text)] = pos
    return positions


def url_format(base: QTextCharFormat, url: str) -> QTextCharFormat:
    """Return a copy of ``base`` underlined and carrying ``url``."""
    fmt = QTextCharFormat(base)
    fmt.setFontUnderline(True)
    fmt.setProperty(URL_PROPERTY, url)
    fmt.setAnchor(True)
    fmt.setAnchorHref(url)
    return fmt


class UrlDocumentFilter(QObject):
    """Inserts text into a ``QTextDocument`` and highlights the urls in it."""

    urlsFound = Signal(object, object)  # list[UrlMatch] (document offsets), QTextCharFormat
    urlHighlighted = Signal(int, int, str)  # start, length, url

    def __init__(
        self,
        document: QTextDocument,
        parent: Optional[QObject] = None,
        scanner: Optional[UrlScanner] = None,
        max_workers: Optional[int] = None,
    ) -> None:
        super().__init__(parent)
        self._document = document
        self._scanner = scanner or UrlScanner()
        workers = max_workers or config.load_url_scan_workers()
        self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="url-scan")
        self.urlsFound.connect(self._apply_matches)

    @property
    def document(self) -> QTextDocument:
        return self._document

    def insert_string(
        self, offset: int, text: str, char_format: Optional[QTextCharFormat] = None
    ) -> Future:
        """Insert ``text`` at ``offset`` and scan it for urls in the background.

        Returns the scan future; the styles themselves are applied on the GUI
        thread once the future's result is delivered.

        Raises:
            ValueError: ``offset`` is outside the document.
        """
        doc_end = self._document.characterCount() - 1
        if offset < 0 or offset > doc_end:
            raise ValueError(f"Insert offset {offset} outside document (0..{doc_end})")
        fmt = QTextCharFormat(char_format) if char_format is not None else QTextCharFormat()
        cursor = QTextCursor(self._document)
        cursor.setPosition(offset)
        cursor.insertText(text, fmt)
        # Copy now, or else it could change if another message comes
        snapshot = QTextCharFormat(fmt)
        return self._executor.submit(self._scan_job, text, offset, snapshot)

    def highlight_now(
        self, offset: int, text: str, char_format: Optional[QTextCharFormat] = None
    ) -> list[UrlMatch]:
        """Scan already inserted ``text`` and style its urls synchronously."""
        fmt = QTextCharFormat(char_format) if char_format is not None else QTextCharFormat()
        matches = self._document_matches(text, offset)
        self._apply_matches(matches, fmt)
        return matches

    def _document_matches(self, text: str, offset: int) -> list[UrlMatch]:
        matches = self._scanner.scan(text)
        if not matches:
            return []
        positions = _utf16_positions(text)
        return [
            UrlMatch(offset + positions[m.start], offset + positions[m.end], m.url)
            for m in matches
        ]

    def _scan_job(self, text: str, offset: int, fmt: QTextCharFormat) -> list[UrlMatch]:
        try:
            matches = self._document_matches(text, offset)
        except Exception:
            logger.exception("Url scan failed at offset %d", offset)
            return []
        if matches:
            self.urlsFound.emit(matches, fmt)
        return matches

    def _apply_matches(self, matches: list[UrlMatch], fmt: QTextCharFormat) -> None:
        for match in matches:
            self.apply_style(match.start, match.length, url_format(fmt, match.url))
            self.urlHighlighted.emit(match.start, match.length, match.url)

    def apply_style(
        self, start: int, length: int, fmt: QTextCharFormat, replace: bool = False
    ) -> None:
        """Apply ``fmt`` to ``[start, start + length)``, merging unless ``replace``."""
        doc_end = max(0, self._document.characterCount() - 1)
        end = min(start + length, doc_end)
        if start < 0 or start >= end:
            logger.debug("Skipping stale url span %d+%d (document end %d)", start, length, doc_end)
            return
        cursor = QTextCursor(self._document)
        cursor.setPosition(start)
        cursor.setPosition(end, QTextCursor.KeepAnchor)
        if replace:
            cursor.setCharFormat(fmt)
        else:
            cursor.mergeCharFormat(fmt)

    def url_at(self, position: int) -> Optional[str]:
        """Return the url stored at document ``position``, if any."""
        if position < 0 or position >= self._document.characterCount() - 1:
            return None
        cursor = QTextCursor(self._document)
        # charFormat() reports the character before the cursor.
        cursor.setPosition(position + 1)
        value = cursor.charFormat().property(URL_PROPERTY)
        return value if isinstance(value, str) and value else None

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
