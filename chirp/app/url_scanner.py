"""URL detection for chat text.

Three kinds of urls are recognized:

- protocol://host
- host.name
- \\\\host (must follow a space)

Detection is anchor driven: the text is searched for the literal anchors
``"://"``, ``"."`` and ``" \\"`` and each anchor is verified against a stricter
pattern covering the whitespace-delimited token around it.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)

PROTOCOL_ANCHOR = "://"
DOT_ANCHOR = "."
BACKSLASH_ANCHOR = " \\"

# Any character except a line terminator.
_LINE_CHAR = "[^\n\r\u0085\u2028\u2029]"

PROTOCOL_PATTERN = re.compile(r"\w{2,}://\S+" + _LINE_CHAR + "+", re.ASCII)
DOT_PATTERN = re.compile(r"\w+\S*\.[a-z]{2,4}" + _LINE_CHAR + "+", re.ASCII)
BACKSLASH_PATTERN = re.compile(r"\\\\[A-Za-z0-9]" + _LINE_CHAR + "+", re.ASCII)

_DEBUG_URLS = os.getenv("CHIRP_DEBUG_URLS", "0") not in ("0", "false", "False", "")


@dataclass(frozen=True)
class UrlMatch:
    """A url found in scanned text. ``url`` is always ``text[start:end]``."""
    start: int
    end: int
    url: str

    @property
    def length(self) -> int:
        return self.end - self.start

    def shifted(self, base: int) -> "UrlMatch":
        if not base:
            return self
        return UrlMatch(self.start + base, self.end + base, self.url)


def _leads(pos: int, first_match: int) -> bool:
    """True when an anchor at ``pos`` can still beat the current first match."""
    return pos != -1 and (first_match == -1 or pos < first_match)


def _token_start(text: str, anchor: int) -> int:
    return text.rfind(" ", 0, anchor + 1) + 1


class UrlScanner:
    """Stateless url finder; one instance can be shared between threads."""

    def __init__(self) -> None:
        self.protocol_pattern = PROTOCOL_PATTERN
        self.dot_pattern = DOT_PATTERN
        self.backslash_pattern = BACKSLASH_PATTERN

    def find_url_pos(self, text: str, offset: int = 0) -> int:
        """Return the start of the first url at or after ``offset``, or -1.

        Candidates are tested against ``text`` up to, but not including, its
        last character. A candidate failing its pattern moves that anchor's
        cursor forward and the checks run again, so a failed anchor can never
        hide a later url of the same kind.
        """
        if len(text) < 2:
            return -1
        limit = len(text) - 1

        prot = text.find(PROTOCOL_ANCHOR, offset)
        dot = text.find(DOT_ANCHOR, offset)
        backslash = text.find(BACKSLASH_ANCHOR, offset)

        first_match = -1
        retry = True

        while retry:
            retry = False

            if _leads(prot, first_match):
                prot_start = _token_start(text, prot)
                if self.protocol_pattern.fullmatch(text, prot_start, limit):
                    first_match = prot_start
                else:
                    prot = text.find(PROTOCOL_ANCHOR, prot + 1)
                    if _leads(prot, first_match):
                        retry = True

            if _leads(backslash, first_match):
                if self.backslash_pattern.fullmatch(text, backslash + 1, limit):
                    first_match = backslash + 1
                else:
                    backslash = text.find(BACKSLASH_ANCHOR, backslash + 1)
                    if _leads(backslash, first_match):
                        retry = True

            if _leads(dot, first_match):
                dot_start = _token_start(text, dot)
                if self.dot_pattern.fullmatch(text, dot_start, limit):
                    first_match = dot_start
                else:
                    dot = text.find(DOT_ANCHOR, dot + 1)
                    if _leads(dot, first_match):
                        retry = True

        return first_match

    @staticmethod
    def find_url_end(text: str, start: int) -> int:
        """Return where the url starting at ``start`` stops.

        The first space ends it, then the first newline. With neither, the
        url runs to the end of the text.
        """
        stop = text.find(" ", start)
        if stop == -1:
            stop = text.find("\n", start)
        if stop == -1:
            stop = len(text)
        return stop

    def scan(self, text: str, base_offset: int = 0) -> list[UrlMatch]:
        """Find every url in ``text``, left to right and non-overlapping.

        Returned offsets are shifted by ``base_offset`` so they can be used
        directly against the document ``text`` was inserted into.
        """
        matches: list[UrlMatch] = []
        stop = 0
        start = self.find_url_pos(text, 0)
        while start != -1:
            if start < stop:
                # Only possible when a token spans a line break.
                logger.debug("Url candidate at %d overlaps previous match ending at %d", start, stop)
                break
            stop = self.find_url_end(text, start)
            if stop <= start:
                break
            matches.append(UrlMatch(start, stop, text[start:stop]).shifted(base_offset))
            start = self.find_url_pos(text, stop)
        if _DEBUG_URLS and matches:
            logger.debug("Found urls %s", [m.url for m in matches])
        return matches


_default_scanner = UrlScanner()


def scan(text: str, base_offset: int = 0) -> list[UrlMatch]:
    """Module-level convenience around a shared :class:`UrlScanner`."""
    return _default_scanner.scan(text, base_offset)
