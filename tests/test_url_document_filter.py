import time

import pytest
from PySide6.QtCore import QCoreApplication
from PySide6.QtGui import QTextCharFormat, QTextCursor, QTextDocument

from chirp.app.ui.url_document_filter import URL_PROPERTY, UrlDocumentFilter


@pytest.fixture
def document(app):
    return QTextDocument()


@pytest.fixture
def url_filter(document):
    filt = UrlDocumentFilter(document, max_workers=1)
    yield filt
    filt.shutdown()


def _format_at(document, position):
    cursor = QTextCursor(document)
    cursor.setPosition(position + 1)
    return cursor.charFormat()


def _wait_for(predicate, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        QCoreApplication.processEvents()
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_highlight_now_marks_exact_range(document, url_filter):
    text = "check http://example.com/x now"
    document.setPlainText(text)
    matches = url_filter.highlight_now(0, text)
    assert [(m.start, m.end) for m in matches] == [(6, 26)]
    assert url_filter.url_at(5) is None
    assert url_filter.url_at(6) == "http://example.com/x"
    assert url_filter.url_at(25) == "http://example.com/x"
    assert url_filter.url_at(26) is None
    fmt = _format_at(document, 10)
    assert fmt.fontUnderline()
    assert fmt.anchorHref() == "http://example.com/x"
    assert fmt.property(URL_PROPERTY) == "http://example.com/x"
    assert not _format_at(document, 2).fontUnderline()


def test_insert_string_scans_in_background(document, url_filter):
    text = "go http://a.com then http://b.com\n"
    future = url_filter.insert_string(0, text)
    matches = future.result(timeout=5)
    assert document.toPlainText().startswith("go http://a.com then http://b.com")
    assert [m.url for m in matches] == ["http://a.com", "http://b.com"]
    assert _wait_for(lambda: url_filter.url_at(21) == "http://b.com")
    assert url_filter.url_at(3) == "http://a.com"
    assert url_filter.url_at(16) is None


def test_insert_offset_is_applied(document, url_filter):
    url_filter.insert_string(0, "hello\n").result(timeout=5)
    future = url_filter.insert_string(6, "see example.com/page ok\n")
    matches = future.result(timeout=5)
    assert [(m.start, m.end) for m in matches] == [(10, 26)]
    assert _wait_for(lambda: url_filter.url_at(10) == "example.com/page")


def test_format_is_snapshotted_at_insert(document, url_filter):
    fmt = QTextCharFormat()
    fmt.setFontOverline(True)
    future = url_filter.insert_string(0, "visit example.com/page today\n", fmt)
    fmt.setFontStrikeOut(True)
    future.result(timeout=5)
    assert _wait_for(lambda: url_filter.url_at(6) is not None)
    styled = _format_at(document, 8)
    assert styled.fontUnderline()
    assert styled.fontOverline()
    assert not styled.fontStrikeOut()


def test_no_urls_leaves_document_alone(document, url_filter):
    future = url_filter.insert_string(0, "x. y nothing here\n")
    assert future.result(timeout=5) == []
    QCoreApplication.processEvents()
    assert not _format_at(document, 0).fontUnderline()


def test_offsets_account_for_surrogate_pairs(document, url_filter):
    text = "\U0001F389 http://a.com ok"
    document.setPlainText(text)
    matches = url_filter.highlight_now(0, text)
    assert [(m.start, m.end) for m in matches] == [(3, 15)]
    assert url_filter.url_at(3) == "http://a.com"


def test_stale_span_is_ignored(document, url_filter):
    document.setPlainText("short")
    url_filter.apply_style(50, 10, QTextCharFormat())
    assert document.toPlainText() == "short"


def test_url_highlighted_signal(document, url_filter):
    seen = []
    url_filter.urlHighlighted.connect(lambda start, length, url: seen.append((start, length, url)))
    text = "share \\\\server\\share please"
    document.setPlainText(text)
    url_filter.highlight_now(0, text)
    assert seen == [(6, 14, "\\\\server\\share")]


@pytest.mark.parametrize("offset", [-1, 50])
def test_insert_outside_document_is_rejected(document, url_filter, offset):
    document.setPlainText("hello")
    with pytest.raises(ValueError):
        url_filter.insert_string(offset, " see http://a.com ok")
    assert document.toPlainText() == "hello"


def test_insert_at_document_end_is_allowed(document, url_filter):
    document.setPlainText("hello")
    future = url_filter.insert_string(5, " see http://a.com ok\n")
    assert [(m.start, m.end) for m in future.result(timeout=5)] == [(10, 22)]
    assert document.toPlainText().startswith("hello see http://a.com ok")
    assert _wait_for(lambda: url_filter.url_at(10) == "http://a.com")
