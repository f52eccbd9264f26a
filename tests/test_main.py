from PySide6.QtCore import QtMsgType

from chirp.app import main


def test_qt_cursor_warnings_reach_stderr(capsys):
    main._qt_message_handler(QtMsgType.QtWarningMsg, None, "QTextCursor::setPosition: Position '50' out of range")
    assert "QTextCursor::setPosition" in capsys.readouterr().err


def test_parse_args_defaults(monkeypatch):
    monkeypatch.delenv("CHIRP_NICK", raising=False)
    args = main._parse_args([])
    assert args.nick == "me"
    assert args.sound is None
    assert args.echo is None


def test_parse_args_sound_and_echo():
    args = main._parse_args(["--nick", "amy", "--sound", "ding.wav", "--echo", "250"])
    assert (args.nick, args.sound, args.echo) == ("amy", "ding.wav", 250)
