from __future__ import annotations

import logging
from typing import Optional

from PySide6.QtCore import QTimer
from PySide6.QtGui import QAction
from PySide6.QtWidgets import (
    QFileDialog,
    QHBoxLayout,
    QLineEdit,
    QMainWindow,
    QPushButton,
    QToolBar,
    QVBoxLayout,
    QWidget,
)

from chirp.app import config
from chirp.app.sound_beeper import SoundBeeper
from .chat_view import ChatTextView


logger = logging.getLogger(__name__)


class ChatWindow(QMainWindow):
    """Single-room chat window: message log, input line and sound toggle."""

    def __init__(
        self,
        nick: str,
        beeper: Optional[SoundBeeper] = None,
        echo_delay_ms: Optional[int] = None,
        parent=None,
    ) -> None:
        super().__init__(parent)
        self.nick = nick
        self.beeper = beeper or SoundBeeper()
        self._echo_delay_ms = echo_delay_ms
        self.setWindowTitle(f"Chirp - {nick}")

        self.chat_view = ChatTextView()
        self.input = QLineEdit()
        self.input.setPlaceholderText("Write a message")
        self.input.returnPressed.connect(self.send_current_message)
        send_button = QPushButton("Send")
        send_button.clicked.connect(self.send_current_message)

        input_row = QHBoxLayout()
        input_row.addWidget(self.input, 1)
        input_row.addWidget(send_button)
        layout = QVBoxLayout()
        layout.addWidget(self.chat_view, 1)
        layout.addLayout(input_row)
        central = QWidget()
        central.setLayout(layout)
        self.setCentralWidget(central)

        toolbar = QToolBar("Main")
        toolbar.setMovable(False)
        self.addToolBar(toolbar)
        self.sound_action = QAction("Sound", self)
        self.sound_action.setCheckable(True)
        self.sound_action.setChecked(config.load_sound_enabled())
        self.sound_action.toggled.connect(config.save_sound_enabled)
        toolbar.addAction(self.sound_action)
        load_sound_action = QAction("Load Sound...", self)
        load_sound_action.triggered.connect(self._choose_sound_file)
        toolbar.addAction(load_sound_action)

        self.chat_view.linkHovered.connect(self._on_link_hovered)

    def load_sound(self, path: str) -> bool:
        loaded = self.beeper.load_wav_clip(path)
        if loaded:
            config.save_sound_file(path)
            self.statusBar().showMessage(f"Sound loaded: {path}", 3000)
        else:
            self.statusBar().showMessage(f"Could not load sound: {path}", 5000)
        return loaded

    def send_current_message(self) -> None:
        text = self.input.text().strip()
        if not text:
            return
        self.input.clear()
        self.chat_view.append_message(self.nick, text)
        if self._echo_delay_ms is not None:
            QTimer.singleShot(self._echo_delay_ms, lambda: self.receive_message("echo", text))

    def receive_message(self, nick: str, text: str) -> None:
        """Show a message from someone else and play the new-message cue."""
        self.chat_view.append_message(nick, text)
        if self.sound_action.isChecked():
            self.beeper.beep()

    def shutdown(self) -> None:
        self.chat_view.url_filter.shutdown(wait=True)

    def _choose_sound_file(self) -> None:
        path, _ = QFileDialog.getOpenFileName(self, "Choose Sound", "", "Wave files (*.wav)")
        if path:
            self.load_sound(path)

    def _on_link_hovered(self, url: str) -> None:
        if url:
            self.statusBar().showMessage(url)
        else:
            self.statusBar().clearMessage()
