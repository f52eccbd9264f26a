"""Load a wav file once and play it on demand.

Used for the new-message cue. Playback goes through QtMultimedia; the wav
header is checked with the standard ``wave`` module first so an unreadable or
unsupported file is reported before any audio device is touched.
"""

from __future__ import annotations

import logging
import threading
import time
import wave
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Protocol

from PySide6.QtCore import QEventLoop, QMetaObject, QObject, Qt, QTimer, QUrl, Slot
from PySide6.QtMultimedia import QAudioFormat, QMediaDevices, QSoundEffect

logger = logging.getLogger(__name__)

WAV_SUFFIX = ".wav"
LOAD_TIMEOUT_MS = 5000

_STATUS_READY = QSoundEffect.Status.Ready
_STATUS_ERROR = QSoundEffect.Status.Error
_LOADING_STATES = (QSoundEffect.Status.Null, QSoundEffect.Status.Loading)


class SoundLoadError(RuntimeError):
    pass


class UnsupportedAudioFileError(SoundLoadError):
    pass


class AudioReadError(SoundLoadError):
    pass


class LineUnavailableError(SoundLoadError):
    pass


@dataclass(frozen=True)
class WavInfo:
    """Header facts about a wav file."""
    channels: int
    sample_width: int
    frame_rate: int
    frame_count: int

    @property
    def duration_s(self) -> float:
        if self.frame_rate <= 0:
            return 0.0
        return self.frame_count / self.frame_rate


class Clip(Protocol):
    def is_playing(self) -> bool: ...

    def rewind(self) -> None: ...

    def play(self) -> None: ...


ClipLoader = Callable[[str, WavInfo], Clip]


def read_wav_info(path: str) -> WavInfo:
    """Read the header of ``path``.

    Raises:
        UnsupportedAudioFileError: not a PCM wav file the player understands.
        AudioReadError: the file could not be read.
    """
    try:
        with wave.open(path, "rb") as wav:
            info = WavInfo(
                channels=wav.getnchannels(),
                sample_width=wav.getsampwidth(),
                frame_rate=wav.getframerate(),
                frame_count=wav.getnframes(),
            )
    except (wave.Error, EOFError) as exc:
        raise UnsupportedAudioFileError(f"Unsupported audio file {path}: {exc}") from exc
    except OSError as exc:
        raise AudioReadError(f"Could not read {path}: {exc}") from exc
    if info.sample_width not in (1, 2, 4):
        raise UnsupportedAudioFileError(
            f"Unsupported sample width {info.sample_width * 8} bits in {path}"
        )
    return info


class QtSoundClip(QObject):
    """A :class:`Clip` backed by ``QSoundEffect``.

    The effect belongs to the thread that created the clip. ``rewind`` and
    ``play`` are queued onto that thread, so any thread may call them.
    """

    def __init__(self, effect, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._effect = effect
        effect.setParent(self)
        self._playing = bool(effect.isPlaying())
        effect.playingChanged.connect(self._on_playing_changed)

    @property
    def effect(self):
        return self._effect

    def is_playing(self) -> bool:
        return self._playing

    def rewind(self) -> None:
        # QSoundEffect always starts from the first frame after stop().
        QMetaObject.invokeMethod(self, "_stop", Qt.QueuedConnection)

    def play(self) -> None:
        # Playing from now on, so no second start gets queued behind this one.
        self._playing = True
        QMetaObject.invokeMethod(self, "_play", Qt.QueuedConnection)

    @Slot()
    def _stop(self) -> None:
        self._effect.stop()

    @Slot()
    def _play(self) -> None:
        self._effect.play()

    @Slot()
    def _on_playing_changed(self) -> None:
        self._playing = bool(self._effect.isPlaying())


def wait_for_status(effect, timeout_ms: int = LOAD_TIMEOUT_MS):
    """Run a local event loop until ``effect`` leaves the loading states.

    Returns the final status, which is still a loading state on timeout.
    """
    loop = QEventLoop()
    timer = QTimer()
    timer.setSingleShot(True)
    timer.timeout.connect(loop.quit)
    effect.statusChanged.connect(loop.quit)
    deadline = time.monotonic() + timeout_ms / 1000.0
    try:
        while effect.status() in _LOADING_STATES:
            remaining_ms = int((deadline - time.monotonic()) * 1000)
            if remaining_ms <= 0:
                break
            timer.start(remaining_ms)
            loop.exec()
    finally:
        timer.stop()
        effect.statusChanged.disconnect(loop.quit)
    return effect.status()


def load_qt_clip(path: str, info: WavInfo) -> QtSoundClip:
    """Build a ``QSoundEffect`` for ``path`` on the default output device.

    Must be called on the GUI thread. Returns only once Qt has decoded the
    file.

    Raises:
        LineUnavailableError: no output device, the device cannot play the
            file's sample format, or decoding never finished.
        UnsupportedAudioFileError: Qt could not decode the file.
    """
    device = QMediaDevices.defaultAudioOutput()
    if device.isNull():
        raise LineUnavailableError("No audio output device available")

    sample_formats = {
        1: QAudioFormat.SampleFormat.UInt8,
        2: QAudioFormat.SampleFormat.Int16,
        4: QAudioFormat.SampleFormat.Int32,
    }
    fmt = QAudioFormat()
    fmt.setSampleRate(info.frame_rate)
    fmt.setChannelCount(info.channels)
    fmt.setSampleFormat(sample_formats[info.sample_width])
    if not device.isFormatSupported(fmt):
        raise LineUnavailableError(
            f"Output device '{device.description()}' cannot play "
            f"{info.channels}ch/{info.frame_rate}Hz/{info.sample_width * 8}bit audio"
        )

    effect = QSoundEffect()
    effect.setAudioDevice(device)
    effect.setSource(QUrl.fromLocalFile(str(Path(path).resolve())))
    status = wait_for_status(effect)
    if status == _STATUS_READY:
        return QtSoundClip(effect)
    effect.deleteLater()
    if status == _STATUS_ERROR:
        raise UnsupportedAudioFileError(f"Qt could not decode {path}")
    raise LineUnavailableError(f"Audio backend did not finish loading {path}")


class SoundBeeper:
    """Can load a wav file, and play it."""

    def __init__(self, clip_loader: Optional[ClipLoader] = None) -> None:
        self._clip: Optional[Clip] = None
        self._beep_lock = threading.Lock()
        self._clip_loader: ClipLoader = clip_loader or load_qt_clip

    @property
    def has_clip(self) -> bool:
        return self._clip is not None

    def beep(self) -> None:
        """Play the loaded clip from the start, unless it is already playing."""
        with self._beep_lock:
            clip = self._clip
            if clip is not None and not clip.is_playing():
                clip.rewind()
                clip.play()

    def load_wav_clip(self, file_name: str) -> bool:
        """Load a wav file, replacing the current clip.

        Paths without a ``.wav`` suffix are ignored. Load failures are logged
        and keep the current clip. Returns True when a new clip was loaded.
        """
        if not file_name.endswith(WAV_SUFFIX):
            logger.debug("Ignoring non-wav sound file %s", file_name)
            return False
        try:
            info = read_wav_info(file_name)
            clip = self._clip_loader(file_name, info)
        except UnsupportedAudioFileError as exc:
            logger.warning("Unsupported sound file: %s", exc)
            return False
        except AudioReadError as exc:
            logger.warning("Failed to read sound file: %s", exc)
            return False
        except LineUnavailableError as exc:
            logger.warning("No audio line for sound file %s: %s", file_name, exc)
            return False
        self._clip = clip
        logger.info("Loaded sound %s (%.2fs)", file_name, info.duration_s)
        return True
