"""
Playback of backend-synthesized narration audio.
"""
import os
import subprocess
import tempfile
import threading
import logging
from typing import List, Optional

logger = logging.getLogger("speech_tts")


class PlaybackError(RuntimeError):
    """Narration audio could not be played."""


def _suffix_for(audio: bytes) -> str:
    if audio[:4] == b"RIFF":
        return ".wav"
    if audio[:4] == b"OggS":
        return ".ogg"
    # ID3 tag or a bare MPEG frame sync
    return ".mp3"


def _player_commands(path: str, suffix: str) -> List[List[str]]:
    commands = [
        ["afplay", path],                                   # macOS
        ["ffplay", "-nodisp", "-autoexit", "-loglevel", "quiet", path],
    ]
    if suffix == ".wav":
        commands.append(["aplay", "-q", path])              # Linux, WAV only
    return commands


class AudioPlayer:
    """Plays audio bytes through the first available system player."""

    def __init__(self):
        self._proc: Optional[subprocess.Popen] = None
        self._lock = threading.Lock()
        self._stopped = False

    def play(self, audio: bytes) -> None:
        """
        Play audio to completion (blocking).

        Raises:
            PlaybackError: if no player could play the audio
        """
        if not audio:
            raise PlaybackError("Empty narration audio")

        suffix = _suffix_for(audio)
        with tempfile.NamedTemporaryFile(suffix=suffix, delete=False) as tmp_file:
            path = tmp_file.name
            tmp_file.write(audio)

        self._stopped = False
        try:
            for command in _player_commands(path, suffix):
                try:
                    with self._lock:
                        self._proc = subprocess.Popen(
                            command, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL
                        )
                        proc = self._proc
                except FileNotFoundError:
                    continue

                returncode = proc.wait()
                with self._lock:
                    self._proc = None
                if self._stopped or returncode == 0:
                    return
                logger.warning(f"{command[0]} exited with {returncode}")

            raise PlaybackError("No audio player could play the narration")
        finally:
            try:
                os.unlink(path)
            except OSError:
                pass

    def stop(self) -> None:
        """Cut off narration that is playing right now."""
        with self._lock:
            self._stopped = True
            if self._proc is not None and self._proc.poll() is None:
                self._proc.terminate()
                logger.debug("Narration playback stopped")
