"""
Services the session controller talks to: the start-time store, the sound
cue, and the notifier contract.
"""
from __future__ import annotations
import datetime
import json
import logging
import os
import platform
import subprocess
import threading
import time
from typing import Callable, Optional

from pacing_clock import as_aware

logger = logging.getLogger(__name__)

IS_MAC = platform.system() == "Darwin"
IS_WIN = platform.system() == "Windows"

STATE_FILE = os.path.join(os.path.expanduser("~"), "power_hour_state.json")
DEFAULT_SOUND = os.path.join(os.path.dirname(os.path.abspath(__file__)), "sound.mp3")
CUE_VOLUME = 0.5


# ─── Start Time Store ─────────────────────────────────────────
class StartTimeStore:
    """Persists the single run start timestamp as JSON."""

    def __init__(self, path: str = STATE_FILE):
        self.path = path

    def get_start_time(self) -> Optional[datetime.datetime]:
        if not os.path.exists(self.path):
            return None
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (ValueError, IOError, OSError) as e:
            # ValueError covers JSONDecodeError and UnicodeDecodeError
            logger.warning("State load error: %s. Ignoring saved start time.", e)
            return None
        raw = data.get("start_time") if isinstance(data, dict) else None
        if not raw:
            return None
        try:
            # naive values from older state files are local time
            return as_aware(datetime.datetime.fromisoformat(raw))
        except (TypeError, ValueError, OverflowError, OSError):
            logger.warning("Unreadable saved start time %r", raw)
            return None

    def set_start_time(self, value: Optional[datetime.datetime]) -> None:
        data = {"start_time": value.isoformat() if value else None}
        try:
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
        except (IOError, OSError) as e:
            logger.error("State save error: %s", e)


# ─── Notifier ─────────────────────────────────────────────────
class Notifier:
    """Notification contract. This base version only logs (headless use)."""

    def request_permission(self, callback: Callable[[bool], None]) -> None:
        callback(True)

    def schedule_notification(self, body_text: str, badge_count: int,
                              delay_seconds: float) -> None:
        logger.info("Notification in %ss: %s", delay_seconds, body_text)

    def set_badge_count(self, count: int) -> None:
        logger.debug("Badge: %d", count)


# ─── Sound Cue ────────────────────────────────────────────────
_sound_counter = 0


class SoundCue:
    """Plays the cue sound at a fixed volume without blocking the caller."""

    def __init__(self, custom_path: str = "", enabled: bool = True,
                 default_path: str = DEFAULT_SOUND):
        self.custom_path = custom_path
        self.enabled = enabled
        self.default_path = default_path

    def sound_path(self) -> Optional[str]:
        for path in (self.custom_path, self.default_path):
            if path and os.path.exists(path):
                return path
        return None

    def play_cue(self) -> None:
        if not self.enabled:
            return
        path = self.sound_path()
        if path is None:
            logger.warning("Sound asset not found; using system chime")
        elif self._play_file(path):
            return
        self._play_system_chime()

    def _play_file(self, path: str) -> bool:
        try:
            if IS_WIN:
                self._play_file_windows(path)
                return True
            if IS_MAC:
                subprocess.Popen(["afplay", "-v", str(CUE_VOLUME), path])
                return True
            volume = str(int(CUE_VOLUME * 100))
            players = [
                ["mpv", "--no-terminal", "--no-video", f"--volume={volume}", path],
                ["ffplay", "-nodisp", "-autoexit", "-loglevel", "quiet", "-volume", volume, path],
                ["paplay", f"--volume={int(CUE_VOLUME * 65536)}", path],
                ["aplay", "-q", path],
            ]
            for cmd in players:
                try:
                    subprocess.Popen(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
                    return True
                except FileNotFoundError:
                    continue
            logger.warning("No audio player found for %s", path)
        except Exception as e:
            logger.warning("Could not play %s: %s", path, e)
        return False

    @staticmethod
    def _play_file_windows(path: str) -> None:
        # MCI plays mp3/wav asynchronously; volume is 0-1000
        import ctypes
        global _sound_counter
        winmm = ctypes.windll.winmm
        _sound_counter += 1
        alias = f"cue_{_sound_counter}"
        winmm.mciSendStringW(f'open "{path}" alias {alias}', None, 0, None)
        winmm.mciSendStringW(f"setaudio {alias} volume to {int(CUE_VOLUME * 1000)}", None, 0, None)
        winmm.mciSendStringW(f"play {alias}", None, 0, None)

        def cleanup():
            time.sleep(30)
            try:
                winmm.mciSendStringW(f"close {alias}", None, 0, None)
            except Exception as e:
                logger.debug("MCI close failed: %s", e)
        threading.Thread(target=cleanup, daemon=True).start()

    @staticmethod
    def _play_system_chime() -> None:
        try:
            if IS_WIN:
                import winsound
                winsound.PlaySound("SystemAsterisk", winsound.SND_ALIAS | winsound.SND_ASYNC)
            elif IS_MAC:
                subprocess.Popen(["afplay", "-v", str(CUE_VOLUME),
                                  "/System/Library/Sounds/Glass.aiff"])
            else:
                for cmd in [["paplay", "/usr/share/sounds/freedesktop/stereo/message.oga"],
                            ["aplay", "-q", "/usr/share/sounds/sound-icons/prompt.wav"]]:
                    try:
                        subprocess.Popen(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
                        return
                    except FileNotFoundError:
                        continue
                logger.warning("No system chime player available")
        except Exception as e:
            logger.warning("System chime failed: %s", e)
