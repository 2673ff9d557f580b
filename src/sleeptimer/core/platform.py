"""Platform controllers -- pause media and suspend the host machine.

Each controller shells out to the platform's own tooling and reports the
outcome as a :class:`ControlResult`.  They never raise: any failure is
folded into ``success=False`` with a human-readable message.
"""

from __future__ import annotations

import logging
import subprocess
import sys
from dataclasses import dataclass

logger = logging.getLogger(__name__)

COMMAND_TIMEOUT_SECONDS = 10

_SAFARI_PAUSE = """
tell application "System Events"
    if (exists process "Safari") then
        tell application "Safari"
            do JavaScript "document.querySelectorAll('video, audio').forEach(m => m.pause())" in current tab of front window
        end tell
    end if
end tell
"""

_CHROME_PAUSE = """
tell application "System Events"
    if (exists process "Google Chrome") then
        tell application "Google Chrome"
            execute front window's active tab javascript "document.querySelectorAll('video, audio').forEach(m => m.pause())"
        end tell
    end if
end tell
"""

_WINDOWS_MEDIA_KEY = """
Add-Type -AssemblyName System.Windows.Forms
[System.Windows.Forms.SendKeys]::SendWait("{MEDIA_PLAY_PAUSE}")
"""


@dataclass(frozen=True)
class ControlResult:
    """Outcome of a media or power command."""

    success: bool
    message: str


def get_platform() -> str:
    """Return ``darwin``, ``linux``, ``win32`` or ``unknown``."""
    if sys.platform in ("darwin", "linux", "win32"):
        return sys.platform
    return "unknown"


def _run(*cmd: str) -> None:
    """Run *cmd*, raising on a missing binary, a timeout or a non-zero exit."""
    logger.debug("Running %s", cmd[0])
    subprocess.run(cmd, check=True, capture_output=True, timeout=COMMAND_TIMEOUT_SECONDS)


def _succeeds(*cmd: str) -> bool:
    try:
        _run(*cmd)
    except (OSError, subprocess.SubprocessError) as exc:
        logger.debug("%s failed: %s", cmd[0], exc)
        return False
    return True


class MediaController:
    """Pauses whatever media is playing on this machine."""

    def __init__(self, platform: str | None = None) -> None:
        self._platform = platform if platform is not None else get_platform()

    def pause(self) -> ControlResult:
        try:
            return self._pause()
        except Exception as exc:
            return ControlResult(False, f"Error pausing media: {exc}")

    def _pause(self) -> ControlResult:
        if self._platform == "darwin":
            # Either browser may not be running; both are best effort.
            _succeeds("osascript", "-e", _SAFARI_PAUSE)
            _succeeds("osascript", "-e", _CHROME_PAUSE)
            return ControlResult(True, "Media pause commands sent")

        if self._platform == "linux":
            if _succeeds("playerctl", "-a", "pause"):
                return ControlResult(True, "All media paused via playerctl")
            if _succeeds(
                "dbus-send",
                "--print-reply",
                "--dest=org.mpris.MediaPlayer2.chromium",
                "/org/mpris/MediaPlayer2",
                "org.mpris.MediaPlayer2.Player.Pause",
            ):
                return ControlResult(True, "Media paused via dbus")
            return ControlResult(
                False, "Could not pause media. Install playerctl for best results."
            )

        if self._platform == "win32":
            _run("powershell", "-Command", _WINDOWS_MEDIA_KEY)
            return ControlResult(True, "Media key sent")

        return ControlResult(False, f"Unsupported platform: {self._platform}")


class PowerController:
    """Puts this machine to sleep."""

    def __init__(self, platform: str | None = None) -> None:
        self._platform = platform if platform is not None else get_platform()

    def suspend(self) -> ControlResult:
        try:
            return self._suspend()
        except Exception as exc:
            return ControlResult(False, f"Error suspending system: {exc}")

    def _suspend(self) -> ControlResult:
        if self._platform == "darwin":
            _run("pmset", "sleepnow")
            return ControlResult(True, "System going to sleep...")

        if self._platform == "linux":
            if _succeeds("systemctl", "suspend"):
                return ControlResult(True, "System suspending via systemctl...")
            if _succeeds("pm-suspend"):
                return ControlResult(True, "System suspending via pm-suspend...")
            return ControlResult(False, "Could not suspend. Try: sudo systemctl suspend")

        if self._platform == "win32":
            _run("rundll32.exe", "powrprof.dll,SetSuspendState", "0,1,0")
            return ControlResult(True, "System suspending...")

        return ControlResult(False, f"Unsupported platform: {self._platform}")


class NullMediaController:
    """Dry-run stand-in that only logs."""

    def pause(self) -> ControlResult:
        logger.info("Dry run: not pausing media")
        return ControlResult(True, "Dry run: media left playing")


class NullPowerController:
    """Dry-run stand-in that only logs."""

    def suspend(self) -> ControlResult:
        logger.info("Dry run: not suspending")
        return ControlResult(True, "Dry run: system left awake")
