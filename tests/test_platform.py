"""Tests for the media and power controllers.

``subprocess.run`` is patched throughout so no real commands are executed.
"""

from __future__ import annotations

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from sleeptimer.core.platform import (
    ControlResult,
    MediaController,
    NullMediaController,
    NullPowerController,
    PowerController,
    get_platform,
)


def _fail_on(*binaries: str):
    """Return a ``subprocess.run`` side effect failing for the given binaries."""

    def run(cmd, **kwargs):
        if cmd[0] in binaries:
            raise subprocess.CalledProcessError(1, cmd)
        return subprocess.CompletedProcess(cmd, 0)

    return run


def _commands(mock_run: MagicMock) -> list[str]:
    return [call.args[0][0] for call in mock_run.call_args_list]


# ---------------------------------------------------------------------------
# get_platform()
# ---------------------------------------------------------------------------


class TestGetPlatform:
    @pytest.mark.parametrize("name", ["darwin", "linux", "win32"])
    def test_known_platforms(self, name: str) -> None:
        with patch("sleeptimer.core.platform.sys") as mock_sys:
            mock_sys.platform = name
            assert get_platform() == name

    def test_unknown_platform(self) -> None:
        with patch("sleeptimer.core.platform.sys") as mock_sys:
            mock_sys.platform = "sunos5"
            assert get_platform() == "unknown"


# ---------------------------------------------------------------------------
# MediaController
# ---------------------------------------------------------------------------


class TestMediaController:
    @patch("sleeptimer.core.platform.subprocess.run")
    def test_linux_uses_playerctl(self, mock_run: MagicMock) -> None:
        result = MediaController("linux").pause()
        assert result == ControlResult(True, "All media paused via playerctl")
        assert mock_run.call_args.args[0] == ("playerctl", "-a", "pause")
        assert mock_run.call_args.kwargs["check"] is True

    @patch("sleeptimer.core.platform.subprocess.run", side_effect=_fail_on("playerctl"))
    def test_linux_falls_back_to_dbus(self, mock_run: MagicMock) -> None:
        result = MediaController("linux").pause()
        assert result == ControlResult(True, "Media paused via dbus")
        assert _commands(mock_run) == ["playerctl", "dbus-send"]

    @patch(
        "sleeptimer.core.platform.subprocess.run",
        side_effect=_fail_on("playerctl", "dbus-send"),
    )
    def test_linux_reports_failure(self, mock_run: MagicMock) -> None:
        result = MediaController("linux").pause()
        assert result.success is False
        assert "Install playerctl" in result.message

    @patch("sleeptimer.core.platform.subprocess.run", side_effect=FileNotFoundError("playerctl"))
    def test_missing_binaries_count_as_failure(self, mock_run: MagicMock) -> None:
        assert MediaController("linux").pause().success is False

    @patch("sleeptimer.core.platform.subprocess.run", side_effect=_fail_on("osascript"))
    def test_darwin_ignores_browser_failures(self, mock_run: MagicMock) -> None:
        result = MediaController("darwin").pause()
        assert result == ControlResult(True, "Media pause commands sent")
        assert _commands(mock_run) == ["osascript", "osascript"]

    @patch("sleeptimer.core.platform.subprocess.run")
    def test_win32_sends_media_key(self, mock_run: MagicMock) -> None:
        result = MediaController("win32").pause()
        assert result == ControlResult(True, "Media key sent")
        assert _commands(mock_run) == ["powershell"]

    @patch(
        "sleeptimer.core.platform.subprocess.run",
        side_effect=subprocess.TimeoutExpired("powershell", 10),
    )
    def test_win32_error_is_captured(self, mock_run: MagicMock) -> None:
        result = MediaController("win32").pause()
        assert result.success is False
        assert result.message.startswith("Error pausing media:")

    @patch("sleeptimer.core.platform.subprocess.run")
    def test_unsupported_platform(self, mock_run: MagicMock) -> None:
        result = MediaController("unknown").pause()
        assert result == ControlResult(False, "Unsupported platform: unknown")
        mock_run.assert_not_called()


# ---------------------------------------------------------------------------
# PowerController
# ---------------------------------------------------------------------------


class TestPowerController:
    @patch("sleeptimer.core.platform.subprocess.run")
    def test_darwin_uses_pmset(self, mock_run: MagicMock) -> None:
        result = PowerController("darwin").suspend()
        assert result == ControlResult(True, "System going to sleep...")
        assert mock_run.call_args.args[0] == ("pmset", "sleepnow")

    @patch("sleeptimer.core.platform.subprocess.run")
    def test_linux_uses_systemctl(self, mock_run: MagicMock) -> None:
        result = PowerController("linux").suspend()
        assert result == ControlResult(True, "System suspending via systemctl...")
        assert _commands(mock_run) == ["systemctl"]

    @patch("sleeptimer.core.platform.subprocess.run", side_effect=_fail_on("systemctl"))
    def test_linux_falls_back_to_pm_suspend(self, mock_run: MagicMock) -> None:
        result = PowerController("linux").suspend()
        assert result == ControlResult(True, "System suspending via pm-suspend...")

    @patch(
        "sleeptimer.core.platform.subprocess.run",
        side_effect=_fail_on("systemctl", "pm-suspend"),
    )
    def test_linux_reports_failure(self, mock_run: MagicMock) -> None:
        result = PowerController("linux").suspend()
        assert result == ControlResult(False, "Could not suspend. Try: sudo systemctl suspend")

    @patch("sleeptimer.core.platform.subprocess.run")
    def test_win32_uses_rundll32(self, mock_run: MagicMock) -> None:
        result = PowerController("win32").suspend()
        assert result.success is True
        assert mock_run.call_args.args[0] == (
            "rundll32.exe",
            "powrprof.dll,SetSuspendState",
            "0,1,0",
        )

    @patch("sleeptimer.core.platform.subprocess.run", side_effect=_fail_on("pmset"))
    def test_darwin_error_is_captured(self, mock_run: MagicMock) -> None:
        result = PowerController("darwin").suspend()
        assert result.success is False
        assert result.message.startswith("Error suspending system:")

    def test_unsupported_platform(self) -> None:
        assert PowerController("unknown").suspend().success is False


# ---------------------------------------------------------------------------
# Dry-run controllers
# ---------------------------------------------------------------------------


class TestNullControllers:
    @patch("sleeptimer.core.platform.subprocess.run")
    def test_null_controllers_run_nothing(self, mock_run: MagicMock) -> None:
        assert NullMediaController().pause().success is True
        assert NullPowerController().suspend().success is True
        mock_run.assert_not_called()
