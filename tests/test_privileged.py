from __future__ import annotations

import asyncio
import plistlib
import sys
import time

import pytest

from swap_mover.config import Settings
from swap_mover.errors import CommandExecutionFailedError, CommandTimedOutError
from swap_mover.models.common import LogKind
from swap_mover.privileged import PrivilegedExecutor, administrator_script
from swap_mover.services.status_model import StatusModel


class DirectExecutor(PrivilegedExecutor):
    """Runs "elevated" commands as-is so the result handling can be exercised."""

    def elevated_argv(self, argv):
        return list(argv)


@pytest.fixture
def executor():
    return DirectExecutor(StatusModel(), Settings(terminate_grace=1.0))


def _kinds(executor):
    return [e.kind for e in executor.status.snapshot().logs]


def test_run_captures_output_and_logs(executor):
    result = asyncio.run(executor.run(sys.executable, ["-c", "print('hello')"], timeout=10))

    assert result.ok
    assert result.stdout == "hello"
    assert _kinds(executor) == [LogKind.COMMAND, LogKind.OUTPUT]


def test_run_returns_non_zero_exit(executor):
    result = asyncio.run(
        executor.run(sys.executable, ["-c", "import sys; sys.stderr.write('bad'); sys.exit(2)"], timeout=10)
    )

    assert result.exit_status == 2
    assert result.stderr == "bad"
    assert _kinds(executor) == [LogKind.COMMAND, LogKind.ERROR]


def test_timeout_terminates_process(executor):
    started = time.monotonic()
    with pytest.raises(CommandTimedOutError):
        asyncio.run(executor.run(sys.executable, ["-c", "import time; time.sleep(30)"], timeout=0.2))

    assert time.monotonic() - started < 10
    assert _kinds(executor) == [LogKind.COMMAND, LogKind.ERROR]


def test_zero_deadline_always_times_out(executor):
    with pytest.raises(CommandTimedOutError):
        asyncio.run(executor.run(sys.executable, ["-c", "pass"], timeout=0))


def test_process_ignoring_sigterm_is_killed(executor):
    script = (
        "import signal, sys, time\n"
        "signal.signal(signal.SIGTERM, signal.SIG_IGN)\n"
        "print('ready', flush=True)\n"
        "time.sleep(30)\n"
    )
    started = time.monotonic()
    with pytest.raises(CommandTimedOutError):
        asyncio.run(executor.run(sys.executable, ["-c", script], timeout=0.5))

    assert time.monotonic() - started < 10


def test_missing_binary_is_an_execution_failure(executor):
    with pytest.raises(CommandExecutionFailedError):
        asyncio.run(executor.run("/nonexistent/tool", [], timeout=1))

    assert _kinds(executor)[-1] == LogKind.ERROR


def test_elevated_non_zero_exit_raises_with_stderr(executor):
    code = "import sys; sys.stderr.write('Operation not permitted'); sys.exit(1)"
    with pytest.raises(CommandExecutionFailedError) as exc:
        asyncio.run(executor.run_elevated(sys.executable, ["-c", code]))

    assert exc.value.detail == "Operation not permitted"
    kinds = _kinds(executor)
    assert kinds[0] == LogKind.COMMAND
    assert kinds[-1] == LogKind.ERROR


def test_structured_output_is_parsed(executor, tmp_path):
    plist = tmp_path / "info.plist"
    plist.write_bytes(plistlib.dumps({"DeviceNode": "/dev/disk4s2", "VolumeInfo": {"BootFromThisVolume": False}}))
    code = f"import sys; sys.stdout.write(open({str(plist)!r}).read())"

    tree = asyncio.run(executor.run_structured(sys.executable, ["-c", code], timeout=10))

    assert tree["DeviceNode"] == "/dev/disk4s2"
    assert tree["VolumeInfo"]["BootFromThisVolume"] is False


@pytest.mark.parametrize("output", ["not a plist", "<?xml version='1.0'?><plist><dict><key>A", ""])
def test_unparseable_structured_output_is_empty(executor, output):
    code = f"import sys; sys.stdout.write({output!r})"

    tree = asyncio.run(executor.run_structured(sys.executable, ["-c", code], timeout=10))

    assert tree == {}
    assert _kinds(executor)[-1] in (LogKind.WARNING, LogKind.ERROR)


def test_osascript_wraps_one_shell_command():
    executor = PrivilegedExecutor(StatusModel(), Settings(elevation_mode="osascript"))

    argv = executor.elevated_argv(["/bin/cp", "/private/var/vm/swapfile", "/Volumes/My Drive/swap"])

    assert argv[:2] == ["/usr/bin/osascript", "-e"]
    assert argv[2] == (
        "do shell script \"/bin/cp /private/var/vm/swapfile '/Volumes/My Drive/swap'\" "
        "with administrator privileges"
    )


def test_administrator_script_escapes_quotes():
    script = administrator_script('echo "hi" \\ there')

    assert script == 'do shell script "echo \\"hi\\" \\\\ there" with administrator privileges'


def test_sudo_mode_uses_cached_credentials():
    executor = PrivilegedExecutor(StatusModel(), Settings(elevation_mode="sudo"))

    assert executor.elevated_argv(["/usr/sbin/sysctl", "-w", "vm.swap_enabled=0"]) == [
        "/usr/bin/sudo", "-n", "/usr/sbin/sysctl", "-w", "vm.swap_enabled=0",
    ]
