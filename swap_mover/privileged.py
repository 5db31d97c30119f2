"""Command execution with timeouts, elevation and audit logging."""

import asyncio
import logging
import plistlib
import shlex
from dataclasses import dataclass
from typing import Any, Optional
from xml.parsers.expat import ExpatError

from .config import Settings, settings as default_settings
from .errors import CommandExecutionFailedError, CommandTimedOutError
from .models.common import LogKind
from .services.status_model import StatusModel

logger = logging.getLogger(__name__)

OSASCRIPT = "/usr/bin/osascript"
SUDO = "/usr/bin/sudo"


@dataclass(frozen=True)
class CommandResult:
    stdout: str
    stderr: str
    exit_status: int

    @property
    def ok(self) -> bool:
        return self.exit_status == 0


def _applescript_string(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')


def administrator_script(shell_command: str) -> str:
    """AppleScript that runs one shell command behind the admin consent dialog."""
    return f'do shell script "{_applescript_string(shell_command)}" with administrator privileges'


class PrivilegedExecutor:
    """Runs external commands and records each one in the audit log.

    ``_execute`` is the only place a process is spawned; everything else
    (logging, elevation wrapping, result interpretation) sits on top of it.
    """

    def __init__(self, status: StatusModel, config: Optional[Settings] = None):
        self.status = status
        self.settings = config or default_settings

    async def run(
        self,
        path: str,
        args: list[str],
        timeout: Optional[float] = None,
    ) -> CommandResult:
        """Run a command unprivileged. Non-zero exit is returned, not raised."""
        argv = [path, *args]
        self._log_command(argv)
        result = await self._run_logged(argv, timeout, elevated=False)
        if result.ok:
            self._log_output(result)
        else:
            self.status.append_log(
                LogKind.ERROR,
                f"{path} exited with status {result.exit_status}: {result.stderr or result.stdout}",
            )
        return result

    async def run_elevated(
        self,
        path: str,
        args: list[str],
        timeout: Optional[float] = None,
    ) -> CommandResult:
        """Run a command with administrator privileges; non-zero exit raises."""
        argv = [path, *args]
        self._log_command(argv)
        self.status.append_log(LogKind.INFO, "Running with administrator privileges")
        if timeout is None:
            timeout = self.settings.timeout_elevated
        result = await self._run_logged(argv, timeout, elevated=True)
        if not result.ok:
            detail = result.stderr or result.stdout or f"exit status {result.exit_status}"
            self.status.append_log(LogKind.ERROR, f"Privileged command failed: {path}\n{detail}")
            raise CommandExecutionFailedError(detail)
        self._log_output(result)
        return result

    async def run_structured(
        self,
        path: str,
        args: list[str],
        timeout: Optional[float] = None,
    ) -> dict[str, Any]:
        """Run a command that prints a property list and parse it.

        Unparseable output gives an empty dict; callers treat missing keys as
        unknown.
        """
        argv = [path, *args]
        self._log_command(argv)
        result = await self._run_logged(argv, timeout, elevated=False)
        if not result.ok:
            self.status.append_log(
                LogKind.ERROR,
                f"{path} exited with status {result.exit_status}: {result.stderr or result.stdout}",
            )
            return {}
        try:
            tree = plistlib.loads(result.stdout.encode("utf-8"))
        except (plistlib.InvalidFileException, ValueError, ExpatError) as e:
            self.status.append_log(LogKind.WARNING, f"Could not parse plist from {path}: {e}")
            return {}
        if not isinstance(tree, dict):
            self.status.append_log(LogKind.WARNING, f"Unexpected plist root from {path}")
            return {}
        self.status.append_log(LogKind.OUTPUT, f"Parsed plist with {len(tree)} keys")
        return tree

    async def probe_privileges(self) -> bool:
        """Check for cached sudo credentials without prompting."""
        result = await self.run(SUDO, ["-n", "true"], timeout=self.settings.timeout_short)
        return result.ok

    async def request_authorization(self) -> bool:
        """Show the OS consent dialog once. Returns True if the user granted it."""
        if self.settings.elevation_mode == "sudo":
            # Nothing to prompt with; only cached credentials can be used.
            return await self.probe_privileges()
        self.status.append_log(LogKind.INFO, "Requesting administrator privileges")
        script = administrator_script("echo 'Admin privileges granted'")
        try:
            result = await self.run(OSASCRIPT, ["-e", script], timeout=self.settings.timeout_elevated)
        except (CommandExecutionFailedError, CommandTimedOutError) as e:
            self.status.append_log(LogKind.ERROR, f"Authorization request failed: {e}")
            return False
        return result.ok

    def elevated_argv(self, argv: list[str]) -> list[str]:
        if self.settings.elevation_mode == "sudo":
            return [SUDO, "-n", *argv]
        return [OSASCRIPT, "-e", administrator_script(shlex.join(argv))]

    async def _run_logged(
        self,
        argv: list[str],
        timeout: Optional[float],
        elevated: bool,
    ) -> CommandResult:
        try:
            return await self._execute(argv, timeout, elevated=elevated)
        except CommandTimedOutError as e:
            self.status.append_log(LogKind.ERROR, f"{e.message} (process terminated)")
            raise
        except CommandExecutionFailedError as e:
            self.status.append_log(LogKind.ERROR, e.message)
            raise

    async def _execute(
        self,
        argv: list[str],
        timeout: Optional[float],
        elevated: bool = False,
    ) -> CommandResult:
        if elevated:
            argv = self.elevated_argv(argv)
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise CommandExecutionFailedError(f"could not start {argv[0]}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            await self._terminate(proc)
            raise CommandTimedOutError(f"{shlex.join(argv)} exceeded {timeout}s") from None

        return CommandResult(
            stdout=stdout.decode("utf-8", errors="replace").strip(),
            stderr=stderr.decode("utf-8", errors="replace").strip(),
            exit_status=proc.returncode or 0,
        )

    async def _terminate(self, proc: asyncio.subprocess.Process) -> None:
        """SIGTERM, then SIGKILL after the grace period; always reaps."""
        try:
            proc.terminate()
        except ProcessLookupError:
            pass
        try:
            await asyncio.wait_for(proc.wait(), timeout=self.settings.terminate_grace)
        except asyncio.TimeoutError:
            logger.warning(f"Process {proc.pid} ignored SIGTERM, killing")
            try:
                proc.kill()
            except ProcessLookupError:
                pass
            await proc.wait()

    def _log_command(self, argv: list[str]) -> None:
        self.status.append_log(LogKind.COMMAND, shlex.join(argv))

    def _log_output(self, result: CommandResult) -> None:
        self.status.append_log(LogKind.OUTPUT, result.stdout or "(no output)")
