"""External command execution with a bounded retry policy."""

from __future__ import annotations

import logging
import subprocess
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Protocol

from gifsync.client.errors import CommandError

logger = logging.getLogger(__name__)

# Output marker treated as success: the interface was created by an earlier
# (possibly partial) run.
ALREADY_EXISTS: str = "already exists"


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a single command invocation.

    Args:
        returncode: Process exit status.
        output: Combined stdout and stderr text.
    """

    returncode: int
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner(Protocol):
    """Anything that can run one command line and report its result."""

    def run(self, argv: Sequence[str]) -> CommandResult: ...


class SubprocessRunner:
    """Run commands with :func:`subprocess.run`, merging stderr into stdout.

    Args:
        timeout_s: Per-invocation timeout in seconds.
    """

    def __init__(self, timeout_s: float = 30.0) -> None:
        self.timeout_s = timeout_s

    def run(self, argv: Sequence[str]) -> CommandResult:
        try:
            proc = subprocess.run(
                list(argv),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=self.timeout_s,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            return CommandResult(returncode=-1, output=f"timed out after {exc.timeout}s")
        except OSError as exc:
            return CommandResult(returncode=-1, output=str(exc))
        return CommandResult(returncode=proc.returncode, output=proc.stdout or "")


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded, fixed-delay retry policy.

    Attributes:
        max_attempts: Total number of attempts (default 3).
        delay_s: Pause between attempts in seconds (default 1).
        success_markers: Output substrings that mark an attempt as successful
            regardless of its exit status.
    """

    max_attempts: int = 3
    delay_s: float = 1.0
    success_markers: tuple[str, ...] = (ALREADY_EXISTS,)

    def is_success(self, result: CommandResult) -> bool:
        if result.ok:
            return True
        return any(marker in result.output for marker in self.success_markers)


class CommandExecutor:
    """Execute commands through a :class:`CommandRunner` under a :class:`RetryPolicy`.

    Args:
        runner: Backend that actually runs the command.
        policy: Retry policy; defaults to 3 attempts, 1 s apart.
        sleep: Sleep function, injectable for tests.
    """

    def __init__(
        self,
        runner: CommandRunner | None = None,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.runner: CommandRunner = runner or SubprocessRunner()
        self.policy: RetryPolicy = policy or RetryPolicy()
        self._sleep = sleep

    def execute(self, *argv: str) -> CommandResult:
        """Run *argv*, retrying until the policy reports success.

        Returns:
            The successful :class:`CommandResult`.

        Raises:
            CommandError: If every attempt failed.
        """
        result = CommandResult(returncode=-1)
        for attempt in range(1, self.policy.max_attempts + 1):
            result = self.runner.run(argv)
            if result.ok:
                logger.debug("Command succeeded: %s", " ".join(argv))
                return result
            if self.policy.is_success(result):
                logger.info("Interface already exists, treating as success: %s", " ".join(argv))
                return result
            logger.warning(
                "Command failed (attempt %d/%d): %s: %s",
                attempt,
                self.policy.max_attempts,
                " ".join(argv),
                result.output.strip(),
            )
            if attempt < self.policy.max_attempts:
                self._sleep(self.policy.delay_s)
        raise CommandError(
            argv=tuple(argv),
            attempts=self.policy.max_attempts,
            output=result.output,
            returncode=result.returncode,
        )
