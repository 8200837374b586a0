"""Async runner for the external commands used during initialization."""

from __future__ import annotations

import asyncio
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Mapping, Union

from .utils import sanitize_environment


@dataclass(slots=True)
class CommandResult:
    """Holds the outcome of a single command invocation."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def command_line(self) -> str:
        return shlex.join(self.args)


class CommandError(RuntimeError):
    """Raised when a checked command exits with a non-zero status."""

    def __init__(self, result: CommandResult, message: str | None = None) -> None:
        if message is None:
            detail = result.stderr.strip() or result.stdout.strip()
            message = f"`{result.command_line}` exited with code {result.returncode}"
            if detail:
                message = f"{message}: {detail}"
        super().__init__(message)
        self.result = result


class CommandNotFoundError(CommandError):
    """Raised when the executable cannot be started at all."""


class CommandRunner:
    """Execute commands asynchronously and collect their output."""

    async def run(
        self,
        *args: str,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        input: bytes | None = None,
        check: bool = True,
    ) -> CommandResult:
        """Run ``args`` to completion.

        ``env`` is merged over the sanitized process environment for this
        invocation only. With ``check`` a non-zero exit raises ``CommandError``.
        """

        result = await self._invoke(args, cwd=cwd, env=env, input=input)
        if check and not result.ok:
            raise CommandError(result)
        return result

    async def _invoke(
        self,
        args: tuple[str, ...],
        *,
        cwd: Path | None,
        env: Mapping[str, str] | None,
        input: bytes | None,
    ) -> CommandResult:
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.PIPE if input is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(cwd) if cwd is not None else None,
                env=sanitize_environment(env),
            )
        except OSError as exc:
            result = CommandResult(args=tuple(args), returncode=127, stdout="", stderr=str(exc))
            raise CommandNotFoundError(result, f"Unable to execute `{args[0]}`: {exc}") from exc

        stdout_bytes, stderr_bytes = await process.communicate(input)
        stdout = stdout_bytes.decode("utf-8", errors="replace")
        stderr = stderr_bytes.decode("utf-8", errors="replace")
        return CommandResult(args=tuple(args), returncode=process.returncode, stdout=stdout, stderr=stderr)


@dataclass(slots=True)
class Invocation:
    """A command recorded by ``FakeCommandRunner``."""

    args: tuple[str, ...]
    cwd: Path | None = None
    env: dict[str, str] = field(default_factory=dict)
    input: bytes | None = None


Response = Union[CommandResult, BaseException, Callable[[Invocation], CommandResult]]


class FakeCommandRunner(CommandRunner):
    """Test double that records invocations and replays scripted responses.

    Responses are keyed by an argument prefix; the longest matching prefix
    wins. Unmatched commands succeed with empty output.
    """

    def __init__(self, responses: Mapping[tuple[str, ...], Response] | None = None) -> None:
        self._responses = dict(responses or {})
        self._invocations: list[Invocation] = []

    async def _invoke(  # type: ignore[override]
        self,
        args: tuple[str, ...],
        *,
        cwd: Path | None,
        env: Mapping[str, str] | None,
        input: bytes | None,
    ) -> CommandResult:
        invocation = Invocation(args=tuple(args), cwd=cwd, env=dict(env or {}), input=input)
        self._invocations.append(invocation)

        response = self._match(invocation.args)
        if response is None:
            return CommandResult(args=invocation.args, returncode=0, stdout="", stderr="")
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            return response(invocation)
        return response

    def _match(self, args: tuple[str, ...]) -> Response | None:
        best: tuple[str, ...] | None = None
        for prefix in self._responses:
            if args[: len(prefix)] == prefix and (best is None or len(prefix) > len(best)):
                best = prefix
        return self._responses[best] if best is not None else None

    @property
    def invocations(self) -> list[Invocation]:
        return self._invocations

    @property
    def commands(self) -> list[tuple[str, ...]]:
        return [invocation.args for invocation in self._invocations]


__all__ = [
    "CommandError",
    "CommandNotFoundError",
    "CommandResult",
    "CommandRunner",
    "FakeCommandRunner",
    "Invocation",
]
