"""ProcessRunner: run the package manager and stream its output into logs."""

from __future__ import annotations

import asyncio
import codecs
import json
import shutil
from collections.abc import AsyncIterator, Callable, Sequence
from pathlib import Path

import structlog

from plugin_market.installer.agent import supports_json
from plugin_market.installer.models import AgentInfo

log = structlog.get_logger("plugin_market.agent")

# JSON-line ``type`` -> log method
LEVEL_MAP: dict[str, str] = {
    "info": "info",
    "warning": "debug",
    "error": "warning",
}

START_FAILED = -1

_CHUNK_SIZE = 4096

LineHandler = Callable[[str], None]


class LineBuffer:
    """Split a chunked byte stream into lines.

    A trailing fragment without a newline is kept until the next chunk and
    emitted by :meth:`close` if the stream ends without one.
    """

    def __init__(self) -> None:
        self._pending = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def feed(self, chunk: bytes | str) -> list[str]:
        text = chunk if isinstance(chunk, str) else self._decoder.decode(chunk)
        *lines, self._pending = (self._pending + text).split("\n")
        return [line.rstrip("\r") for line in lines]

    def close(self) -> list[str]:
        tail = (self._pending + self._decoder.decode(b"", final=True)).rstrip("\r")
        self._pending = ""
        return [tail] if tail else []


async def iter_lines(stream: asyncio.StreamReader) -> AsyncIterator[str]:
    buffer = LineBuffer()
    while chunk := await stream.read(_CHUNK_SIZE):
        for line in buffer.feed(chunk):
            yield line
    for line in buffer.close():
        yield line


def handle_plain(line: str) -> None:
    log.info(line)


def handle_json(line: str) -> None:
    """Log one line of ``--json`` output.

    Progress lines that are not JSON objects are logged verbatim.
    """
    if not line.startswith("{"):
        log.info(line)
        return
    try:
        record = json.loads(line)
    except ValueError as exc:
        log.warning(line, error=str(exc))
        return
    kind = record.get("type") if isinstance(record, dict) else None
    data = record.get("data", "") if isinstance(record, dict) else record
    level = LEVEL_MAP.get(kind, "info") if isinstance(kind, str) else "info"
    getattr(log, level)(data if isinstance(data, str) else json.dumps(data))


def handle_stderr(line: str) -> None:
    log.warning(line)


class ProcessRunner:
    """Spawns the package manager in the project root.

    The stdout line handler is chosen once, from the detected agent: JSON-line
    parsing for yarn 2+, plain text otherwise.
    """

    def __init__(self, cwd: Path, agent: AgentInfo | None = None) -> None:
        self.cwd = cwd
        self.agent = agent or AgentInfo(name="npm")
        self.use_json = supports_json(self.agent)
        self.handle_stdout: LineHandler = handle_json if self.use_json else handle_plain

    def build_args(self, args: Sequence[str] = ()) -> list[str]:
        argv = list(args)
        # bare ``yarn`` already installs
        if self.agent.name != "yarn":
            argv.insert(0, "install")
        if self.use_json:
            argv.append("--json")
        return argv

    async def run(self, args: Sequence[str] = ()) -> int:
        """Run the agent; return its exit code, or ``-1`` if it did not start."""
        executable = shutil.which(self.agent.name)
        if executable is None:
            log.error("agent.not_found", agent=self.agent.name)
            return START_FAILED

        argv = self.build_args(args)
        log.info("agent.spawn", agent=self.agent.name, args=argv, cwd=str(self.cwd))
        try:
            proc = await asyncio.create_subprocess_exec(
                executable,
                *argv,
                cwd=str(self.cwd),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            log.error("agent.start_failed", agent=self.agent.name, error=str(exc))
            return START_FAILED

        try:
            await asyncio.gather(
                self._consume(proc.stdout, self.handle_stdout),
                self._consume(proc.stderr, handle_stderr),
            )
            code = await proc.wait()
        except asyncio.CancelledError:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
            raise

        log.info("agent.exit", agent=self.agent.name, code=code)
        return code

    @staticmethod
    async def _consume(stream: asyncio.StreamReader | None, handle: LineHandler) -> None:
        if stream is None:
            return
        async for line in iter_lines(stream):
            handle(line)
