"""Source adapters: run an external command and parse its output line by line."""
import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from graftopstat.config import Config
from graftopstat.parsers import (
    ParseError,
    parse_cpu_line,
    parse_mem_line,
    parse_netstat_line,
    parse_proc_line,
)
from graftopstat.series import MetricRecord
from graftopstat.store import SnapshotBuffer

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Captured outcome of one command run.

    `returncode` is None when the process could not be spawned at all.
    """
    returncode: Optional[int]
    stdout: bytes = b""
    stderr: bytes = b""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def stderr_text(self) -> str:
        return self.stderr.decode("utf-8", errors="replace").strip()


@dataclass
class SourceReport:
    """Result of one adapter run within a collection cycle."""
    source: str
    ok: bool
    records: int = 0
    errors: List[str] = field(default_factory=list)


Runner = Callable[[Sequence[str]], Awaitable[CommandResult]]
LineTask = Callable[[], List[MetricRecord]]


async def run_command(argv: Sequence[str]) -> CommandResult:
    """Run a command and capture stdout, stderr and exit status."""
    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE
        )
    except OSError as e:
        return CommandResult(returncode=None, stderr=f"Unable to start {argv[0]}: {e}".encode())

    stdout, stderr = await process.communicate()
    return CommandResult(returncode=process.returncode, stdout=stdout, stderr=stderr)


async def _run_line_task(task: LineTask) -> List[MetricRecord]:
    return task()


class Source(ABC):
    """Base class for command-backed metric sources."""

    name: str = "base"

    def __init__(self, command: Sequence[str], runner: Optional[Runner] = None):
        self.command = list(command)
        self.runner = runner or run_command

    @abstractmethod
    def line_tasks(self, lines: List[str]) -> List[Tuple[str, LineTask]]:
        """Classify output lines and return a parse task for every data line."""
        pass

    async def collect(self, buffer: SnapshotBuffer) -> SourceReport:
        """Run the command once and stream parsed records into the buffer."""
        result = await self.runner(self.command)
        if not result.ok:
            logger.warning(
                f"Command error ({self.name}, exit status {result.returncode}): "
                f"{result.stderr_text()}"
            )
            return SourceReport(self.name, ok=False, errors=[result.stderr_text()])
        if result.stderr_text():
            logger.warning(f"Command stderr ({self.name}): {result.stderr_text()}")

        lines = self._decode_lines(result.stdout)
        tasks = self.line_tasks(lines)
        results = await asyncio.gather(
            *(_run_line_task(task) for _, task in tasks),
            return_exceptions=True
        )

        report = SourceReport(self.name, ok=True)
        for (line, _), outcome in zip(tasks, results):
            if isinstance(outcome, ParseError):
                logger.warning(f"Line parse error ({self.name}): {outcome} [line: {line.strip()!r}]")
                report.errors.append(str(outcome))
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                buffer.extend(outcome)
                report.records += len(outcome)

        logger.debug(
            f"Source {self.name}: {report.records} records from {len(lines)} lines, "
            f"{len(report.errors)} parse errors"
        )
        return report

    def _decode_lines(self, stdout: bytes) -> List[str]:
        lines = []
        for number, raw in enumerate(stdout.split(b"\n"), start=1):
            try:
                lines.append(raw.decode("utf-8"))
            except UnicodeDecodeError as e:
                logger.warning(f"Dropping undecodable line {number} from {self.name}: {e}")
        return lines


class TopSource(Source):
    """CPU, memory and per-process metrics from `top` in batch mode."""

    name = "top"

    def line_tasks(self, lines: List[str]) -> List[Tuple[str, LineTask]]:
        tasks = []
        for line in lines:
            parser = self._classify(line)
            if parser is not None:
                tasks.append((line, lambda parser=parser, line=line: parser(line)))
        return tasks

    @staticmethod
    def _classify(line: str) -> Optional[Callable[[str], List[MetricRecord]]]:
        if line.startswith("%Cpu(s):"):
            return parse_cpu_line
        if line.startswith("MiB Mem :"):
            return parse_mem_line
        stripped = line.lstrip()
        if line.startswith(" ") and stripped and stripped[0].isdigit():
            return parse_proc_line
        return None


class NetstatSource(Source):
    """Protocol statistics from `netstat -s`.

    Unindented lines ending in a colon are category headers; every other line
    is a statistic belonging to the most recent header.
    """

    name = "netstat"

    def line_tasks(self, lines: List[str]) -> List[Tuple[str, LineTask]]:
        tasks = []
        category = ""
        for line in lines:
            if not line:
                continue
            if not line.startswith(" ") and line.endswith(":"):
                category = line[:-1]
                continue
            tasks.append((line, lambda category=category, line=line: parse_netstat_line(category, line)))
        return tasks


def create_sources(config: Config, runner: Optional[Runner] = None) -> List[Source]:
    """Build the enabled sources from configuration."""
    sources: List[Source] = []
    if config.collector.top.enabled:
        sources.append(TopSource(config.collector.top.command, runner=runner))
    if config.collector.netstat.enabled:
        sources.append(NetstatSource(config.collector.netstat.command, runner=runner))
    return sources
