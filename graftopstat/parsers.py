"""Line parsers for top and netstat text output."""
import re
from typing import Dict, List, Optional

from graftopstat.series import Labels, MetricName, MetricRecord

_DECIMAL_RE = re.compile(r"[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)")
_DIGIT_RUN_RE = re.compile(r"[0-9]+")

CPU_TAGS: Dict[str, MetricName] = {
    "us": MetricName.CPU_USER,
    "sy": MetricName.CPU_SYSTEM,
    "ni": MetricName.CPU_NICE,
    "id": MetricName.CPU_IDLE,
}

MEM_TAGS: Dict[str, MetricName] = {
    "total": MetricName.MEM_TOTAL,
    "free": MetricName.MEM_FREE,
    "used": MetricName.MEM_USED,
    "buff/cache": MetricName.MEM_BUFFERED,
}

# Column positions in a `top -b` process table row
PROC_PID_COL = 0
PROC_USER_COL = 1
PROC_MEM_COL = 5
PROC_CPU_COL = 8


class ParseError(Exception):
    """Raised when a classified line does not have the expected layout."""


def parse_decimal(token: str) -> Optional[float]:
    """Parse a decimal number, accepting a comma as decimal separator.

    Returns None when the token is not a plain decimal.
    """
    candidate = token.strip().replace(",", ".")
    if not _DECIMAL_RE.fullmatch(candidate):
        return None
    return float(candidate)


def _parse_tagged_values(line: str, tags: Dict[str, MetricName]) -> List[MetricRecord]:
    """Scan `value tag` pairs, emitting a scalar record for every known tag."""
    records = []
    prev = ""
    for part in line.split():
        value = parse_decimal(prev)
        if value is not None:
            name = tags.get(part.strip(" ,"))
            if name is not None:
                records.append(MetricRecord(name, (), value))
        prev = part
    return records


def parse_cpu_line(line: str) -> List[MetricRecord]:
    """Parse the `%Cpu(s):` summary line of top."""
    return _parse_tagged_values(line, CPU_TAGS)


def parse_mem_line(line: str) -> List[MetricRecord]:
    """Parse the `MiB Mem :` summary line of top."""
    return _parse_tagged_values(line, MEM_TAGS)


def parse_proc_line(line: str) -> List[MetricRecord]:
    """Parse one row of the top process table into CPU and memory records."""
    items = line.split()
    if len(items) <= PROC_CPU_COL:
        raise ParseError(
            f"Process row has {len(items)} columns, expected more than {PROC_CPU_COL}: {line.strip()!r}"
        )

    labels: Labels = (
        ("pid", items[PROC_PID_COL]),
        ("user", items[PROC_USER_COL]),
        ("command", items[-1]),
    )

    cpu_val = parse_decimal(items[PROC_CPU_COL])
    if cpu_val is None:
        raise ParseError(f"Unable to convert process CPU to float: {items[PROC_CPU_COL]!r}")
    mem_val = parse_decimal(items[PROC_MEM_COL])
    if mem_val is None:
        raise ParseError(f"Unable to convert process memory to float: {items[PROC_MEM_COL]!r}")

    return [
        MetricRecord(MetricName.PROC_CPU, labels, cpu_val),
        MetricRecord(MetricName.PROC_MEM, labels, mem_val),
    ]


def parse_netstat_line(category: str, line: str) -> List[MetricRecord]:
    """Parse a free-text `netstat -s` statistic line.

    Every run of digits becomes one record. Its description is the line with
    that run cut out at the position it was found, trimmed of colons and
    spaces, with whitespace collapsed.
    """
    line = line.strip()
    records = []
    for match in _DIGIT_RUN_RE.finditer(line):
        desc = line[:match.start()] + line[match.end():]
        desc = " ".join(desc.split()).strip(" :")
        records.append(
            MetricRecord(
                MetricName.NETSTAT_INFO,
                (("category", category), ("desc", desc)),
                float(match.group()),
            )
        )
    return records
