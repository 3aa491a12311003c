"""Data structures for collected metric records."""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple


class MetricName(str, Enum):
    """Fixed set of exported metric identifiers."""
    CPU_USER = "cpu_user"
    CPU_IDLE = "cpu_idle"
    CPU_SYSTEM = "cpu_system"
    CPU_NICE = "cpu_nice"
    MEM_TOTAL = "mem_total"
    MEM_FREE = "mem_free"
    MEM_USED = "mem_used"
    MEM_BUFFERED = "mem_buffered"
    PROC_CPU = "proc_cpu"
    PROC_MEM = "proc_mem"
    NETSTAT_INFO = "netstat_info"


Labels = Tuple[Tuple[str, str], ...]


@dataclass(frozen=True)
class MetricRecord:
    """A single measurement with an ordered label set."""
    name: MetricName
    labels: Labels
    value: float

    def label_dict(self) -> Dict[str, str]:
        return dict(self.labels)
