"""Text exposition of a snapshot."""
import math
from typing import Iterable

from graftopstat.series import Labels, MetricRecord


def _escape_label_value(value: str) -> str:
    return value.replace("\\", r"\\").replace("\n", r"\n").replace('"', r"\"")


def format_labels(labels: Labels) -> str:
    return ", ".join(f'{k}="{_escape_label_value(v)}"' for k, v in labels)


def format_value(value: float) -> str:
    """Whole numbers print without a fraction or exponent (`1403`, `0`)."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value.is_integer():
        return str(int(value))
    return repr(value)


def render(records: Iterable[MetricRecord]) -> str:
    """Render records as `name{k="v", ...} value` lines.

    Lines are separated by a newline and there is no trailing newline, so an
    empty snapshot renders as an empty body.
    """
    return "\n".join(
        f"{record.name.value}{{{format_labels(record.labels)}}} {format_value(record.value)}"
        for record in records
    )
