"""
Result readback, capability reporting and output verification.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from typing import IO, TYPE_CHECKING, Any

import numpy as np

from pydotcl.core.buffers import SENTINEL_INT32
from pydotcl.core.platform import get_default_queue

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

    from pydotcl.core.buffers import BufferSet
    from pydotcl.core.platform import DeviceCapabilities

logger = logging.getLogger(__name__)


@dataclass
class VerificationReport:
    """Comparison of device output against expected values."""

    mismatches: list[int] = field(default_factory=list)
    sentinel_indices: list[int] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """Check that every element matched and none kept the sentinel."""
        return not self.mismatches and not self.sentinel_indices


def format_capabilities(caps: DeviceCapabilities) -> str:
    """Format the three pipe limits, one per line."""
    return (
        f"Max pipe args: {caps.max_pipe_args}\n"
        f"Max pipe active reservations: {caps.pipe_max_active_reservations}\n"
        f"Max pipe packet size: {caps.pipe_max_packet_size}\n"
    )


def format_output(output: ArrayLike, *, skip_first: bool = True) -> str:
    """
    Format output values, one tab-indented value per line.

    Args:
        output: Values to print.
        skip_first: Leave out element 0.
    """
    values = np.asarray(output)
    start = 1 if skip_first else 0
    lines = ["Output:"]
    lines.extend(f"\t{int(v)}" for v in values[start:])
    return "\n".join(lines) + "\n\n\n"


def verify_output(output: ArrayLike, expected: ArrayLike) -> VerificationReport:
    """
    Compare ``output`` against ``expected`` element-wise.

    Returns:
        Report listing mismatching indices and indices still holding the sentinel.
    """
    out = np.asarray(output, dtype=np.int32)
    exp = np.asarray(expected, dtype=np.int32)
    report = VerificationReport(
        mismatches=[int(i) for i in np.flatnonzero(out != exp)],
        sentinel_indices=[int(i) for i in np.flatnonzero(out == SENTINEL_INT32)],
    )
    if not report.ok:
        logger.warning(
            f"Output verification failed: {len(report.mismatches)} mismatches, "
            f"{len(report.sentinel_indices)} untouched"
        )
    return report


class ResultReporter:
    """Reads results back and prints them."""

    def __init__(self, out: IO[str] | None = None, *, skip_first: bool = True) -> None:
        """
        Initialize the reporter.

        Args:
            out: Stream to print to (stdout if None).
            skip_first: Leave out output element 0 when printing.
        """
        self._out = out
        self._skip_first = skip_first

    def read_back(self, buffers: BufferSet, queue: Any = None) -> NDArray[np.int32]:
        """
        Wait for device work, then copy the output buffer to its host mirror.

        Returns:
            The host output array.
        """
        queue = queue if queue is not None else get_default_queue()
        queue.finish()
        return buffers.output.read_back(queue)

    def report(self, caps: DeviceCapabilities, output: ArrayLike) -> None:
        """Print device pipe limits followed by the output values."""
        stream = self._out or sys.stdout
        stream.write(format_capabilities(caps))
        stream.write(format_output(output, skip_first=self._skip_first))
        stream.flush()
