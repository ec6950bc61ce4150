"""
Device buffers with host mirrors.

Each DeviceBuffer exclusively owns one OpenCL buffer, initialized from
a host array on creation and copied back on demand.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING, Any

import numpy as np
import pyopencl as cl

from pydotcl.core.platform import get_default_context, get_default_queue
from pydotcl.exceptions import (
    BufferNotAllocatedError,
    BufferSyncError,
    InvalidConfigurationError,
)

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

logger = logging.getLogger(__name__)

SENTINEL = 0xDEADBEEF

# 0xdeadbeef stored in an int slot keeps its bit pattern
SENTINEL_INT32 = int(np.array([SENTINEL], dtype=np.uint32).view(np.int32)[0])


class BufferAccess(Enum):
    """Device-side access to a buffer."""

    READ_ONLY = auto()
    READ_WRITE = auto()

    @property
    def mem_flags(self) -> int:
        """Get the OpenCL memory flags for a copy-in buffer."""
        if self is BufferAccess.READ_ONLY:
            return cl.mem_flags.READ_ONLY | cl.mem_flags.COPY_HOST_PTR
        return cl.mem_flags.READ_WRITE | cl.mem_flags.COPY_HOST_PTR


def sentinel_array(size: int) -> NDArray[np.int32]:
    """Get an int32 array filled with the sentinel pattern."""
    return np.full(size, SENTINEL_INT32, dtype=np.int32)


class DeviceBuffer:
    """
    Device memory region populated from a host array.

    Example:
        >>> buf = DeviceBuffer(np.ones(32, dtype=np.int32), BufferAccess.READ_ONLY)
        >>> host = buf.read_back()
    """

    def __init__(
        self,
        host: ArrayLike,
        access: BufferAccess = BufferAccess.READ_WRITE,
        *,
        context: Any = None,
        dtype: np.dtype[Any] | type = np.int32,
    ) -> None:
        """
        Allocate a device buffer and copy ``host`` into it.

        Args:
            host: Initial contents.
            access: Device-side access mode.
            context: Context to allocate in (default context if None).
            dtype: Element type.
        """
        self._host = np.ascontiguousarray(host, dtype=dtype)
        self._access = access
        self._context = context if context is not None else get_default_context()
        self._buffer: Any = cl.Buffer(self._context, access.mem_flags, hostbuf=self._host)
        logger.debug(f"Allocated {access.name} buffer: {self.nbytes} bytes")

    @property
    def host(self) -> NDArray[Any]:
        """Get the host mirror."""
        return self._host

    @property
    def access(self) -> BufferAccess:
        """Get the access mode."""
        return self._access

    @property
    def size(self) -> int:
        """Get the number of elements."""
        return int(self._host.size)

    @property
    def nbytes(self) -> int:
        """Get the total size in bytes."""
        return int(self._host.nbytes)

    @property
    def is_allocated(self) -> bool:
        """Check whether the device buffer is still held."""
        return self._buffer is not None

    @property
    def data(self) -> Any:
        """Get the underlying OpenCL buffer."""
        if self._buffer is None:
            raise BufferNotAllocatedError()
        return self._buffer

    def read_into(self, host: NDArray[Any], queue: Any = None) -> NDArray[Any]:
        """
        Copy the device contents into ``host``, blocking until done.

        Args:
            host: Destination array, same size as the buffer.
            queue: Host command queue (default queue if None).

        Returns:
            ``host``.
        """
        if host.nbytes != self.nbytes:
            raise InvalidConfigurationError(
                "host", host.shape, f"expected {self.nbytes} bytes, got {host.nbytes}"
            )
        queue = queue if queue is not None else get_default_queue()
        try:
            cl.enqueue_copy(queue, host, self.data, is_blocking=True)
        except cl.Error as e:
            raise BufferSyncError("device->host", e) from e
        return host

    def read_back(self, queue: Any = None) -> NDArray[Any]:
        """Copy the device contents into the host mirror."""
        return self.read_into(self._host, queue)

    def release(self) -> None:
        """Release the device memory."""
        if self._buffer is not None:
            self._buffer.release()
            self._buffer = None

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"DeviceBuffer(size={self.size}, dtype={self._host.dtype}, "
            f"access={self._access.name}, allocated={self.is_allocated})"
        )


@dataclass
class BufferSet:
    """The two input buffers and the output buffer of one dispatch."""

    input_a: DeviceBuffer
    input_b: DeviceBuffer
    output: DeviceBuffer

    def release(self) -> None:
        """Release all three buffers."""
        for buf in (self.input_a, self.input_b, self.output):
            buf.release()


class BufferManager:
    """Creates the buffers for a dispatch."""

    def __init__(self, context: Any = None) -> None:
        """
        Initialize the buffer manager.

        Args:
            context: Context to allocate in (default context if None).
        """
        self._context = context

    def create(
        self,
        input_a: Sequence[int] | NDArray[Any],
        input_b: Sequence[int] | NDArray[Any],
        output: Sequence[int] | NDArray[Any] | None = None,
    ) -> BufferSet:
        """
        Create two read-only inputs and one writable output.

        Args:
            input_a: First input sequence.
            input_b: Second input sequence.
            output: Initial output contents (sentinel-filled if None).

        Returns:
            BufferSet holding the three buffers.
        """
        if len(input_a) != len(input_b):
            raise InvalidConfigurationError(
                "input_b", len(input_b), f"length must match input_a ({len(input_a)})"
            )
        if output is None:
            output = sentinel_array(len(input_a))
        if len(output) != len(input_a):
            raise InvalidConfigurationError(
                "output", len(output), f"length must match inputs ({len(input_a)})"
            )

        context = self._context if self._context is not None else get_default_context()
        return BufferSet(
            input_a=DeviceBuffer(input_a, BufferAccess.READ_ONLY, context=context),
            input_b=DeviceBuffer(input_b, BufferAccess.READ_ONLY, context=context),
            output=DeviceBuffer(output, BufferAccess.READ_WRITE, context=context),
        )
