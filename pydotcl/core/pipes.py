"""
Pipe and on-device queue provisioning.

Pipes are device-side FIFO channels written by kernels. Kernels that
enqueue nested work need a default on-device command queue, which
the host must create before launching them.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import numpy as np
import pyopencl as cl

from pydotcl.core.platform import get_default_context, get_default_device
from pydotcl.exceptions import DeviceQueueError, InvalidConfigurationError

if TYPE_CHECKING:
    from numpy.typing import DTypeLike

    from pydotcl.core.platform import DeviceCapabilities

logger = logging.getLogger(__name__)

DEVICE_QUEUE_PROPERTIES = (
    cl.command_queue_properties.OUT_OF_ORDER_EXEC_MODE_ENABLE
    | cl.command_queue_properties.ON_DEVICE
    | cl.command_queue_properties.ON_DEVICE_DEFAULT
)


class DevicePipe:
    """Fixed-capacity device-side FIFO of fixed-size packets."""

    def __init__(self, packet_size: int, max_packets: int, *, context: Any = None) -> None:
        """
        Create the pipe.

        Args:
            packet_size: Size of one packet in bytes.
            max_packets: Pipe capacity in packets.
            context: Context to create it in (default context if None).
        """
        if packet_size <= 0:
            raise InvalidConfigurationError("packet_size", packet_size, "must be positive")
        if max_packets <= 0:
            raise InvalidConfigurationError("max_packets", max_packets, "must be positive")

        self._packet_size = packet_size
        self._max_packets = max_packets
        context = context if context is not None else get_default_context()
        self._pipe: Any = cl.Pipe(
            context,
            cl.mem_flags.READ_WRITE | cl.mem_flags.HOST_NO_ACCESS,
            packet_size,
            max_packets,
            (),
        )

    @property
    def packet_size(self) -> int:
        """Get the packet size in bytes."""
        return self._packet_size

    @property
    def max_packets(self) -> int:
        """Get the capacity in packets."""
        return self._max_packets

    @property
    def data(self) -> Any:
        """Get the underlying OpenCL pipe."""
        return self._pipe

    def release(self) -> None:
        """Release the pipe."""
        if self._pipe is not None:
            self._pipe.release()
            self._pipe = None

    def __repr__(self) -> str:
        """String representation."""
        return f"DevicePipe(packet_size={self._packet_size}, max_packets={self._max_packets})"


class PipeProvisioner:
    """
    Creates pipes and the default on-device command queue.

    The on-device queue is created at most once per provisioner. No query
    tells whether a kernel enqueues nested work, so it is created on request
    for any kernel declaring ``needs_device_queue``.
    """

    def __init__(
        self,
        *,
        context: Any = None,
        device: Any = None,
        capabilities: DeviceCapabilities | None = None,
    ) -> None:
        """
        Initialize the provisioner.

        Args:
            context: Context (default context if None).
            device: Device (default device if None).
            capabilities: Device limits to check pipes against.
        """
        self._context = context
        self._device = device
        self._capabilities = capabilities
        self._device_queue: Any = None

    @property
    def context(self) -> Any:
        """Get the context."""
        if self._context is None:
            self._context = get_default_context()
        return self._context

    @property
    def device(self) -> Any:
        """Get the device."""
        if self._device is None:
            self._device = get_default_device()
        return self._device

    @property
    def has_device_queue(self) -> bool:
        """Check whether the on-device queue has been created."""
        return self._device_queue is not None

    def create_pipe(self, packet_count: int, dtype: DTypeLike = np.int32) -> DevicePipe:
        """
        Create a pipe of ``packet_count`` packets of ``dtype``.

        Args:
            packet_count: Capacity in packets.
            dtype: Packet element type.

        Returns:
            The new pipe.
        """
        packet_size = np.dtype(dtype).itemsize
        caps = self._capabilities
        if caps is not None and not caps.supports_pipe(packet_size, packet_count):
            raise InvalidConfigurationError(
                "packet_size",
                packet_size,
                f"device allows {caps.max_pipe_args} pipe args of at most "
                f"{caps.pipe_max_packet_size} bytes per packet",
            )

        pipe = DevicePipe(packet_size, packet_count, context=self.context)
        logger.debug(f"Created {pipe!r}")
        return pipe

    def ensure_device_queue(self) -> Any:
        """
        Get the default on-device queue, creating it on first call.

        Raises:
            DeviceQueueError: If the runtime refuses to create the queue.
        """
        if self._device_queue is None:
            try:
                self._device_queue = cl.CommandQueue(
                    self.context,
                    self.device,
                    properties=DEVICE_QUEUE_PROPERTIES,
                )
            except cl.Error as e:
                raise DeviceQueueError(e) from e
            logger.info("Created default on-device command queue")
        return self._device_queue
