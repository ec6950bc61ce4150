"""
Typed kernel functors.

A KernelFunctor binds one program entry point to a fixed positional
signature and enqueues it over a 1-D range.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import numpy as np
import pyopencl as cl

from pydotcl.compilation.kernels import ArgKind, KernelDefinition
from pydotcl.core.buffers import DeviceBuffer
from pydotcl.core.pipes import DevicePipe, PipeProvisioner
from pydotcl.core.platform import get_default_queue
from pydotcl.exceptions import (
    InvalidConfigurationError,
    KernelNotBuiltError,
    KernelNotFoundError,
    TypeValidationError,
)

if TYPE_CHECKING:
    from pydotcl.compilation.compiler import BuildResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnqueueArgs:
    """Global and local work size of a 1-D launch."""

    global_size: int
    local_size: int | None = None

    def __post_init__(self) -> None:
        """Validate the range."""
        if self.global_size <= 0:
            raise InvalidConfigurationError("global_size", self.global_size, "must be positive")
        if self.local_size is not None:
            if self.local_size <= 0:
                raise InvalidConfigurationError("local_size", self.local_size, "must be positive")
            if self.global_size % self.local_size:
                raise InvalidConfigurationError(
                    "local_size",
                    self.local_size,
                    f"must divide global_size ({self.global_size})",
                )

    @property
    def global_range(self) -> tuple[int]:
        """Get the global range tuple."""
        return (self.global_size,)

    @property
    def local_range(self) -> tuple[int] | None:
        """Get the local range tuple."""
        if self.local_size is None:
            return None
        return (self.local_size,)


@dataclass
class KernelExecutionResult:
    """Result of a kernel launch whose status was captured."""

    success: bool
    execution_time_ms: float
    status: int = 0
    error: Exception | None = None


_EXPECTED_TYPES: dict[ArgKind, tuple[type, ...]] = {
    ArgKind.BUFFER: (DeviceBuffer, cl.Buffer),
    ArgKind.INT: (int, np.integer),
    ArgKind.PIPE: (DevicePipe, cl.Pipe),
}


class KernelFunctor:
    """
    Callable bound to one entry point of a built program.

    Example:
        >>> functor = KernelFunctor(builder.build(VECTOR_ADD), VECTOR_ADD)
        >>> functor(EnqueueArgs(16, 16), a, b, out, 3, pipe)
    """

    def __init__(
        self,
        build: BuildResult,
        definition: KernelDefinition,
        *,
        queue: Any = None,
        provisioner: PipeProvisioner | None = None,
    ) -> None:
        """
        Bind the entry point.

        Args:
            build: Result of building the definition's program.
            definition: Kernel definition with the entry point and signature.
            queue: Host command queue (default queue if None).
            provisioner: Supplies the on-device queue for nested enqueue.
                Created over the queue's context and device when the
                kernel needs one and none is given.

        Raises:
            KernelNotBuiltError: If the build failed.
            KernelNotFoundError: If the program lacks the entry point.
        """
        if not build.success:
            raise KernelNotBuiltError(definition.name, build.build_log)

        if provisioner is None and definition.needs_device_queue:
            if queue is not None:
                provisioner = PipeProvisioner(context=queue.context, device=queue.device)
            else:
                provisioner = PipeProvisioner()

        self._definition = definition
        self._queue = queue
        self._provisioner = provisioner
        program = build.unwrap()
        try:
            self._kernel = cl.Kernel(program, definition.name)
        except cl.LogicError as e:
            raise KernelNotFoundError(definition.name) from e
        self._kernel.set_scalar_arg_dtypes(
            [np.int32 if kind is ArgKind.INT else None for kind in definition.signature]
        )

    @property
    def name(self) -> str:
        """Get the entry point name."""
        return self._definition.name

    @property
    def definition(self) -> KernelDefinition:
        """Get the kernel definition."""
        return self._definition

    @property
    def provisioner(self) -> PipeProvisioner | None:
        """Get the provisioner supplying the on-device queue."""
        return self._provisioner

    @property
    def queue(self) -> Any:
        """Get the host command queue."""
        if self._queue is None:
            self._queue = get_default_queue()
        return self._queue

    def __call__(self, enqueue_args: EnqueueArgs, *args: Any) -> Any:
        """
        Enqueue the kernel.

        Args:
            enqueue_args: Launch range.
            *args: Positional kernel arguments.

        Returns:
            The launch event.
        """
        kernel_args = self._convert_args(args)
        if self._definition.needs_device_queue:
            self._provisioner.ensure_device_queue()

        logger.debug(
            f"Enqueue '{self.name}' global={enqueue_args.global_range} "
            f"local={enqueue_args.local_range}"
        )
        return self._kernel(
            self.queue,
            enqueue_args.global_range,
            enqueue_args.local_range,
            *kernel_args,
        )

    def call_with_status(self, enqueue_args: EnqueueArgs, *args: Any) -> KernelExecutionResult:
        """
        Enqueue the kernel and capture its status instead of raising.

        Returns:
            Execution result carrying the OpenCL status code.
        """
        start_time = time.perf_counter()

        try:
            self(enqueue_args, *args)
            end_time = time.perf_counter()
            return KernelExecutionResult(
                success=True,
                execution_time_ms=(end_time - start_time) * 1000,
                status=int(cl.status_code.SUCCESS),
            )

        except cl.Error as e:
            end_time = time.perf_counter()
            logger.warning(f"Launch of '{self.name}' failed: {e}")
            return KernelExecutionResult(
                success=False,
                execution_time_ms=(end_time - start_time) * 1000,
                status=int(e.code),
                error=e,
            )

    def _convert_args(self, args: tuple[Any, ...]) -> list[Any]:
        """Check arguments against the signature and unwrap handles."""
        signature = self._definition.signature
        if len(args) != len(signature):
            raise InvalidConfigurationError(
                "args", len(args), f"'{self.name}' takes {len(signature)} arguments"
            )

        converted: list[Any] = []
        for index, (kind, arg) in enumerate(zip(signature, args)):
            if isinstance(arg, bool) or not isinstance(arg, _EXPECTED_TYPES[kind]):
                raise TypeValidationError(
                    kind.name.lower(), type(arg), f"argument {index} of '{self.name}'"
                )
            if isinstance(arg, (DeviceBuffer, DevicePipe)):
                arg = arg.data
            converted.append(arg)
        return converted

    def __repr__(self) -> str:
        """String representation."""
        kinds = ", ".join(kind.name for kind in self._definition.signature)
        return f"KernelFunctor({self.name}({kinds}))"
