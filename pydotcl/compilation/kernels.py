"""
Kernel definitions.

A kernel definition pairs OpenCL C source with the entry point name, its
positional argument signature, and whether it enqueues nested work.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto

from pydotcl.exceptions import InvalidConfigurationError


class ArgKind(Enum):
    """Kind of a positional kernel argument."""

    BUFFER = auto()
    INT = auto()
    PIPE = auto()


@dataclass(frozen=True)
class KernelDefinition:
    """OpenCL C source exposing one entry point."""

    name: str
    source: str
    signature: tuple[ArgKind, ...]
    needs_device_queue: bool = False

    def __post_init__(self) -> None:
        """Validate the definition."""
        if not self.name:
            raise InvalidConfigurationError("name", self.name, "must not be empty")
        if not self.source.strip():
            raise InvalidConfigurationError("source", self.source, "must not be empty")

    @property
    def arity(self) -> int:
        """Number of positional arguments."""
        return len(self.signature)


VECTOR_ADD_SOURCE = """
kernel void vectorAdd(global const int *inputA,
                      global const int *inputB,
                      global int *output,
                      int val,
                      write_only pipe int outPipe)
{
    output[get_global_id(0)] = inputA[get_global_id(0)] + inputB[get_global_id(0)] + val;
    write_pipe(outPipe, &val);
    queue_t default_queue = get_default_queue();
    ndrange_t ndrange = ndrange_1D(get_global_size(0), get_global_size(0));
    enqueue_kernel(default_queue, CLK_ENQUEUE_FLAGS_WAIT_KERNEL, ndrange,
        ^{
            output[get_global_size(0) + get_global_id(0)] =
                inputA[get_global_size(0) + get_global_id(0)]
                + inputB[get_global_size(0) + get_global_id(0)];
        });
}
"""

# Each launch writes [0, gsz) itself and [gsz, 2*gsz) through the nested enqueue.
VECTOR_ADD = KernelDefinition(
    name="vectorAdd",
    source=VECTOR_ADD_SOURCE,
    signature=(ArgKind.BUFFER, ArgKind.BUFFER, ArgKind.BUFFER, ArgKind.INT, ArgKind.PIPE),
    needs_device_queue=True,
)
