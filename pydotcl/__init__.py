"""
PyDotCL - OpenCL 2.0 device-side enqueue and pipes from Python.

Demonstrates the host-side sequence needed to launch a kernel that writes
to a pipe and enqueues nested work on the device:

    - Platform selection: pick an OpenCL 2.x platform as process default
    - Program build: compile with ``-cl-std=CL2.0``, report build logs
    - Buffers: copy-in inputs and a sentinel-filled output
    - Pipes and device queues: provision the pipe and on-device queue
    - Dispatch: typed kernel functors over a 1-D range
    - Reporting: read back, print pipe limits and results

Quick Start:
    >>> from pydotcl import DispatchConfig, run_vector_add
    >>> result = run_vector_add(DispatchConfig(num_elements=32, scalar=3))
    >>> result.verification.ok
    True

Or from the command line:

    $ python -m pydotcl
"""

from pydotcl.compilation.compiler import BuildOptions, BuildResult, ProgramBuilder
from pydotcl.compilation.kernels import VECTOR_ADD, ArgKind, KernelDefinition
from pydotcl.core.buffers import SENTINEL, BufferManager, DeviceBuffer
from pydotcl.core.pipes import DevicePipe, PipeProvisioner
from pydotcl.core.platform import (
    DeviceCapabilities,
    SelectionPolicy,
    query_capabilities,
    select_platform,
    use_platform,
)
from pydotcl.core.reporter import ResultReporter, verify_output
from pydotcl.dispatch.functor import EnqueueArgs, KernelExecutionResult, KernelFunctor
from pydotcl.dispatch.reference import vector_add_reference
from pydotcl.runner import DispatchConfig, RunResult, main, run_vector_add

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Platform
    "SelectionPolicy",
    "DeviceCapabilities",
    "select_platform",
    "use_platform",
    "query_capabilities",
    # Compilation
    "ArgKind",
    "KernelDefinition",
    "VECTOR_ADD",
    "BuildOptions",
    "BuildResult",
    "ProgramBuilder",
    # Memory
    "SENTINEL",
    "DeviceBuffer",
    "BufferManager",
    "DevicePipe",
    "PipeProvisioner",
    # Dispatch
    "EnqueueArgs",
    "KernelFunctor",
    "KernelExecutionResult",
    "vector_add_reference",
    # Reporting
    "ResultReporter",
    "verify_output",
    # Runner
    "DispatchConfig",
    "RunResult",
    "run_vector_add",
    "main",
]
