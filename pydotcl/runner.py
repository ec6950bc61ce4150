"""
End-to-end vectorAdd dispatch.

Selects an OpenCL 2.x platform, builds the vectorAdd kernel, provisions
buffers, a pipe and the on-device queue, launches the kernel twice and
prints the results.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from typing import IO, TYPE_CHECKING, Any

import numpy as np

from pydotcl.compilation.compiler import BuildOptions, ProgramBuilder
from pydotcl.compilation.kernels import VECTOR_ADD
from pydotcl.core.buffers import BufferManager, sentinel_array
from pydotcl.core.pipes import PipeProvisioner
from pydotcl.core.platform import (
    REQUIRED_VERSION,
    SelectionPolicy,
    get_default_context,
    get_default_device,
    get_default_queue,
    query_capabilities,
    select_platform,
    use_platform,
)
from pydotcl.core.reporter import ResultReporter, VerificationReport, verify_output
from pydotcl.dispatch.functor import EnqueueArgs, KernelExecutionResult, KernelFunctor
from pydotcl.dispatch.reference import vector_add_reference
from pydotcl.exceptions import (
    DefaultPlatformError,
    InvalidConfigurationError,
    NoQualifyingPlatformError,
    PyDotCLError,
)

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from pydotcl.core.platform import DeviceCapabilities

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_NO_PLATFORM = -1


@dataclass
class DispatchConfig:
    """
    Configuration for a vectorAdd dispatch.

    Each launch runs ``num_elements // 2`` work-items in a single work-group,
    and the nested launch does the same. That half must not exceed the
    device's ``max_work_group_size``.
    """

    num_elements: int = 32
    scalar: int = 3
    input_a_value: int = 1
    input_b_value: int = 2
    required_version: str = REQUIRED_VERSION
    selection_policy: SelectionPolicy = SelectionPolicy.LAST
    cl_std: str | None = "CL2.0"
    abort_on_build_failure: bool = False
    skip_first_output: bool = True

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.num_elements <= 0 or self.num_elements % 2:
            raise InvalidConfigurationError(
                "num_elements", self.num_elements, "must be a positive even number"
            )

    @property
    def half(self) -> int:
        """Work size of each launch; the nested launch covers the other half."""
        return self.num_elements // 2


@dataclass
class RunResult:
    """Everything a dispatch produced."""

    output: NDArray[np.int32]
    expected: NDArray[np.int32]
    capabilities: DeviceCapabilities
    launch: KernelExecutionResult
    verification: VerificationReport = field(default_factory=VerificationReport)


def run_vector_add(
    config: DispatchConfig | None = None,
    *,
    out: IO[str] | None = None,
    err: IO[str] | None = None,
    platforms: list[Any] | None = None,
) -> RunResult:
    """
    Run the full dispatch sequence.

    Args:
        config: Dispatch configuration.
        out: Stream for results (stdout if None).
        err: Stream for build logs (stderr if None).
        platforms: Platforms to choose from (enumerated if None).

    Returns:
        RunResult with the read-back output.

    Raises:
        NoQualifyingPlatformError: If no platform qualifies.
        DefaultPlatformError: If the default platform could not be set.
        KernelNotBuiltError: If the program failed to build.
        InvalidConfigurationError: If half of ``num_elements`` exceeds the
            device work-group size.
    """
    config = config or DispatchConfig()

    selected = select_platform(
        platforms,
        required=config.required_version,
        policy=config.selection_policy,
    )
    use_platform(selected.platform)

    device = get_default_device()
    context = get_default_context()
    queue = get_default_queue()

    builder = ProgramBuilder(
        BuildOptions(cl_std=config.cl_std),
        context=context,
        device=device,
        log_stream=err,
    )
    build = builder.build(VECTOR_ADD)
    if config.abort_on_build_failure:
        build.unwrap()

    capabilities = query_capabilities(device)
    # the nested launch reuses the same local size
    if not capabilities.supports_work_group(config.half):
        raise InvalidConfigurationError(
            "num_elements",
            config.num_elements,
            f"half of it must not exceed the device work-group size "
            f"({capabilities.max_work_group_size})",
        )
    provisioner = PipeProvisioner(context=context, device=device, capabilities=capabilities)
    # raises KernelNotBuiltError when the build above failed
    vector_add = KernelFunctor(build, VECTOR_ADD, queue=queue, provisioner=provisioner)

    input_a = np.full(config.num_elements, config.input_a_value, dtype=np.int32)
    input_b = np.full(config.num_elements, config.input_b_value, dtype=np.int32)
    output = sentinel_array(config.num_elements)
    buffers = BufferManager(context).create(input_a, input_b, output)
    pipe = provisioner.create_pipe(config.half, np.int32)
    provisioner.ensure_device_queue()

    launch = EnqueueArgs(config.half, config.half)
    args = (buffers.input_a, buffers.input_b, buffers.output, config.scalar, pipe)

    # Both launches cover the same range; the second one only adds status capture.
    vector_add(launch, *args)
    result = vector_add.call_with_status(launch, *args)

    reporter = ResultReporter(out, skip_first=config.skip_first_output)
    output = reporter.read_back(buffers, queue)
    reporter.report(capabilities, output)

    expected = vector_add_reference(input_a, input_b, config.scalar, config.half)
    return RunResult(
        output=output,
        expected=expected,
        capabilities=capabilities,
        launch=result,
        verification=verify_output(output, expected),
    )


def main() -> int:
    """
    Command-line entry point.

    Returns:
        Process exit status.
    """
    try:
        run_vector_add()
    except NoQualifyingPlatformError as e:
        logger.debug(str(e))
        print("No OpenCL 2.0 platform found.")
        return EXIT_NO_PLATFORM
    except DefaultPlatformError as e:
        logger.debug(str(e))
        print("Error setting default platform.")
        return EXIT_NO_PLATFORM
    except PyDotCLError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE
    return EXIT_OK
