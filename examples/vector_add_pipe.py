"""
Vector Addition with Pipes and Device-Side Enqueue for PyDotCL.

Demonstrates the individual dispatch stages that ``run_vector_add``
strings together. Requires an OpenCL 2.x platform.
"""

from __future__ import annotations

import sys

import numpy as np

from pydotcl import (
    VECTOR_ADD,
    BufferManager,
    EnqueueArgs,
    KernelFunctor,
    PipeProvisioner,
    ProgramBuilder,
    ResultReporter,
    query_capabilities,
    select_platform,
    use_platform,
    vector_add_reference,
    verify_output,
)
from pydotcl.exceptions import PlatformError

NUM_ELEMENTS = 32


def run_vector_add_example() -> int:
    """Run the vector addition example stage by stage."""
    print("=" * 60)
    print("PyDotCL Pipe + Device Enqueue Example")
    print("=" * 60)

    print("\n1. Selecting platform...")
    try:
        selected = select_platform()
        use_platform(selected.platform)
    except PlatformError as e:
        print(f"   {e}")
        return 1
    print(f"   Using {selected.name} ({selected.version})")

    print("\n2. Building program...")
    build = ProgramBuilder().build(VECTOR_ADD)
    print(f"   Built in {build.build_time_ms:.1f} ms" if build.success else "   Build failed")
    if not build.success:
        return 1

    print("\n3. Creating buffers...")
    a = np.arange(NUM_ELEMENTS, dtype=np.int32)
    b = np.full(NUM_ELEMENTS, 10, dtype=np.int32)
    buffers = BufferManager().create(a, b)

    print("\n4. Provisioning pipe and device queue...")
    provisioner = PipeProvisioner()
    pipe = provisioner.create_pipe(NUM_ELEMENTS // 2)
    provisioner.ensure_device_queue()
    print(f"   {pipe!r}")

    print("\n5. Launching kernel...")
    vector_add = KernelFunctor(build, VECTOR_ADD, provisioner=provisioner)
    half = NUM_ELEMENTS // 2
    result = vector_add.call_with_status(
        EnqueueArgs(half, half), buffers.input_a, buffers.input_b, buffers.output, 3, pipe
    )
    print(f"   status={result.status} time={result.execution_time_ms:.3f} ms")

    print("\n6. Reading back...")
    reporter = ResultReporter(skip_first=False)
    output = reporter.read_back(buffers)
    reporter.report(query_capabilities(), output)

    report = verify_output(output, vector_add_reference(a, b, 3, half))
    print("Verification:", "passed" if report.ok else f"failed at {report.mismatches}")

    buffers.release()
    pipe.release()
    return 0 if report.ok else 1


if __name__ == "__main__":
    sys.exit(run_vector_add_example())
