"""
Unit tests for kernel functors.
"""

from __future__ import annotations

import numpy as np
import pyopencl as cl
import pytest

from pydotcl.compilation.compiler import BuildResult, ProgramBuilder
from pydotcl.compilation.kernels import VECTOR_ADD, ArgKind, KernelDefinition
from pydotcl.core.buffers import BufferManager, BufferSet
from pydotcl.core.pipes import DevicePipe, PipeProvisioner
from pydotcl.core.platform import use_platform
from pydotcl.dispatch.functor import EnqueueArgs, KernelExecutionResult, KernelFunctor
from pydotcl.exceptions import (
    InvalidConfigurationError,
    KernelNotBuiltError,
    KernelNotFoundError,
    TypeValidationError,
)
from tests.fakes import FakeCL, FakeCommandQueue, FakeContext, FakeDevice, FakeKernel


class TestEnqueueArgs:
    """Tests for EnqueueArgs."""

    def test_ranges(self) -> None:
        """Test range tuples."""
        args = EnqueueArgs(16, 16)

        assert args.global_range == (16,)
        assert args.local_range == (16,)

    def test_no_local_size(self) -> None:
        """Test leaving the local size to the runtime."""
        assert EnqueueArgs(16).local_range is None

    @pytest.mark.parametrize(("global_size", "local_size"), [(0, None), (16, 0), (16, 5), (-1, 1)])
    def test_invalid(self, global_size: int, local_size: int | None) -> None:
        """Test range validation."""
        with pytest.raises(InvalidConfigurationError):
            EnqueueArgs(global_size, local_size)


class TestKernelExecutionResult:
    """Tests for KernelExecutionResult."""

    def test_defaults(self) -> None:
        """Test default status and error."""
        result = KernelExecutionResult(success=True, execution_time_ms=1.5)

        assert result.status == 0
        assert result.error is None


class TestKernelFunctor:
    """Tests for KernelFunctor."""

    @pytest.fixture
    def build(self, fake_context: FakeContext, fake_device: FakeDevice) -> BuildResult:
        return ProgramBuilder(context=fake_context, device=fake_device).build(VECTOR_ADD)

    @pytest.fixture
    def queue(self, fake_context: FakeContext) -> FakeCommandQueue:
        return FakeCommandQueue(fake_context)

    @pytest.fixture
    def provisioner(self, fake_context: FakeContext, fake_device: FakeDevice) -> PipeProvisioner:
        return PipeProvisioner(context=fake_context, device=fake_device)

    @pytest.fixture
    def buffers(self, fake_context: FakeContext) -> BufferSet:
        return BufferManager(fake_context).create(np.ones(32), np.full(32, 2))

    @pytest.fixture
    def pipe(self, provisioner: PipeProvisioner) -> DevicePipe:
        return provisioner.create_pipe(16)

    @pytest.fixture
    def functor(
        self,
        build: BuildResult,
        queue: FakeCommandQueue,
        provisioner: PipeProvisioner,
    ) -> KernelFunctor:
        return KernelFunctor(build, VECTOR_ADD, queue=queue, provisioner=provisioner)

    def test_binds_entry_point(self, functor: KernelFunctor, fake_cl: FakeCL) -> None:
        """Test binding to the vectorAdd entry point."""
        assert functor.name == "vectorAdd"
        assert functor.definition is VECTOR_ADD
        kernel = fake_cl.kernels[-1]
        assert kernel.name == "vectorAdd"
        assert kernel.scalar_dtypes == [None, None, None, np.int32, None]

    def test_failed_build_rejected(self, fake_context: FakeContext, fake_device: FakeDevice) -> None:
        """Test that a failed build cannot be bound."""
        broken = KernelDefinition(
            name="vectorAdd",
            source="#error\n" + VECTOR_ADD.source,
            signature=VECTOR_ADD.signature,
        )
        build = ProgramBuilder(context=fake_context, device=fake_device).build(broken)

        with pytest.raises(KernelNotBuiltError) as exc_info:
            KernelFunctor(build, broken)

        assert exc_info.value.build_log
        assert exc_info.value.kernel_name == "vectorAdd"

    def test_missing_entry_point(self, build: BuildResult) -> None:
        """Test binding a name the program does not define."""
        other = KernelDefinition(name="missing", source="x", signature=())

        with pytest.raises(KernelNotFoundError):
            KernelFunctor(build, other)

    def test_call(
        self,
        functor: KernelFunctor,
        buffers: BufferSet,
        pipe: DevicePipe,
        provisioner: PipeProvisioner,
        fake_cl: FakeCL,
    ) -> None:
        """Test a launch computes both halves and provisions the device queue."""
        functor(EnqueueArgs(16, 16), buffers.input_a, buffers.input_b, buffers.output, 3, pipe)

        assert provisioner.has_device_queue
        out = buffers.output.data.array
        np.testing.assert_array_equal(out[:16], np.full(16, 6))
        np.testing.assert_array_equal(out[16:], np.full(16, 3))
        global_size, local_size, args = fake_cl.kernels[-1].launches[0]
        assert global_size == (16,)
        assert local_size == (16,)
        assert args[3] == 3
        assert args[4] is pipe.data

    def test_call_with_status_success(
        self,
        functor: KernelFunctor,
        buffers: BufferSet,
        pipe: DevicePipe,
    ) -> None:
        """Test status capture on success."""
        result = functor.call_with_status(
            EnqueueArgs(16, 16), buffers.input_a, buffers.input_b, buffers.output, 3, pipe
        )

        assert result.success
        assert result.status == int(cl.status_code.SUCCESS)
        assert result.execution_time_ms >= 0

    def test_call_with_status_failure(
        self,
        functor: KernelFunctor,
        buffers: BufferSet,
        pipe: DevicePipe,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Test status capture when the launch fails."""
        monkeypatch.setattr(FakeKernel, "fail_launch", True)

        result = functor.call_with_status(
            EnqueueArgs(16, 16), buffers.input_a, buffers.input_b, buffers.output, 3, pipe
        )

        assert not result.success
        assert result.status == -5
        assert result.error is not None

    def test_wrong_arity(self, functor: KernelFunctor, buffers: BufferSet) -> None:
        """Test argument count validation."""
        with pytest.raises(InvalidConfigurationError):
            functor(EnqueueArgs(16), buffers.input_a, buffers.input_b)

    def test_wrong_type(
        self,
        functor: KernelFunctor,
        buffers: BufferSet,
        pipe: DevicePipe,
    ) -> None:
        """Test argument type validation."""
        with pytest.raises(TypeValidationError) as exc_info:
            functor(EnqueueArgs(16), buffers.input_a, buffers.input_b, buffers.output, 3.0, pipe)

        assert exc_info.value.expected == "int"
        assert exc_info.value.actual is float

    def test_bool_is_not_int(
        self,
        functor: KernelFunctor,
        buffers: BufferSet,
        pipe: DevicePipe,
    ) -> None:
        """Test that booleans are rejected for int parameters."""
        with pytest.raises(TypeValidationError):
            functor(EnqueueArgs(16), buffers.input_a, buffers.input_b, buffers.output, True, pipe)

    def test_pipe_and_buffer_swapped(
        self,
        functor: KernelFunctor,
        buffers: BufferSet,
        pipe: DevicePipe,
    ) -> None:
        """Test that a pipe is not accepted in a buffer slot."""
        with pytest.raises(TypeValidationError):
            functor(EnqueueArgs(16), pipe, buffers.input_b, buffers.output, 3, buffers.input_a)

    def test_numpy_scalar(
        self,
        functor: KernelFunctor,
        buffers: BufferSet,
        pipe: DevicePipe,
    ) -> None:
        """Test that NumPy integer scalars are accepted."""
        functor(
            EnqueueArgs(16), buffers.input_a, buffers.input_b, buffers.output, np.int32(3), pipe
        )

    def test_no_device_queue_without_flag(
        self,
        fake_context: FakeContext,
        fake_device: FakeDevice,
        queue: FakeCommandQueue,
        provisioner: PipeProvisioner,
        buffers: BufferSet,
        pipe: DevicePipe,
    ) -> None:
        """Test that kernels without nested enqueue do not create a device queue."""
        plain = KernelDefinition(
            name=VECTOR_ADD.name,
            source=VECTOR_ADD.source,
            signature=VECTOR_ADD.signature,
            needs_device_queue=False,
        )
        build = ProgramBuilder(context=fake_context, device=fake_device).build(plain)
        functor = KernelFunctor(build, plain, queue=queue, provisioner=provisioner)

        functor(EnqueueArgs(16), buffers.input_a, buffers.input_b, buffers.output, 3, pipe)

        assert not provisioner.has_device_queue

    def test_device_queue_without_provisioner(
        self,
        build: BuildResult,
        fake_context: FakeContext,
        fake_device: FakeDevice,
        buffers: BufferSet,
        pipe: DevicePipe,
        fake_cl: FakeCL,
    ) -> None:
        """Test a nested-enqueue kernel gets an on-device queue on its own."""
        queue = FakeCommandQueue(fake_context, fake_device)
        functor = KernelFunctor(build, VECTOR_ADD, queue=queue)

        assert functor.provisioner is not None
        assert not [q for q in fake_cl.queues if q.properties]

        functor(EnqueueArgs(16, 16), buffers.input_a, buffers.input_b, buffers.output, 3, pipe)

        on_device = [q for q in fake_cl.queues if q.properties]
        assert len(on_device) == 1
        assert on_device[0].context is fake_context
        assert on_device[0].device is fake_device

        functor(EnqueueArgs(16, 16), buffers.input_a, buffers.input_b, buffers.output, 3, pipe)

        assert len([q for q in fake_cl.queues if q.properties]) == 1

    def test_device_queue_on_default_platform(
        self,
        build: BuildResult,
        buffers: BufferSet,
        pipe: DevicePipe,
        fake_cl: FakeCL,
    ) -> None:
        """Test the bare two-argument form provisions over the defaults."""
        use_platform(fake_cl.platforms[-1])
        functor = KernelFunctor(build, VECTOR_ADD)

        functor(EnqueueArgs(16, 16), buffers.input_a, buffers.input_b, buffers.output, 3, pipe)

        on_device = [q for q in fake_cl.queues if q.properties]
        assert len(on_device) == 1
        assert on_device[0].device is fake_cl.platforms[-1].devices[0]
        assert functor.provisioner.has_device_queue

    def test_no_provisioner_without_flag(
        self,
        fake_context: FakeContext,
        fake_device: FakeDevice,
        queue: FakeCommandQueue,
    ) -> None:
        """Test kernels without nested enqueue get no provisioner."""
        plain = KernelDefinition(
            name=VECTOR_ADD.name,
            source=VECTOR_ADD.source,
            signature=VECTOR_ADD.signature,
        )
        build = ProgramBuilder(context=fake_context, device=fake_device).build(plain)

        assert KernelFunctor(build, plain, queue=queue).provisioner is None

    def test_repr(self, functor: KernelFunctor) -> None:
        """Test string representation."""
        assert repr(functor) == "KernelFunctor(vectorAdd(BUFFER, BUFFER, BUFFER, INT, PIPE))"


class TestArgKind:
    """Tests for ArgKind."""

    def test_kinds(self) -> None:
        """Test all argument kinds are defined."""
        assert {kind.name for kind in ArgKind} == {"BUFFER", "INT", "PIPE"}
