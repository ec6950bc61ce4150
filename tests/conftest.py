"""
Pytest configuration and shared fixtures.
"""

from __future__ import annotations

from collections.abc import Generator
from typing import Any

import pyopencl as cl
import pytest

from pydotcl.core import platform as cl_platform
from pydotcl.core.platform import REQUIRED_VERSION, enumerate_platforms
from tests.fakes import (
    FakeBuffer,
    FakeCL,
    FakeCommandQueue,
    FakeContext,
    FakeDevice,
    FakeKernel,
    FakePipe,
    FakePlatform,
    FakeProgram,
    fake_enqueue_copy,
)


@pytest.fixture(autouse=True)
def reset_defaults() -> Generator[None, None, None]:
    """Start every test without a default platform."""
    cl_platform.reset_defaults()
    yield
    cl_platform.reset_defaults()


@pytest.fixture
def fake_device() -> FakeDevice:
    """Provide a fake OpenCL 2.0 device."""
    return FakeDevice()


@pytest.fixture
def fake_platforms() -> list[FakePlatform]:
    """Provide one 1.2 platform followed by two 2.x platforms."""
    return [
        FakePlatform(name="Legacy", version="OpenCL 1.2 legacy"),
        FakePlatform(name="First2x", version="OpenCL 2.0 first"),
        FakePlatform(name="Last2x", version="OpenCL 2.1 last"),
    ]


@pytest.fixture
def fake_cl(
    monkeypatch: pytest.MonkeyPatch,
    fake_platforms: list[FakePlatform],
) -> FakeCL:
    """Replace the pyopencl entry points used by pydotcl with fakes."""
    handle = FakeCL(platforms=fake_platforms)

    def make_kernel(program: FakeProgram, name: str) -> FakeKernel:
        kernel = FakeKernel(program, name)
        handle.kernels.append(kernel)
        return kernel

    def make_queue(context: Any, device: Any = None, properties: int = 0) -> FakeCommandQueue:
        queue = FakeCommandQueue(context, device, properties)
        handle.queues.append(queue)
        return queue

    monkeypatch.setattr(cl, "get_platforms", lambda: list(handle.platforms))
    monkeypatch.setattr(cl, "Context", FakeContext)
    monkeypatch.setattr(cl, "CommandQueue", make_queue)
    monkeypatch.setattr(cl, "Buffer", FakeBuffer)
    monkeypatch.setattr(cl, "Pipe", FakePipe)
    monkeypatch.setattr(cl, "Program", FakeProgram)
    monkeypatch.setattr(cl, "Kernel", make_kernel)
    monkeypatch.setattr(cl, "enqueue_copy", fake_enqueue_copy)
    FakeKernel.fail_launch = False
    return handle


@pytest.fixture
def fake_context(fake_cl: FakeCL, fake_device: FakeDevice) -> FakeContext:
    """Provide a fake context over the fake device."""
    return FakeContext(devices=[fake_device])


def _opencl2_available() -> bool:
    return any(REQUIRED_VERSION in p.version for p in enumerate_platforms())


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom markers."""
    config.addinivalue_line(
        "markers", "opencl: mark test as requiring an OpenCL 2.x platform"
    )


def pytest_collection_modifyitems(
    config: pytest.Config,
    items: list[pytest.Item],
) -> None:
    """Skip OpenCL tests if no OpenCL 2.x platform is available."""
    if not _opencl2_available():
        skip_opencl = pytest.mark.skip(reason="No OpenCL 2.x platform available")
        for item in items:
            if "opencl" in item.keywords:
                item.add_marker(skip_opencl)
