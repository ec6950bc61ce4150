"""
OpenCL platform selection and process-wide defaults.

Provides platform discovery filtered by version, the process-wide default
platform/device/context/queue, and device capability queries.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any

import pyopencl as cl

from pydotcl.exceptions import DefaultPlatformError, NoQualifyingPlatformError

logger = logging.getLogger(__name__)

REQUIRED_VERSION = "OpenCL 2."


class SelectionPolicy(Enum):
    """Which qualifying platform wins when several match."""

    FIRST = auto()
    LAST = auto()


@dataclass(frozen=True)
class PlatformInfo:
    """A platform handle together with its identifying strings."""

    platform: Any
    name: str
    vendor: str
    version: str

    @classmethod
    def from_platform(cls, platform: Any) -> PlatformInfo:
        """Read name, vendor and version from a platform handle."""
        return cls(
            platform=platform,
            name=str(getattr(platform, "name", "")).strip(),
            vendor=str(getattr(platform, "vendor", "")).strip(),
            version=str(platform.version).strip(),
        )

    def matches(self, required: str) -> bool:
        """Check whether the version string contains ``required``."""
        return required in self.version


@dataclass(frozen=True)
class DeviceCapabilities:
    """Pipe, device-queue and work-group limits of a compute device."""

    name: str
    version: str
    max_pipe_args: int
    pipe_max_active_reservations: int
    pipe_max_packet_size: int
    max_on_device_queues: int = 0
    queue_on_device_max_size: int = 0
    max_work_group_size: int = 0

    def supports_pipe(self, packet_size: int, packet_count: int) -> bool:
        """Check whether a single pipe of the given shape fits the device limits."""
        return (
            self.max_pipe_args >= 1
            and self.pipe_max_packet_size >= packet_size
            and packet_count > 0
        )

    def supports_work_group(self, local_size: int) -> bool:
        """Check a 1-D work-group size. A zero limit means unknown and accepts any size."""
        if local_size <= 0:
            return False
        return self.max_work_group_size == 0 or local_size <= self.max_work_group_size


def enumerate_platforms() -> list[Any]:
    """
    List the platforms exposed by the installed OpenCL runtimes.

    Returns:
        Platform handles in runtime enumeration order. Empty when no
        runtime (ICD) is installed.
    """
    try:
        return list(cl.get_platforms())
    except cl.Error as e:
        # PLATFORM_NOT_FOUND_KHR when the ICD loader finds nothing
        logger.debug(f"Platform enumeration failed: {e}")
        return []


def select_platform(
    platforms: list[Any] | None = None,
    *,
    required: str = REQUIRED_VERSION,
    policy: SelectionPolicy = SelectionPolicy.LAST,
) -> PlatformInfo:
    """
    Pick a platform whose version string contains ``required``.

    Every platform is visited in enumeration order. With the default
    ``LAST`` policy the last qualifying platform wins.

    Args:
        platforms: Platform handles to consider (enumerated if None).
        required: Version substring to look for.
        policy: Which of several qualifying platforms to return.

    Returns:
        The selected platform.

    Raises:
        NoQualifyingPlatformError: If no platform qualifies.
    """
    if platforms is None:
        platforms = enumerate_platforms()

    selected: PlatformInfo | None = None
    seen: list[str] = []
    for platform in platforms:
        info = PlatformInfo.from_platform(platform)
        seen.append(info.version)
        logger.debug(f"Found platform '{info.name}' ({info.version})")
        if info.matches(required):
            selected = info
            if policy is SelectionPolicy.FIRST:
                break

    if selected is None:
        raise NoQualifyingPlatformError(required, seen)

    logger.info(f"Selected platform '{selected.name}' ({selected.version})")
    return selected


@dataclass
class _Defaults:
    platform: Any = None
    device: Any = None
    context: Any = None
    queue: Any = None


_defaults = _Defaults()


def set_default_platform(platform: Any) -> Any:
    """
    Make ``platform`` the process-wide default.

    The default can only be established once; later calls leave the
    existing default untouched.

    Returns:
        The default platform after the call.
    """
    if _defaults.platform is None:
        _defaults.platform = platform
    return _defaults.platform


def get_default_platform() -> Any:
    """Get the process-wide default platform, selecting one if unset."""
    if _defaults.platform is None:
        set_default_platform(select_platform().platform)
    return _defaults.platform


def use_platform(platform: Any) -> Any:
    """
    Set ``platform`` as default and verify it reads back unchanged.

    Raises:
        DefaultPlatformError: If a different platform is the default.
    """
    actual = set_default_platform(platform)
    if actual is not platform and actual != platform:
        raise DefaultPlatformError(platform, actual)
    return actual


def get_default_device() -> Any:
    """Get the default device: the default-type device of the default platform."""
    if _defaults.device is None:
        try:
            devices = get_default_platform().get_devices(device_type=cl.device_type.DEFAULT)
        except cl.Error as e:
            # DEVICE_NOT_FOUND when the platform exposes no default device
            logger.debug(f"Default device lookup failed: {e}")
            devices = []
        if not devices:
            raise NoQualifyingPlatformError(REQUIRED_VERSION)
        _defaults.device = devices[0]
        logger.debug(f"Default device: {getattr(_defaults.device, 'name', _defaults.device)}")
    return _defaults.device


def get_default_context() -> Any:
    """Get the default context, created over the default device."""
    if _defaults.context is None:
        _defaults.context = cl.Context(devices=[get_default_device()])
    return _defaults.context


def get_default_queue() -> Any:
    """Get the default in-order host command queue."""
    if _defaults.queue is None:
        _defaults.queue = cl.CommandQueue(get_default_context(), get_default_device())
    return _defaults.queue


def reset_defaults() -> None:
    """Forget all process-wide defaults."""
    global _defaults
    _defaults = _Defaults()


def query_capabilities(device: Any | None = None) -> DeviceCapabilities:
    """
    Query the pipe and on-device queue limits of a device.

    Args:
        device: Device handle (default device if None).

    Returns:
        DeviceCapabilities for the device.
    """
    if device is None:
        device = get_default_device()

    return DeviceCapabilities(
        name=str(getattr(device, "name", "")).strip(),
        version=str(getattr(device, "version", "")).strip(),
        max_pipe_args=int(device.max_pipe_args),
        pipe_max_active_reservations=int(device.pipe_max_active_reservations),
        pipe_max_packet_size=int(device.pipe_max_packet_size),
        max_on_device_queues=int(getattr(device, "max_on_device_queues", 0)),
        queue_on_device_max_size=int(getattr(device, "queue_on_device_max_size", 0)),
        max_work_group_size=int(getattr(device, "max_work_group_size", 0)),
    )
