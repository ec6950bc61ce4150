"""
Core platform, memory and reporting components.
"""

from pydotcl.core.buffers import BufferManager, BufferSet, DeviceBuffer
from pydotcl.core.pipes import DevicePipe, PipeProvisioner
from pydotcl.core.platform import DeviceCapabilities, PlatformInfo, SelectionPolicy
from pydotcl.core.reporter import ResultReporter, VerificationReport

__all__ = [
    "PlatformInfo",
    "SelectionPolicy",
    "DeviceCapabilities",
    "DeviceBuffer",
    "BufferSet",
    "BufferManager",
    "DevicePipe",
    "PipeProvisioner",
    "ResultReporter",
    "VerificationReport",
]
