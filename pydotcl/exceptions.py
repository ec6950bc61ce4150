"""
PyDotCL exception hierarchy.

This module defines the exception hierarchy for PyDotCL, providing
specific exception types for each stage of a dispatch:

- PlatformError: Platform discovery and default selection
- CompilationError: Program build failures
- KernelError: Kernel functor construction and lookup
- BufferError: Device buffer allocation and transfer
- QueueError: On-device command queue provisioning
- ValidationError: Configuration and argument type validation

All exceptions inherit from PyDotCLError for easy catching.
"""

from __future__ import annotations


class PyDotCLError(Exception):
    """Base exception for all PyDotCL errors."""

    pass


class PlatformError(PyDotCLError):
    """Base exception for platform selection errors."""

    pass


class NoQualifyingPlatformError(PlatformError):
    """Raised when no platform reports the required version substring."""

    def __init__(self, required: str, seen: list[str] | None = None) -> None:
        self.required = required
        self.seen = seen or []
        msg = f"No platform version contains '{required}'."
        if self.seen:
            msg += f" Platforms seen: {self.seen}"
        super().__init__(msg)


class DefaultPlatformError(PlatformError):
    """Raised when the default platform does not read back as the one that was set."""

    def __init__(self, requested: object, actual: object) -> None:
        self.requested = requested
        self.actual = actual
        super().__init__(f"Default platform is {actual!r}, expected {requested!r}")


class CompilationError(PyDotCLError):
    """Base exception for compilation-related errors."""

    pass


class ProgramBuildError(CompilationError):
    """Raised when a program build result is unwrapped after a failed build."""

    def __init__(self, kernel_name: str, build_log: str, cause: Exception | None = None) -> None:
        self.kernel_name = kernel_name
        self.build_log = build_log
        self.cause = cause
        msg = f"Failed to build program for kernel '{kernel_name}'"
        if cause is not None:
            msg += f": {cause}"
        super().__init__(msg)


class KernelError(PyDotCLError):
    """Base exception for kernel-related errors."""

    pass


class KernelNotBuiltError(KernelError):
    """Raised when a kernel functor is bound to a program that failed to build."""

    def __init__(self, kernel_name: str, build_log: str = "") -> None:
        self.kernel_name = kernel_name
        self.build_log = build_log
        super().__init__(
            f"Cannot create functor for kernel '{kernel_name}': program was not built"
        )


class KernelNotFoundError(KernelError):
    """Raised when a built program has no entry point with the requested name."""

    def __init__(self, kernel_name: str, available: list[str] | None = None) -> None:
        self.kernel_name = kernel_name
        self.available = available or []
        msg = f"Kernel '{kernel_name}' not found in program."
        if self.available:
            msg += f" Available kernels: {self.available}"
        super().__init__(msg)


class BufferError(PyDotCLError):
    """Base exception for buffer-related errors."""

    pass


class BufferNotAllocatedError(BufferError):
    """Raised when accessing a buffer that has been released."""

    def __init__(self) -> None:
        super().__init__("Device buffer has been released.")


class BufferSyncError(BufferError):
    """Raised when a host/device transfer fails."""

    def __init__(self, direction: str, cause: Exception) -> None:
        self.direction = direction
        self.cause = cause
        super().__init__(f"Failed to copy buffer {direction}: {cause}")


class QueueError(PyDotCLError):
    """Base exception for command queue errors."""

    pass


class DeviceQueueError(QueueError):
    """Raised when the on-device default queue cannot be created."""

    def __init__(self, cause: Exception) -> None:
        self.cause = cause
        super().__init__(f"Failed to create on-device command queue: {cause}")


class ValidationError(PyDotCLError):
    """Base exception for validation-related errors."""

    pass


class InvalidConfigurationError(ValidationError):
    """Raised when configuration is invalid."""

    def __init__(self, parameter: str, value: object, reason: str) -> None:
        self.parameter = parameter
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid configuration: {parameter}={value!r} - {reason}")


class TypeValidationError(ValidationError):
    """Raised when a kernel argument does not match the declared signature."""

    def __init__(self, expected: str, actual: type, context: str) -> None:
        self.expected = expected
        self.actual = actual
        self.context = context
        super().__init__(
            f"Type mismatch in {context}: expected {expected}, got {actual.__name__}"
        )
