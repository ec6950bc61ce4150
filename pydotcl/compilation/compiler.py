"""
Program builder for PyDotCL.

Handles compilation of OpenCL C source against the default device
and reports build logs on failure.
"""

from __future__ import annotations

import hashlib
import logging
import sys
import time
from dataclasses import dataclass, field
from typing import IO, Any

import pyopencl as cl

from pydotcl.compilation.kernels import KernelDefinition
from pydotcl.core.platform import get_default_context, get_default_device
from pydotcl.exceptions import ProgramBuildError

logger = logging.getLogger(__name__)


@dataclass
class BuildOptions:
    """Options for program builds."""

    cl_std: str | None = "CL2.0"
    extra: list[str] = field(default_factory=list)
    cache: bool = True

    def as_list(self) -> list[str]:
        """Get the options as passed to the compiler."""
        options = []
        if self.cl_std:
            options.append(f"-cl-std={self.cl_std}")
        options.extend(self.extra)
        return options


@dataclass
class BuildResult:
    """Outcome of a program build."""

    success: bool
    kernel_name: str
    source_hash: str
    program: Any = None
    build_log: str = ""
    error: Exception | None = None
    build_time_ms: float = 0.0

    def unwrap(self) -> Any:
        """
        Get the built program.

        Raises:
            ProgramBuildError: If the build failed.
        """
        if not self.success:
            raise ProgramBuildError(self.kernel_name, self.build_log, self.error)
        return self.program


class ProgramBuilder:
    """
    Builder for OpenCL programs.

    A failed build does not raise: the build log is written to ``log_stream``
    and returned inside a failed BuildResult, which the caller must unwrap.

    Example:
        >>> builder = ProgramBuilder()
        >>> result = builder.build(VECTOR_ADD)
        >>> program = result.unwrap()
    """

    def __init__(
        self,
        options: BuildOptions | None = None,
        *,
        context: Any = None,
        device: Any = None,
        log_stream: IO[str] | None = None,
    ) -> None:
        """
        Initialize the program builder.

        Args:
            options: Build options.
            context: Context to build in (default context if None).
            device: Device to build for (default device if None).
            log_stream: Where build logs are printed (stderr if None).
        """
        self._options = options or BuildOptions()
        self._context = context
        self._device = device
        self._log_stream = log_stream
        self._build_cache: dict[str, BuildResult] = {}

    @property
    def options(self) -> BuildOptions:
        """Get the build options."""
        return self._options

    @property
    def context(self) -> Any:
        """Get the build context."""
        if self._context is None:
            self._context = get_default_context()
        return self._context

    @property
    def device(self) -> Any:
        """Get the target device."""
        if self._device is None:
            self._device = get_default_device()
        return self._device

    def build(
        self,
        kernel: KernelDefinition | str,
        *,
        name: str | None = None,
        options: BuildOptions | None = None,
    ) -> BuildResult:
        """
        Build a program from a kernel definition or raw source.

        Args:
            kernel: Kernel definition or OpenCL C source text.
            name: Entry point name (taken from the definition if None).
            options: Build options (uses instance options if None).

        Returns:
            BuildResult; ``success`` is False when the compiler rejected
            the source.
        """
        opts = options or self._options
        if isinstance(kernel, KernelDefinition):
            source = kernel.source
            kernel_name = name or kernel.name
        else:
            source = kernel
            kernel_name = name or "<source>"

        source_hash = self._get_source_hash(source, opts)
        if opts.cache and source_hash in self._build_cache:
            return self._build_cache[source_hash]

        program = cl.Program(self.context, source)
        start_time = time.perf_counter()

        try:
            program.build(options=opts.as_list(), devices=[self.device])
        except cl.Error as e:
            build_time = (time.perf_counter() - start_time) * 1000
            build_log = self._get_build_log(program, e)
            logger.error(f"Build of '{kernel_name}' failed after {build_time:.1f} ms")
            print(build_log, file=self._log_stream or sys.stderr)
            return BuildResult(
                success=False,
                kernel_name=kernel_name,
                source_hash=source_hash,
                program=program,
                build_log=build_log,
                error=e,
                build_time_ms=build_time,
            )

        result = BuildResult(
            success=True,
            kernel_name=kernel_name,
            source_hash=source_hash,
            program=program,
            build_log=self._get_build_log(program),
            build_time_ms=(time.perf_counter() - start_time) * 1000,
        )
        logger.info(f"Built '{kernel_name}' in {result.build_time_ms:.1f} ms")

        if opts.cache:
            self._build_cache[source_hash] = result

        return result

    def _get_build_log(self, program: Any, error: Exception | None = None) -> str:
        """Fetch the build log, falling back to the runtime error text."""
        log = ""
        try:
            log = str(program.get_build_info(self.device, cl.program_build_info.LOG))
        except cl.Error as e:
            logger.debug(f"Build log unavailable: {e}")

        log = log.strip()
        if not log and error is not None:
            # the binary-cache build path discards the failed program;
            # pyopencl folds the per-device logs into the error text
            log = str(error)
        return log

    def _get_source_hash(self, source: str, options: BuildOptions) -> str:
        """Generate a hash for cache key."""
        hash_input = f"{source}|{' '.join(options.as_list())}"
        return hashlib.sha256(hash_input.encode()).hexdigest()[:16]

    def clear_cache(self) -> int:
        """
        Clear the build cache.

        Returns:
            Number of entries cleared.
        """
        count = len(self._build_cache)
        self._build_cache.clear()
        return count

    def __repr__(self) -> str:
        """String representation."""
        return f"ProgramBuilder(options={self._options.as_list()}, cached={len(self._build_cache)})"


# Global builder instance
_global_builder: ProgramBuilder | None = None


def get_builder() -> ProgramBuilder:
    """Get the global program builder instance."""
    global _global_builder
    if _global_builder is None:
        _global_builder = ProgramBuilder()
    return _global_builder


def build_program(
    kernel: KernelDefinition | str,
    *,
    name: str | None = None,
    **options: Any,
) -> BuildResult:
    """
    Build a program using the global builder.

    Args:
        kernel: Kernel definition or source text.
        name: Entry point name.
        **options: BuildOptions fields.

    Returns:
        BuildResult.
    """
    builder = get_builder()
    opts = BuildOptions(**options) if options else None
    return builder.build(kernel, name=name, options=opts)
