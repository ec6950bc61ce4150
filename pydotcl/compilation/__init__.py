"""
Kernel definitions and program building.
"""

from pydotcl.compilation.compiler import BuildOptions, BuildResult, ProgramBuilder
from pydotcl.compilation.kernels import VECTOR_ADD, ArgKind, KernelDefinition

__all__ = [
    "BuildOptions",
    "BuildResult",
    "ProgramBuilder",
    "ArgKind",
    "KernelDefinition",
    "VECTOR_ADD",
]
