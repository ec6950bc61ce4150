"""
Kernel dispatch.
"""

from pydotcl.dispatch.functor import EnqueueArgs, KernelExecutionResult, KernelFunctor
from pydotcl.dispatch.reference import vector_add_reference

__all__ = [
    "EnqueueArgs",
    "KernelExecutionResult",
    "KernelFunctor",
    "vector_add_reference",
]
