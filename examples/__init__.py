"""
PyDotCL examples.

This module contains example programs demonstrating OpenCL 2.0
pipes and device-side enqueue with PyDotCL.
"""

from examples.vector_add_pipe import run_vector_add_example

__all__ = [
    "run_vector_add_example",
]
