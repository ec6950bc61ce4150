"""
Host-side reference model of the vectorAdd kernel.

Computes with NumPy what the device produces, for verification
and for tests without an OpenCL device.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from pydotcl.core.buffers import sentinel_array
from pydotcl.exceptions import InvalidConfigurationError

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray


def vector_add_reference(
    a: ArrayLike,
    b: ArrayLike,
    value: int,
    global_size: int,
    output: NDArray[np.int32] | None = None,
) -> NDArray[np.int32]:
    """
    Reference implementation of one vectorAdd launch.

    Work-items ``[0, global_size)`` write ``a + b + value``; the nested
    launch writes ``a + b`` into ``[global_size, 2 * global_size)``.
    Remaining elements keep their previous contents.

    Args:
        a: First input.
        b: Second input.
        value: Scalar added by the outer launch.
        global_size: Global work size of the outer launch.
        output: Previous output contents (sentinel-filled if None).

    Returns:
        Expected output array.
    """
    a = np.asarray(a, dtype=np.int32)
    b = np.asarray(b, dtype=np.int32)
    if a.shape != b.shape:
        raise InvalidConfigurationError("b", b.shape, f"shape must match a {a.shape}")
    if 2 * global_size > a.size:
        raise InvalidConfigurationError(
            "global_size", global_size, f"nested launch would overrun {a.size} elements"
        )

    result = sentinel_array(a.size) if output is None else np.array(output, dtype=np.int32)
    outer = slice(0, global_size)
    nested = slice(global_size, 2 * global_size)
    result[outer] = a[outer] + b[outer] + np.int32(value)
    result[nested] = a[nested] + b[nested]
    return result
