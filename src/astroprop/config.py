"""Module-wide floating-point precision configuration.

Provides ``set_dtype`` and ``get_dtype`` to control the float dtype used
throughout astroprop.  The default is ``jnp.float64``: the step-size
controller compares scaled error norms against tolerances down to
``1e-12``, which single precision cannot resolve.  Importing this module
therefore enables JAX's 64-bit mode (``jax_enable_x64``).

Call ``set_dtype`` **before** any JIT compilation, just like JAX's own
``jax.config.update("jax_enable_x64", True)``.  Under JIT, ``get_dtype()``
runs during tracing and its result is baked into the compiled step kernel.
"""

from __future__ import annotations

import jax
import jax.numpy as jnp

_VALID_DTYPES = (jnp.float32, jnp.float64)

jax.config.update("jax_enable_x64", True)

_dtype = jnp.float64


def set_dtype(dtype) -> None:
    """Set the module-wide float dtype for astroprop.

    Must be called **before** any propagation compiles its step kernel.
    Kernels compiled under a previous dtype are retraced automatically
    when input dtypes change.

    Args:
        dtype: ``jnp.float32`` or ``jnp.float64``.

    Raises:
        ValueError: If *dtype* is not a supported float type.
    """
    global _dtype
    if dtype not in _VALID_DTYPES:
        raise ValueError(
            f"Unsupported dtype {dtype}. Must be one of: "
            f"jnp.float32, jnp.float64"
        )
    if dtype == jnp.float64:
        jax.config.update("jax_enable_x64", True)
    _dtype = dtype


def get_dtype():
    """Return the current module-wide float dtype.

    Returns:
        The active float dtype (default ``jnp.float64``).
    """
    return _dtype
