"""Composition of dynamics contributors.

A contributor is any callable ``f(t, state) -> derivative`` returning an
array with the shape of the state. :class:`CompositeDynamics` sums an
ordered tuple of contributors into a single derivative function usable by
every integrator, so each force model can be developed and tested on its
own and combined without inheritance.

Contributor order is fixed at construction; the summation is performed
in that order, which keeps results bit-identical between runs.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from astroprop.config import get_dtype
from astroprop.errors import EvaluationError

Contributor = Callable[[ArrayLike, ArrayLike], Array]


@dataclass(frozen=True)
class CompositeDynamics:
    """Sum of an ordered tuple of dynamics contributors.

    Instances are immutable and hashable, so they can be shared read-only
    by concurrent propagations and passed as static arguments to
    ``jax.jit``.

    Args:
        contributors: Contributors evaluated in order and summed.

    Examples:
        ```python
        import jax.numpy as jnp
        from astroprop.dynamics import compose, two_body, j2_perturbation
        dynamics = compose(two_body(), j2_perturbation())
        x0 = jnp.array([6878e3, 0.0, 0.0, 0.0, 7612.0, 0.0])
        dx = dynamics(0.0, x0)
        ```
    """

    contributors: tuple[Contributor, ...] = ()

    def __call__(self, t: ArrayLike, state: ArrayLike) -> Array:
        state = jnp.asarray(state, dtype=get_dtype())
        total = jnp.zeros_like(state)
        for contributor in self.contributors:
            term = jnp.asarray(contributor(t, state), dtype=state.dtype)
            if term.shape != state.shape:
                name = getattr(contributor, "__name__", repr(contributor))
                raise EvaluationError(
                    f"contributor {name} returned shape {term.shape}, "
                    f"expected {state.shape}"
                )
            total = total + term
        return total

    def __add__(self, other: Contributor) -> CompositeDynamics:
        if isinstance(other, CompositeDynamics):
            return CompositeDynamics(self.contributors + other.contributors)
        if callable(other):
            return CompositeDynamics(self.contributors + (other,))
        return NotImplemented

    def __len__(self) -> int:
        return len(self.contributors)


def compose(*contributors: Contributor) -> CompositeDynamics:
    """Build a :class:`CompositeDynamics` from contributors in order.

    Nested composites are flattened.

    Args:
        *contributors: Callables ``f(t, state) -> derivative``.

    Returns:
        CompositeDynamics: The summed dynamics.
    """
    flat: list[Contributor] = []
    for c in contributors:
        if isinstance(c, CompositeDynamics):
            flat.extend(c.contributors)
        elif callable(c):
            flat.append(c)
        else:
            raise TypeError(f"dynamics contributor must be callable, got {type(c).__name__}")
    return CompositeDynamics(tuple(flat))
