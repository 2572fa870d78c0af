"""Classic 4th-order Runge-Kutta tableau (RK4).

The standard four-stage, 4th-order explicit Runge-Kutta method. This is a
fixed-step method: it carries no embedded solution, so the propagation
driver uses the configured constant step size with no rejection path.

The Butcher tableau for RK4 is:

.. math::

    \\begin{array}{c|cccc}
    0   &     &     &     &   \\\\
    1/2 & 1/2 &     &     &   \\\\
    1/2 &  0  & 1/2 &     &   \\\\
    1   &  0  &  0  &  1  &   \\\\
    \\hline
        & 1/6 & 1/3 & 1/3 & 1/6
    \\end{array}

The method achieves 4th-order accuracy, meaning the local truncation error
is :math:`O(h^5)` and the global error is :math:`O(h^4)`.
"""

from __future__ import annotations

from astroprop.integrators._tableau import ButcherTableau

RK4 = ButcherTableau(
    name="RK4Fixed",
    a=(
        (),
        (1.0 / 2.0,),
        (0.0, 1.0 / 2.0),
        (0.0, 0.0, 1.0),
    ),
    b=(1.0 / 6.0, 1.0 / 3.0, 1.0 / 3.0, 1.0 / 6.0),
    c=(0.0, 1.0 / 2.0, 1.0 / 2.0, 1.0),
    order=4,
)
