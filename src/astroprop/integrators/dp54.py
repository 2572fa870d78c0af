"""Dormand-Prince 5(4) tableau (DP54).

The Dormand-Prince embedded Runge-Kutta method with a 5th-order solution for
propagation and a 4th-order solution for error estimation. The method uses
7 stages per step.

The Dormand-Prince method has the First-Same-As-Last (FSAL) property: the
7th stage of step *n* is identical to the 1st stage of step *n+1* when the
step is accepted. The executor does **not** reuse the FSAL stage (each
attempt is a pure function of its inputs), so a step costs 7 evaluations.

The Butcher tableau coefficients are the standard Dormand-Prince values:

- Nodes (c): [0, 1/5, 3/10, 4/5, 8/9, 1, 1]
- 5th-order weights (b_high): [35/384, 0, 500/1113, 125/192, -2187/6784, 11/84, 0]
- 4th-order weights (b_low): [5179/57600, 0, 7571/16695, 393/640, -92097/339200,
  187/2100, 1/40]
"""

from __future__ import annotations

from astroprop.integrators._tableau import ButcherTableau

DP54 = ButcherTableau(
    name="Dormand45",
    a=(
        (),
        (1.0 / 5.0,),
        (3.0 / 40.0, 9.0 / 40.0),
        (44.0 / 45.0, -56.0 / 15.0, 32.0 / 9.0),
        (19372.0 / 6561.0, -25360.0 / 2187.0, 64448.0 / 6561.0, -212.0 / 729.0),
        (9017.0 / 3168.0, -355.0 / 33.0, 46732.0 / 5247.0, 49.0 / 176.0, -5103.0 / 18656.0),
        (35.0 / 384.0, 0.0, 500.0 / 1113.0, 125.0 / 192.0, -2187.0 / 6784.0, 11.0 / 84.0),
    ),
    b=(35.0 / 384.0, 0.0, 500.0 / 1113.0, 125.0 / 192.0, -2187.0 / 6784.0, 11.0 / 84.0, 0.0),
    c=(0.0, 1.0 / 5.0, 3.0 / 10.0, 4.0 / 5.0, 8.0 / 9.0, 1.0, 1.0),
    order=5,
    b_low=(
        5179.0 / 57600.0,
        0.0,
        7571.0 / 16695.0,
        393.0 / 640.0,
        -92097.0 / 339200.0,
        187.0 / 2100.0,
        1.0 / 40.0,
    ),
    order_low=4,
)
