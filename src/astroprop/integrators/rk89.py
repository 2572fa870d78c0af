"""Verner 9(8) tableau (RK89).

Verner's 16-stage embedded Runge-Kutta pair with a 9th-order solution for
propagation and an 8th-order solution for error estimation. Several
coefficients involve :math:`\\sqrt{6}`, which is evaluated once in double
precision at import.

Columns 2-5 of the lower triangle are zero from row 6 on; they are written
out so each row has exactly ``i`` entries.

References:

    1. J. H. Verner, "Explicit Runge-Kutta methods with estimates of the
       local truncation error", *SIAM J. Numer. Anal.* 15(4), 1978.
"""

from __future__ import annotations

import math

from astroprop.integrators._tableau import ButcherTableau

_S6 = math.sqrt(6.0)

RK89 = ButcherTableau(
    name="RK89",
    a=(
        (),
        (1 / 12,),
        (1 / 27, 2 / 27),
        (1 / 24, 0.0, 1 / 8),
        (
            (4 + 94 * _S6) / 375,
            0.0,
            (-282 - 252 * _S6) / 375,
            (328 + 208 * _S6) / 375,
        ),
        (
            (9 - _S6) / 150,
            0.0,
            0.0,
            (312 + 32 * _S6) / 1425,
            (69 + 29 * _S6) / 570,
        ),
        (
            (927 - 347 * _S6) / 1250,
            0.0,
            0.0,
            (-16248 + 7328 * _S6) / 9375,
            (-489 + 179 * _S6) / 3750,
            (14268 - 5798 * _S6) / 9375,
        ),
        (2 / 27, 0.0, 0.0, 0.0, 0.0, (16 - _S6) / 54, (16 + _S6) / 54),
        (
            19 / 256,
            0.0,
            0.0,
            0.0,
            0.0,
            (118 - 23 * _S6) / 512,
            (118 + 23 * _S6) / 512,
            -9 / 256,
        ),
        (
            11 / 144,
            0.0,
            0.0,
            0.0,
            0.0,
            (266 - _S6) / 864,
            (266 + _S6) / 864,
            -1 / 16,
            -8 / 27,
        ),
        (
            (5034 - 271 * _S6) / 61440,
            0.0,
            0.0,
            0.0,
            0.0,
            0.0,
            (7859 - 1626 * _S6) / 10240,
            (-2232 + 813 * _S6) / 20480,
            (-594 + 271 * _S6) / 960,
            (657 - 813 * _S6) / 5120,
        ),
        (
            (5996 - 3794 * _S6) / 405,
            0.0,
            0.0,
            0.0,
            0.0,
            (-4342 - 338 * _S6) / 9,
            (154922 - 40458 * _S6) / 135,
            (-4176 + 3794 * _S6) / 45,
            (-340864 + 242816 * _S6) / 405,
            (26304 - 15176 * _S6) / 45,
            -26624 / 81,
        ),
        (
            (3793 + 2168 * _S6) / 103680,
            0.0,
            0.0,
            0.0,
            0.0,
            (4042 + 2263 * _S6) / 13824,
            (-231278 + 40717 * _S6) / 69120,
            (7947 - 2168 * _S6) / 11520,
            (1048 - 542 * _S6) / 405,
            (-1383 + 542 * _S6) / 720,
            2624 / 1053,
            3 / 1664,
        ),
        (
            -137 / 1296,
            0.0,
            0.0,
            0.0,
            0.0,
            (5642 - 337 * _S6) / 864,
            (5642 + 337 * _S6) / 864,
            -299 / 48,
            184 / 81,
            -44 / 9,
            -5120 / 1053,
            -11 / 468,
            16 / 9,
        ),
        (
            (33617 - 2168 * _S6) / 518400,
            0.0,
            0.0,
            0.0,
            0.0,
            (-3846 + 31 * _S6) / 13824,
            (155338 - 52807 * _S6) / 345600,
            (-12537 + 2168 * _S6) / 57600,
            (92 + 542 * _S6) / 2025,
            (-1797 - 542 * _S6) / 3600,
            320 / 567,
            -1 / 1920,
            4 / 105,
            0.0,
        ),
        (
            (-36487 - 30352 * _S6) / 279600,
            0.0,
            0.0,
            0.0,
            0.0,
            (-29666 - 4499 * _S6) / 7456,
            (2779182 - 615973 * _S6) / 186400,
            (-94329 + 91056 * _S6) / 93200,
            (-232192 + 121408 * _S6) / 17475,
            (101226 - 22764 * _S6) / 5825,
            -169984 / 9087,
            -87 / 30290,
            492 / 1165,
            0.0,
            1260 / 233,
        ),
    ),
    b=(
        23 / 525,
        0.0,
        0.0,
        0.0,
        0.0,
        0.0,
        0.0,
        171 / 1400,
        86 / 525,
        93 / 280,
        -2048 / 6825,
        -3 / 18200,
        39 / 175,
        0.0,
        9 / 25,
        233 / 4200,
    ),
    c=(
        0.0,
        1 / 12,
        1 / 9,
        1 / 6,
        (2 + 2 * _S6) / 15,
        (6 + _S6) / 15,
        (6 - _S6) / 15,
        2 / 3,
        1 / 2,
        1 / 3,
        1 / 4,
        4 / 3,
        5 / 6,
        1.0,
        1 / 6,
        1.0,
    ),
    order=9,
    b_low=(
        103 / 1680,
        0.0,
        0.0,
        0.0,
        0.0,
        0.0,
        0.0,
        -27 / 140,
        76 / 105,
        -201 / 280,
        1024 / 1365,
        3 / 7280,
        12 / 35,
        9 / 280,
        0.0,
        0.0,
    ),
    order_low=8,
)
