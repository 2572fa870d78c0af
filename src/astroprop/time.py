"""Calendar conversions used by :class:`~astroprop.epoch.Epoch`.

Plain-Python float64 implementations: epochs are bookkeeping values held
outside of traced code, so these never need to run under ``jax.jit``.
"""

from __future__ import annotations

import math

from .constants import JD_MJD_OFFSET


def caldate_to_mjd(
    year: int,
    month: int,
    day: int,
    hour: int = 0,
    minute: int = 0,
    second: float = 0.0,
) -> float:
    """Convert a calendar date to Modified Julian Date. Algorithm is only valid from year 1583 onward.

    Args:
        year (int): Year of the calendar date.
        month (int): Month of the calendar date.
        day (int): Day of the calendar date.
        hour (int): Hour of the calendar date. Default: ``0``
        minute (int): Minute of the calendar date. Default: ``0``
        second (float): Second of the calendar date. Default: ``0.0``

    Returns:
        Modified Julian Date.

    References:

        1. Montenbruck, O., & Gill, E. (2012). *Satellite Orbits: Models, Methods and Applications*. Springer Science & Business Media.
    """
    if month <= 2:
        year -= 1
        month += 12

    b = year // 400 - year // 100 + year // 4

    mjd = 365 * year - 679004 + b + math.floor(30.6001 * (month + 1)) + day

    frac_day = (hour + (minute + second / 60.0) / 60.0) / 24.0

    return float(mjd) + frac_day


def caldate_to_jd(
    year: int,
    month: int,
    day: int,
    hour: int = 0,
    minute: int = 0,
    second: float = 0.0,
) -> float:
    """Convert a calendar date to Julian Date.

    Args:
        year (int): Year of the calendar date.
        month (int): Month of the calendar date.
        day (int): Day of the calendar date.
        hour (int): Hour of the calendar date. Default: ``0``
        minute (int): Minute of the calendar date. Default: ``0``
        second (float): Second of the calendar date. Default: ``0.0``

    Returns:
        Julian Date.
    """
    return caldate_to_mjd(year, month, day, hour, minute, second) + JD_MJD_OFFSET


def jd_to_caldate(jd: float) -> tuple[int, int, int, int, int, float]:
    """Convert Julian Date to calendar date.

    Uses the algorithm from Montenbruck & Gill for Gregorian calendar dates.

    Args:
        jd (float): Julian Date.

    Returns:
        tuple: (year, month, day, hour, minute, second).

    References:

        1. O. Montenbruck, and E. Gill, *Satellite Orbits: Models, Methods and
           Applications*, 2012, p. 322.
    """
    jd_shifted = jd + 0.5
    z = math.floor(jd_shifted)
    f = jd_shifted - z

    if z < 2299161:
        a = z
    else:
        alpha = (100 * z - 186721625) // 3652425
        a = z + 1 + alpha - alpha // 4

    b = a + 1524
    c = (100 * b - 12210) // 36525
    d = (36525 * c) // 100
    e = ((b - d) * 10000) // 306001

    day_with_frac = b - d - (306001 * e) // 10000 + f
    day = math.floor(day_with_frac)
    frac_of_day = day_with_frac - day

    month = e - 1 if e < 14 else e - 13
    year = c - 4716 if month > 2 else c - 4715

    # Integer milliseconds avoid truncation artifacts
    total_ms = round(frac_of_day * 86400000.0)
    hour = total_ms // 3600000
    total_ms -= hour * 3600000
    minute = total_ms // 60000
    total_ms -= minute * 60000
    second = total_ms / 1000.0

    return int(year), int(month), int(day), int(hour), int(minute), second
