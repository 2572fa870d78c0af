"""The epoch module provides the ``Epoch`` class for representing instants in time.

The Epoch class uses an internal representation of integer Julian Day number,
seconds within the day, and a Kahan summation compensator for maintaining
precision during arithmetic operations.

The Kahan compensator tracks floating-point rounding errors that accumulate
during repeated additions (e.g., sampling a trajectory at every integration
step), preventing error growth from O(N) to O(1) machine epsilon.

Unlike the state vector, an Epoch never enters traced code: the propagation
driver keeps elapsed time as a float offset and only materialises Epochs for
the samples it returns.  All components are therefore plain Python numbers
(int + float64), and comparisons are exact.
"""

from __future__ import annotations

import math
import re

from .constants import JD_MJD_OFFSET, SECONDS_PER_DAY
from .time import caldate_to_jd, jd_to_caldate

# Valid ISO 8601 epoch string patterns
_EPOCH_PATTERNS = [
    # YYYY-MM-DD
    re.compile(r'^(\d{4})-(\d{2})-(\d{2})$'),
    # YYYY-MM-DDTHH:MM:SSZ
    re.compile(r'^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})Z$'),
    # YYYY-MM-DDTHH:MM:SS.fffZ
    re.compile(r'^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})\.(\d+)Z$'),
]


class Epoch:
    """Represents a single instant in time with high-precision arithmetic.

    The internal representation uses three private components:
        ``_jd`` (int), ``_seconds`` (float, in ``[0, 86400)``),
        ``_kahan_c`` (float).
    Use ``jd()`` and ``mjd()`` to access the absolute time as Julian Date
    or Modified Julian Date.

    Supported arithmetic:
        ``epoch + seconds`` and ``epoch - seconds`` return a new Epoch.
        ``epoch - other_epoch`` returns the difference in seconds.

    Constructors:
        Epoch(2018, 1, 1)
        Epoch(2018, 1, 1, 12, 0, 0.0)
        Epoch("2018-01-01T12:00:00Z")
        Epoch(other_epoch)
    """

    __slots__ = ('_jd', '_seconds', '_kahan_c')

    def __init__(self, *args: int | float | str | Epoch) -> None:
        """Initialize Epoch. Supports multiple constructor forms.

        Args:
            *args: Either (year, month, day[, hour, minute, second]),
                a string in ISO 8601 format, or another Epoch instance.
        """
        self._jd = 0
        self._seconds = 0.0
        self._kahan_c = 0.0

        if len(args) == 1:
            if isinstance(args[0], str):
                self._init_string(args[0])
            elif isinstance(args[0], Epoch):
                self._init_epoch(args[0])
            else:
                raise ValueError(f"Cannot construct Epoch from {type(args[0])}")
        elif 3 <= len(args) <= 6:
            self._init_date(*args)
        else:
            raise ValueError(
                "Epoch requires date components (3-6 args), a string, or an Epoch"
            )

    @classmethod
    def _from_internal(cls, jd: int, seconds: float, kahan_c: float) -> Epoch:
        """Create an Epoch from already normalized components."""
        obj = object.__new__(cls)
        obj._jd = jd
        obj._seconds = seconds
        obj._kahan_c = kahan_c
        return obj

    def _init_date(self, year, month, day, hour=0, minute=0, second=0.0):
        """Initialize from calendar date components.

        Args:
            year (int): Year.
            month (int): Month.
            day (int): Day.
            hour (int): Hour. Default: 0
            minute (int): Minute. Default: 0
            second (float): Second, may include fractional part. Default: 0.0
        """
        # JD of the date only; the time of day is added in seconds so that
        # sub-second precision is not lost in a single large float.
        jd_full = caldate_to_jd(year, month, day)

        jd_int = math.floor(jd_full)
        frac_day = jd_full - jd_int

        self._jd = int(jd_int)
        self._seconds = (frac_day * SECONDS_PER_DAY
                         + hour * 3600.0 + minute * 60.0 + float(second))
        self._kahan_c = 0.0

        self._normalize()

    def _init_string(self, string):
        """Initialize from an ISO 8601 string.

        Supported formats:
            - ``YYYY-MM-DD``
            - ``YYYY-MM-DDTHH:MM:SSZ``
            - ``YYYY-MM-DDTHH:MM:SS.fffZ``

        Args:
            string (str): ISO 8601 date/time string.
        """
        for pattern in _EPOCH_PATTERNS:
            m = pattern.match(string)
            if m:
                groups = m.groups()
                year = int(groups[0])
                month = int(groups[1])
                day = int(groups[2])

                hour = 0
                minute = 0
                second = 0.0

                if len(groups) >= 6:
                    hour = int(groups[3])
                    minute = int(groups[4])
                    second = float(groups[5])

                if len(groups) == 7:
                    second += float(f"0.{groups[6]}")

                self._init_date(year, month, day, hour, minute, second)
                return

        raise ValueError(
            f'Invalid Epoch string: "{string}" is not ISO 8601 compliant'
        )

    def _init_epoch(self, other):
        self._jd = other._jd
        self._seconds = other._seconds
        self._kahan_c = other._kahan_c

    def _normalize(self):
        """Normalize seconds to [0, 86400) by adjusting the Julian day number."""
        day_offset = math.floor(self._seconds / SECONDS_PER_DAY)
        self._seconds -= day_offset * SECONDS_PER_DAY
        self._jd += day_offset

    def _compensated_seconds(self) -> float:
        return self._seconds - self._kahan_c

    # Arithmetic operators

    def __add__(self, delta: float) -> Epoch:
        """Return a new Epoch advanced by *delta* seconds.

        Uses Kahan compensated summation so that repeatedly adding small
        steps does not accumulate rounding error.

        Args:
            delta (float): Seconds to add. May be negative.

        Returns:
            Epoch: New Epoch advanced by delta seconds.
        """
        if isinstance(delta, Epoch):
            return NotImplemented
        y = float(delta) - self._kahan_c
        t = self._seconds + y
        new_kahan_c = (t - self._seconds) - y

        day_offset = math.floor(t / SECONDS_PER_DAY)
        new_seconds = t - day_offset * SECONDS_PER_DAY
        new_jd = self._jd + day_offset

        return Epoch._from_internal(new_jd, new_seconds, new_kahan_c)

    def __sub__(self, other: Epoch | float) -> Epoch | float:
        """Subtract seconds or compute difference between Epochs.

        Args:
            other: If Epoch, returns the time difference in seconds.
                If numeric, returns a new Epoch with seconds subtracted.

        Returns:
            float or Epoch: Time difference in seconds, or new Epoch.
        """
        if isinstance(other, Epoch):
            return ((self._jd - other._jd) * SECONDS_PER_DAY
                    + (self._compensated_seconds()
                       - other._compensated_seconds()))
        return self.__add__(-float(other))

    # Comparison operators

    def _key(self) -> tuple[int, float]:
        return (self._jd, self._compensated_seconds())

    def __eq__(self, other):
        if not isinstance(other, Epoch):
            return NotImplemented
        return self._key() == other._key()

    def __ne__(self, other):
        if not isinstance(other, Epoch):
            return NotImplemented
        return self._key() != other._key()

    def __lt__(self, other):
        if not isinstance(other, Epoch):
            return NotImplemented
        return self._key() < other._key()

    def __le__(self, other):
        if not isinstance(other, Epoch):
            return NotImplemented
        return self._key() <= other._key()

    def __gt__(self, other):
        if not isinstance(other, Epoch):
            return NotImplemented
        return self._key() > other._key()

    def __ge__(self, other):
        if not isinstance(other, Epoch):
            return NotImplemented
        return self._key() >= other._key()

    def __hash__(self):
        return hash(self._key())

    # Time properties

    def caldate(self) -> tuple[int, int, int, int, int, float]:
        """Return the calendar date components.

        Returns:
            tuple: (year, month, day, hour, minute, second) where second
                includes fractional part.
        """
        comp_seconds = self._compensated_seconds()
        jd_full = self._jd + comp_seconds / SECONDS_PER_DAY

        year, month, day, _, _, _ = jd_to_caldate(jd_full)

        # JD day starts at noon, so shift by 43200s to get civil time of day.
        civil_time = (comp_seconds + 43200.0) % SECONDS_PER_DAY

        hour = int(civil_time // 3600)
        civil_time -= hour * 3600
        minute = int(civil_time // 60)
        second = civil_time - minute * 60

        return year, month, day, hour, minute, second

    def jd(self) -> float:
        """Return the Julian Date as a single float.

        Note:
            A float64 near typical JD values (~2.45M) resolves ~40 us.
            Use epoch subtraction for precise time differences.

        Returns:
            float: Julian Date.
        """
        return self._jd + self._compensated_seconds() / SECONDS_PER_DAY

    def mjd(self) -> float:
        """Return the Modified Julian Date as a single float.

        Returns:
            float: Modified Julian Date.
        """
        return (self._jd - JD_MJD_OFFSET) + self._compensated_seconds() / SECONDS_PER_DAY

    # String representations

    def __str__(self):
        year, month, day, hour, minute, second = self.caldate()
        return (f'{year:04d}-{month:02d}-{day:02d}T'
                f'{hour:02d}:{minute:02d}:{second:06.3f}Z')

    def __repr__(self):
        return (f'Epoch(_jd={self._jd}, _seconds={self._seconds!r}, '
                f'_kahan_c={self._kahan_c!r})')
