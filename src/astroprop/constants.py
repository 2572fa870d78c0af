"""
The `constants` module defines the physical and time constants used by the reference dynamics and the epoch arithmetic.
"""

# Time Constants

"""
Offset between Julian Date and Modified Julian Date. Units: *days*
"""
JD_MJD_OFFSET = 2400000.5  # Offset between Julian Date and Modified Julian Date

"""
Modified Julian Date of the J2000.0 epoch (2000-01-01 12:00:00 TT). Units: *days*
"""
MJD2000 = 51544.5

"""
Number of seconds in one day. Units: *s*
"""
SECONDS_PER_DAY = 86400.0

# Physical Constants

"""
Earth's equatorial radius. Units: *m*

References:

1. GGM05s gravity model.
"""
R_EARTH = 6.378136300e6  # [m] GGM05s Value

"""
Earth's gravitational constant. Units: *m^3/s^2*

References:

1. GGM05s gravity model.
"""
GM_EARTH = 3.986004415e14  # [m^3/s^2] GGM05s Value

"""
Earth's un-normalized J2 zonal coefficient. Units: *dimensionless*

References:

1. GGM05s gravity model.
"""
J2_EARTH = 0.0010826358191967  # [] GGM05s value
