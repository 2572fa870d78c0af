"""Dynamics contributors and their composition.

Provides the :class:`CompositeDynamics` container that sums an ordered
tuple of contributors, reference gravity contributors in SI units, and
the state transition matrix augmentation used by orbit determination.
"""

from astroprop.dynamics.composite import CompositeDynamics, Contributor, compose
from astroprop.dynamics.gravity import (
    accel_j2,
    accel_point_mass,
    j2_perturbation,
    two_body,
)
from astroprop.dynamics.stm import augment_with_stm, split_stm, stm_initial_state

__all__ = [
    "CompositeDynamics",
    "Contributor",
    "compose",
    "accel_point_mass",
    "accel_j2",
    "two_body",
    "j2_perturbation",
    "augment_with_stm",
    "stm_initial_state",
    "split_stm",
]
