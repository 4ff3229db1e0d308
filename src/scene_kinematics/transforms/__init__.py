"""
Rigid-body transform helpers used by the kinematics and synchronization code.

- SO(3) rotations (so3 module)
- SE(3) homogeneous transforms (se3 module)

All functions are pure and operate on JAX arrays.
"""

from . import so3
from . import se3

__all__ = [
    "so3",
    "se3",
]
