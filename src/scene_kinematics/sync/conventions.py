"""Display-convention corrections applied between kinematics and display frames.

Robot descriptions use a right-handed X-forward frame while medical display
scenes commonly use RAS; scanner data is often LPS. Flipping X and Y converts
between LPS and RAS.
"""

from typing import Union

import jax.numpy as jnp
from jax import Array

IDENTITY = jnp.eye(4)
LPS_TO_RAS = jnp.diag(jnp.array([-1.0, -1.0, 1.0, 1.0]))

DISPLAY_CORRECTIONS = {
    "identity": IDENTITY,
    "lps_to_ras": LPS_TO_RAS,
    # The flip is its own inverse
    "ras_to_lps": LPS_TO_RAS,
}


def display_correction(correction: Union[str, Array, None]) -> Array:
    """Resolve a correction given by name or as a matrix.

    Args:
        correction: A key of DISPLAY_CORRECTIONS, a (4, 4) matrix, or None for
                    the identity.

    Returns:
        (4, 4) correction transform
    """
    if correction is None:
        return IDENTITY
    if isinstance(correction, str):
        try:
            return DISPLAY_CORRECTIONS[correction.lower()]
        except KeyError:
            raise ValueError(
                f"Unknown display correction '{correction}', expected one of {sorted(DISPLAY_CORRECTIONS)}"
            ) from None
    matrix = jnp.asarray(correction, dtype=jnp.float64)
    if matrix.shape != (4, 4):
        raise ValueError(f"Display correction must have shape (4, 4), got {matrix.shape}")
    return matrix
