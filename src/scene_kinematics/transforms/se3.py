"""SE(3) homogeneous transforms in JAX.

Transforms are 4x4 matrices [[R, t], [0, 1]]. Composition is matrix product:
`multiply(A, B)` applies B first, then A.
"""

import jax
import jax.numpy as jnp

from . import so3

Array = jax.Array


def identity(dtype=jnp.float64) -> Array:
    return jnp.eye(4, dtype=dtype)


def from_position_and_rotation(p: Array, R: Array) -> Array:
    """
    Build a transform from a translation and a rotation.

    Args:
        p: (..., 3) translation
        R: (..., 3, 3) rotation matrix

    Returns:
        (..., 4, 4) homogeneous transform
    """
    p = jnp.asarray(p)
    R = jnp.asarray(R)
    batch_shape = jnp.broadcast_shapes(p.shape[:-1], R.shape[:-2])
    p = jnp.broadcast_to(p, batch_shape + (3,))
    R = jnp.broadcast_to(R, batch_shape + (3, 3))

    top = jnp.concatenate([R, p[..., None]], axis=-1)
    bottom = jnp.broadcast_to(jnp.array([0.0, 0.0, 0.0, 1.0], dtype=top.dtype), batch_shape + (1, 4))
    return jnp.concatenate([top, bottom], axis=-2)


def from_xyz_rpy(xyz: Array, rpy: Array) -> Array:
    """Transform for a URDF `<origin xyz=... rpy=...>` element."""
    xyz = jnp.asarray(xyz, dtype=jnp.float64)
    return from_position_and_rotation(xyz, so3.from_rpy(rpy))


def joint_motion(twist: Array, q) -> Array:
    """
    Motion of a single-axis joint displaced by `q`.

    URDF joints are either pure rotations (revolute, continuous) or pure
    translations (prismatic), so the twist has only an angular or only a linear
    part and the screw coupling term of the full exponential map vanishes.

    Args:
        twist: (6,) motion generator [vx, vy, vz, wx, wy, wz]; zero for fixed joints
        q: joint value (radians or metres)

    Returns:
        (4, 4) transform
    """
    return from_position_and_rotation(twist[:3] * q, so3.exp(twist[3:] * q))


def multiply(T1: Array, T2: Array) -> Array:
    return jnp.matmul(T1, T2)


def inverse(T: Array) -> Array:
    """
    Inverse of a rigid transform using its block structure:
    T^-1 = [[R^T, -R^T t], [0, 1]].
    """
    R_inv = so3.inverse(T[..., :3, :3])
    t_inv = -jnp.einsum("...ij,...j->...i", R_inv, T[..., :3, 3])
    return from_position_and_rotation(t_inv, R_inv)


def apply(T: Array, points: Array) -> Array:
    """
    Transform points.

    Args:
        T: (4, 4) transform
        points: (3,) point or (N, 3) points

    Returns:
        Transformed points with the same shape as `points`
    """
    points = jnp.asarray(points)
    return points @ T[:3, :3].T + T[:3, 3]


def get_position(T: Array) -> Array:
    return T[..., :3, 3]


def get_rotation(T: Array) -> Array:
    return T[..., :3, :3]
