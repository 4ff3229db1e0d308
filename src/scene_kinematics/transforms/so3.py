"""SO(3) rotation helpers in JAX.

Rotations are 3x3 matrices. Functions accept leading batch dimensions unless
stated otherwise.
"""

import jax
import jax.numpy as jnp

Array = jax.Array


def skew_symmetric(v: Array) -> Array:
    """
    Cross-product matrix of a 3-vector, so that skew_symmetric(a) @ b == a x b.

    Args:
        v: (..., 3) vector

    Returns:
        (..., 3, 3) skew-symmetric matrix
    """
    x, y, z = v[..., 0], v[..., 1], v[..., 2]
    zero = jnp.zeros_like(x)
    rows = [
        jnp.stack([zero, -z, y], axis=-1),
        jnp.stack([z, zero, -x], axis=-1),
        jnp.stack([-y, x, zero], axis=-1),
    ]
    return jnp.stack(rows, axis=-2)


def exp(axis_angle: Array) -> Array:
    """
    Rotation matrix for an axis-angle vector (Rodrigues' formula).

    The direction of `axis_angle` is the rotation axis and its norm the angle
    in radians. A zero vector maps to the identity.

    Args:
        axis_angle: (..., 3) axis-angle vector

    Returns:
        (..., 3, 3) rotation matrix
    """
    theta = jnp.linalg.norm(axis_angle, axis=-1)[..., None, None]
    nonzero = theta > 1e-12
    safe_theta = jnp.where(nonzero, theta, 1.0)

    K = skew_symmetric(axis_angle) / safe_theta
    K = jnp.where(nonzero, K, 0.0)

    eye = jnp.broadcast_to(jnp.eye(3, dtype=axis_angle.dtype), K.shape)
    return eye + jnp.sin(theta) * K + (1.0 - jnp.cos(theta)) * (K @ K)


def about_axis(axis: Array, angle) -> Array:
    """Rotation by `angle` radians about a unit `axis`."""
    return exp(jnp.asarray(axis) * angle)


def from_rpy(rpy: Array) -> Array:
    """
    Rotation from URDF roll-pitch-yaw angles.

    URDF uses fixed-axis rotations: roll about X, then pitch about Y, then yaw
    about Z, giving R = Rz(yaw) @ Ry(pitch) @ Rx(roll).

    Args:
        rpy: (3,) array of [roll, pitch, yaw] in radians

    Returns:
        (3, 3) rotation matrix
    """
    rpy = jnp.asarray(rpy, dtype=jnp.float64)
    cr, cp, cy = jnp.cos(rpy)
    sr, sp, sy = jnp.sin(rpy)
    return jnp.array([
        [cy * cp, cy * sp * sr - sy * cr, cy * sp * cr + sy * sr],
        [sy * cp, sy * sp * sr + cy * cr, sy * sp * cr - cy * sr],
        [-sp, cp * sr, cp * cr],
    ])


def inverse(R: Array) -> Array:
    """Inverse of a rotation matrix, i.e. its transpose."""
    return jnp.swapaxes(R, -1, -2)


def from_quaternion(quaternion: Array) -> Array:
    """
    Rotation matrix from a (w, x, y, z) quaternion. The input is normalised.

    Args:
        quaternion: (..., 4) quaternion

    Returns:
        (..., 3, 3) rotation matrix
    """
    q = quaternion / jnp.linalg.norm(quaternion, axis=-1, keepdims=True)
    w, x, y, z = q[..., 0], q[..., 1], q[..., 2], q[..., 3]
    rows = [
        jnp.stack([1 - 2 * (y * y + z * z), 2 * (x * y - w * z), 2 * (x * z + w * y)], axis=-1),
        jnp.stack([2 * (x * y + w * z), 1 - 2 * (x * x + z * z), 2 * (y * z - w * x)], axis=-1),
        jnp.stack([2 * (x * z - w * y), 2 * (y * z + w * x), 1 - 2 * (x * x + y * y)], axis=-1),
    ]
    return jnp.stack(rows, axis=-2)


def to_quaternion(R: Array) -> Array:
    """
    Convert a single rotation matrix to a unit (w, x, y, z) quaternion.

    Uses Shepperd's method: the largest of w, x, y, z is recovered from the
    diagonal and the rest from the off-diagonal terms. The result has w >= 0.

    Args:
        R: (3, 3) rotation matrix

    Returns:
        (4,) quaternion
    """
    R = jnp.asarray(R)
    diag = jnp.diagonal(R)
    trace = jnp.sum(diag)

    # Squared magnitudes (times 4) of w, x, y, z.
    candidates = jnp.array([
        1.0 + trace,
        1.0 + 2.0 * diag[0] - trace,
        1.0 + 2.0 * diag[1] - trace,
        1.0 + 2.0 * diag[2] - trace,
    ])
    k = jnp.argmax(candidates)
    s = 2.0 * jnp.sqrt(jnp.maximum(candidates[k], 1e-300))

    from_w = jnp.array([s / 4.0, (R[2, 1] - R[1, 2]) / s, (R[0, 2] - R[2, 0]) / s, (R[1, 0] - R[0, 1]) / s])
    from_x = jnp.array([(R[2, 1] - R[1, 2]) / s, s / 4.0, (R[0, 1] + R[1, 0]) / s, (R[0, 2] + R[2, 0]) / s])
    from_y = jnp.array([(R[0, 2] - R[2, 0]) / s, (R[0, 1] + R[1, 0]) / s, s / 4.0, (R[1, 2] + R[2, 1]) / s])
    from_z = jnp.array([(R[1, 0] - R[0, 1]) / s, (R[0, 2] + R[2, 0]) / s, (R[1, 2] + R[2, 1]) / s, s / 4.0])

    q = jnp.stack([from_w, from_x, from_y, from_z])[k]
    q = jnp.where(q[0] < 0, -q, q)
    return q / jnp.linalg.norm(q)
