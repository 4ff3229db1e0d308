"""Chain extraction and forward kinematics.

Forward kinematics walks a chain once, root-to-tip, accumulating each joint's
fixed offset and its motion for the corresponding configuration value.
"""

import logging
from typing import Mapping, Sequence, Union

import jax
import jax.numpy as jnp
from jax import Array

from .core import Chain, KinematicGraph
from .errors import ConfigurationLengthMismatchError, NoPathError, SingularChainError
from .transforms import se3

logger = logging.getLogger(__name__)

Configuration = Union[Array, Sequence[float]]


def extract_chain(graph: KinematicGraph, base_link: str, tip_link: str) -> Chain:
    """Extract the ordered joints between two links.

    Args:
        graph: KinematicGraph to extract from
        base_link: Name of the link the chain starts at
        tip_link: Name of the link the chain ends at

    Returns:
        Chain with joints in root-to-tip order. Empty if base == tip.

    Raises:
        UnknownLinkError: Either link is not in the graph.
        NoPathError: `tip_link` is not a descendant of `base_link`.
    """
    graph.link(base_link)
    upward = graph.path_to_root(tip_link)
    if base_link not in upward:
        raise NoPathError(base_link, tip_link)
    if base_link == tip_link:
        return Chain.empty(base_link)

    # Links strictly below base, walking back down towards the tip
    links_down = list(reversed(upward[:upward.index(base_link)]))
    joints = [graph.parent_joint(name) for name in links_down]

    chain = Chain(
        base_link=base_link,
        tip_link=tip_link,
        joint_names=tuple(j.name for j in joints),
        link_names=tuple(links_down),
        joint_types=tuple(j.joint_type for j in joints),
        origins=jnp.stack([j.origin for j in joints]),
        twists=jnp.stack([j.twist for j in joints]),
    )
    logger.debug("Extracted chain %s -> %s with %d joints", base_link, tip_link, len(chain))
    return chain


def forward_kinematics(chain: Chain, q: Configuration, require_nonempty: bool = False) -> Array:
    """Compute the pose of every segment of a chain.

    Args:
        chain: Chain to solve
        q: Joint values of shape (len(chain),), one per joint in chain order.
           Angles in radians for rotational joints, metres for prismatic ones.
           Values for fixed joints are ignored. No limit clamping is applied.
        require_nonempty: Raise SingularChainError for an empty chain instead
                          of returning no poses.

    Returns:
        Array of shape (len(chain), 4, 4); entry i is the frame of the child
        link of joint i expressed in the chain's base frame.
    """
    q = jnp.asarray(q, dtype=jnp.float64)
    if q.ndim != 1:
        raise ConfigurationLengthMismatchError(len(chain), f"shape {q.shape}")
    if q.shape[0] != len(chain):
        raise ConfigurationLengthMismatchError(len(chain), q.shape[0])
    if len(chain) == 0:
        if require_nonempty:
            raise SingularChainError(f"Chain {chain.base_link} -> {chain.tip_link} has no segments")
        return jnp.zeros((0, 4, 4))
    return _forward_kinematics(chain.origins, chain.twists, q)


@jax.jit
def _forward_kinematics(origins: Array, twists: Array, q: Array) -> Array:
    def scan_body(T_base_to_parent, segment):
        origin, twist, q_i = segment
        T_base_to_child = T_base_to_parent @ origin @ se3.joint_motion(twist, q_i)
        return T_base_to_child, T_base_to_child

    _, poses = jax.lax.scan(scan_body, jnp.eye(4, dtype=origins.dtype), (origins, twists, q))
    return poses


def chain_configuration(chain: Chain, positions: Mapping[str, float]) -> Array:
    """Build a chain-ordered configuration from named joint positions.

    Joints absent from `positions` (including every fixed joint) get zero.

    Args:
        chain: Chain the configuration is for
        positions: Mapping of joint name to joint value

    Returns:
        Array of shape (len(chain),)
    """
    return jnp.array([float(positions.get(name, 0.0)) for name in chain.joint_names], dtype=jnp.float64)
