"""Frame-to-frame transform lookups over a kinematic graph.

Answers "where is frame B in frame A" for a set of named joint positions, the
way a transform buffer lookup between a parent and a child frame id does.
"""

from typing import Mapping, Tuple

import jax.numpy as jnp
from jax import Array

from .chain import chain_configuration, extract_chain, forward_kinematics
from .core import KinematicGraph
from .transforms import se3, so3


def lookup_transform(
    graph: KinematicGraph,
    positions: Mapping[str, float],
    target_frame: str,
    source_frame: str,
) -> Array:
    """Pose of `source_frame` expressed in `target_frame`.

    Both frames are reached from their closest common ancestor, so the frames
    need not lie on one chain.

    Args:
        graph: KinematicGraph containing both frames
        positions: Joint values by joint name; missing joints are taken as zero
        target_frame: Link name the result is expressed in
        source_frame: Link name whose pose is returned

    Returns:
        (4, 4) transform T such that p_target = T @ p_source

    Raises:
        UnknownLinkError: Either frame is not a link of the graph.
    """
    target_path = graph.path_to_root(target_frame)
    source_path = graph.path_to_root(source_frame)
    common = next(link for link in source_path if link in target_path)

    T_common_target = _pose_below(graph, positions, common, target_frame)
    T_common_source = _pose_below(graph, positions, common, source_frame)
    return se3.multiply(se3.inverse(T_common_target), T_common_source)


def to_position_and_quaternion(T: Array) -> Tuple[Array, Array]:
    """Split a transform into translation (3,) and (w, x, y, z) quaternion (4,)."""
    T = jnp.asarray(T)
    return se3.get_position(T), so3.to_quaternion(se3.get_rotation(T))


def _pose_below(graph: KinematicGraph, positions: Mapping[str, float], ancestor: str, link: str) -> Array:
    chain = extract_chain(graph, ancestor, link)
    if len(chain) == 0:
        return se3.identity()
    return forward_kinematics(chain, chain_configuration(chain, positions))[-1]
