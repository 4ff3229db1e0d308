"""Immutable link/joint tree built from a robot description.

The graph is created once per description and only read afterwards, so it can
be shared freely between chain extractions.
"""

from enum import Enum
from typing import Dict, List, Optional, Tuple

import jax.numpy as jnp
from jax import Array
from flax import struct

from ..errors import UnknownLinkError


class JointType(str, Enum):
    FIXED = "fixed"
    REVOLUTE = "revolute"
    CONTINUOUS = "continuous"
    PRISMATIC = "prismatic"

    @property
    def is_movable(self) -> bool:
        return self is not JointType.FIXED


@struct.dataclass
class Link:
    """A rigid body of the robot.

    Attributes:
        name: Unique link name.
        mesh: Resolved path of the visual mesh, or None when the link has no
              geometry or the mesh could not be located.
        visual_origin: (4, 4) offset of the visual geometry in the link frame.
        children: Names of the links attached below this one.
        parent_joint: Name of the joint connecting this link to its parent,
                      None for the root.
    """
    name: str = struct.field(pytree_node=False)
    mesh: Optional[str] = struct.field(pytree_node=False, default=None)
    visual_origin: Array = struct.field(default_factory=lambda: jnp.eye(4))
    children: Tuple[str, ...] = struct.field(pytree_node=False, default=())
    parent_joint: Optional[str] = struct.field(pytree_node=False, default=None)


@struct.dataclass
class Joint:
    """A connection between two links.

    Attributes:
        name: Unique joint name.
        joint_type: Kind of relative motion the joint permits.
        parent: Name of the parent link.
        child: Name of the child link.
        origin: (4, 4) fixed transform from the parent link frame to the joint
                frame (the URDF `<origin>`).
        axis: (3,) unit motion axis in the joint frame. Zero for fixed joints.
    """
    name: str = struct.field(pytree_node=False)
    joint_type: JointType = struct.field(pytree_node=False)
    parent: str = struct.field(pytree_node=False)
    child: str = struct.field(pytree_node=False)
    origin: Array
    axis: Array

    @property
    def twist(self) -> Array:
        """6D motion generator [vx, vy, vz, wx, wy, wz] for a unit joint value."""
        zeros = jnp.zeros(3, dtype=self.axis.dtype)
        if self.joint_type in (JointType.REVOLUTE, JointType.CONTINUOUS):
            return jnp.concatenate([zeros, self.axis])
        if self.joint_type is JointType.PRISMATIC:
            return jnp.concatenate([self.axis, zeros])
        return jnp.zeros(6, dtype=self.axis.dtype)


@struct.dataclass
class KinematicGraph:
    """Tree of links connected by joints, with exactly one root link."""
    root: str = struct.field(pytree_node=False)
    links: Dict[str, Link] = struct.field(pytree_node=False)
    joints: Dict[str, Joint] = struct.field(pytree_node=False)

    def link(self, name: str) -> Link:
        try:
            return self.links[name]
        except KeyError:
            raise UnknownLinkError(name) from None

    def parent_joint(self, link_name: str) -> Optional[Joint]:
        joint_name = self.link(link_name).parent_joint
        return None if joint_name is None else self.joints[joint_name]

    def parent_of(self, link_name: str) -> Optional[str]:
        joint = self.parent_joint(link_name)
        return None if joint is None else joint.parent

    def path_to_root(self, link_name: str) -> List[str]:
        """Link names from `link_name` up to and including the root."""
        path = [self.link(link_name).name]
        parent = self.parent_of(link_name)
        while parent is not None:
            path.append(parent)
            parent = self.parent_of(parent)
        return path

    def is_ancestor(self, ancestor: str, link_name: str) -> bool:
        """True if `ancestor` is `link_name` or lies above it in the tree."""
        self.link(ancestor)
        return ancestor in self.path_to_root(link_name)

    @property
    def movable_joint_names(self) -> Tuple[str, ...]:
        return tuple(name for name, joint in self.joints.items() if joint.joint_type.is_movable)
