"""Chain PyTree: the ordered joints between a base link and a tip link."""

from typing import Tuple

import jax.numpy as jnp
from jax import Array
from flax import struct

from .kinematic_graph import JointType


@struct.dataclass
class Chain:
    """Ordered joints from `base_link` to `tip_link`, root-to-tip.

    Names and types are static fields; the per-joint fixed offsets and motion
    generators are stacked into arrays so the chain can be passed straight into
    jit-compiled code.

    Attributes:
        base_link: Link the chain starts from. Poses are expressed in its frame.
        tip_link: Last link of the chain.
        joint_names: Joint names in chain order.
        link_names: Child link of each joint, in chain order.
        joint_types: Type of each joint, in chain order.
        origins: Array of shape (n, 4, 4), fixed offset of each joint from its
                 parent link frame.
        twists: Array of shape (n, 6), motion generator of each joint.
    """
    base_link: str = struct.field(pytree_node=False)
    tip_link: str = struct.field(pytree_node=False)
    joint_names: Tuple[str, ...] = struct.field(pytree_node=False)
    link_names: Tuple[str, ...] = struct.field(pytree_node=False)
    joint_types: Tuple[JointType, ...] = struct.field(pytree_node=False)
    origins: Array
    twists: Array

    def __len__(self) -> int:
        return len(self.joint_names)

    def __getitem__(self, index: slice) -> "Chain":
        """Sub-chain for a slice of joint indices (step 1 only)."""
        if not isinstance(index, slice):
            raise TypeError("Chain indices must be slices")
        start, stop, step = index.indices(len(self))
        if step != 1:
            raise ValueError("Chain slices must be contiguous")
        stop = max(start, stop)
        links = (self.base_link,) + self.link_names
        return Chain(
            base_link=links[start],
            tip_link=links[stop],
            joint_names=self.joint_names[start:stop],
            link_names=self.link_names[start:stop],
            joint_types=self.joint_types[start:stop],
            origins=self.origins[start:stop],
            twists=self.twists[start:stop],
        )

    @property
    def actuated_joint_names(self) -> Tuple[str, ...]:
        return tuple(
            name for name, joint_type in zip(self.joint_names, self.joint_types) if joint_type.is_movable
        )

    @classmethod
    def empty(cls, link_name: str) -> "Chain":
        return cls(
            base_link=link_name,
            tip_link=link_name,
            joint_names=(),
            link_names=(),
            joint_types=(),
            origins=jnp.zeros((0, 4, 4)),
            twists=jnp.zeros((0, 6)),
        )
