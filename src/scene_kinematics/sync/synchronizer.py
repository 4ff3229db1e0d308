"""Keeps a host scene graph in step with a kinematic chain.

Node layout for a chain `base -> ... -> tip`:

    attach_to (host node, optional)
      <prefix>display_correction      correction matrix
        <prefix><base>                identity
          <prefix><link 1>            segment 1 relative to base
            <prefix><link 2>          segment 2 relative to segment 1
              ...
        <prefix><link>_visual         visual origin of a link, child of its frame node
          <geometry node>             host-owned, named in the link-name table

The display world transform of every chain link is therefore
attach @ correction @ pose, with the correction applied exactly once.
"""

import logging
from enum import Enum
from typing import Dict, List, Mapping, Optional, Tuple

import jax.numpy as jnp
import numpy as np
from jax import Array

from ..chain import Configuration, extract_chain, forward_kinematics
from ..core import Chain, KinematicGraph
from ..errors import SyncError, UnmappedLinkError
from ..transforms import se3
from .conventions import display_correction
from .scene_graph import NodeHandle, SceneGraph

logger = logging.getLogger(__name__)


class NodeState(Enum):
    UNINITIALIZED = "uninitialized"
    PLACED = "placed"
    SYNCHRONIZED = "synchronized"
    DESTROYED = "destroyed"


class SceneSynchronizer:
    """Maps the links of a chain onto persistent scene transform nodes.

    Args:
        scene: Host scene graph.
        graph: Kinematic graph the chain was extracted from.
        chain: Chain whose poses drive the scene.
        link_names: Table of link name -> name of the host geometry node to
            attach under that link, or None for a link without geometry. Every
            link of the chain must appear in it; mapped links outside the chain
            are placed once as fixed mounting geometry.
        correction: Display-convention correction, by name or as a matrix.
        node_prefix: Prefix for the names of nodes this synchronizer creates.
        attach_to: Name of a host node the whole robot hangs under.
    """

    def __init__(
        self,
        scene: SceneGraph,
        graph: KinematicGraph,
        chain: Chain,
        link_names: Mapping[str, Optional[str]],
        correction=None,
        node_prefix: str = "",
        attach_to: Optional[str] = None,
    ):
        for link_name in link_names:
            graph.link(link_name)
        self.scene = scene
        self.graph = graph
        self.chain = chain
        self.link_names = dict(link_names)
        self.correction = display_correction(correction)
        self.node_prefix = node_prefix
        self.attach_to = attach_to

        self._correction_node: Optional[NodeHandle] = None
        self._frame_nodes: Dict[str, NodeHandle] = {}
        self._visual_nodes: Dict[str, NodeHandle] = {}
        self._geometry_nodes: Dict[str, Tuple[str, NodeHandle]] = {}
        self._created: List[Tuple[str, NodeHandle]] = []
        self._states: Dict[str, NodeState] = {}
        self._destroyed = False

    # Public API
    def place(self) -> None:
        """Initial placement of the chain and all fixed mounting links.

        Chain links are shown at zero joint values until the first pose update.
        Each mapped link outside the moving chain gets a frame node holding its
        fixed offset from the nearest managed ancestor. Links already placed are
        left untouched.
        """
        self._check_alive()
        self._check_chain_mapped()
        placements = self._plan_placements()
        attach = self._find_attach_node()
        self._validate_geometry(
            [self.chain.base_link]
            + [link for link in self.chain.link_names if link not in self._frame_nodes]
            + [link for link, _, _ in placements]
        )

        self._ensure_base(attach)
        parent = self._frame_nodes[self.chain.base_link]
        # At zero joint values each segment sits at its joint origin
        for link, origin in zip(self.chain.link_names, np.asarray(self.chain.origins)):
            node = self._frame_nodes.get(link)
            if node is None:
                node = self._create_frame_node(link)
                self.scene.set_matrix(node, origin)
                self.scene.set_parent(node, parent)
                self._states[link] = NodeState.PLACED
            parent = node

        for link, ancestor, offset in placements:
            if link in self._frame_nodes:
                continue
            node = self._create_frame_node(link)
            self.scene.set_matrix(node, np.asarray(offset))
            self.scene.set_parent(node, self._frame_nodes[ancestor])
            self._states[link] = NodeState.PLACED
        logger.info(
            "Placed %d links for chain %s -> %s",
            len(self.chain) + len(placements) + 1, self.chain.base_link, self.chain.tip_link,
        )

    def update(self, poses) -> None:
        """Write a pose list from the forward kinematics solver into the scene.

        Everything is validated before the first write, so a failing call leaves
        every node as it was.

        Args:
            poses: (len(chain), 4, 4) poses relative to the chain base.

        Raises:
            UnmappedLinkError: A chain link is missing from the link-name table
                or its geometry node is not in the scene.
            SyncError: The pose count does not match the chain.
        """
        self._check_alive()
        poses = jnp.asarray(poses, dtype=jnp.float64)
        if poses.shape != (len(self.chain), 4, 4):
            raise SyncError(f"Expected poses of shape ({len(self.chain)}, 4, 4), got {poses.shape}")
        self._check_chain_mapped()
        attach = self._find_attach_node()
        self._validate_geometry(
            [self.chain.base_link] + [link for link in self.chain.link_names if link not in self._frame_nodes]
        )
        local_transforms = np.asarray(self._segment_transforms(poses))

        self._ensure_base(attach)
        parent = self._frame_nodes[self.chain.base_link]
        for link, local in zip(self.chain.link_names, local_transforms):
            node = self._frame_nodes.get(link)
            if node is None:
                node = self._create_frame_node(link)
            self.scene.set_matrix(node, local)
            self.scene.set_parent(node, parent)
            self._states[link] = NodeState.SYNCHRONIZED
            parent = node
        logger.debug("Synchronized %d links of chain %s -> %s", len(self.chain), self.chain.base_link, self.chain.tip_link)

    def synchronize(self, q: Configuration) -> Array:
        """Run one synchronization pass for a joint configuration.

        Returns:
            The poses written to the scene.
        """
        self._check_alive()
        poses = forward_kinematics(self.chain, q)
        self.update(poses)
        return poses

    def teardown(self) -> None:
        """Destroy every node this synchronizer created.

        Host geometry nodes are detached but left in the scene. Nodes the host
        has already removed are skipped. Calling teardown again does nothing.
        """
        if self._destroyed:
            return
        removed = 0
        try:
            for name, geometry in self._geometry_nodes.values():
                if self._in_scene(name, geometry):
                    self.scene.set_parent(geometry, None)
            for name, node in reversed(self._created):
                if self._in_scene(name, node):
                    self.scene.destroy_node(node)
                    removed += 1
        finally:
            for link in self._states:
                self._states[link] = NodeState.DESTROYED
            self._correction_node = None
            self._frame_nodes.clear()
            self._visual_nodes.clear()
            self._geometry_nodes.clear()
            self._created.clear()
            self._destroyed = True
        logger.info("Removed %d scene nodes for chain %s -> %s", removed, self.chain.base_link, self.chain.tip_link)

    def state(self, link_name: str) -> NodeState:
        return self._states.get(link_name, NodeState.UNINITIALIZED)

    def node(self, link_name: str) -> Optional[NodeHandle]:
        """Frame node of a link, if it has been created."""
        return self._frame_nodes.get(link_name)

    @property
    def correction_node(self) -> Optional[NodeHandle]:
        return self._correction_node

    # Internals
    def _check_alive(self) -> None:
        if self._destroyed:
            raise SyncError("Synchronizer has been torn down")

    def _node_name(self, suffix: str) -> str:
        return f"{self.node_prefix}{suffix}"

    def _in_scene(self, name: str, node: NodeHandle) -> bool:
        return self.scene.find_node_by_name(name) is node

    def _check_chain_mapped(self) -> None:
        for link in self.chain.link_names:
            if link not in self.link_names:
                raise UnmappedLinkError(link, "not in link-name table")

    def _find_attach_node(self) -> Optional[NodeHandle]:
        if self.attach_to is None:
            return None
        node = self.scene.find_node_by_name(self.attach_to)
        if node is None:
            raise SyncError(f"Attachment node '{self.attach_to}' not found in scene")
        return node

    def _validate_geometry(self, links) -> None:
        for link in links:
            geometry_name = self.link_names.get(link)
            if geometry_name is None or link in self._geometry_nodes:
                continue
            if self.scene.find_node_by_name(geometry_name) is None:
                raise UnmappedLinkError(link, f"geometry node '{geometry_name}' not found in scene")

    def _plan_placements(self) -> List[Tuple[str, str, Array]]:
        """(link, managed ancestor, fixed offset) for every mapped off-chain link.

        Ancestors come before descendants. Links that do not hang below the
        chain base cannot be positioned and are skipped.
        """
        chain_links = {self.chain.base_link, *self.chain.link_names}
        candidates = [link for link in self.link_names if link not in chain_links]
        candidates.sort(key=lambda link: len(self.graph.path_to_root(link)))

        managed = set(chain_links)
        placements = []
        for link in candidates:
            if not self.graph.is_ancestor(self.chain.base_link, link):
                logger.warning("Link '%s' is not below chain base '%s', not placing it", link, self.chain.base_link)
                continue
            ancestor = next(a for a in self.graph.path_to_root(link)[1:] if a in managed)
            offset_chain = extract_chain(self.graph, ancestor, link)
            # Joints off the moving chain are shown at their zero position
            offset = forward_kinematics(offset_chain, jnp.zeros(len(offset_chain)))[-1]
            placements.append((link, ancestor, offset))
            managed.add(link)
        return placements

    def _ensure_base(self, attach: Optional[NodeHandle]) -> None:
        if self._correction_node is None:
            self._correction_node = self._create(self._node_name("display_correction"))
            self.scene.set_matrix(self._correction_node, np.asarray(self.correction))
            self.scene.set_parent(self._correction_node, attach)
        base = self.chain.base_link
        if base not in self._frame_nodes:
            node = self._create_frame_node(base)
            self.scene.set_parent(node, self._correction_node)
            self._states[base] = NodeState.PLACED

    def _create(self, name: str) -> NodeHandle:
        node = self.scene.create_transform_node(name)
        self._created.append((name, node))
        return node

    def _create_frame_node(self, link: str) -> NodeHandle:
        """Frame node for a link, plus its visual node and geometry if mapped."""
        node = self._create(self._node_name(link))
        self._frame_nodes[link] = node

        geometry_name = self.link_names.get(link)
        if geometry_name is not None:
            visual = self._create(self._node_name(f"{link}_visual"))
            self.scene.set_matrix(visual, np.asarray(self.graph.link(link).visual_origin))
            self.scene.set_parent(visual, node)
            geometry = self.scene.find_node_by_name(geometry_name)
            self.scene.set_parent(geometry, visual)
            self._visual_nodes[link] = visual
            self._geometry_nodes[link] = (geometry_name, geometry)
        return node

    @staticmethod
    def _segment_transforms(poses: Array) -> Array:
        """Each pose relative to the previous one in the chain."""
        if poses.shape[0] == 0:
            return poses
        previous = jnp.concatenate([jnp.eye(4, dtype=poses.dtype)[None], poses[:-1]])
        return se3.multiply(se3.inverse(previous), poses)
