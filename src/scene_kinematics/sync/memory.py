"""In-memory scene graph for headless use and tests."""

import itertools
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class SceneNode:
    """A named node with a transform to its parent.

    Geometry nodes use the same type; their matrix simply stays identity.
    """
    node_id: int
    name: str
    matrix: np.ndarray = field(default_factory=lambda: np.eye(4))
    parent: Optional["SceneNode"] = None
    is_transform: bool = True


class InMemorySceneGraph:
    """Minimal SceneGraph implementation backed by a dict of nodes.

    Name lookups return the first node added under that name, matching the
    behaviour of typical host scenes where names are not unique.
    """

    def __init__(self):
        self._nodes: Dict[int, SceneNode] = {}
        self._ids = itertools.count(1)

    # SceneGraph interface
    def create_transform_node(self, name: str) -> SceneNode:
        return self._add(name, is_transform=True)

    def set_matrix(self, node: SceneNode, matrix) -> None:
        self._check(node)
        matrix = np.array(matrix, dtype=float)
        if matrix.shape != (4, 4):
            raise ValueError(f"matrix must have shape (4, 4), got {matrix.shape}")
        node.matrix = matrix

    def set_parent(self, node: SceneNode, parent: Optional[SceneNode]) -> None:
        self._check(node)
        if parent is not None:
            self._check(parent)
            ancestor = parent
            while ancestor is not None:
                if ancestor is node:
                    raise ValueError(f"Parenting '{node.name}' under '{parent.name}' would create a cycle")
                ancestor = ancestor.parent
        node.parent = parent

    def find_node_by_name(self, name: str) -> Optional[SceneNode]:
        return next((node for node in self._nodes.values() if node.name == name), None)

    def destroy_node(self, node: SceneNode) -> None:
        self._check(node)
        del self._nodes[node.node_id]
        for other in self._nodes.values():
            if other.parent is node:
                other.parent = None

    # Host-side helpers
    def add_geometry_node(self, name: str) -> SceneNode:
        """Add a geometry (model) node, as the host does when it loads a mesh."""
        return self._add(name, is_transform=False)

    def world_matrix(self, node: SceneNode) -> np.ndarray:
        """Node transform composed with every ancestor's, root-most first."""
        self._check(node)
        matrix = np.eye(4)
        current = node
        while current is not None:
            matrix = current.matrix @ matrix
            current = current.parent
        return matrix

    def children(self, node: SceneNode) -> List[SceneNode]:
        return [other for other in self._nodes.values() if other.parent is node]

    @property
    def nodes(self) -> List[SceneNode]:
        return list(self._nodes.values())

    def __contains__(self, node) -> bool:
        return isinstance(node, SceneNode) and self._nodes.get(node.node_id) is node

    def __len__(self) -> int:
        return len(self._nodes)

    def _add(self, name: str, is_transform: bool) -> SceneNode:
        node = SceneNode(node_id=next(self._ids), name=name, is_transform=is_transform)
        self._nodes[node.node_id] = node
        logger.debug("Added node %d '%s'", node.node_id, name)
        return node

    def _check(self, node: SceneNode) -> None:
        if node not in self:
            raise KeyError(f"Node '{getattr(node, 'name', node)}' is not part of this scene")
