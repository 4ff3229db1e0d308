"""Interface the synchronizer expects from a host scene graph."""

from typing import Any, Optional, Protocol, runtime_checkable

import numpy as np

# Opaque to the synchronizer; whatever the host uses to refer to a node.
NodeHandle = Any


@runtime_checkable
class SceneGraph(Protocol):
    """Hierarchical transform store owned by the host application.

    The host owns node storage. The synchronizer only creates, wires, updates
    and destroys the transform nodes it manages, and re-parents geometry nodes
    the host already holds.
    """

    def create_transform_node(self, name: str) -> NodeHandle:
        """Create a transform node with an identity matrix and no parent."""
        ...

    def set_matrix(self, node: NodeHandle, matrix: np.ndarray) -> None:
        """Overwrite the node's 4x4 transform to its parent."""
        ...

    def set_parent(self, node: NodeHandle, parent: Optional[NodeHandle]) -> None:
        ...

    def find_node_by_name(self, name: str) -> Optional[NodeHandle]:
        ...

    def destroy_node(self, node: NodeHandle) -> None:
        ...
