"""Scene graph synchronization.

Mirrors forward kinematics poses into a host scene graph of parent/child
transform nodes, with a single display-convention correction at the boundary.
"""

from .conventions import DISPLAY_CORRECTIONS, IDENTITY, LPS_TO_RAS, display_correction
from .memory import InMemorySceneGraph, SceneNode
from .scene_graph import NodeHandle, SceneGraph
from .synchronizer import NodeState, SceneSynchronizer

__all__ = [
    "DISPLAY_CORRECTIONS",
    "IDENTITY",
    "LPS_TO_RAS",
    "display_correction",
    "InMemorySceneGraph",
    "SceneNode",
    "NodeHandle",
    "SceneGraph",
    "NodeState",
    "SceneSynchronizer",
]
