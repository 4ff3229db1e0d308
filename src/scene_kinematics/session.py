"""Wire a configuration and a host scene into a ready synchronizer."""

import logging

from .chain import extract_chain
from .config import SyncConfig
from .io import load_urdf
from .sync import SceneGraph, SceneSynchronizer

logger = logging.getLogger(__name__)


def open_session(config: SyncConfig, scene: SceneGraph) -> SceneSynchronizer:
    """Load the robot, extract its chain and place it in the scene.

    The returned synchronizer has completed initial placement; drive it with
    `synchronize(q)` from the caller's update loop and call `teardown()` when
    the robot display goes away.
    """
    graph = load_urdf(config.description, mesh_dir=config.mesh_dir, require_geometry=config.require_geometry)
    chain = extract_chain(graph, config.base_link, config.tip_link)
    synchronizer = SceneSynchronizer(
        scene,
        graph,
        chain,
        config.link_names,
        correction=config.correction,
        node_prefix=config.node_prefix,
        attach_to=config.attach_to,
    )
    synchronizer.place()
    logger.info(
        "Opened session for '%s': chain %s -> %s with %d joints",
        config.description, chain.base_link, chain.tip_link, len(chain),
    )
    return synchronizer
