"""Tests for scene graph synchronization."""

from pathlib import Path

import jax.numpy as jnp
import numpy as np
import pytest

from scene_kinematics.chain import extract_chain, forward_kinematics
from scene_kinematics.errors import SyncError, UnknownLinkError, UnmappedLinkError
from scene_kinematics.io import load_urdf
from scene_kinematics.sync import (
    LPS_TO_RAS,
    InMemorySceneGraph,
    NodeState,
    SceneGraph,
    SceneSynchronizer,
    display_correction,
)

FIXTURES = Path(__file__).parent / "fixtures"

CHAIN_LINKS = ("base", "torso", "upper_arm", "lower_arm", "wrist", "tip", "stylus")
Q = jnp.array([0.2, 0.5, -0.3, 1.1, -0.7, 0.4])


@pytest.fixture
def omni():
    return load_urdf(FIXTURES / "omni.urdf")


@pytest.fixture
def chain(omni):
    return extract_chain(omni, "base", "stylus")


@pytest.fixture
def scene():
    scene = InMemorySceneGraph()
    # Geometry the host loaded from the meshes
    for link in CHAIN_LINKS:
        scene.add_geometry_node(f"{link}_model")
    return scene


@pytest.fixture
def link_names():
    names = {link: f"{link}_model" for link in CHAIN_LINKS}
    names["stylus_button"] = None
    return names


@pytest.fixture
def synchronizer(scene, omni, chain, link_names):
    return SceneSynchronizer(scene, omni, chain, link_names, correction="lps_to_ras", node_prefix="omni/")


def _matrices(scene):
    return {node.node_id: node.matrix.copy() for node in scene.nodes}


def test_in_memory_scene_is_a_scene_graph(scene):
    assert isinstance(scene, SceneGraph)


def test_display_correction():
    np.testing.assert_array_equal(display_correction("lps_to_ras"), np.diag([-1.0, -1.0, 1.0, 1.0]))
    np.testing.assert_array_equal(display_correction("RAS_TO_LPS"), LPS_TO_RAS)
    np.testing.assert_array_equal(display_correction(None), np.eye(4))
    np.testing.assert_array_equal(display_correction(np.eye(4) * 2), np.eye(4) * 2)
    with pytest.raises(ValueError, match="Unknown display correction"):
        display_correction("xyz")
    with pytest.raises(ValueError, match="shape"):
        display_correction(np.eye(3))


def test_initial_placement(synchronizer, scene, omni):
    synchronizer.place()

    correction = scene.find_node_by_name("omni/display_correction")
    assert correction is synchronizer.correction_node
    np.testing.assert_array_equal(correction.matrix, np.diag([-1.0, -1.0, 1.0, 1.0]))
    assert correction.parent is None

    base = scene.find_node_by_name("omni/base")
    assert base is synchronizer.node("base")
    assert base.parent is correction
    np.testing.assert_array_equal(base.matrix, np.eye(4))
    assert synchronizer.state("base") is NodeState.PLACED

    # Geometry hangs under a visual node carrying the link's visual origin
    visual = scene.find_node_by_name("omni/base_visual")
    assert visual.parent is base
    np.testing.assert_allclose(visual.matrix, omni.links["base"].visual_origin)
    assert scene.find_node_by_name("base_model").parent is visual

    # Chain links and the off-chain fixed link are all placed
    assert synchronizer.state("stylus_button") is NodeState.PLACED
    assert scene.find_node_by_name("omni/stylus_button") is not None
    torso = synchronizer.node("torso")
    assert torso.parent is base
    assert synchronizer.state("torso") is NodeState.PLACED
    np.testing.assert_allclose(torso.matrix, omni.joints["waist"].origin)


def test_placement_shows_zero_configuration(synchronizer, scene, omni):
    """Every placed link sits at its zero-configuration pose under the correction."""
    synchronizer.place()
    C = np.asarray(LPS_TO_RAS)

    full = extract_chain(omni, "base", "stylus_button")
    poses = np.asarray(forward_kinematics(full, jnp.zeros(len(full))))
    for link, pose in zip(full.link_names, poses):
        node = synchronizer.node(link)
        np.testing.assert_allclose(scene.world_matrix(node), C @ pose, atol=1e-12)

    button = scene.world_matrix(synchronizer.node("stylus_button"))
    np.testing.assert_allclose(button[:3, 3], [0.0, -0.246, 0.131], atol=1e-12)


def test_place_is_idempotent(synchronizer, scene):
    synchronizer.place()
    count = len(scene)
    synchronizer.place()
    assert len(scene) == count


def test_synchronize_matches_forward_kinematics(synchronizer, scene, chain, omni):
    """Display world pose of every link is correction @ FK pose."""
    synchronizer.place()
    poses = synchronizer.synchronize(Q)

    np.testing.assert_allclose(poses, forward_kinematics(chain, Q))
    C = np.asarray(LPS_TO_RAS)
    for link, pose in zip(chain.link_names, poses):
        node = synchronizer.node(link)
        assert synchronizer.state(link) is NodeState.SYNCHRONIZED
        np.testing.assert_allclose(scene.world_matrix(node), C @ np.asarray(pose), atol=1e-10)

        geometry = scene.find_node_by_name(f"{link}_model")
        expected = C @ np.asarray(pose) @ np.asarray(omni.links[link].visual_origin)
        np.testing.assert_allclose(scene.world_matrix(geometry), expected, atol=1e-10)


def test_parents_mirror_chain_order(synchronizer, chain):
    synchronizer.synchronize(Q)

    parent = synchronizer.node("base")
    for link in chain.link_names:
        node = synchronizer.node(link)
        assert node.parent is parent
        parent = node


def test_moving_a_joint_moves_descendants(synchronizer, scene):
    synchronizer.synchronize(jnp.zeros(6))
    tip_node = synchronizer.node("stylus")
    before = scene.world_matrix(tip_node)
    elbow_node = synchronizer.node("lower_arm")
    elbow_matrix = elbow_node.matrix.copy()

    synchronizer.synchronize(jnp.array([0.5, 0.0, 0.0, 0.0, 0.0, 0.0]))

    # Waist turned: only the torso's local matrix changes, the tip still moves
    np.testing.assert_allclose(elbow_node.matrix, elbow_matrix, atol=1e-12)
    assert not np.allclose(scene.world_matrix(tip_node), before)


def test_repeated_updates_reuse_nodes(synchronizer, scene):
    synchronizer.synchronize(Q)
    count = len(scene)
    nodes = {link: synchronizer.node(link) for link in CHAIN_LINKS}

    synchronizer.synchronize(Q * 0.5)
    assert len(scene) == count
    for link, node in nodes.items():
        assert synchronizer.node(link) is node


def test_lazy_creation_without_place(synchronizer, scene):
    """A pose update creates the nodes it needs on first use."""
    synchronizer.synchronize(Q)

    assert synchronizer.state("base") is NodeState.PLACED
    assert synchronizer.state("stylus") is NodeState.SYNCHRONIZED
    assert scene.find_node_by_name("omni/display_correction") is not None
    # Not placed until place() runs
    assert synchronizer.state("stylus_button") is NodeState.UNINITIALIZED


def test_off_chain_link_follows_its_chain_parent(synchronizer, scene, omni):
    synchronizer.place()
    button = synchronizer.node("stylus_button")
    stylus = synchronizer.node("stylus")
    assert button.parent is stylus

    poses = synchronizer.synchronize(Q)
    assert button.parent is stylus
    assert synchronizer.node("stylus") is stylus
    assert synchronizer.state("stylus") is NodeState.SYNCHRONIZED
    assert synchronizer.state("stylus_button") is NodeState.PLACED

    offset = np.asarray(omni.joints["button_mount"].origin)
    expected = np.asarray(LPS_TO_RAS) @ np.asarray(poses[-1]) @ offset
    np.testing.assert_allclose(scene.world_matrix(button), expected, atol=1e-10)


def test_unmapped_link_leaves_scene_unchanged(synchronizer, scene):
    synchronizer.place()
    synchronizer.synchronize(Q)
    before = _matrices(scene)
    count = len(scene)

    del synchronizer.link_names["wrist"]
    with pytest.raises(UnmappedLinkError, match="'wrist'"):
        synchronizer.synchronize(Q * -1.0)

    assert len(scene) == count
    after = _matrices(scene)
    for node_id, matrix in before.items():
        np.testing.assert_array_equal(after[node_id], matrix)


def test_unmapped_link_on_first_pass(scene, omni, chain, link_names):
    del link_names["tip"]
    sync = SceneSynchronizer(scene, omni, chain, link_names)
    with pytest.raises(UnmappedLinkError):
        sync.synchronize(Q)
    # Nothing was created
    assert len(scene) == len(CHAIN_LINKS)
    assert sync.node("torso") is None


def test_missing_geometry_node(omni, chain, link_names):
    scene = InMemorySceneGraph()
    for link in CHAIN_LINKS[:-1]:
        scene.add_geometry_node(f"{link}_model")
    sync = SceneSynchronizer(scene, omni, chain, link_names)

    with pytest.raises(UnmappedLinkError, match="stylus_model"):
        sync.synchronize(Q)
    assert len(scene) == len(CHAIN_LINKS) - 1


def test_unknown_link_in_table(scene, omni, chain):
    with pytest.raises(UnknownLinkError):
        SceneSynchronizer(scene, omni, chain, {"gripper": "gripper_model"})


def test_pose_count_mismatch(synchronizer, chain):
    poses = forward_kinematics(chain, Q)
    with pytest.raises(SyncError, match="Expected poses"):
        synchronizer.update(poses[:3])


def test_attach_to_host_node(scene, omni, chain, link_names):
    mount = scene.create_transform_node("robot_mount")
    mount_matrix = np.eye(4)
    mount_matrix[:3, 3] = [10.0, 20.0, 30.0]
    scene.set_matrix(mount, mount_matrix)

    sync = SceneSynchronizer(scene, omni, chain, link_names, correction="lps_to_ras", attach_to="robot_mount")
    poses = sync.synchronize(Q)

    assert sync.correction_node.parent is mount
    expected = mount_matrix @ np.asarray(LPS_TO_RAS) @ np.asarray(poses[-1])
    np.testing.assert_allclose(scene.world_matrix(sync.node("stylus")), expected, atol=1e-10)


def test_missing_attach_node(scene, omni, chain, link_names):
    sync = SceneSynchronizer(scene, omni, chain, link_names, attach_to="robot_mount")
    with pytest.raises(SyncError, match="robot_mount"):
        sync.place()
    assert len(scene) == len(CHAIN_LINKS)


def test_teardown(synchronizer, scene):
    synchronizer.place()
    synchronizer.synchronize(Q)
    assert len(scene) > len(CHAIN_LINKS)

    synchronizer.teardown()

    # Only the host's geometry nodes remain, detached
    assert len(scene) == len(CHAIN_LINKS)
    for node in scene.nodes:
        assert not node.is_transform
        assert node.parent is None
    for link in CHAIN_LINKS + ("stylus_button",):
        assert synchronizer.state(link) is NodeState.DESTROYED
    assert synchronizer.node("base") is None

    # Further passes are rejected, teardown itself is harmless
    with pytest.raises(SyncError, match="torn down"):
        synchronizer.synchronize(Q)
    with pytest.raises(SyncError):
        synchronizer.place()
    synchronizer.teardown()


def test_teardown_after_host_removed_geometry(synchronizer, scene):
    synchronizer.place()
    synchronizer.synchronize(jnp.zeros(6))
    scene.destroy_node(scene.find_node_by_name("torso_model"))
    scene.destroy_node(synchronizer.node("wrist"))

    synchronizer.teardown()

    assert len(scene) == len(CHAIN_LINKS) - 1
    assert all(not node.is_transform for node in scene.nodes)
    assert synchronizer.state("torso") is NodeState.DESTROYED
    with pytest.raises(SyncError, match="torn down"):
        synchronizer.place()


def test_empty_chain_synchronizer(scene, omni):
    chain = extract_chain(omni, "base", "base")
    sync = SceneSynchronizer(scene, omni, chain, {"base": "base_model"})
    poses = sync.synchronize([])

    assert poses.shape == (0, 4, 4)
    assert sync.state("base") is NodeState.PLACED
    # No correction given, so the identity is used
    geometry = scene.find_node_by_name("base_model")
    np.testing.assert_allclose(scene.world_matrix(geometry), omni.links["base"].visual_origin, atol=1e-12)


def test_in_memory_scene_graph_rules():
    scene = InMemorySceneGraph()
    a = scene.create_transform_node("a")
    b = scene.create_transform_node("b")
    scene.set_parent(b, a)

    with pytest.raises(ValueError, match="cycle"):
        scene.set_parent(a, b)
    with pytest.raises(ValueError, match="shape"):
        scene.set_matrix(a, np.eye(3))

    scene.destroy_node(a)
    assert b.parent is None
    assert scene.find_node_by_name("a") is None
    with pytest.raises(KeyError):
        scene.set_matrix(a, np.eye(4))
