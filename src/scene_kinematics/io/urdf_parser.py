"""URDF parser producing a KinematicGraph.

Mesh references are resolved against a caller-supplied asset directory. A mesh
that cannot be found does not affect the kinematics, so the graph is still
built and handed back with the error.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

import jax.numpy as jnp
import numpy as np
from lxml import etree

from scene_kinematics.core.kinematic_graph import Joint, JointType, KinematicGraph, Link
from scene_kinematics.errors import MissingGeometryError, NoRootError, ParseError
from scene_kinematics.transforms import se3

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

_URI_PREFIXES = ("package://", "file://")


def load_urdf(
    urdf_path: PathLike,
    mesh_dir: Optional[PathLike] = None,
    require_geometry: bool = True,
) -> KinematicGraph:
    """Load a URDF file into a KinematicGraph.

    Args:
        urdf_path: Path to the URDF file.
        mesh_dir: Directory mesh references are resolved against. Defaults to
                  the directory containing the URDF file.
        require_geometry: If True, unresolved meshes raise MissingGeometryError
                          (carrying the graph). If False they are logged and the
                          affected links get no mesh.

    Returns:
        KinematicGraph: The robot's link/joint tree.

    Raises:
        ParseError: The file is not a well-formed robot description.
        NoRootError: The description does not have exactly one root link.
        MissingGeometryError: A referenced mesh could not be located.
    """
    urdf_path = Path(urdf_path)
    mesh_dir = Path(mesh_dir) if mesh_dir is not None else urdf_path.parent

    try:
        tree = etree.parse(str(urdf_path))
    except (OSError, etree.XMLSyntaxError) as e:
        raise ParseError(f"Could not parse robot description '{urdf_path}': {e}") from e
    root = tree.getroot()
    if root.tag != "robot":
        raise ParseError(f"Expected a <robot> root element, found <{root.tag}>")

    # First pass: links and their visual geometry
    link_elems: Dict[str, etree._Element] = {}
    for link_elem in root.findall("link"):
        name = _required_attr(link_elem, "name")
        if name in link_elems:
            raise ParseError(f"Duplicate link name '{name}'")
        link_elems[name] = link_elem

    # Second pass: joints and topology
    joints: Dict[str, Joint] = {}
    parent_joint_of: Dict[str, str] = {}
    children_of: Dict[str, List[str]] = {name: [] for name in link_elems}
    for joint_elem in root.findall("joint"):
        joint = _parse_joint(joint_elem)
        if joint.name in joints:
            raise ParseError(f"Duplicate joint name '{joint.name}'")
        for link_name in (joint.parent, joint.child):
            if link_name not in link_elems:
                raise ParseError(f"Joint '{joint.name}' references undeclared link '{link_name}'")
        if joint.child in parent_joint_of:
            raise ParseError(
                f"Link '{joint.child}' has two parent joints: "
                f"'{parent_joint_of[joint.child]}' and '{joint.name}'"
            )
        joints[joint.name] = joint
        parent_joint_of[joint.child] = joint.name
        children_of[joint.parent].append(joint.child)

    # Find root link (not a child of any joint)
    roots = [name for name in link_elems if name not in parent_joint_of]
    if len(roots) != 1:
        raise NoRootError(f"Expected exactly one root link, found: {roots}")
    root_link = roots[0]

    # Every link must hang below the root, otherwise the joints form a cycle
    reachable = set()
    stack = [root_link]
    while stack:
        current = stack.pop()
        reachable.add(current)
        stack.extend(children_of[current])
    unreachable = sorted(set(link_elems) - reachable)
    if unreachable:
        raise ParseError(f"Links not connected to root '{root_link}' (cycle?): {unreachable}")

    links: Dict[str, Link] = {}
    missing: List[str] = []
    for name, link_elem in link_elems.items():
        mesh_ref, visual_origin = _parse_visual(link_elem)
        mesh = None
        if mesh_ref is not None:
            resolved = resolve_mesh_path(mesh_ref, mesh_dir)
            if resolved is None:
                missing.append(mesh_ref)
            else:
                mesh = str(resolved)
        links[name] = Link(
            name=name,
            mesh=mesh,
            visual_origin=visual_origin,
            children=tuple(children_of[name]),
            parent_joint=parent_joint_of.get(name),
        )

    graph = KinematicGraph(root=root_link, links=links, joints=joints)
    logger.debug(
        "Loaded '%s': %d links, %d joints, root '%s'",
        urdf_path, len(links), len(joints), root_link,
    )

    if missing:
        if require_geometry:
            raise MissingGeometryError(missing, graph=graph)
        logger.warning("Continuing without geometry for meshes: %s", ", ".join(missing))
    return graph


def resolve_mesh_path(reference: str, mesh_dir: PathLike) -> Optional[Path]:
    """Locate a mesh reference on disk.

    `package://<pkg>/<rel>` and `file://` prefixes are stripped. Relative
    references are tried against `mesh_dir` as given, then without their
    package directory, then by file name alone.

    Returns:
        The existing path, or None if no candidate exists.
    """
    mesh_dir = Path(mesh_dir)
    ref = reference
    package_relative = None
    for prefix in _URI_PREFIXES:
        if ref.startswith(prefix):
            ref = ref[len(prefix):]
            if prefix == "package://" and "/" in ref:
                package_relative = ref.split("/", 1)[1]
            break

    path = Path(ref).expanduser()
    if path.is_absolute():
        candidates = [path, mesh_dir / path.name]
    else:
        candidates = [mesh_dir / path]
        if package_relative:
            candidates.append(mesh_dir / package_relative)
        candidates.append(mesh_dir / path.name)

    for candidate in candidates:
        if candidate.is_file():
            return candidate
    return None


def _required_attr(elem, name: str) -> str:
    value = elem.get(name)
    if not value:
        raise ParseError(f"<{elem.tag}> element on line {elem.sourceline} is missing '{name}'")
    return value


def _parse_vector(elem, attr: str, default: str) -> np.ndarray:
    text = default if elem is None else elem.get(attr, default)
    try:
        values = [float(x) for x in text.split()]
    except ValueError:
        raise ParseError(f"Invalid numeric value '{text}' for '{attr}'") from None
    if len(values) != 3:
        raise ParseError(f"Expected 3 values for '{attr}', got '{text}'")
    return np.array(values)


def _parse_origin(origin_elem):
    xyz = _parse_vector(origin_elem, "xyz", "0 0 0")
    rpy = _parse_vector(origin_elem, "rpy", "0 0 0")
    return se3.from_xyz_rpy(jnp.array(xyz), jnp.array(rpy))


def _parse_joint(joint_elem) -> Joint:
    name = _required_attr(joint_elem, "name")
    type_name = _required_attr(joint_elem, "type")
    try:
        joint_type = JointType(type_name)
    except ValueError:
        raise ParseError(f"Joint '{name}' has unsupported type '{type_name}'") from None

    parent_elem = joint_elem.find("parent")
    child_elem = joint_elem.find("child")
    if parent_elem is None or child_elem is None:
        raise ParseError(f"Joint '{name}' needs both <parent> and <child>")

    origin = _parse_origin(joint_elem.find("origin"))

    if joint_type.is_movable:
        axis = _parse_vector(joint_elem.find("axis"), "xyz", "1 0 0")
        norm = np.linalg.norm(axis)
        if norm < 1e-12:
            raise ParseError(f"Joint '{name}' has a zero motion axis")
        axis = axis / norm
    else:
        axis = np.zeros(3)

    return Joint(
        name=name,
        joint_type=joint_type,
        parent=_required_attr(parent_elem, "link"),
        child=_required_attr(child_elem, "link"),
        origin=origin,
        axis=jnp.array(axis),
    )


def _parse_visual(link_elem):
    """Mesh reference (or None) and visual origin of a link's first visual."""
    visual = link_elem.find("visual")
    if visual is None:
        return None, jnp.eye(4)
    visual_origin = _parse_origin(visual.find("origin"))
    mesh_elem = visual.find("geometry/mesh")
    if mesh_elem is None:
        return None, visual_origin
    return _required_attr(mesh_elem, "filename"), visual_origin
