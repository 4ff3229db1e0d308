"""
Scene Kinematics: mirror robot forward kinematics into a display scene graph.

The package loads URDF robot descriptions, extracts kinematic chains, solves
forward kinematics with JAX and keeps a host scene graph of transform nodes in
sync with the computed poses.
"""

import jax
jax.config.update("jax_enable_x64", True)

from . import transforms
from . import core
from . import io
from . import sync
from .chain import chain_configuration, extract_chain, forward_kinematics
from .config import SyncConfig, load_config
from .errors import (
    ChainError,
    ConfigError,
    ConfigurationLengthMismatchError,
    FKError,
    LoadError,
    MissingGeometryError,
    NoPathError,
    NoRootError,
    ParseError,
    SceneKinematicsError,
    SingularChainError,
    SyncError,
    UnknownLinkError,
    UnmappedLinkError,
)
from .lookup import lookup_transform, to_position_and_quaternion
from .session import open_session

__version__ = "0.1.0"
__all__ = [
    "transforms",
    "core",
    "io",
    "sync",
    "extract_chain",
    "forward_kinematics",
    "chain_configuration",
    "lookup_transform",
    "to_position_and_quaternion",
    "SyncConfig",
    "load_config",
    "open_session",
    "SceneKinematicsError",
    "LoadError",
    "ParseError",
    "MissingGeometryError",
    "NoRootError",
    "ChainError",
    "UnknownLinkError",
    "NoPathError",
    "FKError",
    "ConfigurationLengthMismatchError",
    "SingularChainError",
    "SyncError",
    "UnmappedLinkError",
    "ConfigError",
]
