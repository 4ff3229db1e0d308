"""I/O utilities for loading robot descriptions.

This module parses URDF files into the immutable KinematicGraph used by chain
extraction and forward kinematics.
"""

from .urdf_parser import load_urdf, resolve_mesh_path

__all__ = ["load_urdf", "resolve_mesh_path"]
